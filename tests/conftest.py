"""
Pytest fixtures and configuration for the test suite.

Environment variables are set before any test module imports
`resize_lambda.app`, which reads its configuration at import time. Core tests
use in-memory fakes for the four capabilities; handler tests run against
`moto`.
"""

import io
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

import pytest
from aws_lambda_powertools import Logger
from PIL import Image

os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SECURITY_TOKEN", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ["USE_MOTO"] = "1"
os.environ["SRC_BUCKET"] = "uploads"
os.environ["DEST_BUCKET"] = "thumbnails"
os.environ["RESIZE_SNS_TOPIC"] = "arn:aws:sns:us-east-1:123456789012:resize-success"
os.environ["HIGH_ACTIVITY_SNS"] = "arn:aws:sns:us-east-1:123456789012:high-activity"

from resize_lambda.activity import ActivityWindowTracker  # noqa: E402
from resize_lambda.core import BatchProcessor  # noqa: E402
from resize_lambda.exceptions import (  # noqa: E402
    FetchError,
    MetricError,
    NotifyError,
    StoreError,
    TransformError,
)
from resize_lambda.model import ResizeSettings  # noqa: E402

RESIZE_TOPIC = "topic/resize"
ALERT_TOPIC = "topic/alert"


def make_image_bytes(size=(400, 200), mode="RGB", image_format="JPEG") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, size, color="red" if mode == "RGB" else 0).save(
        buffer, format=image_format
    )
    return buffer.getvalue()


class FakeStorage:
    def __init__(self, objects: Optional[Dict[Tuple[str, str], bytes]] = None):
        self.objects = dict(objects or {})
        self.gets: List[Tuple[str, str]] = []
        self.puts: List[Tuple[str, str, bytes, str]] = []
        self.fail_puts: Set[str] = set()

    def get(self, bucket: str, key: str) -> bytes:
        self.gets.append((bucket, key))
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise FetchError(f"NoSuchKey: s3://{bucket}/{key}")

    def put(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        if key in self.fail_puts:
            raise StoreError(f"AccessDenied: s3://{bucket}/{key}")
        self.puts.append((bucket, key, body, content_type))
        self.objects[(bucket, key)] = body


class FakeTransformer:
    content_type = "image/png"

    def __init__(self):
        self.calls: List[bytes] = []

    def resize(self, data: bytes) -> bytes:
        self.calls.append(data)
        if data.startswith(b"corrupt"):
            raise TransformError("cannot identify image file")
        return b"png:" + data


class FakeNotifier:
    def __init__(self):
        self.published: List[Tuple[str, str]] = []
        self.fail_topics: Set[str] = set()

    def publish(self, topic: str, message: str) -> str:
        if topic in self.fail_topics:
            raise NotifyError(f"AuthorizationError on {topic}")
        self.published.append((topic, message))
        return f"msg-{len(self.published)}"

    def messages(self, topic: str) -> List[str]:
        return [m for t, m in self.published if t == topic]


class FakeMetrics:
    def __init__(self):
        self.emitted: List[Tuple[str, str, float]] = []
        self.fail = False

    def increment(self, name: str, unit: str = "Count", value: float = 1) -> None:
        if self.fail:
            raise MetricError("Throttling")
        self.emitted.append((name, unit, value))


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeLambdaContext:
    function_name: str = "image-resizer"
    memory_limit_in_mb: int = 256
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:image-resizer"
    aws_request_id: str = "req-0001"


def s3_event(*keys: str, bucket: str = "uploads") -> dict:
    return {
        "Records": [
            {
                "eventSource": "aws:s3",
                "eventName": "ObjectCreated:Put",
                "s3": {"bucket": {"name": bucket}, "object": {"key": key, "size": 1024}},
            }
            for key in keys
        ]
    }


@pytest.fixture
def logger() -> Logger:
    return Logger(service="image-resizer-test")


@pytest.fixture
def settings() -> ResizeSettings:
    return ResizeSettings(
        source_bucket="uploads",
        destination_bucket="thumbnails",
        resize_topic=RESIZE_TOPIC,
        high_activity_topic=ALERT_TOPIC,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1_000.0)


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def transformer() -> FakeTransformer:
    return FakeTransformer()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def metrics() -> FakeMetrics:
    return FakeMetrics()


@pytest.fixture
def tracker(clock) -> ActivityWindowTracker:
    return ActivityWindowTracker(clock=clock)


@pytest.fixture
def processor(storage, transformer, notifier, metrics, tracker, settings, logger, clock):
    return BatchProcessor(
        storage=storage,
        transformer=transformer,
        notifier=notifier,
        metrics=metrics,
        tracker=tracker,
        settings=settings,
        logger=logger,
        clock=clock,
    )
