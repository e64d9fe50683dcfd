"""
Data models for the Image Resize pipeline.

This module defines the data contracts passed between the handler, the core
orchestration logic and the capability adapters. TypedDicts describe the
slice of the S3 notification payload we actually read; dataclasses carry
values produced while a batch is processed; Protocols describe the four
external capabilities so the core can be driven by real AWS adapters or by
in-memory fakes.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, TypedDict


class S3ObjectEntity(TypedDict, total=False):
    key: str
    size: int
    eTag: str


class S3BucketEntity(TypedDict, total=False):
    name: str


class S3Entity(TypedDict, total=False):
    bucket: S3BucketEntity
    object: S3ObjectEntity


class S3EventRecord(TypedDict, total=False):
    """
    Represents a single record of an S3 `ObjectCreated` notification.

    Only `s3.object.key` is required by the pipeline. The bucket name and size
    are used for logging and for the self-trigger guard when present.
    """

    eventName: str
    s3: S3Entity


@dataclass(frozen=True)
class SourceRecord:
    """
    A reference to one newly stored source object.

    Attributes:
        key: The URL-decoded object key.
        bucket: The bucket named in the notification, if any. Fetching always
                uses the configured source bucket.
        size: The object size reported by the notification, if any.
    """

    key: str
    bucket: Optional[str] = None
    size: Optional[int] = None


@dataclass(frozen=True)
class TransformOutcome:
    """The derived destination key and the resized bytes for one record."""

    destination_key: str
    body: bytes


@dataclass(frozen=True)
class ResizeSettings:
    """
    Static settings the batch processor needs for every record.

    Attributes:
        source_bucket: Bucket the source objects are fetched from.
        destination_bucket: Bucket the resized objects are written to.
        resize_topic: Topic receiving one success message per record.
        high_activity_topic: Topic receiving high-activity alerts.
        destination_prefix: Prepended to the source key to form the
                            destination key.
        metric_name: Name of the counter emitted once per resized image.
    """

    source_bucket: str
    destination_bucket: str
    resize_topic: str
    high_activity_topic: str
    destination_prefix: str = "resized-"
    metric_name: str = "ResizeCount"


@dataclass(frozen=True)
class RecordFailure:
    """Why one record of a batch was not fully processed."""

    key: str
    stage: str
    error_type: str
    message: str


@dataclass
class BatchResult:
    """
    The outcome of processing one batch.

    Attributes:
        processed: Destination keys written, in processing order.
        skipped: Source keys deliberately ignored (already-resized objects).
        failures: One entry per record whose processing was terminated.
        alerts: High-activity alert messages produced during the batch.
    """

    processed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failures: List[RecordFailure] = field(default_factory=list)
    alerts: List[str] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


class Storage(Protocol):
    def get(self, bucket: str, key: str) -> bytes: ...

    def put(self, bucket: str, key: str, body: bytes, content_type: str) -> None: ...


class Transformer(Protocol):
    content_type: str

    def resize(self, data: bytes) -> bytes: ...


class Notifier(Protocol):
    def publish(self, topic: str, message: str) -> str: ...


class Metrics(Protocol):
    def increment(self, name: str, unit: str = "Count", value: float = 1) -> None: ...
