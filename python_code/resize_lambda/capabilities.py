"""
Adapters binding the pipeline's four capabilities to real services.

Each adapter wraps exactly one external collaborator and translates its
failures into the pipeline's error taxonomy, so the core only ever sees
`ResizeError` subclasses.
"""

import io

from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_cloudwatch import CloudWatchClient
from mypy_boto3_s3 import S3Client
from mypy_boto3_sns import SNSClient
from PIL import Image, ImageOps, UnidentifiedImageError

from .exceptions import FetchError, MetricError, NotifyError, StoreError, TransformError

# Modes Pillow can write to PNG without conversion.
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}

_CONTENT_TYPES = {"PNG": "image/png", "JPEG": "image/jpeg", "WEBP": "image/webp"}


class S3Storage:
    """Retrieve-by-key and store-by-key against S3 buckets."""

    def __init__(self, s3_client: S3Client):
        self._s3 = s3_client

    def get(self, bucket: str, key: str) -> bytes:
        try:
            response = self._s3.get_object(Bucket=bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            raise FetchError(f"Could not fetch s3://{bucket}/{key} ({code})") from e
        except BotoCoreError as e:
            raise FetchError(f"Could not fetch s3://{bucket}/{key}: {e}") from e

    def put(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        try:
            self._s3.put_object(
                Bucket=bucket, Key=key, Body=body, ContentType=content_type
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Could not store s3://{bucket}/{key}: {e}") from e


class PillowTransformer:
    """
    Resizes images to a fixed width and height using Pillow.

    The source is scaled to cover the target box and centre-cropped, so the
    output always has exactly the requested dimensions.
    """

    def __init__(self, width: int = 100, height: int = 100, image_format: str = "PNG"):
        if width < 1 or height < 1:
            raise ValueError(f"Invalid target size {width}x{height}")
        self.width = width
        self.height = height
        self.image_format = image_format.upper()
        self.content_type = _CONTENT_TYPES.get(self.image_format, "application/octet-stream")

    def resize(self, data: bytes) -> bytes:
        if not data:
            raise TransformError("Source object is empty.")
        try:
            with Image.open(io.BytesIO(data)) as image:
                image = ImageOps.exif_transpose(image)
                if self.image_format == "PNG" and image.mode not in _PNG_MODES:
                    image = image.convert("RGBA")
                resized = ImageOps.fit(
                    image, (self.width, self.height), method=Image.Resampling.LANCZOS
                )
                buffer = io.BytesIO()
                resized.save(buffer, format=self.image_format)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise TransformError(f"Could not resize image: {e}") from e
        return buffer.getvalue()


class SnsNotifier:
    """Publishes plain-text messages to SNS topics."""

    def __init__(self, sns_client: SNSClient):
        self._sns = sns_client

    def publish(self, topic: str, message: str) -> str:
        try:
            response = self._sns.publish(TopicArn=topic, Message=message)
        except (ClientError, BotoCoreError) as e:
            raise NotifyError(f"Could not publish to {topic}: {e}") from e
        return response["MessageId"]


class CloudWatchMetrics:
    """Emits counter metrics with `put_metric_data` in a fixed namespace."""

    def __init__(self, cloudwatch_client: CloudWatchClient, namespace: str):
        self._cloudwatch = cloudwatch_client
        self.namespace = namespace

    def increment(self, name: str, unit: str = "Count", value: float = 1) -> None:
        try:
            self._cloudwatch.put_metric_data(
                Namespace=self.namespace,
                MetricData=[{"MetricName": name, "Unit": unit, "Value": value}],
            )
        except (ClientError, BotoCoreError) as e:
            raise MetricError(f"Could not emit metric {name}: {e}") from e
