"""
Core business logic for the Image Resize pipeline.

These functions and classes contain no direct AWS SDK calls and no global
state. Every collaborator (storage, transformer, notifier, metrics, activity
tracker, clock and the Powertools logger) is handed in by the main handler in
app.py, allowing the orchestration to be unit-tested with in-memory fakes.

Failure policy: a failure in any step of a record terminates that record
only. It is logged, recorded in the returned `BatchResult`, and the remaining
records of the batch are still attempted.
"""

import time
from typing import Any, Callable, List, Mapping, Tuple, cast
from urllib.parse import unquote_plus

from aws_lambda_powertools import Logger

from .activity import ActivityWindowTracker
from .exceptions import InputError, ResizeError
from .model import (
    BatchResult,
    Metrics,
    Notifier,
    RecordFailure,
    ResizeSettings,
    S3EventRecord,
    SourceRecord,
    Storage,
    TransformOutcome,
    Transformer,
)


def _parse_record(raw: S3EventRecord) -> SourceRecord:
    """
    Reads one S3 notification record, raising InputError when its shape is wrong.

    Only the object key is required; the bucket name and size are optional and
    ignored when they have an unexpected type.
    """
    if not isinstance(raw, Mapping):
        raise InputError(f"Record is not a mapping: {type(raw).__name__}")
    s3 = raw.get("s3")
    if not isinstance(s3, Mapping):
        raise InputError("Record has no 's3' entity.")
    s3_object = s3.get("object")
    if not isinstance(s3_object, Mapping):
        raise InputError("Record has no 's3.object' entity.")
    key = s3_object.get("key")
    if not isinstance(key, str) or not key:
        raise InputError(f"Record has an invalid object key: {key!r}")

    bucket = s3.get("bucket") or {}
    bucket_name = bucket.get("name") if isinstance(bucket, Mapping) else None
    size = s3_object.get("size")
    return SourceRecord(
        key=unquote_plus(key),
        bucket=bucket_name if isinstance(bucket_name, str) else None,
        size=size if isinstance(size, int) else None,
    )


def extract_records(
    event: Any, logger: Logger
) -> Tuple[List[SourceRecord], List[RecordFailure]]:
    """
    Pulls the source object references out of an S3 notification event.

    Args:
        event: The raw Lambda event.
        logger: The Powertools Logger instance for structured logging.

    Returns:
        A tuple of (records, failures). Malformed records are not returned as
        records; each produces an `InputError` failure instead.

    Raises:
        InputError: If the event is not a mapping or carries no records.
    """
    if not isinstance(event, Mapping):
        raise InputError(f"Event is not a mapping: {type(event).__name__}")
    raw_records = event.get("Records")
    if not raw_records or not isinstance(raw_records, list):
        raise InputError("No records found in event.")

    records: List[SourceRecord] = []
    failures: List[RecordFailure] = []
    for index, raw in enumerate(cast(List[S3EventRecord], raw_records)):
        try:
            records.append(_parse_record(raw))
        except InputError as e:
            logger.error(
                "Malformed S3 event record.", extra={"index": index, "error": str(e)}
            )
            failures.append(
                RecordFailure(
                    key=f"<record {index}>",
                    stage=e.stage,
                    error_type=type(e).__name__,
                    message=str(e),
                )
            )
    return records, failures


def derive_destination_key(source_key: str, prefix: str = "resized-") -> str:
    """Destination keys are the source key with a fixed prefix; overwrites are allowed."""
    return f"{prefix}{source_key}"


def format_success_message(source_key: str, destination_key: str, bucket: str) -> str:
    return (
        f"Image {source_key} resized and uploaded as {destination_key} "
        f"to bucket {bucket}."
    )


class BatchProcessor:
    """
    Drives each record of a batch through fetch, transform, store, notify,
    meter and account, in arrival order.

    The processor is the sole owner and caller of its `ActivityWindowTracker`.
    Records are handled strictly one after another so that the tracker sees
    exactly one event per successful record, in submission order.
    """

    def __init__(
        self,
        storage: Storage,
        transformer: Transformer,
        notifier: Notifier,
        metrics: Metrics,
        tracker: ActivityWindowTracker,
        settings: ResizeSettings,
        logger: Logger,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.transformer = transformer
        self.notifier = notifier
        self.metrics = metrics
        self.tracker = tracker
        self.settings = settings
        self.logger = logger
        self.clock = clock

    def process(self, records: List[SourceRecord]) -> BatchResult:
        """
        Processes a batch of records, isolating failures per record.

        Args:
            records: The source records of one invocation, in arrival order.

        Returns:
            A BatchResult describing what was written, skipped and failed, and
            any high-activity alerts raised along the way.
        """
        result = BatchResult()
        if not records:
            self.logger.warning("No records to process.")
            return result

        for record in records:
            if self._is_own_output(record):
                self.logger.info(
                    "Skipping already resized object.", extra={"key": record.key}
                )
                result.skipped.append(record.key)
                continue
            try:
                outcome = self._resize(record)
                self._announce(record, outcome)
            except ResizeError as e:
                self._record_failure(result, record, e, e.stage)
                continue
            result.processed.append(outcome.destination_key)

            alert = self.tracker.record_event(self.clock())
            if alert is None:
                continue
            result.alerts.append(alert)
            self.logger.warning("High activity detected.", extra={"alert": alert})
            try:
                self.notifier.publish(self.settings.high_activity_topic, alert)
            except ResizeError as e:
                self._record_failure(result, record, e, "alert")

        self.logger.info(
            "Batch processed.",
            extra={
                "processed": len(result.processed),
                "skipped": len(result.skipped),
                "failed": len(result.failures),
                "alerts": len(result.alerts),
            },
        )
        return result

    def _is_own_output(self, record: SourceRecord) -> bool:
        settings = self.settings
        return (
            settings.source_bucket == settings.destination_bucket
            and record.key.startswith(settings.destination_prefix)
        )

    def _resize(self, record: SourceRecord) -> TransformOutcome:
        settings = self.settings
        self.logger.debug(
            "Fetching source object.",
            extra={"bucket": settings.source_bucket, "key": record.key},
        )
        data = self.storage.get(settings.source_bucket, record.key)
        body = self.transformer.resize(data)
        destination_key = derive_destination_key(record.key, settings.destination_prefix)
        self.storage.put(
            settings.destination_bucket,
            destination_key,
            body,
            self.transformer.content_type,
        )
        self.logger.info(
            "Stored resized image.",
            extra={
                "source_key": record.key,
                "destination_key": destination_key,
                "bytes": len(body),
            },
        )
        return TransformOutcome(destination_key=destination_key, body=body)

    def _announce(self, record: SourceRecord, outcome: TransformOutcome) -> None:
        settings = self.settings
        message = format_success_message(
            record.key, outcome.destination_key, settings.destination_bucket
        )
        self.notifier.publish(settings.resize_topic, message)
        self.metrics.increment(settings.metric_name, unit="Count", value=1)

    def _record_failure(
        self,
        result: BatchResult,
        record: SourceRecord,
        error: ResizeError,
        stage: str,
    ) -> None:
        self.logger.error(
            "Record processing failed.",
            extra={
                "key": record.key,
                "stage": stage,
                "error_type": type(error).__name__,
                "error": str(error),
            },
        )
        result.failures.append(
            RecordFailure(
                key=record.key,
                stage=stage,
                error_type=type(error).__name__,
                message=str(error),
            )
        )
