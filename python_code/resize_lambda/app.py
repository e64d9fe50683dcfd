"""
Main AWS Lambda handler for the Image Resize pipeline.

This module serves as the primary entry point and orchestrator for the function.
Its responsibilities include:
  - Loading and validating configuration from environment variables.
  - Initializing and caching the AWS clients, capability adapters and the
    activity tracker for the lifetime of the execution environment.
  - Receiving S3 `ObjectCreated` notifications.
  - Calling the testable business logic in the 'core' module.
  - Building the response and logging the overall outcome of the batch.
"""

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

from . import clients, core
from .activity import ActivityWindowTracker
from .capabilities import CloudWatchMetrics, PillowTransformer, S3Storage, SnsNotifier
from .exceptions import InputError
from .model import BatchResult, ResizeSettings

# --- 1. SETUP: Configuration, Validation, and Clients ---

def get_env_var(name: str, default: Optional[str] = None) -> str:
    """
    Gets an environment variable or raises a ValueError for fast-failure.

    Args:
        name: The name of the environment variable.
        default: An optional default value. If not provided, the variable is required.

    Returns:
        The value of the environment variable.

    Raises:
        ValueError: If the required environment variable is not set.
    """
    value = os.environ.get(name, default)
    if value is None:
        raise ValueError(f"FATAL: Environment variable '{name}' is not set.")
    return value


def get_int_env_var(name: str, default: int, minimum: int) -> int:
    """Reads an integer setting, failing fast when it is malformed or below `minimum`."""
    raw = get_env_var(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"FATAL: Environment variable '{name}' must be an integer, got '{raw}'.")
    if value < minimum:
        raise ValueError(f"FATAL: Environment variable '{name}' must be >= {minimum}, got {value}.")
    return value


# --- Configuration (loaded once at cold start) ---
SRC_BUCKET = get_env_var("SRC_BUCKET")
DEST_BUCKET = get_env_var("DEST_BUCKET")
RESIZE_SNS_TOPIC = get_env_var("RESIZE_SNS_TOPIC")
HIGH_ACTIVITY_SNS = get_env_var("HIGH_ACTIVITY_SNS")
ACTIVITY_THRESHOLD = get_int_env_var("ACTIVITY_THRESHOLD", 5, minimum=1)
ACTIVITY_WINDOW_SECONDS = get_int_env_var("ACTIVITY_WINDOW_SECONDS", 600, minimum=1)
RESIZE_WIDTH = get_int_env_var("RESIZE_WIDTH", 100, minimum=1)
RESIZE_HEIGHT = get_int_env_var("RESIZE_HEIGHT", 100, minimum=1)
METRICS_NAMESPACE = get_env_var("METRICS_NAMESPACE", "ImageResizer")
DEST_KEY_PREFIX = get_env_var("DEST_KEY_PREFIX", "resized-")
ENVIRONMENT = get_env_var("ENVIRONMENT", "dev")
LOG_LEVEL = get_env_var("LOG_LEVEL", "INFO").upper()

# --- Global Setup ---
logger = Logger(service="image-resizer", level=LOG_LEVEL)
logger.append_keys(environment=ENVIRONMENT)

# Built on the first invocation and kept for the lifetime of the execution
# environment; the tracker inside it is the single activity counter.
PROCESSOR: Optional[core.BatchProcessor] = None

# --- 2. STATEFUL ORCHESTRATION ---

def get_processor() -> core.BatchProcessor:
    """
    Returns the cached batch processor, building it on first use.

    The processor owns the activity tracker, so caching it here is what keeps
    the activity count alive across warm invocations. A cold start begins a
    fresh window with a zero count.
    """
    global PROCESSOR
    if PROCESSOR is not None:
        return PROCESSOR

    logger.info("Initializing resize processor.")
    s3_client, sns_client, cloudwatch_client = clients.get_boto_clients()
    settings = ResizeSettings(
        source_bucket=SRC_BUCKET,
        destination_bucket=DEST_BUCKET,
        resize_topic=RESIZE_SNS_TOPIC,
        high_activity_topic=HIGH_ACTIVITY_SNS,
        destination_prefix=DEST_KEY_PREFIX,
    )
    PROCESSOR = core.BatchProcessor(
        storage=S3Storage(s3_client),
        transformer=PillowTransformer(RESIZE_WIDTH, RESIZE_HEIGHT),
        notifier=SnsNotifier(sns_client),
        metrics=CloudWatchMetrics(cloudwatch_client, METRICS_NAMESPACE),
        tracker=ActivityWindowTracker(
            threshold=ACTIVITY_THRESHOLD, window_seconds=ACTIVITY_WINDOW_SECONDS
        ),
        settings=settings,
        logger=logger,
    )
    return PROCESSOR


def _build_response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    """Centralized helper to build the final Lambda response."""
    return {"statusCode": status_code, "body": json.dumps(body)}


def _summarize(result: BatchResult, latency_ms: int) -> Dict[str, Any]:
    return {
        "processed": result.processed,
        "skipped": result.skipped,
        "failures": [
            {"key": f.key, "stage": f.stage, "error_type": f.error_type, "message": f.message}
            for f in result.failures
        ],
        "alerts": result.alerts,
        "latency_ms": latency_ms,
    }

# --- 3. LAMBDA HANDLER ---

@logger.inject_lambda_context
def handler(event: Dict, context: LambdaContext) -> Dict[str, Any]:
    """
    Main Lambda entry point. Resizes every object named in an S3 notification.

    Per-record failures are reported in the response rather than raised, so a
    single bad object does not cause the whole batch to be redelivered. Only
    unexpected errors are re-raised to the Lambda runtime.

    Returns:
        200 when every record was processed or skipped, 207 when at least one
        record failed. The JSON body lists processed keys, skipped keys,
        failures and high-activity alerts.
    """
    start_time = datetime.now(timezone.utc)
    try:
        records, failures = core.extract_records(event, logger)
    except InputError as e:
        logger.warning(f"No records found in event: {e}", extra={"event": event})
        return _build_response(200, {"message": "No records to process."})

    logger.info(f"Received {len(records)} records to process.")

    try:
        result = get_processor().process(records) if records else BatchResult()
    except Exception as e:
        latency_ms = int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)
        error_payload = {"error_type": type(e).__name__, "error_message": str(e), "latency_ms": latency_ms}
        logger.error(f"Processing failed: {json.dumps(error_payload)}", exc_info=True)
        raise

    result.failures[:0] = failures
    latency_ms = int((datetime.now(timezone.utc) - start_time).total_seconds() * 1000)
    summary = _summarize(result, latency_ms)
    if result.has_failures:
        logger.error("Batch completed with failures.", extra=summary)
        return _build_response(207, summary)

    logger.info("Successfully processed batch.", extra=summary)
    return _build_response(200, summary)
