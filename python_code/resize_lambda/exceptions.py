"""
Error taxonomy for the Image Resize pipeline.

Each exception is tied to one capability call. The batch processor catches
`ResizeError` subclasses per record and reports them; anything else is
treated as unexpected and propagates to the Lambda runtime.
"""


class ResizeError(Exception):
    """Base class for every failure the pipeline knows how to report."""

    stage = "unknown"


class InputError(ResizeError):
    """The incoming event, or one of its records, is absent or malformed."""

    stage = "input"


class FetchError(ResizeError):
    """The source object could not be retrieved."""

    stage = "fetch"


class TransformError(ResizeError):
    """The source bytes could not be decoded or re-encoded as an image."""

    stage = "transform"


class StoreError(ResizeError):
    """The resized object could not be written to the destination bucket."""

    stage = "store"


class NotifyError(ResizeError):
    """A message could not be published to a notification topic."""

    stage = "notify"


class MetricError(ResizeError):
    """The ResizeCount metric could not be emitted."""

    stage = "metric"
