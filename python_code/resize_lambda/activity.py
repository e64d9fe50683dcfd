"""
High-activity detection for the Image Resize pipeline.

The tracker counts resize operations inside a fixed-length window that is
reset only when an event arrives after the window has expired. The event
that triggers the reset is counted as the first of the new window. Once the
count reaches the threshold an alert message is produced and the count drops
back to zero while the window start stays where it was.

The state lives in memory for the lifetime of the execution environment and
is lost on a cold start.
"""

import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

DEFAULT_THRESHOLD = 5
DEFAULT_WINDOW_SECONDS = 600


@dataclass
class ActivityWindowState:
    count: int
    window_start: float


def _describe_window(window_seconds: float) -> str:
    if window_seconds % 60 == 0:
        return f"{int(window_seconds // 60)} minutes"
    return f"{window_seconds:g} seconds"


class ActivityWindowTracker:
    """
    Decides, once per successfully resized image, whether the activity count
    accumulates or restarts, and whether a high-activity alert is due.

    Calls to `record_event` are serialised with a lock so the state is only
    ever mutated by one caller at a time.
    """

    def __init__(
        self,
        threshold: int = DEFAULT_THRESHOLD,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        window_start: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        if threshold < 1:
            raise ValueError(f"threshold must be at least 1, got {threshold}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self.threshold = threshold
        self.window_seconds = window_seconds
        start = clock() if window_start is None else window_start
        self._state = ActivityWindowState(count=0, window_start=start)
        self._lock = threading.Lock()

    def record_event(self, now: float) -> Optional[str]:
        """
        Accounts for one resized image at time `now`.

        Args:
            now: The wall-clock time of the event, in seconds.

        Returns:
            The alert message when the post-update count reaches the threshold,
            otherwise None.
        """
        with self._lock:
            state = self._state
            if now - state.window_start < self.window_seconds:
                state.count += 1
            else:
                state.count = 1
                state.window_start = now

            if state.count < self.threshold:
                return None

            message = (
                f"High activity detected: {state.count} images resized "
                f"in the last {_describe_window(self.window_seconds)}."
            )
            # Only the count restarts; window_start keeps its value.
            state.count = 0
            return message

    def snapshot(self) -> ActivityWindowState:
        with self._lock:
            return replace(self._state)
