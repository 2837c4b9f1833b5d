"""
Deadline and cancellation propagation for collection runs.

A CollectionContext is passed from collect() down to every network call and
subprocess so that cancelling the run, or reaching its deadline, stops work
promptly.
"""

import threading
import time
from typing import Optional

from core.exceptions import CollectionCancelledError


class CollectionContext:
    """
    Carries an optional deadline and a cancellation flag.

    Timeouts for downstream calls are derived with timeout(), which caps a
    per-call default by the time remaining until the deadline.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize collection context.

        Args:
            timeout: Seconds until the deadline; None means no deadline
        """
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Signal cancellation to every holder of this context."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left until the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def check(self) -> None:
        """
        Raise if the run was cancelled or its deadline passed.

        Raises:
            CollectionCancelledError: If work must stop
        """
        if self.cancelled:
            raise CollectionCancelledError("collection cancelled")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise CollectionCancelledError("collection deadline exceeded")

    def timeout(self, default: Optional[float]) -> Optional[float]:
        """
        Timeout for a single downstream call.

        Args:
            default: Per-call timeout used when it is shorter than the deadline

        Returns:
            The smaller of default and the remaining time
        """
        self.check()
        remaining = self.remaining()
        if remaining is None:
            return default
        if default is None:
            return remaining
        return min(default, remaining)


def background() -> CollectionContext:
    """Context without deadline, for callers that do not cancel."""
    return CollectionContext()
