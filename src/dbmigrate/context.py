"""Cancellation and timeout handle for long-running operations."""

import threading
import time

from .errors import OperationCancelledError

CANCELED = "context canceled"
DEADLINE_EXCEEDED = "context deadline exceeded"


class Context:
    """
    Cooperative cancellation signal with an optional deadline.

    A context is done once cancel() was called or its deadline passed.
    Operations check it before waiting on the lock and before each
    migration step; running driver calls are never interrupted.
    """

    def __init__(self, timeout: float | None = None):
        """
        Initialize context.

        Args:
            timeout: Seconds until the deadline, or None for no deadline
        """
        self._event = threading.Event()
        self._reason: str | None = None
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @classmethod
    def background(cls) -> "Context":
        """Context that is never done unless canceled."""
        return cls()

    def cancel(self, reason: str = CANCELED) -> None:
        """Cancel the context. Later calls keep the first reason."""
        if self._reason is None:
            self._reason = reason
        self._event.set()

    def remaining(self) -> float | None:
        """Seconds left until the deadline, or None without deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def done(self) -> bool:
        """Whether the context was canceled or its deadline passed."""
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.cancel(DEADLINE_EXCEEDED)
            return True
        return False

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until the context is done or timeout elapses.

        Returns:
            True if the context is done
        """
        remaining = self.remaining()
        if remaining is not None and (timeout is None or remaining < timeout):
            timeout = remaining
        self._event.wait(timeout)
        return self.done()

    @property
    def reason(self) -> str | None:
        """Why the context is done, or None while it is not."""
        self.done()
        return self._reason

    def error(self) -> OperationCancelledError | None:
        """Error describing why the context is done, or None."""
        if not self.done():
            return None
        return OperationCancelledError(self._reason or CANCELED)
