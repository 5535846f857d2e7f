"""Cooperative cancellation tokens carried into blocking protocol calls."""

from __future__ import annotations

import threading
import time

from memtui_core.errors import OperationCancelled


class CancelToken:
    """
    A cancellation flag with an optional deadline.

    Workers poll ``cancelled`` between blocking steps; the owner calls
    ``cancel()``. A token whose deadline has passed reports itself as
    cancelled and ``expired`` is True.
    """

    def __init__(self, timeout: float | None = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.expired

    def remaining(self, cap: float | None = None) -> float | None:
        """Seconds until the deadline (never negative), bounded by ``cap``."""
        if self._deadline is None:
            return cap
        left = max(0.0, self._deadline - time.monotonic())
        return left if cap is None else min(left, cap)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()
        if self.expired:
            raise OperationCancelled("operation timed out")

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        return self._event.wait(self.remaining(seconds)) or self.expired


def background() -> CancelToken:
    """A token that never fires unless cancelled explicitly."""
    return CancelToken()
