# Copyright 2026 Canonical Ltd.
# See LICENSE file for licensing details.

"""Cancellation and deadline signal passed down every operation."""

import threading
import time
from typing import Callable, Optional

from .exceptions import OperationCancelledError


class OperationContext:
    """Cancellation signal shared by one apply operation.

    The context is cancelled either explicitly through `cancel` or implicitly
    once its deadline (a `time.monotonic` timestamp) has passed.
    """

    def __init__(self, deadline: Optional[float] = None):
        """Initialize the context.

        Args:
            deadline: Monotonic timestamp after which the context is cancelled.
        """
        self.deadline = deadline
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @classmethod
    def with_timeout(cls, seconds: float) -> "OperationContext":
        """Create a context expiring after the given number of seconds.

        Args:
            seconds: Time budget of the operation.

        Returns:
            OperationContext: The new context.
        """
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        """Cancel the operation and run the registered cancel callbacks."""
        with self._lock:
            self._cancelled.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback run once when the context gets cancelled.

        The callback runs right away when the context is already cancelled.

        Args:
            callback: Callable taking no argument.

        Returns:
            Callable removing the callback once the guarded work is over.
        """
        with self._lock:
            if not self._cancelled.is_set():
                self._callbacks.append(callback)
                return lambda: self._discard(callback)
        callback()
        return lambda: None

    def _discard(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    @property
    def cancelled(self) -> bool:
        """Indicate if the operation was cancelled or ran past its deadline.

        Returns:
            bool: True if no further work should be started.
        """
        if self._cancelled.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Get the time left before the deadline.

        Returns:
            Optional[float]: Seconds left, never negative, or None without a deadline.
        """
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        """Raise if the operation must stop.

        Raises:
            OperationCancelledError: When the context is cancelled.
        """
        if self.cancelled:
            raise OperationCancelledError("operation cancelled or deadline exceeded")

    def sleep(self, seconds: float) -> None:
        """Block for the given delay unless the context gets cancelled first.

        Args:
            seconds: Delay to wait.

        Raises:
            OperationCancelledError: When the context is cancelled before or during the wait.
        """
        self.raise_if_cancelled()
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        self._cancelled.wait(timeout)
        self.raise_if_cancelled()
