"""
Time source and cancellable waiting.

Every suspension in pagesync (throttle waits, retry backoff, deployment
polling) goes through a Clock so callers can cancel it and tests can
replace real time.
"""

import threading
import time
from abc import ABC, abstractmethod

from pagesync.exceptions import OperationCancelledError


class CancellationToken:
    """Caller-owned cancellation signal, safe to share across threads."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Signal cancellation to every wait observing this token."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelledError()

    def wait(self, timeout: float) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)


class Clock(ABC):
    """Abstract source of time and sleep."""

    @abstractmethod
    def time(self) -> float:
        """Wall-clock time in epoch seconds."""
        pass

    @abstractmethod
    def monotonic(self) -> float:
        """Monotonic seconds, for measuring intervals."""
        pass

    @abstractmethod
    def sleep(self, seconds: float, cancel: CancellationToken | None = None) -> None:
        """
        Suspend the caller for ``seconds``.

        Raises:
            OperationCancelledError: If ``cancel`` is set before or during the wait
        """
        pass


class SystemClock(Clock):
    """Clock backed by the real system time."""

    def time(self) -> float:
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, cancel: CancellationToken | None = None) -> None:
        if cancel is not None:
            cancel.raise_if_cancelled()
            if seconds > 0 and cancel.wait(seconds):
                raise OperationCancelledError()
            return
        if seconds > 0:
            time.sleep(seconds)


__all__ = ["CancellationToken", "Clock", "SystemClock"]
