"""
Connectivity state and degraded-mode reads.

OfflineController flips to OFFLINE after enough consecutive connectivity
failures and back to ONLINE on the next success. While offline, reads are
served from the cache or from a FallbackProvider and the remote is probed at
most once per probe interval.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pagesync.clock import Clock, SystemClock
from pagesync.events import Event, EventKind, Notifier, NullNotifier
from pagesync.exceptions import NetworkError, PageSyncError, RateLimitedError, ServerError
from pagesync.logging import get_logger
from pagesync.types.files import DataSource, FileContent

logger = get_logger("offline")

# Errors that say the remote is unreachable or unusable right now
QUALIFYING_ERRORS: tuple[type[PageSyncError], ...] = (NetworkError, RateLimitedError, ServerError)


class ConnectivityState(Enum):
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class OfflineConfig:
    """Thresholds for OfflineController."""

    failure_threshold: int = 1  # Consecutive qualifying failures before going offline
    probe_interval: float = 60.0  # Seconds between connectivity probes


class FallbackProvider(ABC):
    """Source of placeholder content for paths that cannot be read."""

    @abstractmethod
    def fallback_content(self, path: str) -> str | None:
        """Return placeholder content for ``path``, or None if there is none."""
        pass


class EmptyFallbackProvider(FallbackProvider):
    """Provides no fallback content."""

    def fallback_content(self, path: str) -> str | None:
        return None


class StaticFallbackProvider(FallbackProvider):
    """Fallback content from a fixed path-to-content mapping."""

    def __init__(self, contents: Mapping[str, str]) -> None:
        self._contents = dict(contents)

    def fallback_content(self, path: str) -> str | None:
        return self._contents.get(path)


class OfflineController:
    """
    Tracks whether the remote is reachable.

    Transitions are decided under a lock and announced to the Notifier after
    the lock is released, exactly once per transition.

    Example:
        ```python
        offline = OfflineController(OfflineConfig(failure_threshold=3))
        try:
            data = fetch()
            offline.record_success()
        except PageSyncError as e:
            if not offline.record_failure(e):
                raise
        ```
    """

    def __init__(
        self,
        config: OfflineConfig | None = None,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        fallback: FallbackProvider | None = None,
    ) -> None:
        self.config = config if config is not None else OfflineConfig()
        self.notifier = notifier if notifier is not None else NullNotifier()
        self.clock = clock if clock is not None else SystemClock()
        self.fallback = fallback if fallback is not None else EmptyFallbackProvider()
        self._lock = threading.Lock()
        self._state = ConnectivityState.ONLINE
        self._failures = 0
        self._last_probe: float | None = None  # Monotonic; also set on entering offline
        self._last_error: str | None = None

    @property
    def state(self) -> ConnectivityState:
        with self._lock:
            return self._state

    @property
    def is_offline(self) -> bool:
        return self.state is ConnectivityState.OFFLINE

    def record_failure(self, error: Exception) -> bool:
        """
        Count a failed remote call.

        Args:
            error: The error that surfaced from the call

        Returns:
            True if the error is a connectivity failure (and was counted)
        """
        if not isinstance(error, QUALIFYING_ERRORS):
            return False

        entered = False
        with self._lock:
            self._failures += 1
            self._last_error = str(error)
            if (
                self._state is ConnectivityState.ONLINE
                and self._failures >= self.config.failure_threshold
            ):
                self._state = ConnectivityState.OFFLINE
                self._last_probe = self.clock.monotonic()
                entered = True
            failures = self._failures

        if entered:
            self._announce(
                EventKind.ENTERED_OFFLINE,
                "Remote unreachable, serving cached and fallback content",
                {"failures": failures, "error": str(error)},
            )
        return True

    def record_success(self) -> None:
        """Reset the failure count and leave offline mode if active."""
        exited = False
        with self._lock:
            self._failures = 0
            self._last_error = None
            if self._state is ConnectivityState.OFFLINE:
                self._state = ConnectivityState.ONLINE
                self._last_probe = None
                exited = True

        if exited:
            self._announce(EventKind.EXITED_OFFLINE, "Remote reachable again", {})

    def set_offline(self, offline: bool, reason: str = "manual") -> None:
        """Force a connectivity state."""
        if not offline:
            self.record_success()
            return

        entered = False
        with self._lock:
            if self._state is ConnectivityState.ONLINE:
                self._state = ConnectivityState.OFFLINE
                self._last_probe = self.clock.monotonic()
                entered = True
        if entered:
            self._announce(EventKind.ENTERED_OFFLINE, f"Offline mode enabled ({reason})", {})

    def should_probe(self) -> bool:
        """
        Claim the next probe slot.

        Returns True at most once per probe interval while offline, so
        concurrent readers do not probe together.
        """
        with self._lock:
            if self._state is not ConnectivityState.OFFLINE:
                return False
            now = self.clock.monotonic()
            if self._last_probe is not None and now - self._last_probe < self.config.probe_interval:
                return False
            self._last_probe = now
            return True

    def probe(self, probe_fn: Callable[[], Any]) -> bool:
        """
        Run one connectivity probe.

        Args:
            probe_fn: A lightweight single-attempt remote call

        Returns:
            True if the remote answered (and the controller is online again)

        Raises:
            PageSyncError: Errors that are not connectivity failures
        """
        try:
            probe_fn()
        except QUALIFYING_ERRORS as e:
            with self._lock:
                self._last_error = str(e)
            logger.info(f"connectivity probe failed: {e}")
            return False
        self.record_success()
        return True

    def fallback_for(self, path: str) -> FileContent:
        """Placeholder content for ``path`` tagged as fallback data."""
        content = self.fallback.fallback_content(path)
        return FileContent(
            path=path,
            content=content,
            size=len(content.encode("utf-8")) if content is not None else 0,
            source=DataSource.FALLBACK,
        )

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "consecutive_failures": self._failures,
                "last_error": self._last_error,
            }

    def _announce(self, kind: EventKind, message: str, data: dict[str, Any]) -> None:
        if kind is EventKind.ENTERED_OFFLINE:
            logger.warning(message)
        else:
            logger.info(message)
        self.notifier.notify(Event(kind=kind, message=message, data=data, timestamp=self.clock.time()))


__all__ = [
    "ConnectivityState",
    "EmptyFallbackProvider",
    "FallbackProvider",
    "OfflineConfig",
    "OfflineController",
    "StaticFallbackProvider",
]
