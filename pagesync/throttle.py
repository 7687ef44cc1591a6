"""
Local request-rate governor.

RequestThrottle admits one request at a time under four ceilings: minimum
spacing, a rolling per-minute count, a rolling per-hour count, and the
quota last reported by the server.
"""

import threading
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from typing import Any

from pagesync.clock import CancellationToken, Clock, SystemClock
from pagesync.logging import log_throttle_wait

MINUTE = 60.0
HOUR = 3600.0


@dataclass
class ThrottleConfig:
    """Ceilings enforced by RequestThrottle."""

    min_interval: float = 0.1  # Seconds between consecutive requests
    per_minute: int = 60
    per_hour: int = 1000  # Kept below the remote's published 5000/h
    safety_margin: float = 0.05  # Added to window-based waits
    server_reserve: int = 0  # Stop when server quota falls to this value
    reset_buffer: float = 1.0  # Added to waits for the server reset time


@dataclass
class RateLimitState:
    """Server-reported quota, refreshed from response headers."""

    remaining: int | None = None
    limit: int | None = None
    reset_at: float | None = None  # Epoch seconds

    def update(self, headers: Mapping[str, str]) -> None:
        """Update from X-RateLimit-* headers; absent headers leave fields unchanged."""
        remaining = _parse_int(headers.get("X-RateLimit-Remaining"))
        limit = _parse_int(headers.get("X-RateLimit-Limit"))
        reset = _parse_int(headers.get("X-RateLimit-Reset"))

        if remaining is not None:
            self.remaining = max(0, remaining)
        if limit is not None:
            self.limit = limit
        if reset is not None:
            self.reset_at = float(reset)

    def refresh(self, now: float) -> None:
        """Reset the budget once the reset time has passed."""
        if self.reset_at is not None and now >= self.reset_at:
            self.remaining = self.limit
            self.reset_at = None


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class RequestThrottle:
    """
    Blocks callers until issuing one more request is within every ceiling.

    Requests are never rejected, only delayed. The check and the ledger
    update happen under one lock, so concurrent callers cannot jointly
    overshoot a ceiling.

    Example:
        ```python
        throttle = RequestThrottle(ThrottleConfig(per_minute=30))
        throttle.admit()          # returns once it is safe to send
        throttle.update_from_headers(response.headers)
        ```
    """

    def __init__(
        self,
        config: ThrottleConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config if config is not None else ThrottleConfig()
        self.clock = clock if clock is not None else SystemClock()
        self.state = RateLimitState()
        self._ledger: deque[float] = deque()
        self._lock = threading.Lock()

    def admit(self, cancel: CancellationToken | None = None) -> None:
        """
        Wait until one more request is allowed, then record it.

        Args:
            cancel: Optional token checked before every wait segment

        Raises:
            OperationCancelledError: If cancelled while waiting
        """
        while True:
            with self._lock:
                now = self.clock.monotonic()
                self._prune(now)
                wait, reason = self._compute_wait(now)
                if wait <= 0:
                    self._ledger.append(now)
                    if self.state.remaining is not None:
                        self.state.remaining = max(0, self.state.remaining - 1)
                    return

            log_throttle_wait(reason, wait)
            self.clock.sleep(wait, cancel)

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """Record the quota reported by the server on a response."""
        with self._lock:
            self.state.update(headers)

    def reconfigure(self, **changes: Any) -> ThrottleConfig:
        """
        Adjust ceilings at runtime.

        Args:
            **changes: ThrottleConfig field names and new values

        Returns:
            The new configuration

        Raises:
            ValueError: On unknown field names or non-positive ceilings
        """
        known = {f.name for f in fields(ThrottleConfig)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown throttle settings: {sorted(unknown)}")

        with self._lock:
            config = replace(self.config, **changes)
            if config.per_minute < 1 or config.per_hour < 1:
                raise ValueError("per_minute and per_hour must be at least 1")
            if config.min_interval < 0:
                raise ValueError("min_interval cannot be negative")
            self.config = config
            return config

    def stats(self) -> dict[str, Any]:
        """Current ledger counts and server quota."""
        with self._lock:
            now = self.clock.monotonic()
            self._prune(now)
            return {
                "last_minute": self._count_since(now - MINUTE),
                "last_hour": len(self._ledger),
                "per_minute": self.config.per_minute,
                "per_hour": self.config.per_hour,
                "server_remaining": self.state.remaining,
                "server_reset_at": self.state.reset_at,
            }

    def _compute_wait(self, now: float) -> tuple[float, str]:
        """Return the longest wait required by any ceiling (caller holds lock)."""
        config = self.config
        waits: list[tuple[float, str]] = []

        if self._ledger:
            waits.append((self._ledger[-1] + config.min_interval - now, "spacing"))

        minute_start = now - MINUTE
        if self._count_since(minute_start) >= config.per_minute:
            oldest = self._nth_since(minute_start, self._count_since(minute_start) - config.per_minute)
            waits.append((oldest + MINUTE - now + config.safety_margin, "per-minute cap"))

        if len(self._ledger) >= config.per_hour:
            oldest = self._ledger[len(self._ledger) - config.per_hour]
            waits.append((oldest + HOUR - now + config.safety_margin, "per-hour cap"))

        wall_now = self.clock.time()
        self.state.refresh(wall_now)
        if (
            self.state.remaining is not None
            and self.state.remaining <= config.server_reserve
            and self.state.reset_at is not None
        ):
            waits.append((self.state.reset_at - wall_now + config.reset_buffer, "server quota exhausted"))

        if not waits:
            return 0.0, ""
        return max(waits, key=lambda item: item[0])

    def _prune(self, now: float) -> None:
        horizon = now - HOUR
        while self._ledger and self._ledger[0] <= horizon:
            self._ledger.popleft()

    def _count_since(self, start: float) -> int:
        count = 0
        for stamp in reversed(self._ledger):
            if stamp <= start:
                break
            count += 1
        return count

    def _nth_since(self, start: float, n: int) -> float:
        """Timestamp of the n-th (0-based) ledger entry newer than ``start``."""
        first = len(self._ledger) - self._count_since(start)
        return self._ledger[first + n]


__all__ = ["RateLimitState", "RequestThrottle", "ThrottleConfig"]
