"""
Retry policy for network-bound operations.

A RetryPolicy is a plain value object (attempt budget, classifier, delay
function) and ``RetryPolicy.run`` is the loop that applies it. Waiting goes
through a Clock, so the loop is independent of the concurrency primitive
behind it.
"""

import random
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from pagesync.clock import CancellationToken, Clock
from pagesync.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    PageSyncError,
    RateLimitedError,
    ServerError,
    ValidationError,
)
from pagesync.logging import log_retry_attempt

T = TypeVar("T")


class FailureClass(Enum):
    """How a failed attempt is treated, in classification priority order."""

    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    RATE_LIMIT_RESET = "rate_limit_reset"
    RATE_LIMIT_RETRY_AFTER = "rate_limit_retry_after"
    SERVER = "server"
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    UNCLASSIFIED = "unclassified"


# Failures that wait for a server-given time without spending an attempt
UNCOUNTED = frozenset({FailureClass.RATE_LIMIT_RESET, FailureClass.RATE_LIMIT_RETRY_AFTER})

# Failures retried with exponential backoff
BACKOFF = frozenset({FailureClass.SERVER, FailureClass.NETWORK, FailureClass.RATE_LIMIT})


def classify_failure(error: Exception) -> FailureClass:
    """
    Classify an error for retry purposes.

    Args:
        error: The exception raised by an attempt

    Returns:
        The FailureClass deciding whether and how to retry
    """
    if isinstance(error, (AuthenticationError, AuthorizationError)):
        return FailureClass.AUTHORIZATION
    if isinstance(error, ValidationError):
        return FailureClass.VALIDATION
    if isinstance(error, RateLimitedError):
        if error.reset_at is not None:
            return FailureClass.RATE_LIMIT_RESET
        if error.retry_after is not None:
            return FailureClass.RATE_LIMIT_RETRY_AFTER
        return FailureClass.RATE_LIMIT
    if isinstance(error, ServerError):
        return FailureClass.SERVER
    if isinstance(error, NetworkError):
        return FailureClass.NETWORK
    return FailureClass.UNCLASSIFIED


def _default_multipliers() -> dict[FailureClass, float]:
    return {
        FailureClass.SERVER: 1.5,
        FailureClass.NETWORK: 2.0,
        FailureClass.RATE_LIMIT: 3.0,
    }


@dataclass
class OperationAttempt:
    """Record of one failed attempt inside a single retry loop."""

    attempt_number: int
    failure_class: FailureClass
    delay: float
    error: PageSyncError
    counted: bool


@dataclass
class RetryPolicy:
    """Configuration and decision logic for automatic retries."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 1.0  # Upper bound of uniform jitter, seconds
    multipliers: dict[FailureClass, float] = field(default_factory=_default_multipliers)
    reset_buffer: float = 1.0
    max_rate_limit_wait: float | None = None  # Caller patience for quota resets
    max_uncounted_waits: int = 10
    classifier: Callable[[Exception], FailureClass] = classify_failure

    def should_retry(self, failure: FailureClass, counted_attempts: int) -> bool:
        """
        Decide whether a failure allows another attempt.

        Args:
            failure: Classification of the latest failure
            counted_attempts: Attempts already spent against max_attempts

        Returns:
            True if the operation should be attempted again
        """
        if failure in UNCOUNTED:
            return True
        if failure in BACKOFF:
            return counted_attempts < self.max_attempts
        return False

    def backoff_delay(self, attempt: int, failure: FailureClass) -> float:
        """
        Exponential backoff for a counted attempt.

        ``base_delay * multiplier ** (attempt - 1) + uniform(0, jitter)``,
        capped at ``max_delay``.

        Args:
            attempt: Counted attempt number (1-indexed) that just failed
            failure: Failure class selecting the multiplier
        """
        multiplier = self.multipliers.get(failure, 2.0)
        delay = self.base_delay * multiplier ** (attempt - 1)
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return min(delay, self.max_delay)

    def server_delay(self, error: RateLimitedError, failure: FailureClass, now: float) -> float:
        """Wait dictated by the server for an uncounted rate-limit failure."""
        if failure is FailureClass.RATE_LIMIT_RESET and error.reset_at is not None:
            return max(0.0, error.reset_at - now) + self.reset_buffer
        return max(0.0, float(error.retry_after or 0.0))

    def run(
        self,
        operation: Callable[[], T],
        clock: Clock,
        cancel: CancellationToken | None = None,
        on_attempt: Callable[[OperationAttempt], None] | None = None,
    ) -> T:
        """
        Execute ``operation`` under this policy.

        Args:
            operation: Zero-argument callable performing one attempt
            clock: Clock used for waiting
            cancel: Optional token checked before every wait
            on_attempt: Optional hook receiving each failed attempt

        Returns:
            The operation's result once an attempt succeeds

        Raises:
            PageSyncError: The last error, with ``attempts`` set, when the
                policy gives up
        """
        attempts = 0
        counted = 0
        uncounted = 0

        while True:
            attempts += 1
            try:
                return operation()
            except PageSyncError as e:
                error = e

            failure = self.classifier(error)
            if failure in UNCOUNTED and not isinstance(error, RateLimitedError):
                # No server timing to wait for
                failure = FailureClass.RATE_LIMIT
            if failure in BACKOFF:
                counted += 1

            if not self.should_retry(failure, counted):
                error.attempts = attempts
                raise error

            if failure in UNCOUNTED:
                uncounted += 1
                delay = self.server_delay(error, failure, clock.time())
                if uncounted > self.max_uncounted_waits or (
                    self.max_rate_limit_wait is not None and delay > self.max_rate_limit_wait
                ):
                    error.attempts = attempts
                    raise error
            else:
                delay = self.backoff_delay(counted, failure)

            attempt = OperationAttempt(
                attempt_number=attempts,
                failure_class=failure,
                delay=delay,
                error=error,
                counted=failure not in UNCOUNTED,
            )
            log_retry_attempt(attempt)
            if on_attempt is not None:
                on_attempt(attempt)

            clock.sleep(delay, cancel)


__all__ = ["FailureClass", "OperationAttempt", "RetryPolicy", "classify_failure"]
