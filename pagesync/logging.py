"""
pagesync logging utilities.

Provides configurable logging for HTTP traffic, throttling and retries.
Ensures the bearer credential never reaches a log line.
"""

import logging
import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pagesync.retry import OperationAttempt

# Create SDK-specific loggers
_sdk_logger = logging.getLogger("pagesync")
_http_logger = logging.getLogger("pagesync.http")
_throttle_logger = logging.getLogger("pagesync.throttle")

# Patterns for sensitive data that should be masked
_SENSITIVE_PATTERNS = [
    # Authorization header values
    (re.compile(r"(Bearer|token)\s+[A-Za-z0-9_\-\.=]{8,}", re.IGNORECASE), r"\1 [REDACTED]"),
    # Personal access tokens (classic and fine-grained)
    (re.compile(r"\b(gh[pousr]_[A-Za-z0-9]{20,}|github_pat_[A-Za-z0-9_]{20,})\b"), "[TOKEN_REDACTED]"),
    # Secret/token key-value pairs
    (re.compile(r"(secret|token|password|authorization)['\"]?\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE), r"\1: [REDACTED]"),
]

_DEFAULT_SENSITIVE_KEYS = {"authorization", "token", "secret", "password"}


def configure_logging(
    level: int = logging.INFO,
    http_level: int | None = None,
    throttle_level: int | None = None,
    handler: logging.Handler | None = None,
    format_string: str | None = None,
) -> None:
    """
    Configure pagesync logging.

    Args:
        level: Default log level for all pagesync loggers (default: INFO)
        http_level: Log level for HTTP request/response logging (default: same as level)
        throttle_level: Log level for throttle and retry waits (default: same as level)
        handler: Custom handler to use (default: StreamHandler to stderr)
        format_string: Custom format string (default: includes timestamp, level, logger name)

    Example:
        ```python
        import logging
        from pagesync.logging import configure_logging

        # Trace every API call
        configure_logging(level=logging.INFO, http_level=logging.DEBUG)
        ```
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    formatter = logging.Formatter(format_string)

    if handler is None:
        handler = logging.StreamHandler()

    handler.setFormatter(formatter)

    _sdk_logger.setLevel(level)
    _sdk_logger.addHandler(handler)

    _http_logger.setLevel(http_level if http_level is not None else level)
    _throttle_logger.setLevel(throttle_level if throttle_level is not None else level)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a pagesync logger.

    Args:
        name: Logger name suffix (e.g., "http", "offline"). If None, returns main logger.

    Returns:
        Logger instance
    """
    if name is None:
        return _sdk_logger
    return logging.getLogger(f"pagesync.{name}")


def mask_sensitive_data(text: str) -> str:
    """
    Mask credentials in a string.

    Args:
        text: Text that may contain sensitive data

    Returns:
        Text with sensitive data masked
    """
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def safe_log_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """
    Create a copy of a dictionary with sensitive values masked.

    Args:
        data: Dictionary that may contain sensitive values
        sensitive_keys: Set of keys to mask (default: authorization, token, secret, password)

    Returns:
        Dictionary with sensitive values replaced with "[REDACTED]"
    """
    if sensitive_keys is None:
        sensitive_keys = _DEFAULT_SENSITIVE_KEYS

    result: dict[str, Any] = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(sk in key_lower for sk in sensitive_keys):
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = safe_log_dict(value, sensitive_keys)
        elif isinstance(value, list):
            result[key] = [
                safe_log_dict(item, sensitive_keys) if isinstance(item, dict) else item
                for item in value
            ]
        elif key_lower == "content" and isinstance(value, str) and len(value) > 64:
            # File payloads are large and add nothing to a trace
            result[key] = f"<{len(value)} chars>"
        else:
            result[key] = value

    return result


def log_http_request(
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
    body: dict[str, Any] | None = None,
) -> None:
    """Log an HTTP request at DEBUG level with sensitive data masked."""
    if not _http_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"{method} {url}"]

    if headers:
        log_parts.append(f"headers={safe_log_dict(dict(headers))}")

    if body:
        log_parts.append(f"body={safe_log_dict(body)}")

    _http_logger.debug(mask_sensitive_data(" | ".join(log_parts)))


def log_http_response(
    status_code: int,
    url: str,
    elapsed_ms: float | None = None,
    remaining: int | None = None,
) -> None:
    """Log an HTTP response at DEBUG level."""
    if not _http_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"Response {status_code} from {url}"]

    if elapsed_ms is not None:
        log_parts.append(f"elapsed={elapsed_ms:.2f}ms")

    if remaining is not None:
        log_parts.append(f"quota_remaining={remaining}")

    _http_logger.debug(mask_sensitive_data(" | ".join(log_parts)))


def log_throttle_wait(reason: str, wait_seconds: float) -> None:
    """Log a throttle suspension at DEBUG level."""
    if not _throttle_logger.isEnabledFor(logging.DEBUG):
        return
    _throttle_logger.debug(f"throttle wait {wait_seconds:.3f}s ({reason})")


def log_retry_attempt(attempt: "OperationAttempt") -> None:
    """Log a failed attempt and the delay chosen for it at WARNING level."""
    counted = "counted" if attempt.counted else "uncounted"
    _throttle_logger.warning(
        mask_sensitive_data(
            f"attempt {attempt.attempt_number} failed ({attempt.failure_class.value}, {counted}): "
            f"{attempt.error}; retrying in {attempt.delay:.2f}s"
        )
    )


__all__ = [
    "configure_logging",
    "get_logger",
    "mask_sensitive_data",
    "safe_log_dict",
    "log_http_request",
    "log_http_response",
    "log_throttle_wait",
    "log_retry_attempt",
]
