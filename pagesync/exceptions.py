"""pagesync exception classes."""


class PageSyncError(Exception):
    """Base exception for all pagesync errors."""

    def __init__(
        self,
        code: str,
        message: str,
        request_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.request_id = request_id
        self.status_code = status_code
        # Set by RetryPolicy when the error is surfaced
        self.attempts = 1
        super().__init__(f"[{code}] {message}")


class ConfigurationError(PageSyncError):
    """Raised when client configuration is invalid or missing."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)


class AuthenticationError(PageSyncError):
    """Raised when the credential is rejected or cannot be refreshed."""

    pass


class AuthorizationError(PageSyncError):
    """Raised when the credential lacks permission for the operation."""

    pass


class ValidationError(PageSyncError):
    """Raised when the remote rejects the request as malformed."""

    pass


class NotFoundError(PageSyncError):
    """Raised when a resource is not found."""

    pass


class ConflictError(PageSyncError):
    """Raised on version conflicts (stale sha, non fast-forward, merge conflicts)."""

    pass


class RateLimitedError(PageSyncError):
    """
    Raised when the remote throttles the client.

    ``reset_at`` (epoch seconds) is set when the primary quota is exhausted;
    ``retry_after`` (seconds) is set for secondary/abuse-detection throttles.
    """

    def __init__(
        self,
        code: str,
        message: str,
        reset_at: float | None = None,
        retry_after: float | None = None,
        request_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(code, message, request_id, status_code)
        self.reset_at = reset_at
        self.retry_after = retry_after


class ServerError(PageSyncError):
    """Raised on server errors (5xx)."""

    pass


class NetworkError(PageSyncError):
    """Raised when the remote could not be reached."""

    pass


class RequestTimeoutError(NetworkError):
    """Raised when a request timed out."""

    pass


class OperationCancelledError(PageSyncError):
    """Raised when a wait is interrupted by a cancellation token."""

    def __init__(self, message: str = "Operation cancelled") -> None:
        super().__init__("CANCELLED", message)
