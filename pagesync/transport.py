"""
HTTP Transport for pagesync.

Handles HTTP communication with the remote API: bearer authentication,
local throttling, automatic retry and error response parsing.
"""

from dataclasses import dataclass
from typing import Any

import httpx

from pagesync.clock import CancellationToken, Clock, SystemClock
from pagesync.credentials import CredentialProvider
from pagesync.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    PageSyncError,
    RateLimitedError,
    RequestTimeoutError,
    ServerError,
    ValidationError,
)
from pagesync.logging import log_http_request, log_http_response
from pagesync.retry import RetryPolicy
from pagesync.throttle import RequestThrottle

USER_AGENT = "pagesync-python"


@dataclass
class ApiResponse:
    """Decoded API response."""

    status_code: int
    data: Any
    headers: httpx.Headers


class HTTPTransport:
    """
    HTTP transport layer with throttling and retry.

    Handles:
    - Bearer authentication from a CredentialProvider
    - Local rate governing through a RequestThrottle before every attempt
    - Retry per RetryPolicy, honouring server reset times and Retry-After
    - Error response parsing into typed exceptions

    Published content is fetched through a second, unauthenticated client
    so the credential is never sent to the pages host.
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        throttle: RequestThrottle | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Clock | None = None,
        timeout: float = 30.0,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize HTTP transport.

        Args:
            base_url: Base URL for API requests (e.g., "https://api.github.com")
            credentials: Source of the bearer token
            throttle: Local request governor (default: RequestThrottle())
            retry_policy: Retry configuration (default: RetryPolicy())
            clock: Time source for waits (default: SystemClock())
            timeout: Request timeout in seconds
            http_transport: Optional httpx transport (e.g. httpx.MockTransport for tests)
        """
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.clock = clock if clock is not None else SystemClock()
        self.throttle = throttle if throttle is not None else RequestThrottle(clock=self.clock)
        self.retry_policy = retry_policy if retry_policy is not None else RetryPolicy()
        self.timeout = timeout

        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Accept": "application/vnd.github+json",
                "User-Agent": USER_AGENT,
            },
            transport=http_transport,
        )
        self._public_client = httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=http_transport,
        )

    def close(self) -> None:
        """Close the HTTP clients."""
        self._client.close()
        self._public_client.close()

    def __enter__(self) -> "HTTPTransport":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        cancel: CancellationToken | None = None,
        retry: bool = True,
    ) -> Any:
        """
        Make an authenticated API request.

        Args:
            method: HTTP method
            path: API path (e.g., "/repos/octo/site/contents/index.html")
            params: Query parameters
            body: JSON request body
            cancel: Optional token interrupting throttle and retry waits
            retry: False for a single attempt (connectivity probes)

        Returns:
            Parsed JSON response, or None for empty responses

        Raises:
            PageSyncError: On API errors
        """
        return self.request_raw(method, path, params, body, cancel, retry).data

    def request_raw(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        cancel: CancellationToken | None = None,
        retry: bool = True,
    ) -> ApiResponse:
        """Like ``request`` but also returns the status code and headers."""

        def attempt() -> ApiResponse:
            return self._send(method, path, params, body, cancel)

        if not retry:
            return attempt()
        return self.retry_policy.run(attempt, self.clock, cancel)

    def fetch_public(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """
        Fetch a published URL without credentials, in a single attempt.

        Raises:
            NetworkError: If the host could not be reached
        """
        log_http_request("GET", url, headers)
        try:
            response = self._public_client.get(url, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("TIMEOUT", str(e)) from e
        except httpx.RequestError as e:
            raise NetworkError("CONNECTION_ERROR", str(e)) from e
        log_http_response(response.status_code, url)
        return response

    def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        body: dict[str, Any] | None,
        cancel: CancellationToken | None,
    ) -> ApiResponse:
        """One throttled attempt."""
        self.throttle.admit(cancel)

        headers = {"Authorization": self.credentials.authorization_header()}
        log_http_request(method, path, headers, body)

        started = self.clock.monotonic()
        try:
            response = self._client.request(method, path, params=params, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("TIMEOUT", f"{method} {path} timed out: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError("CONNECTION_ERROR", f"{method} {path} failed: {e}") from e

        self.throttle.update_from_headers(response.headers)
        log_http_response(
            response.status_code,
            path,
            elapsed_ms=(self.clock.monotonic() - started) * 1000,
            remaining=self.throttle.state.remaining,
        )

        if response.status_code >= 400:
            raise self._parse_error_response(response)

        data = response.json() if response.content else None
        return ApiResponse(status_code=response.status_code, data=data, headers=response.headers)

    def _parse_error_response(self, response: httpx.Response) -> PageSyncError:
        """
        Parse an error response into a typed exception.

        Args:
            response: HTTP response with error status

        Returns:
            Appropriate PageSyncError subclass
        """
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        status_code = response.status_code
        message = data.get("message") or f"HTTP {status_code}"
        request_id = response.headers.get("X-GitHub-Request-Id")

        if status_code in (403, 429):
            rate_limited = self._parse_rate_limit(response, message, request_id)
            if rate_limited is not None:
                return rate_limited

        if status_code == 401:
            return AuthenticationError("UNAUTHORIZED", message, request_id, status_code)
        elif status_code == 403:
            return AuthorizationError("FORBIDDEN", message, request_id, status_code)
        elif status_code == 404:
            return NotFoundError("NOT_FOUND", message, request_id, status_code)
        elif status_code == 409:
            return ConflictError("CONFLICT", message, request_id, status_code)
        elif status_code == 422 and "fast forward" in message.lower():
            return ConflictError("NOT_FAST_FORWARD", message, request_id, status_code)
        elif status_code >= 500:
            return ServerError("SERVER_ERROR", message, request_id, status_code)
        else:
            return ValidationError("VALIDATION_FAILED", message, request_id, status_code)

    def _parse_rate_limit(
        self, response: httpx.Response, message: str, request_id: str | None
    ) -> RateLimitedError | None:
        """Recognise primary and secondary rate-limit responses."""
        headers = response.headers
        status_code = response.status_code

        if headers.get("X-RateLimit-Remaining") == "0":
            try:
                reset_at: float | None = float(headers["X-RateLimit-Reset"])
            except (KeyError, ValueError):
                reset_at = None
            return RateLimitedError(
                "RATE_LIMITED", message, reset_at=reset_at, request_id=request_id, status_code=status_code
            )

        retry_after_str = headers.get("Retry-After")
        if retry_after_str is not None:
            try:
                retry_after: float | None = float(retry_after_str)
            except ValueError:
                retry_after = None
            return RateLimitedError(
                "RATE_LIMITED", message, retry_after=retry_after, request_id=request_id, status_code=status_code
            )

        if status_code == 429 or "rate limit" in message.lower():
            return RateLimitedError("RATE_LIMITED", message, request_id=request_id, status_code=status_code)
        return None


__all__ = ["ApiResponse", "HTTPTransport"]
