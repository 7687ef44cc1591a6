"""
Credential providers.

The client asks its provider for a bearer token before every authenticated
request. How tokens are obtained and rotated is up to the provider.
"""

import os
import threading
from abc import ABC, abstractmethod

from pagesync.exceptions import AuthenticationError, ConfigurationError


class CredentialProvider(ABC):
    """Abstract base class for bearer-token sources."""

    @abstractmethod
    def get_token(self) -> str:
        """Return the current bearer token."""
        pass

    def needs_refresh(self) -> bool:
        """Return True if the token should be refreshed before use."""
        return False

    def refresh(self) -> None:
        """
        Obtain a fresh token.

        Raises:
            AuthenticationError: If no fresh token can be obtained
        """
        raise AuthenticationError("REFRESH_UNSUPPORTED", "Credential cannot be refreshed")

    def authorization_header(self) -> str:
        """Value for the Authorization header, refreshing first if needed."""
        if self.needs_refresh():
            self.refresh()
        token = self.get_token()
        if not token:
            raise AuthenticationError("MISSING_TOKEN", "No access token available")
        return f"Bearer {token}"


class StaticTokenProvider(CredentialProvider):
    """A fixed token that never expires."""

    def __init__(self, token: str) -> None:
        if not token:
            raise ConfigurationError("token must not be empty")
        self._token = token

    def get_token(self) -> str:
        return self._token

    def __repr__(self) -> str:
        return "StaticTokenProvider(token=[REDACTED])"


class EnvTokenProvider(CredentialProvider):
    """
    Token read from an environment variable.

    ``refresh()`` re-reads the variable, so a token rotated in the process
    environment is picked up on the next request after a refresh.
    """

    DEFAULT_VARIABLE = "PAGESYNC_TOKEN"

    def __init__(self, variable: str = DEFAULT_VARIABLE) -> None:
        self.variable = variable
        self._lock = threading.Lock()
        self._token = os.environ.get(variable, "")
        if not self._token:
            raise ConfigurationError(f"{variable} environment variable not set")
        self._stale = False

    def get_token(self) -> str:
        with self._lock:
            return self._token

    def needs_refresh(self) -> bool:
        with self._lock:
            return self._stale

    def mark_stale(self) -> None:
        """Force a refresh before the next request."""
        with self._lock:
            self._stale = True

    def refresh(self) -> None:
        token = os.environ.get(self.variable, "")
        if not token:
            raise AuthenticationError(
                "REFRESH_FAILED", f"{self.variable} is no longer set in the environment"
            )
        with self._lock:
            self._token = token
            self._stale = False

    def __repr__(self) -> str:
        return f"EnvTokenProvider(variable={self.variable!r})"


__all__ = ["CredentialProvider", "EnvTokenProvider", "StaticTokenProvider"]
