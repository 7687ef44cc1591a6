"""pagesync - rate-aware client for a remote versioned file store and its published site."""

from pagesync.cache import CacheConfig, CacheKey, LocalCache
from pagesync.client import RepositoryClient
from pagesync.clock import CancellationToken, Clock, SystemClock
from pagesync.conflicts import ConflictAnalyzer
from pagesync.credentials import CredentialProvider, EnvTokenProvider, StaticTokenProvider
from pagesync.deployments import DeploymentMonitor, MonitorConfig
from pagesync.events import CallbackNotifier, Event, EventKind, Notifier, NullNotifier
from pagesync.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    OperationCancelledError,
    PageSyncError,
    RateLimitedError,
    RequestTimeoutError,
    ServerError,
    ValidationError,
)
from pagesync.logging import configure_logging, get_logger
from pagesync.offline import (
    ConnectivityState,
    FallbackProvider,
    OfflineConfig,
    OfflineController,
    StaticFallbackProvider,
)
from pagesync.retry import FailureClass, OperationAttempt, RetryPolicy
from pagesync.throttle import RequestThrottle, ThrottleConfig
from pagesync.transport import HTTPTransport
from pagesync.types import (
    DataSource,
    FileChange,
    FileContent,
    RepositoryRef,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Main Client
    "RepositoryClient",
    "RepositoryRef",
    "ConflictAnalyzer",
    "DeploymentMonitor",
    "MonitorConfig",
    # Files
    "FileContent",
    "FileChange",
    "DataSource",
    # Credentials
    "CredentialProvider",
    "StaticTokenProvider",
    "EnvTokenProvider",
    # Rate control and resilience
    "RequestThrottle",
    "ThrottleConfig",
    "RetryPolicy",
    "FailureClass",
    "OperationAttempt",
    "LocalCache",
    "CacheConfig",
    "CacheKey",
    "OfflineController",
    "OfflineConfig",
    "ConnectivityState",
    "FallbackProvider",
    "StaticFallbackProvider",
    # Time
    "Clock",
    "SystemClock",
    "CancellationToken",
    # Events
    "Notifier",
    "NullNotifier",
    "CallbackNotifier",
    "Event",
    "EventKind",
    # Exceptions
    "PageSyncError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "RateLimitedError",
    "ValidationError",
    "ServerError",
    "NetworkError",
    "RequestTimeoutError",
    "OperationCancelledError",
    "ConfigurationError",
    # Transport
    "HTTPTransport",
    # Logging
    "configure_logging",
    "get_logger",
]
