"""
pagesync main client.

Provides the primary interface for reading, writing and committing files in
a remote repository.
"""

import os
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import httpx

from pagesync.cache import CacheKey, LocalCache
from pagesync.clients import ContentsClient, GitDataClient, PagesClient, ReposClient
from pagesync.clients.contents import encode_content
from pagesync.clock import CancellationToken, Clock, SystemClock
from pagesync.conflicts import ConflictAnalyzer
from pagesync.credentials import CredentialProvider, EnvTokenProvider
from pagesync.deployments import DeploymentMonitor, MonitorConfig
from pagesync.events import Notifier, NullNotifier, ProgressCallback, report_progress
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
    ServerError,
    ValidationError,
)
from pagesync.logging import get_logger
from pagesync.offline import OfflineController
from pagesync.retry import RetryPolicy
from pagesync.throttle import RequestThrottle
from pagesync.transport import HTTPTransport
from pagesync.types.files import (
    BatchReadResult,
    CommitOutcome,
    DataSource,
    FileChange,
    FileContent,
    WriteOutcome,
)
from pagesync.types.repos import (
    AccessReport,
    CommitSummary,
    PullRequestInfo,
    RateLimitSnapshot,
    RepositoryInfo,
    RepositoryRef,
)

logger = get_logger()


def describe_error(error: PageSyncError) -> str:
    """Human-readable explanation of a failed operation."""
    if isinstance(error, AuthenticationError):
        return f"Authentication failed, check the access token ({error.message})"
    if isinstance(error, AuthorizationError):
        return f"Permission denied: {error.message}"
    if isinstance(error, ConflictError):
        return "The file changed on the remote since it was read. Reload and try again."
    if isinstance(error, RateLimitedError):
        return f"Rate limit exceeded, try again later ({error.message})"
    if isinstance(error, NotFoundError):
        return f"Not found: {error.message}"
    if isinstance(error, ValidationError):
        return f"Request rejected: {error.message}"
    if isinstance(error, NetworkError):
        return f"Could not reach the remote: {error.message}"
    if isinstance(error, ServerError):
        return f"Remote server error, try again later ({error.message})"
    return error.message


class RepositoryClient:
    """
    Main client for a single remote repository.

    Wires the transport, throttle, retry policy, cache and offline
    controller together and exposes file-level operations.

    Example:
        ```python
        from pagesync import RepositoryClient, RepositoryRef, StaticTokenProvider

        client = RepositoryClient(
            repository=RepositoryRef.parse("octo/site"),
            credentials=StaticTokenProvider("ghp_..."),
        )

        # Or create from environment variables
        client = RepositoryClient.from_env()

        page = client.read_file("index.html")
        client.write_file("index.html", page.content + "<!-- -->", "Touch index")
        ```
    """

    DEFAULT_BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 30.0
    BATCH_SIZE = 5
    BATCH_PAUSE = 0.1  # Seconds between read batches

    def __init__(
        self,
        repository: RepositoryRef,
        credentials: CredentialProvider,
        throttle: RequestThrottle | None = None,
        cache: LocalCache | None = None,
        offline: OfflineController | None = None,
        retry_policy: RetryPolicy | None = None,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_transport: httpx.BaseTransport | None = None,
        require_write_access: bool = True,
        monitor_config: MonitorConfig | None = None,
    ) -> None:
        """
        Initialize the repository client.

        Args:
            repository: Repository and working branch
            credentials: Source of the bearer token
            throttle: Local request governor (default: RequestThrottle())
            cache: Read cache (default: LocalCache())
            offline: Connectivity tracker (default: OfflineController())
            retry_policy: Retry configuration (default: RetryPolicy())
            notifier: Receiver for offline and conflict events
            clock: Time source for all waits (default: SystemClock())
            base_url: Base URL for API requests (default: https://api.github.com)
            timeout: Request timeout in seconds (default: 30.0)
            http_transport: Optional httpx transport, e.g. httpx.MockTransport in tests
            require_write_access: Validate push permission before mutating
            monitor_config: Polling settings for deployment monitoring
        """
        self._repository = repository
        self.credentials = credentials
        self.clock = clock if clock is not None else SystemClock()
        self.notifier = notifier if notifier is not None else NullNotifier()
        self.throttle = throttle if throttle is not None else RequestThrottle(clock=self.clock)
        self.cache = cache if cache is not None else LocalCache(clock=self.clock)
        self.offline = offline if offline is not None else OfflineController(notifier=self.notifier, clock=self.clock)
        self.retry_policy = retry_policy if retry_policy is not None else RetryPolicy()
        self.require_write_access = require_write_access
        self.base_url = base_url
        self.timeout = timeout

        # Create transport layer
        self._transport = HTTPTransport(
            base_url=base_url,
            credentials=credentials,
            throttle=self.throttle,
            retry_policy=self.retry_policy,
            clock=self.clock,
            timeout=timeout,
            http_transport=http_transport,
        )

        # Initialize resource clients
        self.contents = ContentsClient(self._transport)
        self.git = GitDataClient(self._transport)
        self.repos = ReposClient(self._transport)
        self.pages = PagesClient(self._transport)

        self.conflicts = ConflictAnalyzer(self)
        self.deployments = DeploymentMonitor(self, monitor_config)

        self._access: AccessReport | None = None
        self._access_lock = threading.Lock()

    @classmethod
    def from_env(cls, **kwargs: Any) -> "RepositoryClient":
        """
        Create a client from environment variables.

        Environment variables:
            PAGESYNC_TOKEN: Bearer token (required)
            PAGESYNC_REPOSITORY: Repository as owner/name (required)
            PAGESYNC_BRANCH: Working branch (optional, default: main)
            PAGESYNC_BASE_URL: Base URL for API (optional, default: https://api.github.com)
            PAGESYNC_TIMEOUT: Request timeout in seconds (optional, default: 30)

        Args:
            **kwargs: Further constructor arguments (throttle, cache, notifier, ...)

        Returns:
            Configured RepositoryClient instance

        Raises:
            ConfigurationError: If required environment variables are missing or invalid
        """
        repository = os.environ.get("PAGESYNC_REPOSITORY")
        branch = os.environ.get("PAGESYNC_BRANCH", "main")
        base_url = os.environ.get("PAGESYNC_BASE_URL", cls.DEFAULT_BASE_URL)
        timeout_str = os.environ.get("PAGESYNC_TIMEOUT")

        credentials = EnvTokenProvider("PAGESYNC_TOKEN")

        if not repository:
            raise ConfigurationError("PAGESYNC_REPOSITORY environment variable not set")

        timeout = cls.DEFAULT_TIMEOUT
        if timeout_str:
            try:
                timeout = float(timeout_str)
            except ValueError as e:
                raise ConfigurationError(f"Invalid PAGESYNC_TIMEOUT: {timeout_str}") from e
            if timeout <= 0:
                raise ConfigurationError(f"Invalid PAGESYNC_TIMEOUT: {timeout_str}")

        return cls(
            repository=RepositoryRef.parse(repository, branch),
            credentials=credentials,
            base_url=base_url,
            timeout=timeout,
            **kwargs,
        )

    @property
    def repository(self) -> RepositoryRef:
        return self._repository

    def set_repository(self, repository: RepositoryRef) -> None:
        """Switch to another repository or branch, dropping cached state."""
        self._repository = repository
        with self._access_lock:
            self._access = None
        self.cache.clear()

    @property
    def transport(self) -> HTTPTransport:
        """Get the underlying HTTP transport (for advanced use cases)."""
        return self._transport

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_file(
        self,
        path: str,
        ref: str | None = None,
        binary: bool = False,
        cancel: CancellationToken | None = None,
    ) -> FileContent:
        """
        Read one file, from the cache when fresh.

        A missing path yields ``content=None``. While offline, or when the
        remote cannot be reached, the result comes from the cache (even if
        expired) or the fallback provider and its ``source`` says so.

        Raises:
            PageSyncError: On errors that are not connectivity failures
        """
        ref = ref or self._repository.branch
        key = CacheKey(self._repository.full_name, path, ref)

        if self.offline.is_offline:
            if self.offline.should_probe():
                self.offline.probe(lambda: self.repos.rate_limit(retry=False, cancel=cancel))
            if self.offline.is_offline:
                return self._degraded_read(key, binary)

        cached = self._cached(key, binary)
        if cached is not None:
            return cached

        try:
            file = self.contents.get(self._repository, path, ref, binary, cancel)
        except NotFoundError:
            self.offline.record_success()
            return FileContent(path=path, content=None, source=DataSource.LIVE)
        except PageSyncError as e:
            if not self.offline.record_failure(e):
                raise
            logger.warning(f"read of {path} failed ({e.code}), serving local copy")
            return self._degraded_read(key, binary)

        self.offline.record_success()
        self.cache.put(key, file)
        return file

    def read_files(
        self,
        paths: Sequence[str],
        ref: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> BatchReadResult:
        """
        Read several files concurrently in batches of five.

        Errors are collected per path instead of failing the whole batch.

        Raises:
            OperationCancelledError: If cancelled between batches
        """
        result = BatchReadResult()
        unique = list(dict.fromkeys(paths))

        with ThreadPoolExecutor(max_workers=self.BATCH_SIZE) as pool:
            for start in range(0, len(unique), self.BATCH_SIZE):
                if start:
                    self.clock.sleep(self.BATCH_PAUSE, cancel)
                batch = unique[start:start + self.BATCH_SIZE]
                futures = {path: pool.submit(self.read_file, path, ref, False, cancel) for path in batch}
                for path, future in futures.items():
                    try:
                        result.files[path] = future.result()
                    except PageSyncError as e:
                        result.errors[path] = str(e)

        return result

    def file_exists(self, path: str, ref: str | None = None) -> bool:
        return self.read_file(path, ref).exists

    def _cached(self, key: CacheKey, binary: bool, include_expired: bool = False) -> FileContent | None:
        cached = self.cache.get(key, include_expired=include_expired)
        if cached is None or (cached.encoding == "base64") != binary:
            return None
        cached.source = DataSource.CACHE
        return cached

    def _degraded_read(self, key: CacheKey, binary: bool) -> FileContent:
        cached = self._cached(key, binary, include_expired=True)
        if cached is not None:
            return cached
        return self.offline.fallback_for(key.path)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_file(
        self,
        path: str,
        content: str | bytes,
        message: str,
        is_binary: bool = False,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> WriteOutcome:
        """
        Create or replace one file with a single commit.

        Args:
            path: File path within the repository
            content: Text, raw bytes, or base64 text when ``is_binary`` is set
            message: Commit message
            is_binary: ``content`` is a base64 string
            progress: Optional ``(percentage, message)`` callback

        Returns:
            WriteOutcome; failures carry a human-readable ``message``

        Raises:
            OperationCancelledError: If cancelled
        """
        try:
            return self._write_once(path, content, message, is_binary, progress, cancel)
        except OperationCancelledError:
            raise
        except PageSyncError as e:
            return self._failed_write(path, e, e.attempts)

    def write_file_with_retry(
        self,
        path: str,
        content: str | bytes,
        message: str,
        is_binary: bool = False,
        max_attempts: int = 3,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> WriteOutcome:
        """
        Like ``write_file`` but re-reads and retries on version conflicts.

        Only ConflictError is retried, waiting one second times the attempt
        number between tries. ``attempts`` on the outcome counts write tries.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                outcome = self._write_once(path, content, message, is_binary, progress, cancel)
                outcome.attempts = attempt
                return outcome
            except ConflictError as e:
                if attempt >= max_attempts:
                    return self._failed_write(path, e, attempt)
                logger.warning(f"write of {path} conflicted (attempt {attempt}/{max_attempts}), retrying")
                self.clock.sleep(1.0 * attempt, cancel)
            except OperationCancelledError:
                raise
            except PageSyncError as e:
                return self._failed_write(path, e, attempt)

    def _write_once(
        self,
        path: str,
        content: str | bytes,
        message: str,
        is_binary: bool,
        progress: ProgressCallback | None,
        cancel: CancellationToken | None,
    ) -> WriteOutcome:
        report_progress(progress, 0, f"Preparing {path}")
        self._ensure_write_access(cancel)

        report_progress(progress, 25, "Checking current version")
        try:
            current = self.contents.get(self._repository, path, binary=True, cancel=cancel)
            sha = current.version_tag
        except NotFoundError:
            sha = None

        report_progress(progress, 50, f"Uploading {path}")
        encoded = encode_content(content, is_binary)
        data = self.contents.put(self._repository, path, encoded, message, sha=sha, cancel=cancel)
        self.offline.record_success()

        written = data.get("content") or {}
        commit = data.get("commit") or {}
        text = isinstance(content, str) and not is_binary
        self.cache.invalidate_path(self._repository.full_name, path)
        self.cache.put(
            CacheKey(self._repository.full_name, path, self._repository.branch),
            FileContent(
                path=path,
                content=content if text else encoded,
                version_tag=written.get("sha"),
                size=written.get("size", 0),
                encoding="utf-8" if text else "base64",
                download_url=written.get("download_url"),
            ),
        )

        report_progress(progress, 100, f"Saved {path}")
        logger.info(f"wrote {path} in {commit.get('sha', '')[:7]}")
        return WriteOutcome(
            success=True,
            path=path,
            version_tag=written.get("sha"),
            commit_sha=commit.get("sha"),
            commit_url=commit.get("html_url"),
            message=f"Saved {path}",
        )

    def _failed_write(self, path: str, error: PageSyncError, attempts: int) -> WriteOutcome:
        self.offline.record_failure(error)
        logger.error(f"write of {path} failed: {error}")
        return WriteOutcome(
            success=False,
            path=path,
            message=describe_error(error),
            error=error.code,
            attempts=attempts,
        )

    def commit_files(
        self,
        files: Sequence[FileChange],
        message: str,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> CommitOutcome:
        """
        Commit several files atomically.

        The branch pointer moves only in the final step, so a failure at any
        earlier step leaves the branch exactly as it was.

        Returns:
            CommitOutcome; failures carry a human-readable ``message``

        Raises:
            OperationCancelledError: If cancelled
        """
        paths = [f.path for f in files]
        if not files:
            return CommitOutcome(success=False, message="No files to commit", error="VALIDATION_FAILED")

        repo = self._repository
        try:
            report_progress(progress, 0, "Preparing commit")
            self._ensure_write_access(cancel)

            report_progress(progress, 10, f"Resolving {repo.branch}")
            tip = self.git.get_ref(repo, cancel=cancel)
            base_tree = self.git.get_commit(repo, tip, cancel=cancel)["tree"]["sha"]

            entries: list[dict[str, Any]] = []
            for index, change in enumerate(files, start=1):
                entry: dict[str, Any] = {"path": change.path, "mode": change.mode, "type": "blob"}
                if change.is_binary or isinstance(change.content, bytes):
                    encoded = encode_content(change.content, change.is_binary)
                    entry["sha"] = self.git.create_blob(repo, encoded, cancel=cancel)
                else:
                    entry["content"] = change.content
                entries.append(entry)
                report_progress(progress, 10 + 50 * index / len(files), f"Prepared {change.path}")

            report_progress(progress, 65, "Creating tree")
            tree = self.git.create_tree(repo, base_tree, entries, cancel=cancel)

            report_progress(progress, 80, "Creating commit")
            commit = self.git.create_commit(repo, message, tree, [tip], cancel=cancel)

            report_progress(progress, 90, f"Updating {repo.branch}")
            self.git.update_ref(repo, commit["sha"], force=False, cancel=cancel)
        except OperationCancelledError:
            raise
        except PageSyncError as e:
            self.offline.record_failure(e)
            logger.error(f"commit of {len(files)} files failed: {e}")
            return CommitOutcome(success=False, message=describe_error(e), files=paths, error=e.code)

        self.offline.record_success()
        for path in paths:
            self.cache.invalidate_path(repo.full_name, path)

        report_progress(progress, 100, "Commit complete")
        logger.info(f"committed {len(files)} files as {commit['sha'][:7]}")
        return CommitOutcome(
            success=True,
            sha=commit["sha"],
            message=f"Committed {len(files)} files",
            files=paths,
        )

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def check_access(self, refresh: bool = False, cancel: CancellationToken | None = None) -> AccessReport:
        """
        Validate the credential against the repository.

        ``ok`` requires push or admin permission. The report is memoized and
        reused as the write-access gate until ``refresh`` or
        ``set_repository``.

        Raises:
            PageSyncError: On connectivity or server failures
        """
        with self._access_lock:
            if self._access is not None and not refresh:
                return self._access

        repo = self._repository
        try:
            login, scopes = self.repos.authenticated_user(cancel)
        except AuthenticationError as e:
            return AccessReport(False, None, [], {}, f"Invalid access token: {e.message}")

        try:
            info = self.repos.get(repo, cancel)
        except (NotFoundError, AuthorizationError):
            report = AccessReport(False, login, scopes, {}, f"Repository {repo.full_name} not found or not accessible")
        else:
            permissions = {name: bool(info.permissions.get(name)) for name in ("admin", "push", "pull")}
            ok = permissions["push"] or permissions["admin"]
            message = (
                f"Access to {repo.full_name} validated for {login}"
                if ok
                else f"{login} has no write permission on {repo.full_name}"
            )
            report = AccessReport(ok, login, scopes, permissions, message)

        with self._access_lock:
            self._access = report
        return report

    def _ensure_write_access(self, cancel: CancellationToken | None) -> None:
        if not self.require_write_access:
            return
        report = self.check_access(cancel=cancel)
        if not report.ok:
            raise AuthorizationError("WRITE_ACCESS_REQUIRED", report.message)

    def test_connection(self) -> bool:
        """Return True if the remote accepts the credential."""
        try:
            self.repos.authenticated_user()
        except PageSyncError as e:
            self.offline.record_failure(e)
            logger.warning(f"connection test failed: {e}")
            return False
        self.offline.record_success()
        return True

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def repository_info(self) -> RepositoryInfo:
        return self.repos.get(self._repository)

    def rate_limit(self) -> RateLimitSnapshot:
        return self.repos.rate_limit()

    def recent_commits(self, count: int = 10) -> list[CommitSummary]:
        return self.repos.list_commits(self._repository, count)

    def create_pull_request(
        self,
        title: str,
        body: str = "",
        head: str | None = None,
        base: str | None = None,
    ) -> PullRequestInfo:
        """
        Open a pull request from ``head`` (default: working branch) into
        ``base`` (default: the repository's default branch).
        """
        self._ensure_write_access(None)
        if base is None:
            base = self.repository_info().default_branch
        return self.repos.create_pull(self._repository, title, body, head or self._repository.branch, base)

    def close(self) -> None:
        """Close the client and release resources."""
        self._transport.close()

    def __enter__(self) -> "RepositoryClient":
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit - closes the client."""
        self.close()


__all__ = ["RepositoryClient", "describe_error"]
