"""
Pytest fixtures for pagesync testing.

Provides common fixtures for testing applications that use pagesync.
"""

from collections.abc import Generator
from datetime import datetime, timezone
from typing import Any

import pytest

from pagesync.client import RepositoryClient
from pagesync.credentials import StaticTokenProvider
from pagesync.retry import RetryPolicy
from pagesync.testing.fakes import FakeClock, RecordingNotifier
from pagesync.testing.mock import FakeRepositoryBackend
from pagesync.types.conflicts import Conflict, ConflictKind, Severity
from pagesync.types.deployments import DeploymentRecord, DeploymentStatus
from pagesync.types.files import FileChange
from pagesync.types.repos import RepositoryRef

TEST_TOKEN = "ghp_" + "a1B2c3D4e5F6g7H8i9J0" * 2


# ============================================================================
# Time and Notification Fixtures
# ============================================================================


@pytest.fixture
def fake_clock() -> FakeClock:
    """
    Provide a FakeClock; sleeping advances it instantly.

    Example:
        ```python
        def test_backoff(fake_clock):
            fake_clock.sleep(2.5)
            assert fake_clock.sleeps == [2.5]
        ```
    """
    return FakeClock()


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    """Provide a notifier that records every event."""
    return RecordingNotifier()


# ============================================================================
# Backend and Client Fixtures
# ============================================================================


@pytest.fixture
def fake_backend(fake_clock: FakeClock) -> FakeRepositoryBackend:
    """
    Provide an in-memory remote repository seeded with a small site.

    Example:
        ```python
        def test_read(fake_backend, repo_client):
            fake_backend.push("main", {"about.html": "<p>About</p>"})
            assert repo_client.read_file("about.html").content == "<p>About</p>"
        ```
    """
    return FakeRepositoryBackend(
        owner="octo",
        name="site",
        files={
            "index.html": "<h1>Welcome</h1>",
            "data/config.json": '{"title": "Site"}',
        },
        clock=fake_clock,
    )


@pytest.fixture
def repo_client(
    fake_backend: FakeRepositoryBackend,
    fake_clock: FakeClock,
    recording_notifier: RecordingNotifier,
) -> Generator[RepositoryClient, None, None]:
    """
    Provide a RepositoryClient wired to ``fake_backend``.

    Retries use no jitter so recorded waits are exact.
    """
    client = RepositoryClient(
        repository=RepositoryRef(fake_backend.owner, fake_backend.name, fake_backend.default_branch),
        credentials=StaticTokenProvider(TEST_TOKEN),
        retry_policy=RetryPolicy(jitter=0.0),
        notifier=recording_notifier,
        clock=fake_clock,
        http_transport=fake_backend.transport(),
    )
    yield client
    client.close()


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_changes() -> list[FileChange]:
    """Provide a text and a binary change for multi-file commits."""
    return [
        FileChange(path="index.html", content="<h1>Updated</h1>"),
        FileChange(path="img/logo.png", content=b"\x89PNG\r\n\x1a\n\x00\x01"),
    ]


@pytest.fixture
def sample_behind_conflict() -> Conflict:
    """Provide a branch-behind conflict."""
    return create_mock_conflict(ConflictKind.BEHIND, behind_by=3)


# ============================================================================
# Helper Functions
# ============================================================================


def create_mock_conflict(kind: ConflictKind = ConflictKind.BEHIND, **kwargs: Any) -> Conflict:
    """
    Create a Conflict with customizable fields.

    Args:
        kind: Conflict kind
        **kwargs: Additional fields to override

    Returns:
        Conflict object
    """
    severities = {
        ConflictKind.BEHIND: Severity.WARNING,
        ConflictKind.DIVERGED: Severity.ERROR,
        ConflictKind.OPEN_PEER_CHANGES: Severity.INFO,
    }
    defaults: dict[str, Any] = {
        "severity": severities[kind],
        "message": f"{kind.value} conflict",
        "ahead_by": 0,
        "behind_by": 0,
    }
    defaults.update(kwargs)
    return Conflict(kind=kind, **defaults)


def create_mock_deployment(
    sha: str = "abc1234def5678",
    status: DeploymentStatus = DeploymentStatus.COMPLETED,
    **kwargs: Any,
) -> DeploymentRecord:
    """
    Create a DeploymentRecord with customizable fields.

    Args:
        sha: Deployed commit sha
        status: Deployment status
        **kwargs: Additional fields to override

    Returns:
        DeploymentRecord object
    """
    defaults: dict[str, Any] = {
        "id": "1",
        "url": "https://octo.github.io/site/",
        "created_at": datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 1, 15, 10, 31, 0, tzinfo=timezone.utc),
    }
    defaults.update(kwargs)
    return DeploymentRecord(sha=sha, status=status, **defaults)
