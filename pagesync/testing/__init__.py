"""pagesync testing utilities.

Provides an in-memory remote, a fake clock and fixtures for testing
applications that use pagesync.
"""

from pagesync.testing.fakes import FakeClock, RecordingNotifier
from pagesync.testing.fixtures import create_mock_conflict, create_mock_deployment
from pagesync.testing.mock import FakeRepositoryBackend, MockCall, ScriptedFailure

__all__ = [
    # In-memory remote
    "FakeRepositoryBackend",
    "MockCall",
    "ScriptedFailure",
    # Fakes
    "FakeClock",
    "RecordingNotifier",
    # Helper functions
    "create_mock_conflict",
    "create_mock_deployment",
]
