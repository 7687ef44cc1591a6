"""
Pytest plugin for pagesync testing fixtures.

This module re-exports all fixtures from fixtures.py so they can be
automatically discovered by pytest when this package is installed.

To use these fixtures in your tests, add this to your conftest.py:

    pytest_plugins = ["pagesync.testing.conftest"]

Or import the fixtures directly:

    from pagesync.testing.fixtures import fake_backend, repo_client
"""

# Re-export all fixtures for pytest auto-discovery
from pagesync.testing.fixtures import (
    fake_backend,
    fake_clock,
    recording_notifier,
    repo_client,
    sample_behind_conflict,
    sample_changes,
)

__all__ = [
    "fake_clock",
    "recording_notifier",
    "fake_backend",
    "repo_client",
    "sample_changes",
    "sample_behind_conflict",
]
