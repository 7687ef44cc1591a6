"""Shared fixtures for the pagesync test suite."""

from pagesync.testing.conftest import (  # noqa: F401
    fake_backend,
    fake_clock,
    recording_notifier,
    repo_client,
    sample_behind_conflict,
    sample_changes,
)
