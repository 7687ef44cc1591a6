"""pagesync type definitions.

This module exports all data model types used by the client.
"""

from pagesync.types.conflicts import (
    AutoResolutionResult,
    BackupResult,
    Conflict,
    ConflictKind,
    ConflictReport,
    ConflictSummary,
    PeerChange,
    Resolution,
    ResolutionAction,
    Risk,
    Severity,
)
from pagesync.types.deployments import (
    DeploymentRecord,
    DeploymentStatus,
    DeploymentWorkflowResult,
    MonitorOutcome,
    MonitorResult,
    PagesInfo,
    VerificationResult,
)
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

__all__ = [
    # File types
    "DataSource",
    "FileContent",
    "FileChange",
    "BatchReadResult",
    "WriteOutcome",
    "CommitOutcome",
    # Repository types
    "RepositoryRef",
    "RepositoryInfo",
    "CommitSummary",
    "RateLimitSnapshot",
    "AccessReport",
    "PullRequestInfo",
    # Conflict types
    "ConflictKind",
    "Severity",
    "ResolutionAction",
    "Risk",
    "PeerChange",
    "Conflict",
    "Resolution",
    "ConflictReport",
    "BackupResult",
    "AutoResolutionResult",
    "ConflictSummary",
    # Deployment types
    "DeploymentStatus",
    "MonitorOutcome",
    "DeploymentRecord",
    "PagesInfo",
    "MonitorResult",
    "VerificationResult",
    "DeploymentWorkflowResult",
]
