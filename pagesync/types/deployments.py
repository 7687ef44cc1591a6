"""Deployment and publication data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class DeploymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class MonitorOutcome(Enum):
    COMPLETED = "completed"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    FAILED = "failed"
    ERROR = "error"


@dataclass
class DeploymentRecord:
    """The remote's view of one publish of a commit."""

    id: str
    sha: str
    status: DeploymentStatus
    url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class PagesInfo:
    """Publishing configuration of the repository."""

    url: str | None
    status: str | None
    source_branch: str | None
    source_path: str | None
    https_enforced: bool = False


@dataclass
class MonitorResult:
    """Result of waiting for a deployment of a commit."""

    outcome: MonitorOutcome
    deployment: DeploymentRecord | None = None
    duration: float = 0.0  # Seconds
    message: str = ""

    @property
    def success(self) -> bool:
        return self.outcome is MonitorOutcome.COMPLETED


@dataclass
class VerificationResult:
    """Result of fetching the published site and checking for content."""

    verified: bool
    status_code: int | None = None
    message: str = ""
    response_time: float = 0.0  # Seconds
    url: str | None = None
    missing_markers: list[str] = field(default_factory=list)


@dataclass
class DeploymentWorkflowResult:
    """Combined result of monitoring then verifying a deployment."""

    success: bool
    deployment_completed: bool
    content_verified: bool
    monitor: MonitorResult
    verification: VerificationResult | None = None
    message: str = ""
