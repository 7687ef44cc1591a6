"""Branch conflict data models."""

from dataclasses import dataclass, field
from enum import Enum


class ConflictKind(Enum):
    BEHIND = "behind"
    DIVERGED = "diverged"
    OPEN_PEER_CHANGES = "open_peer_changes"


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ResolutionAction(Enum):
    MERGE = "merge"
    REBASE = "rebase"
    NEW_BRANCH = "new_branch"
    COORDINATE = "coordinate"
    MANUAL = "manual"


class Risk(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class PeerChange:
    """An open pull request targeting the working branch."""

    number: int
    title: str
    author: str
    url: str


@dataclass
class Conflict:
    """A detected divergence between the working branch and its base."""

    kind: ConflictKind
    severity: Severity
    message: str
    ahead_by: int = 0
    behind_by: int = 0
    peer_changes: list[PeerChange] = field(default_factory=list)


@dataclass
class Resolution:
    """A suggested remedy for one conflict kind."""

    conflict_kind: ConflictKind | None
    action: ResolutionAction
    risk: Risk
    title: str
    description: str
    steps: list[str] = field(default_factory=list)


@dataclass
class ConflictReport:
    """Result of conflict detection."""

    has_conflicts: bool
    conflicts: list[Conflict] = field(default_factory=list)
    message: str = ""
    base_branch: str | None = None
    branch: str | None = None

    @property
    def blocking(self) -> bool:
        return any(c.severity is Severity.ERROR for c in self.conflicts)


@dataclass
class BackupResult:
    """Result of creating a backup branch."""

    success: bool
    branch_name: str | None = None
    sha: str | None = None
    error: str | None = None


@dataclass
class AutoResolutionResult:
    """Result of attempting remedies for a set of conflicts."""

    success: bool
    resolved: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    backup: BackupResult | None = None
    message: str = ""


@dataclass
class ConflictSummary:
    """User-facing digest of a set of conflicts."""

    level: str  # "success", "info", "warning", "error"
    title: str
    message: str
    auto_resolve_available: bool
    conflict_count: int
