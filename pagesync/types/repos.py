"""Repository-related data models."""

from dataclasses import dataclass, field
from datetime import datetime

from pagesync.exceptions import ConfigurationError


@dataclass(frozen=True)
class RepositoryRef:
    """The repository and working branch a client operates on."""

    owner: str
    name: str
    branch: str = "main"

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, full_name: str, branch: str = "main") -> "RepositoryRef":
        """
        Build a reference from an ``owner/name`` string.

        Raises:
            ConfigurationError: If the string is not of the form owner/name
        """
        owner, sep, name = full_name.strip().partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ConfigurationError(f"Invalid repository {full_name!r}, expected 'owner/name'")
        if not branch:
            raise ConfigurationError("branch must not be empty")
        return cls(owner=owner, name=name, branch=branch)

    def with_branch(self, branch: str) -> "RepositoryRef":
        return RepositoryRef(owner=self.owner, name=self.name, branch=branch)

    def __str__(self) -> str:
        return f"{self.full_name}@{self.branch}"


@dataclass
class RepositoryInfo:
    """Repository metadata."""

    full_name: str
    name: str
    owner: str
    description: str | None
    private: bool
    default_branch: str
    html_url: str
    has_pages: bool
    updated_at: datetime | None
    permissions: dict[str, bool] = field(default_factory=dict)


@dataclass
class CommitSummary:
    """One entry in the branch history."""

    sha: str
    message: str
    author: str
    date: datetime | None
    url: str


@dataclass
class RateLimitSnapshot:
    """Core API quota as reported by the remote."""

    limit: int
    remaining: int
    used: int
    reset_at: float  # Epoch seconds


@dataclass
class AccessReport:
    """Outcome of validating the credential against the repository."""

    ok: bool
    login: str | None
    granted_scopes: list[str]
    permissions: dict[str, bool]
    message: str

    @property
    def can_write(self) -> bool:
        return bool(self.permissions.get("push") or self.permissions.get("admin"))


@dataclass
class PullRequestInfo:
    """A pull request as returned by the remote."""

    number: int
    title: str
    author: str
    state: str  # "open", "closed"
    head: str
    base: str
    html_url: str
