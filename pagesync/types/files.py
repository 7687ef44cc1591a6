"""File content and write result models."""

from dataclasses import dataclass, field
from enum import Enum


class DataSource(Enum):
    """Where a returned FileContent came from."""

    LIVE = "live"
    CACHE = "cache"
    FALLBACK = "fallback"


@dataclass
class FileContent:
    """
    Content of one file at one ref.

    ``content`` is None when the path does not exist (or no fallback exists).
    Text files are decoded to str; binary reads keep the base64 payload.
    """

    path: str
    content: str | None
    version_tag: str | None = None  # Blob sha, required to overwrite the file
    size: int = 0
    encoding: str = "utf-8"  # "utf-8" or "base64"
    download_url: str | None = None
    source: DataSource = DataSource.LIVE

    @property
    def exists(self) -> bool:
        return self.content is not None


@dataclass
class FileChange:
    """One file in an atomic multi-file commit."""

    path: str
    content: str | bytes
    is_binary: bool = False  # str content is then already base64
    mode: str = "100644"


@dataclass
class BatchReadResult:
    """Result of reading several paths concurrently."""

    files: dict[str, FileContent] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class WriteOutcome:
    """Result of writing a single file."""

    success: bool
    path: str
    version_tag: str | None = None
    commit_sha: str | None = None
    commit_url: str | None = None
    message: str = ""
    error: str | None = None  # Error code on failure
    attempts: int = 1


@dataclass
class CommitOutcome:
    """Result of an atomic multi-file commit."""

    success: bool
    sha: str | None = None
    message: str = ""
    files: list[str] = field(default_factory=list)
    error: str | None = None
