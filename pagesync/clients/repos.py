"""Repositories resource client: metadata, history, comparisons and pulls."""

from datetime import datetime
from typing import TYPE_CHECKING, Any

from pagesync.types.repos import (
    CommitSummary,
    PullRequestInfo,
    RateLimitSnapshot,
    RepositoryInfo,
    RepositoryRef,
)

if TYPE_CHECKING:
    from pagesync.clock import CancellationToken
    from pagesync.transport import HTTPTransport


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp as returned by the remote."""
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _parse_repository(data: dict[str, Any]) -> RepositoryInfo:
    owner = data.get("owner") or {}
    return RepositoryInfo(
        full_name=data["full_name"],
        name=data["name"],
        owner=owner.get("login", data["full_name"].split("/")[0]),
        description=data.get("description"),
        private=data.get("private", False),
        default_branch=data.get("default_branch", "main"),
        html_url=data.get("html_url", ""),
        has_pages=data.get("has_pages", False),
        updated_at=parse_timestamp(data.get("updated_at")),
        permissions=dict(data.get("permissions") or {}),
    )


def _parse_commit(data: dict[str, Any]) -> CommitSummary:
    commit = data.get("commit") or {}
    author = commit.get("author") or {}
    return CommitSummary(
        sha=data["sha"],
        message=commit.get("message", ""),
        author=author.get("name", ""),
        date=parse_timestamp(author.get("date")),
        url=data.get("html_url", ""),
    )


def _parse_pull(data: dict[str, Any]) -> PullRequestInfo:
    return PullRequestInfo(
        number=data["number"],
        title=data.get("title", ""),
        author=(data.get("user") or {}).get("login", ""),
        state=data.get("state", "open"),
        head=(data.get("head") or {}).get("ref", ""),
        base=(data.get("base") or {}).get("ref", ""),
        html_url=data.get("html_url", ""),
    )


class ReposClient:
    """Client for repository-related operations."""

    def __init__(self, transport: "HTTPTransport") -> None:
        """
        Initialize the repos client.

        Args:
            transport: HTTP transport for making requests
        """
        self.transport = transport

    def get(self, repo: RepositoryRef, cancel: "CancellationToken | None" = None) -> RepositoryInfo:
        """
        Get repository information, including the caller's permissions.

        Raises:
            NotFoundError: If the repository is not visible to the credential
        """
        data = self.transport.request("GET", f"/repos/{repo.full_name}", cancel=cancel)
        return _parse_repository(data)

    def authenticated_user(self, cancel: "CancellationToken | None" = None) -> tuple[str, list[str]]:
        """
        Identify the credential.

        Returns:
            (login, granted OAuth scopes)
        """
        response = self.transport.request_raw("GET", "/user", cancel=cancel)
        scopes_header = response.headers.get("X-OAuth-Scopes", "")
        scopes = [s.strip() for s in scopes_header.split(",") if s.strip()]
        return response.data.get("login", ""), scopes

    def compare(self, repo: RepositoryRef, base: str, head: str,
                cancel: "CancellationToken | None" = None) -> dict[str, Any]:
        """
        Compare two branches.

        Returns:
            Raw comparison with ``status``, ``ahead_by`` and ``behind_by``
        """
        return self.transport.request(
            "GET", f"/repos/{repo.full_name}/compare/{base}...{head}", cancel=cancel
        )

    def list_commits(self, repo: RepositoryRef, count: int = 10,
                     cancel: "CancellationToken | None" = None) -> list[CommitSummary]:
        data = self.transport.request(
            "GET",
            f"/repos/{repo.full_name}/commits",
            params={"sha": repo.branch, "per_page": count},
            cancel=cancel,
        )
        return [_parse_commit(item) for item in data or []]

    def list_pulls(self, repo: RepositoryRef, base: str | None = None, state: str = "open",
                   cancel: "CancellationToken | None" = None) -> list[PullRequestInfo]:
        params: dict[str, Any] = {"state": state}
        if base:
            params["base"] = base
        data = self.transport.request(
            "GET", f"/repos/{repo.full_name}/pulls", params=params, cancel=cancel
        )
        return [_parse_pull(item) for item in data or []]

    def create_pull(self, repo: RepositoryRef, title: str, body: str, head: str, base: str,
                    cancel: "CancellationToken | None" = None) -> PullRequestInfo:
        """
        Open a pull request.

        Raises:
            ValidationError: If the branches are invalid or a pull already exists
        """
        data = self.transport.request(
            "POST",
            f"/repos/{repo.full_name}/pulls",
            body={"title": title, "body": body, "head": head, "base": base},
            cancel=cancel,
        )
        return _parse_pull(data)

    def merge(self, repo: RepositoryRef, base: str, head: str, message: str,
              cancel: "CancellationToken | None" = None) -> str | None:
        """
        Merge ``head`` into ``base`` on the remote.

        Returns:
            The merge commit sha, or None when there was nothing to merge

        Raises:
            ConflictError: If the merge has conflicts
        """
        data = self.transport.request(
            "POST",
            f"/repos/{repo.full_name}/merges",
            body={"base": base, "head": head, "commit_message": message},
            cancel=cancel,
        )
        if not data:
            return None
        return data.get("sha")

    def rate_limit(self, retry: bool = True,
                   cancel: "CancellationToken | None" = None) -> RateLimitSnapshot:
        """
        Current core quota. Also used as the connectivity probe (``retry=False``).
        """
        data = self.transport.request("GET", "/rate_limit", cancel=cancel, retry=retry)
        core = (data.get("resources") or {}).get("core") or data.get("rate") or {}
        return RateLimitSnapshot(
            limit=core.get("limit", 0),
            remaining=core.get("remaining", 0),
            used=core.get("used", 0),
            reset_at=float(core.get("reset", 0)),
        )
