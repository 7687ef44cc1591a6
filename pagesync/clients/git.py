"""Git data resource client: refs, commits, trees and blobs."""

from typing import TYPE_CHECKING, Any

from pagesync.types.repos import RepositoryRef

if TYPE_CHECKING:
    from pagesync.clock import CancellationToken
    from pagesync.transport import HTTPTransport


class GitDataClient:
    """Client for the low-level git data endpoints used by atomic commits."""

    def __init__(self, transport: "HTTPTransport") -> None:
        self.transport = transport

    def _path(self, repo: RepositoryRef, suffix: str) -> str:
        return f"/repos/{repo.full_name}/git/{suffix}"

    def get_ref(self, repo: RepositoryRef, branch: str | None = None,
                cancel: "CancellationToken | None" = None) -> str:
        """
        Resolve a branch to its tip commit sha.

        Raises:
            NotFoundError: If the branch does not exist
        """
        data = self.transport.request(
            "GET", self._path(repo, f"refs/heads/{branch or repo.branch}"), cancel=cancel
        )
        return data["object"]["sha"]

    def create_ref(self, repo: RepositoryRef, branch: str, sha: str,
                   cancel: "CancellationToken | None" = None) -> str:
        """
        Create a branch pointing at ``sha``.

        Raises:
            ValidationError: If the branch already exists
        """
        data = self.transport.request(
            "POST",
            self._path(repo, "refs"),
            body={"ref": f"refs/heads/{branch}", "sha": sha},
            cancel=cancel,
        )
        return data["object"]["sha"]

    def update_ref(self, repo: RepositoryRef, sha: str, branch: str | None = None,
                   force: bool = False, cancel: "CancellationToken | None" = None) -> str:
        """
        Move a branch to ``sha``.

        Raises:
            ConflictError: If the move is not a fast-forward and ``force`` is False
        """
        data = self.transport.request(
            "PATCH",
            self._path(repo, f"refs/heads/{branch or repo.branch}"),
            body={"sha": sha, "force": force},
            cancel=cancel,
        )
        return data["object"]["sha"]

    def get_commit(self, repo: RepositoryRef, sha: str,
                   cancel: "CancellationToken | None" = None) -> dict[str, Any]:
        return self.transport.request("GET", self._path(repo, f"commits/{sha}"), cancel=cancel)

    def create_blob(self, repo: RepositoryRef, encoded_content: str,
                    cancel: "CancellationToken | None" = None) -> str:
        data = self.transport.request(
            "POST",
            self._path(repo, "blobs"),
            body={"content": encoded_content, "encoding": "base64"},
            cancel=cancel,
        )
        return data["sha"]

    def create_tree(self, repo: RepositoryRef, base_tree: str, entries: list[dict[str, Any]],
                    cancel: "CancellationToken | None" = None) -> str:
        """
        Create a tree layered on ``base_tree``.

        Each entry has ``path``, ``mode``, ``type`` and either ``content``
        (text) or ``sha`` (an existing blob).
        """
        data = self.transport.request(
            "POST",
            self._path(repo, "trees"),
            body={"base_tree": base_tree, "tree": entries},
            cancel=cancel,
        )
        return data["sha"]

    def create_commit(self, repo: RepositoryRef, message: str, tree: str, parents: list[str],
                      cancel: "CancellationToken | None" = None) -> dict[str, Any]:
        return self.transport.request(
            "POST",
            self._path(repo, "commits"),
            body={"message": message, "tree": tree, "parents": parents},
            cancel=cancel,
        )
