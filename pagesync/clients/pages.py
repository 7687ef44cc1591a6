"""Pages resource client: publishing configuration and deployments."""

from typing import TYPE_CHECKING, Any

from pagesync.clients.repos import parse_timestamp
from pagesync.types.deployments import DeploymentRecord, DeploymentStatus, PagesInfo
from pagesync.types.repos import RepositoryRef

if TYPE_CHECKING:
    from pagesync.clock import CancellationToken
    from pagesync.transport import HTTPTransport

_COMPLETED_STATES = {"built", "succeed", "success", "completed"}
_FAILED_STATES = {"errored", "error", "failure", "failed"}


def deployment_status(data: dict[str, Any]) -> DeploymentStatus:
    """
    Map a remote deployment record to a DeploymentStatus.

    Records without a status field are pending while they still carry a
    ``status_url`` and completed otherwise.
    """
    status = data.get("status")
    if status is None:
        return DeploymentStatus.PENDING if data.get("status_url") else DeploymentStatus.COMPLETED
    status = str(status).lower()
    if status in _COMPLETED_STATES:
        return DeploymentStatus.COMPLETED
    if status in _FAILED_STATES:
        return DeploymentStatus.FAILED
    return DeploymentStatus.PENDING


def _parse_deployment(data: dict[str, Any]) -> DeploymentRecord:
    return DeploymentRecord(
        id=str(data["id"]),
        sha=data.get("sha") or "",
        status=deployment_status(data),
        url=data.get("page_url"),
        created_at=parse_timestamp(data.get("created_at")),
        updated_at=parse_timestamp(data.get("updated_at")),
    )


class PagesClient:
    """Client for the publishing endpoints."""

    def __init__(self, transport: "HTTPTransport") -> None:
        self.transport = transport

    def get(self, repo: RepositoryRef, cancel: "CancellationToken | None" = None) -> PagesInfo:
        """
        Publishing configuration.

        Raises:
            NotFoundError: If publishing is not enabled for the repository
        """
        data = self.transport.request("GET", f"/repos/{repo.full_name}/pages", cancel=cancel)
        source = data.get("source") or {}
        return PagesInfo(
            url=data.get("html_url"),
            status=data.get("status"),
            source_branch=source.get("branch"),
            source_path=source.get("path"),
            https_enforced=data.get("https_enforced", False),
        )

    def latest_deployment(self, repo: RepositoryRef,
                          cancel: "CancellationToken | None" = None) -> DeploymentRecord | None:
        """Most recent deployment, or None if there has been none."""
        data = self.transport.request(
            "GET", f"/repos/{repo.full_name}/pages/deployments", cancel=cancel
        )
        if not data:
            return None
        return _parse_deployment(data[0])
