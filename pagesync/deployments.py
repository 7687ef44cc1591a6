"""
Deployment monitoring and verification.

After a commit, the remote publishes the site asynchronously. The monitor
polls the latest deployment until it references the commit and completes,
then a separate verification step fetches the public site and looks for
expected content.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pagesync.clock import CancellationToken
from pagesync.events import ProgressCallback, report_progress
from pagesync.exceptions import NotFoundError, OperationCancelledError, PageSyncError
from pagesync.logging import get_logger
from pagesync.types.deployments import (
    DeploymentRecord,
    DeploymentStatus,
    DeploymentWorkflowResult,
    MonitorOutcome,
    MonitorResult,
    VerificationResult,
)

if TYPE_CHECKING:
    from pagesync.client import RepositoryClient

logger = get_logger("deployments")

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


@dataclass
class MonitorConfig:
    """Polling settings for DeploymentMonitor."""

    poll_interval: float = 10.0  # Seconds between polls
    timeout: float = 300.0  # Default wall-clock budget, seconds
    sha_prefix: int = 7  # Characters compared when matching a deployment to a commit


class DeploymentMonitor:
    """
    Tracks a commit from push to publication.

    Example:
        ```python
        outcome = client.commit_files(changes, "Update site")
        result = client.deployments.run_workflow(outcome.sha, expected_markers=["v2.1"])
        if result.deployment_completed and not result.content_verified:
            print(result.verification.message)  # edge caches still warm
        ```
    """

    def __init__(self, client: "RepositoryClient", config: MonitorConfig | None = None) -> None:
        self.client = client
        self.config = config if config is not None else MonitorConfig()

    def matches(self, deployment: DeploymentRecord, commit_sha: str) -> bool:
        prefix = commit_sha[: self.config.sha_prefix]
        return bool(prefix) and deployment.sha.startswith(prefix)

    def monitor(
        self,
        commit_sha: str,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        timeout: float | None = None,
    ) -> MonitorResult:
        """
        Poll until the deployment of ``commit_sha`` completes.

        Args:
            commit_sha: Commit that triggered the deployment
            progress: Optional ``(percentage, message)`` callback
            cancel: Optional token, checked before every wait
            timeout: Wall-clock budget in seconds (default: config.timeout)

        Returns:
            MonitorResult; the outcome is COMPLETED, FAILED, TIMEOUT,
            CANCELLED or ERROR
        """
        clock = self.client.clock
        repo = self.client.repository
        budget = self.config.timeout if timeout is None else timeout
        started = clock.monotonic()
        matched: DeploymentRecord | None = None

        report_progress(progress, 0, "Waiting for deployment to start")

        while True:
            if cancel is not None and cancel.cancelled:
                return self._finish(MonitorOutcome.CANCELLED, matched, started, "Monitoring cancelled", progress)

            try:
                deployment = self.client.pages.latest_deployment(repo, cancel=cancel)
            except OperationCancelledError:
                return self._finish(MonitorOutcome.CANCELLED, matched, started, "Monitoring cancelled", progress)
            except PageSyncError as e:
                logger.error(f"deployment poll failed: {e}")
                return self._finish(MonitorOutcome.ERROR, matched, started, f"Monitoring failed: {e.message}", progress)

            elapsed = clock.monotonic() - started

            if deployment is not None and self.matches(deployment, commit_sha):
                matched = deployment
                if deployment.status is DeploymentStatus.COMPLETED:
                    report_progress(progress, 100, "Deployment completed")
                    logger.info(f"deployment {deployment.id} of {commit_sha[:7]} completed in {elapsed:.0f}s")
                    return MonitorResult(MonitorOutcome.COMPLETED, deployment, elapsed, "Deployment completed")
                if deployment.status is DeploymentStatus.FAILED:
                    return self._finish(MonitorOutcome.FAILED, deployment, started, "Deployment failed", progress)
                message = f"Deployment in progress ({int(elapsed)}s)"
            else:
                message = f"Waiting for deployment to start ({int(elapsed)}s)"

            remaining = budget - elapsed
            if remaining <= 0:
                return self._finish(
                    MonitorOutcome.TIMEOUT, matched, started, f"Deployment not completed within {budget:.0f}s", progress
                )

            report_progress(progress, min(90.0, elapsed / budget * 100) if budget > 0 else 90.0, message)

            try:
                clock.sleep(min(self.config.poll_interval, remaining), cancel)
            except OperationCancelledError:
                return self._finish(MonitorOutcome.CANCELLED, matched, started, "Monitoring cancelled", progress)

    def _finish(
        self,
        outcome: MonitorOutcome,
        deployment: DeploymentRecord | None,
        started: float,
        message: str,
        progress: ProgressCallback | None,
    ) -> MonitorResult:
        duration = self.client.clock.monotonic() - started
        logger.warning(f"deployment monitoring ended: {message}")
        report_progress(progress, 0, message)
        return MonitorResult(outcome, deployment, duration, message)

    def verify(self, expected_markers: Sequence[str] = (), path: str = "") -> VerificationResult:
        """
        Fetch the published site and look for ``expected_markers``.

        Missing markers are reported with ``verified=False``; edge caches
        commonly lag a completed deployment, so this is not an error.
        """
        client = self.client
        try:
            pages = client.pages.get(client.repository)
        except NotFoundError:
            return VerificationResult(verified=False, message="Publishing is not enabled for this repository")
        except PageSyncError as e:
            return VerificationResult(verified=False, message=f"Could not resolve site URL: {e.message}")

        if not pages.url:
            return VerificationResult(verified=False, message="Site URL not available yet")

        url = pages.url if not path else f"{pages.url.rstrip('/')}/{path.lstrip('/')}"
        started = client.clock.monotonic()
        try:
            response = client.transport.fetch_public(url, headers=NO_CACHE_HEADERS)
        except PageSyncError as e:
            return VerificationResult(verified=False, url=url, message=f"Site not reachable: {e.message}")
        response_time = client.clock.monotonic() - started

        if response.status_code >= 400:
            return VerificationResult(
                verified=False,
                status_code=response.status_code,
                url=url,
                response_time=response_time,
                message=f"Site not reachable (HTTP {response.status_code})",
            )

        body = response.text
        missing = [marker for marker in expected_markers if marker not in body]
        if missing:
            message = "Changes not yet visible (edge cache)"
        elif expected_markers:
            message = "Changes verified on the site"
        else:
            message = "Site reachable"

        return VerificationResult(
            verified=not missing,
            status_code=response.status_code,
            url=url,
            response_time=response_time,
            message=message,
            missing_markers=missing,
        )

    def run_workflow(
        self,
        commit_sha: str,
        expected_markers: Sequence[str] = (),
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        path: str = "",
    ) -> DeploymentWorkflowResult:
        """
        Monitor the deployment of ``commit_sha`` and then verify the site.

        Monitoring progress is reported in the 10-80 range.
        """
        report_progress(progress, 0, "Starting deployment workflow")
        report_progress(progress, 10, "Monitoring deployment")

        def scaled(percentage: float, message: str) -> None:
            report_progress(progress, 10 + percentage * 0.7, message)

        monitor = self.monitor(commit_sha, progress=scaled, cancel=cancel)
        if not monitor.success:
            return DeploymentWorkflowResult(
                success=False,
                deployment_completed=False,
                content_verified=False,
                monitor=monitor,
                message=monitor.message,
            )

        report_progress(progress, 85, "Verifying published content")
        verification = self.verify(expected_markers, path)
        report_progress(progress, 95, verification.message)

        message = (
            "Deployment completed and verified"
            if verification.verified
            else f"Deployment completed; {verification.message}"
        )
        report_progress(progress, 100, message)
        return DeploymentWorkflowResult(
            success=True,
            deployment_completed=True,
            content_verified=verification.verified,
            monitor=monitor,
            verification=verification,
            message=message,
        )


__all__ = ["DeploymentMonitor", "MonitorConfig"]
