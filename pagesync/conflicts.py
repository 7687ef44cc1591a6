"""
Branch conflict detection and remediation.

ConflictAnalyzer compares the working branch with the repository's default
branch, suggests remedies for what it finds and, only on explicit opt-in,
applies the one remedy that is safe to automate (merging a branch that is
strictly behind).
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from pagesync.events import Event, EventKind
from pagesync.exceptions import PageSyncError
from pagesync.logging import get_logger
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

if TYPE_CHECKING:
    from pagesync.client import RepositoryClient

logger = get_logger("conflicts")


def _resolutions_for_kind(kind: ConflictKind | None) -> list[Resolution]:
    if kind is ConflictKind.BEHIND:
        return [
            Resolution(
                conflict_kind=kind,
                action=ResolutionAction.MERGE,
                risk=Risk.LOW,
                title="Update branch",
                description="Merge the latest changes from the base branch",
                steps=[
                    "Back up the current branch",
                    "Merge the base branch into the working branch",
                    "Resolve conflicts if any",
                    "Check the published result",
                ],
            )
        ]
    if kind is ConflictKind.DIVERGED:
        return [
            Resolution(
                conflict_kind=kind,
                action=ResolutionAction.REBASE,
                risk=Risk.MEDIUM,
                title="Rebase branch",
                description="Replay the branch commits on top of the base branch",
                steps=[
                    "Back up the current branch",
                    "Rebase onto the base branch",
                    "Resolve conflicts by hand",
                    "Force-push with care",
                ],
            ),
            Resolution(
                conflict_kind=kind,
                action=ResolutionAction.NEW_BRANCH,
                risk=Risk.LOW,
                title="Create a new branch",
                description="Move the changes to a fresh branch off the base branch",
                steps=[
                    "Create a branch from the base branch",
                    "Apply the changes on the new branch",
                    "Open a pull request",
                    "Review and merge",
                ],
            ),
        ]
    if kind is ConflictKind.OPEN_PEER_CHANGES:
        return [
            Resolution(
                conflict_kind=kind,
                action=ResolutionAction.COORDINATE,
                risk=Risk.LOW,
                title="Coordinate with open pull requests",
                description="Agree on ordering with the authors of open pull requests",
                steps=[
                    "Review the open pull requests",
                    "Contact their authors",
                    "Wait for them to merge or agree on an order",
                    "Commit once coordinated",
                ],
            )
        ]
    return [
        Resolution(
            conflict_kind=kind,
            action=ResolutionAction.MANUAL,
            risk=Risk.MEDIUM,
            title="Resolve manually",
            description="Inspect and resolve the conflict by hand",
            steps=[
                "Inspect the conflict in detail",
                "Back up the current changes",
                "Resolve the conflict",
                "Check the result",
            ],
        )
    ]


def backup_branch_name(branch: str, now: float) -> str:
    """``backup-{branch}-{UTC ISO timestamp}`` with ':' and '.' replaced by '-'."""
    stamp = datetime.fromtimestamp(now, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return f"backup-{branch}-{stamp.replace(':', '-').replace('.', '-')}"


class ConflictAnalyzer:
    """
    Classifies the relationship between the working branch and its base.

    Example:
        ```python
        report = client.conflicts.detect()
        if report.has_conflicts:
            for resolution in client.conflicts.resolutions_for(report.conflicts):
                print(resolution.title, resolution.risk.value)
        ```
    """

    def __init__(self, client: "RepositoryClient") -> None:
        self.client = client

    def detect(self, branch: str | None = None) -> ConflictReport:
        """
        Compare ``branch`` (default: working branch) with the default branch.

        Raises:
            PageSyncError: If the remote cannot be queried
        """
        client = self.client
        repo = client.repository
        branch = branch or repo.branch
        base = client.repos.get(repo).default_branch

        conflicts: list[Conflict] = []
        if branch != base:
            comparison = client.repos.compare(repo, base, branch)
            ahead_by = comparison.get("ahead_by", 0)
            behind_by = comparison.get("behind_by", 0)
            if behind_by > 0 and ahead_by == 0:
                conflicts.append(
                    Conflict(
                        kind=ConflictKind.BEHIND,
                        severity=Severity.WARNING,
                        message=f"Branch {branch} is {behind_by} commits behind {base}",
                        ahead_by=ahead_by,
                        behind_by=behind_by,
                    )
                )
            elif behind_by > 0 and ahead_by > 0:
                conflicts.append(
                    Conflict(
                        kind=ConflictKind.DIVERGED,
                        severity=Severity.ERROR,
                        message=(
                            f"Branch {branch} has diverged from {base} "
                            f"({ahead_by} ahead, {behind_by} behind)"
                        ),
                        ahead_by=ahead_by,
                        behind_by=behind_by,
                    )
                )
        else:
            pulls = client.repos.list_pulls(repo, base=branch, state="open")
            if pulls:
                conflicts.append(
                    Conflict(
                        kind=ConflictKind.OPEN_PEER_CHANGES,
                        severity=Severity.INFO,
                        message=f"{len(pulls)} open pull request(s) target {branch}",
                        peer_changes=[
                            PeerChange(number=p.number, title=p.title, author=p.author, url=p.html_url)
                            for p in pulls
                        ],
                    )
                )

        report = ConflictReport(
            has_conflicts=bool(conflicts),
            conflicts=conflicts,
            message=f"{len(conflicts)} conflict(s) detected" if conflicts else "No conflicts detected",
            base_branch=base,
            branch=branch,
        )

        if conflicts:
            logger.info(report.message)
            client.notifier.notify(
                Event(
                    kind=EventKind.CONFLICT_DETECTED,
                    message=report.message,
                    data={
                        "branch": branch,
                        "base_branch": base,
                        "kinds": [c.kind.value for c in conflicts],
                    },
                    timestamp=client.clock.time(),
                )
            )
        return report

    def resolutions_for(self, conflicts: Sequence[Conflict]) -> list[Resolution]:
        """Suggested remedies, in the order of the given conflicts."""
        resolutions: list[Resolution] = []
        for conflict in conflicts:
            resolutions.extend(_resolutions_for_kind(conflict.kind))
        return resolutions

    def create_backup_branch(self, branch: str | None = None, name: str | None = None) -> BackupResult:
        """
        Create a branch at the current tip of ``branch``.

        Never raises for remote failures; the result says whether it worked.
        """
        client = self.client
        repo = client.repository
        branch = branch or repo.branch
        name = name or backup_branch_name(branch, client.clock.time())

        try:
            sha = client.git.get_ref(repo, branch)
            client.git.create_ref(repo, name, sha)
        except PageSyncError as e:
            logger.warning(f"could not create backup branch {name}: {e}")
            return BackupResult(success=False, branch_name=None, error=str(e))

        logger.info(f"created backup branch {name} at {sha[:7]}")
        return BackupResult(success=True, branch_name=name, sha=sha)

    def attempt_auto_resolution(
        self,
        conflicts: Sequence[Conflict],
        auto_merge: bool = False,
        base_branch: str | None = None,
    ) -> AutoResolutionResult:
        """
        Apply the remedies that are safe to automate.

        A BEHIND conflict is merged only when ``auto_merge`` is set, after a
        best-effort backup. Open peer changes are marked as notified.
        Everything else is left for manual handling.
        """
        client = self.client
        repo = client.repository
        resolved: list[str] = []
        unresolved: list[str] = []
        backup: BackupResult | None = None

        will_merge = auto_merge and any(c.kind is ConflictKind.BEHIND for c in conflicts)
        if will_merge:
            backup = self.create_backup_branch()
            if not backup.success:
                logger.warning("continuing without backup branch")
            if base_branch is None:
                base_branch = client.repos.get(repo).default_branch

        for conflict in conflicts:
            kind = conflict.kind
            if kind is ConflictKind.BEHIND and will_merge:
                try:
                    sha = client.repos.merge(
                        repo,
                        base=repo.branch,
                        head=base_branch,
                        message=f"Merge {base_branch} into {repo.branch}",
                    )
                except PageSyncError as e:
                    logger.error(f"automatic merge failed: {e}")
                    unresolved.append(f"{kind.value}: merge failed ({e.message})")
                    continue
                resolved.append(f"{kind.value}: merged" + (f" as {sha[:7]}" if sha else " (already up to date)"))
            elif kind is ConflictKind.BEHIND:
                unresolved.append(f"{kind.value}: automatic merge not enabled")
            elif kind is ConflictKind.OPEN_PEER_CHANGES:
                resolved.append(f"{kind.value}: notified, manual coordination needed")
            else:
                unresolved.append(f"{kind.value}: requires manual resolution")

        return AutoResolutionResult(
            success=not unresolved,
            resolved=resolved,
            unresolved=unresolved,
            backup=backup,
            message=f"{len(resolved)} resolved, {len(unresolved)} need attention",
        )

    def summarize(self, conflicts: Sequence[Conflict]) -> ConflictSummary:
        """User-facing digest: overall level, title and joined messages."""
        if not conflicts:
            return ConflictSummary(
                level="success",
                title="No conflicts",
                message="No conflicts detected in the repository",
                auto_resolve_available=False,
                conflict_count=0,
            )

        severities = {c.severity for c in conflicts}
        if Severity.ERROR in severities:
            level, title = "error", "Critical conflicts"
        elif Severity.WARNING in severities:
            level, title = "warning", "Attention needed"
        else:
            level, title = "info", "Information"

        return ConflictSummary(
            level=level,
            title=title,
            message="; ".join(c.message for c in conflicts),
            auto_resolve_available=any(c.kind is ConflictKind.BEHIND for c in conflicts),
            conflict_count=len(conflicts),
        )


__all__ = ["ConflictAnalyzer", "backup_branch_name"]
