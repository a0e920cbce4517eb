"""
Reconciliation engine.

Compares loaded goals against the remote issue index and applies the
minimal set of create/update/close operations, one goal at a time:

1. No tracking issue: create one (active goals only) and record its
   number in the goal document
2. Finished goal with an open issue: close it, leaving title and body
3. Content differs (title, canonical body, managed labels): update it
4. Otherwise: up to date

Every decision is recomputed from current remote state, so a failed or
interrupted run is resumed simply by running again.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from .exceptions import (
    ForeignTrackingIssueError,
    GoalSyncError,
    IdentityConflictError,
    TrackerAPIError,
    UnmanagedIssueError,
)
from .goal_writer import GoalWriter
from .issue_body import canonicalize, desired_labels, extract_marker, render_issue
from .issue_index import RemoteIssueIndex
from .models import (
    DesiredIssue,
    Goal,
    IssueState,
    ReconcileAction,
    ReconcileReport,
    RemoteIssue,
    SyncConfig,
)
from .provider import IssueProvider

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

TRACKING_LABEL_COLOR = "1D76DB"
MILESTONE_LABEL_COLOR = "FBCA04"
TEAM_LABEL_COLOR = "C5DEF5"


def describe_changes(desired: DesiredIssue, issue: RemoteIssue, config: SyncConfig) -> list[str]:
    """
    List which parts of an issue differ from what its goal specifies.

    Labels the tool does not manage are ignored.
    """
    changes: list[str] = []
    if desired.title.strip() != issue.title.strip():
        changes.append("title")
    if canonicalize(desired.body) != canonicalize(issue.body):
        changes.append("body")
    managed = {label for label in issue.labels if config.is_managed_label(label)}
    if set(desired.labels) != managed:
        changes.append("labels")
    return changes


class Reconciler:
    """
    Applies goal state to tracking issues.

    Goals are processed strictly in the order given. In commit mode each
    remote mutation is followed by a ``config.pace`` second pause; dry
    runs never call a mutating provider method and never touch goal
    documents.
    """

    def __init__(
        self,
        provider: IssueProvider,
        config: SyncConfig,
        writer: GoalWriter | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Initialize the engine.

        Args:
            provider: Issue tracker to mutate
            config: Run configuration
            writer: Writes tracking references back into documents
            sleep: Pacing coroutine, replaceable in tests
        """
        self.provider = provider
        self.config = config
        self.writer = writer if writer else GoalWriter()
        self._sleep = sleep

    async def reconcile(
        self,
        goals: Sequence[Goal],
        index: RemoteIssueIndex,
    ) -> ReconcileReport:
        """
        Reconcile every goal against the index.

        A remote or write failure for one goal is recorded in the report
        and processing continues with the next goal.
        """
        report = ReconcileReport(
            repository=self.config.repository,
            dry_run=self.config.dry_run,
            total_goals=len(goals),
            total_issues=len(index),
        )
        for identity, numbers in index.duplicates.items():
            listed = ", ".join(f"#{n}" for n in numbers)
            report.warnings.append(f"{identity}: duplicate tracking issues {listed} ignored")

        if not self.config.dry_run:
            await self._ensure_labels(goals, report)

        claimed: dict[int, str] = {}
        for goal in goals:
            try:
                await self._reconcile_goal(goal, index, report, claimed)
            except GoalSyncError as e:
                logger.error(f"{goal.identity}: {e.message}")
                report.add_entry(goal, ReconcileAction.FAILED, details=e.message)

        logger.info(
            f"Reconciled {len(goals)} goals: {report.created} created, "
            f"{report.updated} updated, {report.closed} closed, "
            f"{len(report.failed)} failed"
        )
        return report

    async def _paced(self, report: ReconcileReport) -> None:
        """Account for one mutation and wait before the next."""
        report.mutations += 1
        await self._sleep(self.config.pace)

    def _label_color(self, label: str) -> str:
        if label == self.config.tracking_label:
            return TRACKING_LABEL_COLOR
        if label.startswith(self.config.team_label_prefix):
            return TEAM_LABEL_COLOR
        return MILESTONE_LABEL_COLOR

    async def _ensure_labels(self, goals: Sequence[Goal], report: ReconcileReport) -> None:
        """Create any label a goal needs that the repository lacks."""
        needed: list[str] = []
        for goal in goals:
            if not goal.status.is_terminal:
                needed.extend(desired_labels(goal, self.config))
        needed = list(dict.fromkeys(needed))
        if not needed:
            return

        repo = self.config.repository
        try:
            existing = set(await self.provider.list_labels(repo))
        except GoalSyncError as e:
            logger.warning(f"Could not list labels: {e.message}")
            report.errors.append(f"labels: {e.message}")
            return

        for label in needed:
            if label in existing:
                continue
            try:
                logger.info(f"Creating label {label}")
                await self.provider.create_label(repo, label, self._label_color(label))
            except GoalSyncError as e:
                logger.error(f"Could not create label {label}: {e.message}")
                report.errors.append(f"label {label}: {e.message}")
                continue
            await self._paced(report)

    def _claim(self, goal: Goal, number: int, claimed: dict[int, str]) -> None:
        """Keep the identity-to-issue mapping injective within a run."""
        other = claimed.get(number)
        if other is not None and other != goal.identity:
            raise IdentityConflictError(goal.identity, number, other)
        claimed[number] = goal.identity

    async def _resolve_reference(
        self,
        goal: Goal,
        number: int,
        index: RemoteIssueIndex,
        report: ReconcileReport,
    ) -> RemoteIssue | None:
        """
        Look up the issue a document records when no marker matched.

        The snapshot may be stale (issue relabeled, marker edited away),
        so the issue is re-read from the remote system. An issue without
        a marker is only adopted if it carries the tracking label.
        """
        repo = self.config.repository
        if not goal.tracked_in(repo):
            reference = f"{goal.tracking_repository}#{number}"
            raise ForeignTrackingIssueError(goal.identity, reference, repo)

        other = index.identity_of(number)
        if other is not None and other != goal.identity:
            raise IdentityConflictError(goal.identity, number, other)

        try:
            issue = await self.provider.fetch_issue(repo, number)
        except TrackerAPIError as e:
            if not e.is_not_found:
                raise
            message = f"{goal.identity}: recorded issue #{number} no longer exists"
            logger.warning(message)
            report.warnings.append(message)
            return None

        marker = extract_marker(issue.body)
        if marker is not None and marker[1] != goal.identity:
            raise IdentityConflictError(goal.identity, number, marker[1])
        if marker is None and self.config.tracking_label not in issue.label_set:
            raise UnmanagedIssueError(goal.identity, number, self.config.tracking_label)

        logger.warning(f"{goal.identity}: adopting issue #{number} recorded in {goal.path}")
        return issue

    async def _record_reference(self, goal: Goal, number: int) -> str | None:
        """Write the issue number back into the goal document if it differs."""
        if goal.tracking_reference == number and goal.tracked_in(self.config.repository):
            return None

        if goal.tracking_reference is not None:
            logger.warning(
                f"{goal.identity}: document records #{goal.tracking_reference} "
                f"but the tracking issue is #{number}"
            )

        if self.config.dry_run:
            return f"would record tracking issue #{number}"

        self.writer.write_tracking_reference(
            goal.path,
            self.config.repository,
            number,
            self.provider.issue_url(self.config.repository, number),
        )
        return f"recorded tracking issue #{number}"

    async def _reconcile_goal(
        self,
        goal: Goal,
        index: RemoteIssueIndex,
        report: ReconcileReport,
        claimed: dict[int, str],
    ) -> None:
        repo = self.config.repository
        desired = render_issue(goal, self.config)

        issue = index.lookup(goal.identity)
        if issue is None and goal.tracking_reference is not None:
            issue = await self._resolve_reference(goal, goal.tracking_reference, index, report)

        if issue is None:
            if goal.status.is_terminal:
                report.add_entry(goal, ReconcileAction.SKIPPED, details=goal.status.value)
                return

            if self.config.dry_run:
                logger.info(f"Would create issue for {goal.identity}")
                report.add_entry(goal, ReconcileAction.CREATED)
                return

            logger.info(f"Creating issue for {goal.identity}")
            number = await self.provider.create_issue(
                repo, desired.title, desired.body, desired.labels
            )
            # pace even if claiming or the write-back below fails
            await self._paced(report)
            self._claim(goal, number, claimed)
            await self._record_reference(goal, number)
            report.add_entry(goal, ReconcileAction.CREATED, issue_number=number)
            return

        self._claim(goal, issue.number, claimed)
        recorded = await self._record_reference(goal, issue.number)

        if goal.status.is_terminal:
            if issue.state == IssueState.OPEN:
                if not self.config.dry_run:
                    logger.info(f"Closing issue #{issue.number} for {goal.identity}")
                    await self.provider.close_issue(repo, issue.number)
                    await self._paced(report)
                report.add_entry(goal, ReconcileAction.CLOSED, issue_number=issue.number)
            else:
                report.add_entry(
                    goal, ReconcileAction.UP_TO_DATE, issue_number=issue.number, details=recorded
                )
            return

        changes = describe_changes(desired, issue, self.config)
        if not changes:
            report.add_entry(
                goal, ReconcileAction.UP_TO_DATE, issue_number=issue.number, details=recorded
            )
            return

        if not self.config.dry_run:
            remove = [
                label
                for label in issue.labels
                if self.config.is_managed_label(label) and label not in desired.labels
            ]
            logger.info(f"Updating issue #{issue.number} for {goal.identity}: {', '.join(changes)}")
            await self.provider.update_issue(
                repo, issue.number, desired.title, desired.body, desired.labels, remove
            )
            await self._paced(report)

        report.add_entry(
            goal, ReconcileAction.UPDATED, issue_number=issue.number, details=", ".join(changes)
        )
