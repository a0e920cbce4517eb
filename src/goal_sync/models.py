"""
Pydantic models for goals, tracking issues, and reconciliation reports.

This module defines the data models used throughout the application,
providing strong typing, validation, and serialization capabilities.
"""

import re
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

MILESTONE_PERIOD_PATTERN = re.compile(r"\d{4}h[12]")


class GoalStatus(str, Enum):
    """Lifecycle status recorded in a goal document."""

    PROPOSED = "Proposed"
    ACCEPTED = "Accepted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    NOT_ACCEPTED = "NotAccepted"

    @classmethod
    def parse(cls, value: str) -> "GoalStatus | None":
        """Parse a status as written in a document ("In progress", "not accepted", ...)."""
        key = re.sub(r"[\s_-]+", "", value).lower()
        for status in cls:
            if status.value.lower() == key:
                return status
        return None

    @property
    def is_terminal(self) -> bool:
        """Finished goals get their tracking issue closed rather than edited."""
        return self in (GoalStatus.COMPLETED, GoalStatus.NOT_ACCEPTED)


class Goal(BaseModel):
    """
    One initiative loaded from a goal document.

    Goals are rebuilt from their documents on every run. The only state
    that flows back into the document is ``tracking_reference``; the
    repository it names, if any, is kept in ``tracking_repository``.
    """

    model_config = ConfigDict(frozen=True)

    identity: str
    title: str
    milestone_period: str = Field(pattern=r"^\d{4}h[12]$")
    owners: list[str] = Field(min_length=1)
    teams: list[str] = Field(default_factory=list)
    status: GoalStatus
    body: str = ""
    tracking_reference: int | None = None
    tracking_repository: str | None = None
    path: Path

    @property
    def slug(self) -> str:
        """File stem part of the identity."""
        return self.identity.split("/", 1)[1]

    def tracked_in(self, repository: str) -> bool:
        """
        Whether the recorded tracking issue lives in ``repository``.

        A bare ``#123`` reference is taken to mean the configured repository.
        """
        if self.tracking_repository is None:
            return True
        return self.tracking_repository.lower() == repository.lower()


class IssueState(str, Enum):
    """Remote issue state."""

    OPEN = "open"
    CLOSED = "closed"


class RemoteIssue(BaseModel):
    """Snapshot of a tracking issue as observed on the remote system."""

    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    body: str = ""
    state: IssueState = IssueState.OPEN
    labels: list[str] = Field(default_factory=list)
    url: str | None = None

    @property
    def label_set(self) -> frozenset[str]:
        return frozenset(self.labels)


class DesiredIssue(BaseModel):
    """What a goal's tracking issue should look like."""

    model_config = ConfigDict(frozen=True)

    title: str
    body: str
    labels: list[str]


class SyncMode(str, Enum):
    """Whether remote mutations actually happen."""

    DRY_RUN = "dry-run"
    COMMIT = "commit"


class SyncConfig(BaseModel):
    """
    Configuration for a single sync run.

    Built once by the caller and passed explicitly to the index, the
    engine, and the orchestrator.
    """

    model_config = ConfigDict(frozen=True)

    repository: str  # Format: owner/repo
    mode: SyncMode = SyncMode.DRY_RUN
    pace: float = Field(default=0.5, ge=0)  # seconds between mutations
    tracking_label: str = "C-tracking-issue"
    team_label_prefix: str = "T-"
    site_url: str = "https://rust-lang.github.io/rust-project-goals"
    timeout: int = 60

    @property
    def dry_run(self) -> bool:
        return self.mode == SyncMode.DRY_RUN

    @property
    def owner(self) -> str:
        """Get repository owner."""
        return self.repository.split("/")[0]

    @property
    def repo_name(self) -> str:
        """Get repository name."""
        parts = self.repository.split("/")
        return parts[1] if len(parts) > 1 else parts[0]

    def is_managed_label(self, label: str) -> bool:
        """Labels this tool owns; anything else on an issue is left alone."""
        return (
            label == self.tracking_label
            or label.startswith(self.team_label_prefix)
            or MILESTONE_PERIOD_PATTERN.fullmatch(label) is not None
        )


class ReconcileAction(str, Enum):
    """Outcome recorded for one goal."""

    CREATED = "created"
    UPDATED = "updated"
    CLOSED = "closed"
    UP_TO_DATE = "up_to_date"
    SKIPPED = "skipped"
    FAILED = "failed"


class ReportEntry(BaseModel):
    """Record of what happened (or would happen) to one goal."""

    model_config = ConfigDict(frozen=True)

    identity: str
    title: str
    action: ReconcileAction
    issue_number: int | None = None
    details: str | None = None
    dry_run: bool = False

    def describe(self) -> str:
        """One human-readable report line."""
        number = f" #{self.issue_number}" if self.issue_number is not None else ""
        suffix = f" ({self.details})" if self.details else ""
        prefix = "would " if self.dry_run else ""

        if self.action == ReconcileAction.CREATED:
            if self.dry_run:
                return f"would create issue: {self.title}"
            return f"created issue{number}: {self.title}"
        if self.action == ReconcileAction.UPDATED:
            verb = "update" if self.dry_run else "updated"
            return f"{prefix}{verb} issue{number}: {self.title}{suffix}"
        if self.action == ReconcileAction.CLOSED:
            if self.dry_run:
                return f"would close issue{number}: {self.title}"
            return f"closed: {self.title}"
        if self.action == ReconcileAction.UP_TO_DATE:
            return f"up to date: {self.title}{suffix}"
        if self.action == ReconcileAction.SKIPPED:
            return f"skipped ({self.details}): {self.title}"
        return f"failed: {self.title}: {self.details}"


class ReconcileReport(BaseModel):
    """Result of a reconciliation run."""

    model_config = ConfigDict(frozen=False)

    repository: str = ""
    dry_run: bool = True
    entries: list[ReportEntry] = Field(default_factory=list)
    total_goals: int = 0
    total_issues: int = 0
    created: int = 0
    updated: int = 0
    closed: int = 0
    up_to_date: int = 0
    skipped: int = 0
    mutations: int = 0  # remote mutating calls actually made
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def add_entry(
        self,
        goal: Goal,
        action: ReconcileAction,
        issue_number: int | None = None,
        details: str | None = None,
    ) -> ReportEntry:
        """Add an entry and update counters."""
        entry = ReportEntry(
            identity=goal.identity,
            title=goal.title,
            action=action,
            issue_number=issue_number,
            details=details,
            dry_run=self.dry_run,
        )
        self.entries.append(entry)
        if action == ReconcileAction.CREATED:
            self.created += 1
        elif action == ReconcileAction.UPDATED:
            self.updated += 1
        elif action == ReconcileAction.CLOSED:
            self.closed += 1
        elif action == ReconcileAction.UP_TO_DATE:
            self.up_to_date += 1
        elif action == ReconcileAction.SKIPPED:
            self.skipped += 1
        elif action == ReconcileAction.FAILED:
            self.errors.append(f"{goal.identity}: {details}")
        return entry

    @property
    def failed(self) -> list[ReportEntry]:
        return [e for e in self.entries if e.action == ReconcileAction.FAILED]

    @property
    def has_changes(self) -> bool:
        """Check if any change was made or planned."""
        return self.created > 0 or self.updated > 0 or self.closed > 0

    def lines(self) -> list[str]:
        """One line per goal, in processing order."""
        return [entry.describe() for entry in self.entries]

    def summary(self) -> str:
        """Generate human-readable summary."""
        lines = [
            f"Reconciled {self.total_goals} goals against {self.total_issues} tracking issues",
            f"  Created: {self.created}",
            f"  Updated: {self.updated}",
            f"  Closed: {self.closed}",
            f"  Up to date: {self.up_to_date}",
            f"  Skipped: {self.skipped}",
        ]
        if self.errors:
            lines.append(f"  Errors: {len(self.errors)}")
            for error in self.errors[:5]:  # Show first 5 errors
                lines.append(f"    - {error}")
            if len(self.errors) > 5:
                lines.append(f"    ... and {len(self.errors) - 5} more")
        return "\n".join(lines)


class TrackedProgress(BaseModel):
    completed: int
    total: int


class ProgressError(BaseModel):
    message: str


class IssueProgress(BaseModel):
    """Progress of one tracking issue, keyed the way the book's progress bars read it."""

    model_config = ConfigDict(populate_by_name=True)

    tracked: TrackedProgress | None = Field(default=None, alias="Tracked")
    binary: dict[str, str] | None = Field(default=None, alias="Binary")
    error: ProgressError | None = Field(default=None, alias="Error")


class ProgressIssue(BaseModel):
    number: int
    title: str
    state: str  # OPEN or CLOSED
    progress: IssueProgress


class MilestoneProgress(BaseModel):
    """Contents of ``<period>.json``."""

    repository: str
    milestone: str
    issues: list[ProgressIssue] = Field(default_factory=list)
