"""
Milestone progress export.

Writes one ``<period>.json`` file per milestone describing how far each
goal's tracking issue has progressed, in the shape the rendered book's
progress bars read. Never mutates the remote system.
"""

import json
import logging
from collections.abc import Sequence
from pathlib import Path

from .exceptions import GoalWriteError
from .issue_body import count_tasks
from .issue_index import RemoteIssueIndex
from .models import (
    Goal,
    IssueProgress,
    IssueState,
    MilestoneProgress,
    ProgressError,
    ProgressIssue,
    TrackedProgress,
)

logger = logging.getLogger(__name__)


def issue_progress(goal: Goal, index: RemoteIssueIndex) -> ProgressIssue | None:
    """
    Progress entry for one goal.

    Returns:
        None when the goal has no tracking issue at all
    """
    issue = index.lookup(goal.identity)
    if issue is None and goal.tracking_reference is not None:
        issue = index.by_number(goal.tracking_reference)

    if issue is None:
        if goal.tracking_reference is None:
            return None
        return ProgressIssue(
            number=goal.tracking_reference,
            title=goal.title,
            state="OPEN",
            progress=IssueProgress(
                error=ProgressError(message=f"issue #{goal.tracking_reference} not found")
            ),
        )

    completed, total = count_tasks(issue.body)
    if total:
        progress = IssueProgress(tracked=TrackedProgress(completed=completed, total=total))
    else:
        progress = IssueProgress(binary={})

    return ProgressIssue(
        number=issue.number,
        title=issue.title,
        state="CLOSED" if issue.state == IssueState.CLOSED else "OPEN",
        progress=progress,
    )


def build_progress(
    goals: Sequence[Goal],
    index: RemoteIssueIndex,
    repository: str,
) -> dict[str, MilestoneProgress]:
    """Group goal progress by milestone period."""
    milestones: dict[str, MilestoneProgress] = {}
    for goal in goals:
        milestone = milestones.setdefault(
            goal.milestone_period,
            MilestoneProgress(repository=repository, milestone=goal.milestone_period),
        )
        entry = issue_progress(goal, index)
        if entry is not None:
            milestone.issues.append(entry)
    return milestones


def write_progress(milestones: dict[str, MilestoneProgress], output_dir: Path | str) -> list[Path]:
    """
    Write ``<period>.json`` for each milestone.

    Raises:
        GoalWriteError: If a file cannot be written
    """
    output_dir = Path(output_dir)
    written: list[Path] = []
    for period, milestone in sorted(milestones.items()):
        path = output_dir / f"{period}.json"
        data = milestone.model_dump(by_alias=True, exclude_none=True)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise GoalWriteError(str(path), str(e)) from e
        logger.info(f"Wrote progress for {len(milestone.issues)} issues to {path}")
        written.append(path)
    return written
