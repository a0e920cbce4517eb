"""
Tracking issue bodies.

This module owns the contract between goal documents and the remote
issue tracker:

- the hidden identity marker embedded in every tracking issue body,
  which is how the index maps issues back to goals
- the canonical form of body text used for change detection
- rendering a goal into the issue it should have
"""

import re
from urllib.parse import quote, unquote

from .models import DesiredIssue, Goal, SyncConfig

MARKER_VERSION = 1

# <!-- goal-sync:v1 identity=2025h1/alpha -->
# <!-- goal-sync identity=2025h1/alpha -->   (legacy, unversioned)
MARKER_PATTERN = re.compile(
    r"<!--\s*goal-sync(?::v(?P<version>\d+))?\s+identity=(?P<identity>[^\s>]+)\s*-->"
)

AUTOLINK_PATTERN = re.compile(r"<(https?://[^>\s]+)>")
TABLE_SPACES_PATTERN = re.compile(r" {2,}")
TASK_PATTERN = re.compile(r"^\s*[-*+]\s+\[(?P<mark>[ xX])\]", re.MULTILINE)


def format_marker(identity: str) -> str:
    """
    Format the current-version identity marker.

    The identity is percent-encoded so whitespace and ``>`` in file
    names cannot end the marker early.
    """
    return f"<!-- goal-sync:v{MARKER_VERSION} identity={quote(identity, safe='/')} -->"


def extract_marker(text: str | None) -> tuple[int, str] | None:
    """
    Find the identity marker in an issue body.

    Returns:
        ``(version, identity)``, with version 0 for the legacy form,
        or None if the body carries no marker
    """
    if not text:
        return None
    match = MARKER_PATTERN.search(text)
    if not match:
        return None
    version = int(match.group("version")) if match.group("version") else 0
    return version, unquote(match.group("identity"))


def strip_marker(text: str) -> str:
    """Remove any identity marker from text."""
    return MARKER_PATTERN.sub("", text)


def canonicalize(text: str | None) -> str:
    """
    Normalize text so formatting-only differences compare equal.

    - Normalizes line endings (CRLF/CR -> LF)
    - Strips trailing whitespace from each line
    - Collapses runs of spaces inside table rows (column alignment)
    - Rewrites autolinks ``<https://...>`` to bare URLs
    - Collapses runs of blank lines into one
    - Removes leading/trailing blank lines
    """
    if not text:
        return ""

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = AUTOLINK_PATTERN.sub(r"\1", text)

    normalized_lines: list[str] = []
    previous_blank = False
    for line in text.split("\n"):
        line = line.rstrip()
        if line.lstrip().startswith("|"):
            line = TABLE_SPACES_PATTERN.sub(" ", line.strip())
        if not line:
            if previous_blank:
                continue
            previous_blank = True
        else:
            previous_blank = False
        normalized_lines.append(line)

    return "\n".join(normalized_lines).strip()


def count_tasks(text: str | None) -> tuple[int, int]:
    """Count ``(completed, total)`` task-list checkboxes."""
    if not text:
        return 0, 0
    marks = [m.group("mark") for m in TASK_PATTERN.finditer(text)]
    return sum(1 for mark in marks if mark in "xX"), len(marks)


def goal_document_url(goal: Goal, config: SyncConfig) -> str:
    """Link to the rendered goal page."""
    return f"{config.site_url.rstrip('/')}/{goal.identity}.html"


def desired_labels(goal: Goal, config: SyncConfig) -> list[str]:
    """Labels the tracking issue should carry, in a stable order."""
    labels = [config.tracking_label, goal.milestone_period]
    labels.extend(f"{config.team_label_prefix}{team}" for team in goal.teams)
    return list(dict.fromkeys(labels))


def render_body(goal: Goal, config: SyncConfig) -> str:
    """Render the full issue body, marker included."""
    owners = ", ".join(f"@{owner}" for owner in goal.owners)
    lines = [
        "| Metadata | |",
        "| --- | --- |",
        f"| Owner(s) | {owners} |",
    ]
    if goal.teams:
        lines.append(f"| Team(s) | {', '.join(goal.teams)} |")
    lines.append(
        f"| Goal document | [{goal.identity}]({goal_document_url(goal, config)}) |"
    )

    if goal.body:
        lines.append("")
        lines.append(goal.body)

    lines.append("")
    lines.append(format_marker(goal.identity))
    return "\n".join(lines) + "\n"


def render_issue(goal: Goal, config: SyncConfig) -> DesiredIssue:
    """Render the tracking issue a goal should have."""
    return DesiredIssue(
        title=goal.title,
        body=render_body(goal, config),
        labels=desired_labels(goal, config),
    )
