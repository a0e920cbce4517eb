"""
Goal document parser.

This module provides regex-based parsing of goal documents, extracting
the title, the metadata table, and the body into Goal records, and
discovers milestone-period directories under a root.
"""

import logging
import re
from pathlib import Path

from .exceptions import GoalLoadError, MilestoneDirectoryError
from .issue_body import canonicalize
from .models import MILESTONE_PERIOD_PATTERN, Goal, GoalStatus

logger = logging.getLogger(__name__)

# Regex patterns for goal document elements
TITLE_PATTERN = re.compile(r"^#\s+(.+?)\s*#*\s*$")
TABLE_ROW_PATTERN = re.compile(r"^\s*\|")
SEPARATOR_CELL_PATTERN = re.compile(r"^:?-{3,}:?$")
HANDLE_PATTERN = re.compile(r"@([A-Za-z0-9][A-Za-z0-9_-]*)")
# owner/repo#123, or a bare #123
TRACKING_PATTERN = re.compile(
    r"(?:(?P<repository>[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+))?#(?P<number>\d+)"
)

OWNER_KEYS = ("owner(s)", "owners", "owner", "point of contact")
TEAM_KEYS = ("teams", "team(s)", "team")
STATUS_KEY = "status"
TRACKING_KEY = "tracking issue"

EXCLUDED_FILES = ("README.md",)
PLACEHOLDERS = ("", "-", "tbd", "none", "n/a")


def split_cells(line: str) -> list[str]:
    """Split a markdown table row into stripped cells."""
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def is_separator_row(cells: list[str]) -> bool:
    return bool(cells) and all(SEPARATOR_CELL_PATTERN.match(c) for c in cells if c)


def parse_owners(value: str) -> list[str]:
    """Owners as an ordered set; ``@handles`` win over plain names."""
    handles = HANDLE_PATTERN.findall(value)
    if not handles:
        handles = [part.strip() for part in value.split(",")]
    owners = [h for h in handles if h.lower() not in PLACEHOLDERS]
    return list(dict.fromkeys(owners))


def parse_teams(value: str) -> list[str]:
    teams: list[str] = []
    for part in value.split(","):
        # [lang] or [lang][] link references
        team = re.sub(r"\[\]|[\[\]]", "", part).strip()
        if team.lower() not in PLACEHOLDERS:
            teams.append(team)
    return list(dict.fromkeys(teams))


def parse_tracking_reference(value: str) -> tuple[str | None, int | None]:
    """Split ``[owner/repo#123](...)`` or ``#123`` into ``(repository, number)``."""
    match = TRACKING_PATTERN.search(value)
    if not match:
        return None, None
    return match.group("repository"), int(match.group("number"))


def find_metadata_table(lines: list[str]) -> tuple[int, int] | None:
    """
    Locate the metadata table.

    Returns:
        ``(start, end)`` line indices, end exclusive, or None
    """
    for i, line in enumerate(lines):
        if not TABLE_ROW_PATTERN.match(line):
            continue
        cells = split_cells(line)
        if cells and cells[0].lower() == "metadata":
            end = i + 1
            while end < len(lines) and TABLE_ROW_PATTERN.match(lines[end]):
                end += 1
            return i, end
    return None


class GoalParser:
    """
    Parser for goal documents.

    Loads goals from milestone-period directories. Never talks to the
    issue tracker.
    """

    def parse_file(self, path: Path | str, milestone_period: str) -> Goal:
        """
        Parse a single goal document.

        Args:
            path: Path to the markdown file
            milestone_period: Period encoded by the containing directory

        Returns:
            The parsed Goal

        Raises:
            GoalLoadError: If the file cannot be read or is malformed
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise GoalLoadError(str(path), details=str(e)) from e

        return self.parse_string(content, path, milestone_period)

    def parse_string(self, content: str, path: Path | str, milestone_period: str) -> Goal:
        """Parse goal document content; ``path`` supplies identity and error context."""
        path = Path(path)
        lines = content.replace("\r\n", "\n").split("\n")

        title = None
        for line in lines:
            match = TITLE_PATTERN.match(line)
            if match:
                title = match.group(1).strip()
                break
        if not title:
            raise GoalLoadError(str(path), field="title")

        table = find_metadata_table(lines)
        if table is None:
            raise GoalLoadError(str(path), field="metadata", details="no metadata table found")
        start, end = table

        metadata: dict[str, str] = {}
        for line in lines[start + 1 : end]:
            cells = split_cells(line)
            if is_separator_row(cells) or not cells[0]:
                continue
            key = cells[0].lower()
            value = cells[1] if len(cells) > 1 else ""
            metadata.setdefault(key, value)

        owners_value = next((metadata[k] for k in OWNER_KEYS if k in metadata), None)
        owners = parse_owners(owners_value) if owners_value is not None else []
        if not owners:
            raise GoalLoadError(str(path), field="owners")

        status_value = metadata.get(STATUS_KEY)
        status = GoalStatus.parse(status_value) if status_value else None
        if status is None:
            details = f"unknown status '{status_value}'" if status_value else ""
            raise GoalLoadError(str(path), field="status", details=details)

        teams_value = next((metadata[k] for k in TEAM_KEYS if k in metadata), "")
        tracking_repository, tracking_reference = parse_tracking_reference(
            metadata.get(TRACKING_KEY, "")
        )

        return Goal(
            identity=f"{milestone_period}/{path.stem}",
            title=title,
            milestone_period=milestone_period,
            owners=owners,
            teams=parse_teams(teams_value),
            status=status,
            body=canonicalize("\n".join(lines[end:])),
            tracking_reference=tracking_reference,
            tracking_repository=tracking_repository,
            path=path,
        )

    def goals_in_dir(self, directory: Path | str) -> list[Goal]:
        """
        Load every goal document directly inside a milestone directory.

        Raises:
            GoalLoadError: On the first malformed document
        """
        directory = Path(directory)
        period = directory.name
        if not MILESTONE_PERIOD_PATTERN.fullmatch(period):
            raise GoalLoadError(str(directory), details="not a milestone period directory")

        goals: list[Goal] = []
        for path in sorted(directory.glob("*.md")):
            if path.name in EXCLUDED_FILES or path.name.startswith("_"):
                continue
            logger.debug(f"Parsing goal document: {path}")
            goals.append(self.parse_file(path, period))

        logger.debug(f"Loaded {len(goals)} goals from {directory}")
        return goals

    def load(self, root: Path | str) -> list[Goal]:
        """
        Load all goals below a root directory.

        Returns:
            Goals ordered by (milestone period, file name)
        """
        goals: list[Goal] = []
        for directory in find_milestone_dirs(root).values():
            goals.extend(self.goals_in_dir(directory))
        logger.info(f"Loaded {len(goals)} goals from {root}")
        return goals


def find_milestone_dirs(root: Path | str) -> dict[str, Path]:
    """
    Find milestone-period directories (``2024h2``, ``2025h1``, ...) below root.

    Returns:
        Mapping of period to directory, sorted by period

    Raises:
        GoalLoadError: If root is not a directory
        MilestoneDirectoryError: If a period is encoded by two directories
    """
    root = Path(root)
    if not root.is_dir():
        raise GoalLoadError(str(root), details="not a directory")

    found: dict[str, list[Path]] = {}
    candidates = [root, *root.rglob("*")]
    for path in candidates:
        if path.is_dir() and MILESTONE_PERIOD_PATTERN.fullmatch(path.name):
            found.setdefault(path.name, []).append(path)

    result: dict[str, Path] = {}
    for period in sorted(found):
        paths = found[period]
        if len(paths) > 1:
            raise MilestoneDirectoryError(period, sorted(str(p) for p in paths))
        result[period] = paths[0]
    return result


def load_goals(root: Path | str) -> list[Goal]:
    """Convenience wrapper around ``GoalParser().load``."""
    return GoalParser().load(root)
