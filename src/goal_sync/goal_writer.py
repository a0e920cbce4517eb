"""
Goal document writer.

Records a goal's tracking issue back into its source document so later
runs recognize the same goal instance. Only the ``Tracking issue`` row
of the metadata table is touched; the rest of the file is preserved
byte for byte.
"""

import logging
import shutil
from pathlib import Path

from .exceptions import GoalWriteError
from .goal_parser import TRACKING_KEY, find_metadata_table, split_cells

logger = logging.getLogger(__name__)


def format_tracking_reference(repository: str, number: int, url: str | None = None) -> str:
    """
    Format the metadata value for a tracking issue.

    Returns:
        ``[owner/repo#123](url)``, or ``owner/repo#123`` without a URL
    """
    text = f"{repository}#{number}"
    return f"[{text}]({url})" if url else text


def set_tracking_row(content: str, value: str) -> str:
    """
    Return content with the metadata table's tracking row set to value.

    The row is replaced if present, otherwise appended to the table.

    Raises:
        ValueError: If the content has no metadata table
    """
    newline = "\r\n" if "\r\n" in content else "\n"
    lines = content.split(newline)

    table = find_metadata_table(lines)
    if table is None:
        raise ValueError("no metadata table found")
    start, end = table

    for i in range(start + 1, end):
        cells = split_cells(lines[i])
        if cells and cells[0].lower() == TRACKING_KEY:
            rest = cells[2:]
            lines[i] = "| " + " | ".join([cells[0], value, *rest]) + " |"
            return newline.join(lines)

    lines.insert(end, f"| Tracking issue | {value} |")
    return newline.join(lines)


class GoalWriter:
    """Writes tracking references into goal documents atomically."""

    def __init__(self, backup: bool = False) -> None:
        """
        Initialize the writer.

        Args:
            backup: If True, keep a ``.bak`` copy of each rewritten document
        """
        self.backup = backup

    def write_tracking_reference(
        self,
        path: Path | str,
        repository: str,
        number: int,
        url: str | None = None,
    ) -> None:
        """
        Record ``number`` as the document's tracking issue.

        Uses atomic write (write to temp file, then rename) for safety.

        Raises:
            GoalWriteError: If the document cannot be read, lacks a
                metadata table, or cannot be written
        """
        path = Path(path)

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise GoalWriteError(str(path), str(e)) from e

        value = format_tracking_reference(repository, number, url)
        try:
            updated = set_tracking_row(content, value)
        except ValueError as e:
            raise GoalWriteError(str(path), str(e)) from e

        if updated == content:
            return

        if self.backup:
            backup_path = path.with_suffix(path.suffix + ".bak")
            try:
                shutil.copy2(path, backup_path)
            except OSError as e:
                raise GoalWriteError(str(path), f"backup failed: {e}") from e

        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(updated, encoding="utf-8", newline="")
            temp_path.replace(path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise GoalWriteError(str(path), str(e)) from e

        logger.info(f"Recorded tracking issue #{number} in {path}")
