"""Tests for the goal document parser."""

from pathlib import Path

import pytest

from conftest import goal_document
from goal_sync.exceptions import GoalLoadError, MilestoneDirectoryError
from goal_sync.goal_parser import (
    GoalParser,
    find_milestone_dirs,
    load_goals,
    parse_owners,
    parse_teams,
    parse_tracking_reference,
)
from goal_sync.models import GoalStatus


class TestGoalParser:
    """Tests for GoalParser.parse_string."""

    def test_parse_document(self) -> None:
        content = goal_document(
            owners="@alice, @bob",
            teams="lang, [compiler]",
            tracking="[owner/goals#101](https://github.com/owner/goals/issues/101)",
        )
        goal = GoalParser().parse_string(content, Path("src/2025h1/alpha.md"), "2025h1")

        assert goal.identity == "2025h1/alpha"
        assert goal.title == "Alpha"
        assert goal.milestone_period == "2025h1"
        assert goal.owners == ["alice", "bob"]
        assert goal.teams == ["lang", "compiler"]
        assert goal.status == GoalStatus.PROPOSED
        assert goal.tracking_reference == 101
        assert goal.tracking_repository == "owner/goals"
        assert goal.body == "## Summary\n\nMake alpha happen."

    def test_status_spellings(self) -> None:
        parser = GoalParser()
        for written, expected in [
            ("In progress", GoalStatus.IN_PROGRESS),
            ("not accepted", GoalStatus.NOT_ACCEPTED),
            ("Completed", GoalStatus.COMPLETED),
            ("accepted", GoalStatus.ACCEPTED),
        ]:
            goal = parser.parse_string(goal_document(status=written), Path("x/2024h2/a.md"), "2024h2")
            assert goal.status == expected

    def test_missing_owners_is_error(self) -> None:
        with pytest.raises(GoalLoadError) as exc_info:
            GoalParser().parse_string(goal_document(owners="TBD"), Path("2024h2/a.md"), "2024h2")
        assert exc_info.value.field == "owners"
        assert "2024h2/a.md" in exc_info.value.message

    def test_unknown_status_is_error(self) -> None:
        with pytest.raises(GoalLoadError) as exc_info:
            GoalParser().parse_string(goal_document(status="Maybe"), Path("2024h2/a.md"), "2024h2")
        assert exc_info.value.field == "status"
        assert "Maybe" in exc_info.value.message

    def test_missing_title_is_error(self) -> None:
        content = goal_document().replace("# Alpha\n", "")
        with pytest.raises(GoalLoadError) as exc_info:
            GoalParser().parse_string(content, Path("2024h2/a.md"), "2024h2")
        assert exc_info.value.field == "title"

    def test_missing_metadata_table_is_error(self) -> None:
        with pytest.raises(GoalLoadError) as exc_info:
            GoalParser().parse_string("# Alpha\n\nJust text.\n", Path("2024h2/a.md"), "2024h2")
        assert exc_info.value.field == "metadata"

    def test_tbd_tracking_issue_is_none(self) -> None:
        goal = GoalParser().parse_string(goal_document(tracking="TBD"), Path("2024h2/a.md"), "2024h2")
        assert goal.tracking_reference is None


class TestIdentity:
    """Identity follows the document location, not its title."""

    def test_reparse_is_stable(self, write_goal) -> None:
        path = write_goal("2025h1", "alpha")
        parser = GoalParser()
        first = parser.parse_file(path, "2025h1")
        second = parser.parse_file(path, "2025h1")
        assert first == second

    def test_title_change_keeps_identity(self, write_goal) -> None:
        path = write_goal("2025h1", "alpha", title="Alpha")
        before = GoalParser().parse_file(path, "2025h1")
        write_goal("2025h1", "alpha", title="Alpha, renamed")
        after = GoalParser().parse_file(path, "2025h1")

        assert before.identity == after.identity
        assert before.title != after.title

    def test_location_change_changes_identity(self, write_goal) -> None:
        first = GoalParser().parse_file(write_goal("2025h1", "alpha"), "2025h1")
        second = GoalParser().parse_file(write_goal("2025h2", "alpha"), "2025h2")
        assert first.identity != second.identity


class TestLoading:
    """Tests for directory discovery and loading."""

    def test_load_orders_by_period_and_file(self, goals_root: Path, write_goal) -> None:
        write_goal("2025h1", "zeta", title="Zeta")
        write_goal("2024h2", "beta", title="Beta")
        write_goal("2025h1", "alpha", title="Alpha")

        goals = load_goals(goals_root)

        assert [g.identity for g in goals] == ["2024h2/beta", "2025h1/alpha", "2025h1/zeta"]

    def test_ignores_non_milestone_dirs_and_readme(self, goals_root: Path, write_goal) -> None:
        write_goal("2025h1", "alpha")
        write_goal("drafts", "idea")
        write_goal("2025h3", "odd")
        (goals_root / "2025h1" / "README.md").write_text("# Goals\n", encoding="utf-8")
        (goals_root / "2025h1" / "_template.md").write_text("# Template\n", encoding="utf-8")

        goals = load_goals(goals_root)

        assert [g.identity for g in goals] == ["2025h1/alpha"]

    def test_one_bad_document_aborts_load(self, goals_root: Path, write_goal) -> None:
        write_goal("2025h1", "alpha")
        write_goal("2025h1", "broken", owners="")

        with pytest.raises(GoalLoadError) as exc_info:
            load_goals(goals_root)
        assert "broken.md" in exc_info.value.message

    def test_duplicate_period_directories(self, goals_root: Path, write_goal) -> None:
        write_goal("2025h1", "alpha")
        (goals_root / "archive" / "2025h1").mkdir(parents=True)

        with pytest.raises(MilestoneDirectoryError):
            find_milestone_dirs(goals_root)

    def test_root_must_exist(self, tmp_path: Path) -> None:
        with pytest.raises(GoalLoadError):
            find_milestone_dirs(tmp_path / "missing")


class TestFieldHelpers:
    def test_parse_owners_dedupes(self) -> None:
        assert parse_owners("@alice, @bob, @alice") == ["alice", "bob"]
        assert parse_owners("[@carol](https://github.com/carol)") == ["carol"]
        assert parse_owners("Dana Smith, Eve") == ["Dana Smith", "Eve"]

    def test_parse_teams(self) -> None:
        assert parse_teams("[lang][], [libs]") == ["lang", "libs"]
        assert parse_teams("TBD") == []

    def test_parse_tracking_reference(self) -> None:
        assert parse_tracking_reference("[rust-lang/rust-project-goals#116][]") == (
            "rust-lang/rust-project-goals",
            116,
        )
        assert parse_tracking_reference("#42") == (None, 42)
        assert parse_tracking_reference("none") == (None, None)
