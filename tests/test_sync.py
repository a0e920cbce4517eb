"""Tests for the sync orchestrator."""

import asyncio
from pathlib import Path

import pytest

from conftest import REPO, FakeProvider, RecordingSleep
from goal_sync.exceptions import GoalLoadError, InvalidRepositoryError, IssueIndexError
from goal_sync.models import SyncConfig, SyncMode
from goal_sync.sync import GoalSync, run_sync, validate_repository


@pytest.mark.parametrize("repo", ["noslash", "a/b/c", "/repo", "owner/"])
def test_validate_repository_rejects(repo: str) -> None:
    with pytest.raises(InvalidRepositoryError):
        validate_repository(repo)


def test_validate_repository_accepts() -> None:
    validate_repository("rust-lang/rust-project-goals")


def test_load_error_stops_before_remote(goals_root: Path, write_goal, provider: FakeProvider) -> None:
    write_goal("2025h1", "alpha")
    write_goal("2025h1", "broken", status="Whenever")
    syncer = GoalSync(SyncConfig(repository=REPO, mode=SyncMode.COMMIT), provider=provider)

    with pytest.raises(GoalLoadError):
        asyncio.run(syncer.sync(goals_root))
    assert provider.calls == []


def test_index_error_stops_before_mutation(goals_root: Path, write_goal, provider: FakeProvider) -> None:
    write_goal("2025h1", "alpha")
    provider.fail_list = True
    syncer = GoalSync(SyncConfig(repository=REPO, mode=SyncMode.COMMIT), provider=provider)

    with pytest.raises(IssueIndexError):
        asyncio.run(syncer.sync(goals_root))
    assert provider.mutations == []


def test_milestone_filter(goals_root: Path, write_goal, provider: FakeProvider) -> None:
    write_goal("2024h2", "old", title="Old")
    write_goal("2025h1", "new", title="New")
    syncer = GoalSync(SyncConfig(repository=REPO), provider=provider)

    report = asyncio.run(syncer.sync(goals_root, milestone="2025h1"))

    assert report.lines() == ["would create issue: New"]


def test_commit_run_paces(goals_root: Path, write_goal, provider: FakeProvider) -> None:
    write_goal("2025h1", "alpha")
    sleep = RecordingSleep()
    config = SyncConfig(repository=REPO, mode=SyncMode.COMMIT, pace=0.5)
    syncer = GoalSync(config, provider=provider, sleep=sleep)

    report = asyncio.run(syncer.sync(goals_root))

    assert report.created == 1
    assert sleep.delays == [0.5] * report.mutations


def test_run_sync_dry_run(goals_root: Path, write_goal, provider: FakeProvider) -> None:
    write_goal("2025h1", "alpha", title="Alpha")

    report = run_sync(goals_root, SyncConfig(repository=REPO), provider=provider)

    assert report.dry_run
    assert report.lines() == ["would create issue: Alpha"]
    assert provider.mutations == []
