"""
Main sync orchestrator.

This module coordinates a run:
1. Load every goal document (all-or-nothing)
2. Fetch the remote issue index once
3. Reconcile goals against the index, one goal at a time
"""

import asyncio
import logging
from pathlib import Path

from .exceptions import InvalidRepositoryError
from .github_client import GitHubClient
from .goal_parser import GoalParser
from .goal_writer import GoalWriter
from .issue_index import RemoteIssueIndex
from .models import Goal, MilestoneProgress, ReconcileReport, SyncConfig
from .progress import build_progress
from .provider import IssueProvider
from .reconcile import Reconciler, Sleep

logger = logging.getLogger(__name__)


def validate_repository(repo: str) -> None:
    """Validate repository format."""
    if "/" not in repo or repo.count("/") != 1:
        raise InvalidRepositoryError(repo)

    owner, name = repo.split("/")
    if not owner or not name:
        raise InvalidRepositoryError(repo)


class GoalSync:
    """
    Orchestrates the sync between goal documents and tracking issues.

    Each instance serves one run: the configuration and provider are
    passed in explicitly and nothing is shared between runs.
    """

    def __init__(
        self,
        config: SyncConfig,
        provider: IssueProvider | None = None,
        writer: GoalWriter | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Initialize the sync orchestrator.

        Args:
            config: Run configuration
            provider: Issue provider (GitHub or Gitea client).
                     If None, defaults to GitHubClient.
            writer: Goal document writer for tracking references
            sleep: Pacing coroutine handed to the engine
        """
        validate_repository(config.repository)
        self.config = config
        self.provider = provider if provider else GitHubClient(timeout=config.timeout)
        self.parser = GoalParser()
        self.reconciler = Reconciler(self.provider, config, writer=writer, sleep=sleep)

    def load(self, root: Path | str, milestone: str | None = None) -> list[Goal]:
        """
        Load goals, optionally limited to one milestone period.

        Raises:
            GoalLoadError: On any malformed document; no goals are returned
        """
        goals = self.parser.load(root)
        if milestone is not None:
            goals = [g for g in goals if g.milestone_period == milestone]
            logger.info(f"Selected {len(goals)} goals in {milestone}")
        return goals

    async def sync(self, root: Path | str, milestone: str | None = None) -> ReconcileReport:
        """
        Reconcile goal documents under ``root`` with their tracking issues.

        Raises:
            GoalDocumentError: If any goal document is malformed
            IssueIndexError: If the tracking issues cannot be listed
        """
        mode = "dry run" if self.config.dry_run else "commit"
        logger.info(f"Starting sync ({mode}): {root} -> {self.config.repository}")

        goals = self.load(root, milestone)
        index = await RemoteIssueIndex.fetch(self.provider, self.config)
        return await self.reconciler.reconcile(goals, index)

    async def progress(
        self,
        root: Path | str,
        milestone: str | None = None,
    ) -> dict[str, MilestoneProgress]:
        """Compute milestone progress from the current tracking issues."""
        goals = self.load(root, milestone)
        index = await RemoteIssueIndex.fetch(self.provider, self.config)
        return build_progress(goals, index, self.config.repository)


def run_sync(
    root: Path | str,
    config: SyncConfig,
    provider: IssueProvider | None = None,
    milestone: str | None = None,
) -> ReconcileReport:
    """
    Synchronous wrapper for GoalSync.sync().

    This is a convenience function for running sync from non-async code.
    """
    syncer = GoalSync(config, provider=provider)
    return asyncio.run(syncer.sync(root, milestone))
