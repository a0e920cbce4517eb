"""
Remote issue index.

Snapshot of the repository's tracking issues, keyed by the goal
identity each issue's hidden marker encodes. Titles are never used to
match issues to goals.
"""

import logging

from .exceptions import IssueIndexError, IssueTrackerError
from .issue_body import extract_marker
from .models import RemoteIssue, SyncConfig
from .provider import IssueProvider

logger = logging.getLogger(__name__)


class RemoteIssueIndex:
    """
    Lookup from goal identity to tracking issue.

    When two issues carry the same identity the lowest-numbered one
    wins and the others are reported as duplicates.
    """

    def __init__(self, issues: list[RemoteIssue]) -> None:
        self._by_identity: dict[str, RemoteIssue] = {}
        self._by_number: dict[int, RemoteIssue] = {}
        self._identity_of: dict[int, str] = {}
        self.duplicates: dict[str, list[int]] = {}
        self.unmarked: list[int] = []

        for issue in sorted(issues, key=lambda i: i.number):
            self._by_number[issue.number] = issue
            marker = extract_marker(issue.body)
            if marker is None:
                logger.debug(f"Issue #{issue.number} has no identity marker")
                self.unmarked.append(issue.number)
                continue

            _version, identity = marker
            self._identity_of[issue.number] = identity
            existing = self._by_identity.get(identity)
            if existing is not None:
                logger.warning(
                    f"Issues #{existing.number} and #{issue.number} both track "
                    f"'{identity}'; using #{existing.number}"
                )
                self.duplicates.setdefault(identity, []).append(issue.number)
                continue
            self._by_identity[identity] = issue

    @classmethod
    async def fetch(cls, provider: IssueProvider, config: SyncConfig) -> "RemoteIssueIndex":
        """
        Build the index from the repository's current tracking issues.

        Raises:
            IssueIndexError: If the issues cannot be listed
        """
        try:
            issues = await provider.list_issues(config.repository, config.tracking_label)
        except IssueTrackerError as e:
            raise IssueIndexError(config.repository, e.message) from e

        index = cls(issues)
        logger.info(
            f"Indexed {len(index)} tracking issues in {config.repository} "
            f"({len(index.unmarked)} without identity marker)"
        )
        return index

    def __len__(self) -> int:
        return len(self._by_number)

    def __contains__(self, identity: object) -> bool:
        return identity in self._by_identity

    @property
    def issues(self) -> list[RemoteIssue]:
        return list(self._by_number.values())

    def lookup(self, identity: str) -> RemoteIssue | None:
        """Tracking issue for a goal identity, if any."""
        return self._by_identity.get(identity)

    def by_number(self, number: int) -> RemoteIssue | None:
        return self._by_number.get(number)

    def identity_of(self, number: int) -> str | None:
        """Identity claimed by an issue's marker."""
        return self._identity_of.get(number)
