"""
Abstract provider protocol for issue trackers.

This module defines the interface that both the GitHub and Gitea clients
implement, allowing them to be used interchangeably by the index and the
reconciliation engine. Authentication and transport live entirely behind
this boundary.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum

from .models import RemoteIssue


class ProviderType(str, Enum):
    """Supported issue provider types."""

    GITHUB = "github"
    GITEA = "gitea"


class IssueProvider(ABC):
    """
    Abstract base class for issue providers.

    Both GitHubClient and GiteaClient implement this interface. Every
    mutating method is a single remote call; callers pace them.
    """

    @property
    @abstractmethod
    def provider_type(self) -> ProviderType:
        """Return the provider type."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by the provider."""
        ...

    @abstractmethod
    async def check_connection(self) -> bool:
        """
        Check if the provider is accessible and authenticated.

        Returns:
            True if connection is successful

        Raises:
            Provider-specific exceptions on failure
        """
        ...

    @abstractmethod
    def issue_url(self, repo: str, number: int) -> str:
        """Browser URL of an issue."""
        ...

    @abstractmethod
    async def list_issues(self, repo: str, label: str) -> list[RemoteIssue]:
        """
        List every issue (open and closed) carrying ``label``.

        Returns:
            Issues sorted by number
        """
        ...

    @abstractmethod
    async def fetch_issue(self, repo: str, number: int) -> RemoteIssue:
        """
        Fetch a single issue by number.

        Raises:
            TrackerAPIError: With status 404 if the issue does not exist
        """
        ...

    @abstractmethod
    async def create_issue(
        self,
        repo: str,
        title: str,
        body: str,
        labels: Sequence[str],
    ) -> int:
        """
        Create an issue.

        Returns:
            The new issue number
        """
        ...

    @abstractmethod
    async def update_issue(
        self,
        repo: str,
        number: int,
        title: str,
        body: str,
        labels: Sequence[str],
        remove_labels: Sequence[str] = (),
    ) -> None:
        """Set title and body, add ``labels`` and drop ``remove_labels``."""
        ...

    @abstractmethod
    async def close_issue(self, repo: str, number: int) -> None:
        """Transition an issue to closed."""
        ...

    @abstractmethod
    async def list_labels(self, repo: str) -> list[str]:
        """Names of the labels defined in the repository."""
        ...

    @abstractmethod
    async def create_label(self, repo: str, name: str, color: str, description: str = "") -> None:
        """Define a new repository label."""
        ...
