"""
Gitea API client for tracking issues.

This module handles all interactions with the Gitea REST API. Gitea
addresses labels by numeric ID, so the client keeps a per-repository
name-to-ID map that is refreshed whenever a label is created.
"""

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from .exceptions import (
    TrackerAPIError,
    TrackerAuthError,
    TrackerNetworkError,
    TrackerRateLimitError,
    TrackerTimeoutError,
)
from .models import IssueState, RemoteIssue
from .provider import IssueProvider, ProviderType

logger = logging.getLogger(__name__)


class GiteaClient(IssueProvider):
    """
    Client for interacting with Gitea via its REST API.

    This client provides async methods for the issue operations the
    reconciliation engine needs, with error handling and timeouts.
    """

    DEFAULT_TIMEOUT = 60  # seconds
    DEFAULT_PAGE_SIZE = 50

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: int = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the Gitea client.

        Args:
            base_url: Base URL of the Gitea instance (e.g., https://gitea.example.com)
            token: API token for authentication
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._label_ids: dict[str, dict[str, int]] = {}

    @property
    def provider_type(self) -> ProviderType:
        """Return the provider type."""
        return ProviderType.GITEA

    @property
    def api_url(self) -> str:
        """Get the API base URL."""
        return f"{self.base_url}/api/v1"

    def issue_url(self, repo: str, number: int) -> str:
        return f"{self.base_url}/{repo}/issues/{number}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers={
                    "Authorization": f"token {self.token}",
                    "Accept": "application/json",
                },
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """
        Make an API request with error handling.

        Returns:
            JSON response data, or None for empty responses

        Raises:
            Various IssueTrackerError subclasses based on failure type
        """
        client = await self._get_client()

        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise TrackerTimeoutError(self.timeout) from e
        except httpx.TransportError as e:
            raise TrackerNetworkError(str(e)) from e

        if response.status_code == 401:
            raise TrackerAuthError("Invalid or expired API token")

        if response.status_code in (403, 429):
            if response.status_code == 429 or "rate limit" in response.text.lower():
                raise TrackerRateLimitError(response.headers.get("X-RateLimit-Reset"))
            raise TrackerAuthError(f"Access forbidden: {response.text}")

        if response.status_code == 404:
            raise TrackerAPIError(f"Not found: {path}", 404)

        if response.status_code >= 400:
            raise TrackerAPIError(response.text, response.status_code)

        if not response.content:
            return None
        return response.json()

    async def check_connection(self) -> bool:
        """
        Check if the Gitea instance is accessible and token is valid.

        Raises:
            TrackerAuthError: If authentication fails
            TrackerNetworkError: If connection fails
        """
        await self._request("GET", "/user")
        return True

    def _parse_issue(self, data: dict[str, Any]) -> RemoteIssue:
        """Parse issue JSON from Gitea API into a RemoteIssue."""
        state_str = str(data.get("state", "open")).lower()
        state = IssueState.CLOSED if state_str == "closed" else IssueState.OPEN

        return RemoteIssue(
            number=data.get("number", 0),
            title=data.get("title", ""),
            body=data.get("body") or "",
            state=state,
            labels=[lbl.get("name", "") for lbl in data.get("labels") or []],
            url=data.get("html_url"),
        )

    async def _paginate(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Collect every page of a list endpoint."""
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            page_params = {**params, "page": page, "limit": self.DEFAULT_PAGE_SIZE}
            data = await self._request("GET", path, params=page_params)
            if not isinstance(data, list) or not data:
                break
            items.extend(data)
            if len(data) < self.DEFAULT_PAGE_SIZE:
                break
            page += 1
        return items

    async def _label_id_map(self, repo: str, refresh: bool = False) -> dict[str, int]:
        if refresh or repo not in self._label_ids:
            labels = await self._paginate(f"/repos/{repo}/labels", {})
            self._label_ids[repo] = {lbl["name"]: lbl["id"] for lbl in labels}
        return self._label_ids[repo]

    async def _label_ids_for(self, repo: str, names: Sequence[str]) -> list[int]:
        ids = await self._label_id_map(repo)
        missing = [name for name in names if name not in ids]
        if missing:
            raise TrackerAPIError(f"Unknown labels in {repo}: {', '.join(missing)}", 422)
        return [ids[name] for name in names]

    async def list_issues(self, repo: str, label: str) -> list[RemoteIssue]:
        logger.info(f"Listing issues in {repo} labeled {label}")
        data = await self._paginate(
            f"/repos/{repo}/issues",
            {"state": "all", "labels": label, "type": "issues"},
        )
        issues = [self._parse_issue(item) for item in data]
        issues.sort(key=lambda i: i.number)
        return issues

    async def fetch_issue(self, repo: str, number: int) -> RemoteIssue:
        data = await self._request("GET", f"/repos/{repo}/issues/{number}")
        return self._parse_issue(data)

    async def create_issue(
        self,
        repo: str,
        title: str,
        body: str,
        labels: Sequence[str],
    ) -> int:
        label_ids = await self._label_ids_for(repo, labels)
        data = await self._request(
            "POST",
            f"/repos/{repo}/issues",
            json={"title": title, "body": body, "labels": label_ids},
        )
        return int(data["number"])

    async def update_issue(
        self,
        repo: str,
        number: int,
        title: str,
        body: str,
        labels: Sequence[str],
        remove_labels: Sequence[str] = (),
    ) -> None:
        """
        Update title and body, then labels.

        Gitea has no single call for this: one PATCH, one POST adding
        labels, and one DELETE per removed label. The reconciler paces
        this as one mutation. The requests are not atomic: if a label
        call fails after the PATCH the error propagates and the goal is
        reported as failed. The next run sees the label difference and
        retries.
        """
        await self._request(
            "PATCH",
            f"/repos/{repo}/issues/{number}",
            json={"title": title, "body": body},
        )
        if labels:
            label_ids = await self._label_ids_for(repo, labels)
            await self._request(
                "POST",
                f"/repos/{repo}/issues/{number}/labels",
                json={"labels": label_ids},
            )
        for label_id in await self._label_ids_for(repo, remove_labels):
            await self._request("DELETE", f"/repos/{repo}/issues/{number}/labels/{label_id}")

    async def close_issue(self, repo: str, number: int) -> None:
        await self._request(
            "PATCH",
            f"/repos/{repo}/issues/{number}",
            json={"state": "closed"},
        )

    async def list_labels(self, repo: str) -> list[str]:
        return list(await self._label_id_map(repo, refresh=True))

    async def create_label(self, repo: str, name: str, color: str, description: str = "") -> None:
        await self._request(
            "POST",
            f"/repos/{repo}/labels",
            json={"name": name, "color": f"#{color}", "description": description},
        )
        await self._label_id_map(repo, refresh=True)
