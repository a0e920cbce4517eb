"""
GitHub CLI client for tracking issues.

This module handles all interactions with the GitHub CLI (gh): listing,
creating, editing and closing issues, and handling errors gracefully.
Authentication is whatever ``gh auth`` is configured with.
"""

import asyncio
import json
import logging
import re
import shutil
from collections.abc import Sequence
from typing import Any

from .exceptions import (
    GitHubCLINotFoundError,
    TrackerAPIError,
    TrackerAuthError,
    TrackerNetworkError,
    TrackerRateLimitError,
    TrackerTimeoutError,
)
from .models import IssueState, RemoteIssue
from .provider import IssueProvider, ProviderType

logger = logging.getLogger(__name__)

ISSUE_FIELDS = ["number", "title", "body", "state", "labels", "url"]
ISSUE_URL_PATTERN = re.compile(r"/issues/(\d+)\s*$")


class GitHubClient(IssueProvider):
    """
    Client for interacting with GitHub via the gh CLI.

    Read-only commands are retried on timeout. Mutating commands are
    not, so a timed-out create can never produce a duplicate issue; the
    next run detects whatever actually happened.
    """

    DEFAULT_TIMEOUT = 60  # seconds
    MAX_RETRIES = 3
    RETRY_DELAY = 2  # seconds
    LIST_LIMIT = 1000

    def __init__(self, timeout: int = DEFAULT_TIMEOUT) -> None:
        """
        Initialize the GitHub client.

        Args:
            timeout: Command timeout in seconds
        """
        self.timeout = timeout
        self._checked = False

    @property
    def provider_type(self) -> ProviderType:
        """Return the provider type."""
        return ProviderType.GITHUB

    async def close(self) -> None:
        """Close the client (no-op for CLI-based client)."""

    def issue_url(self, repo: str, number: int) -> str:
        return f"https://github.com/{repo}/issues/{number}"

    async def check_connection(self) -> bool:
        """
        Check if the GitHub CLI is available and authenticated.

        Raises:
            GitHubCLINotFoundError: If gh CLI is not found
            TrackerAuthError: If not authenticated
        """
        await self.check_cli_available()
        return await self.check_auth()

    async def check_cli_available(self) -> bool:
        """
        Check if gh CLI is installed and in PATH.

        Raises:
            GitHubCLINotFoundError: If gh is not found
        """
        if shutil.which("gh") is None:
            raise GitHubCLINotFoundError
        return True

    async def check_auth(self) -> bool:
        """
        Check if gh is authenticated.

        Raises:
            TrackerAuthError: If not authenticated
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                "gh",
                "auth",
                "status",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=10)

            if proc.returncode != 0:
                error_msg = stderr.decode().strip() if stderr else "Unknown error"
                raise TrackerAuthError(error_msg)

            return True
        except TimeoutError:
            raise TrackerAuthError("Auth check timed out") from None
        except FileNotFoundError:
            raise GitHubCLINotFoundError from None

    async def _ensure_ready(self) -> None:
        """Check CLI and auth once per client."""
        if not self._checked:
            await self.check_connection()
            self._checked = True

    async def _run_gh_command(
        self,
        args: list[str],
        retry_count: int = 0,
        retry: bool = True,
    ) -> str:
        """
        Execute a gh CLI command with error handling and retries.

        Args:
            args: Command arguments (without 'gh' prefix)
            retry_count: Current retry attempt
            retry: Whether a timeout may be retried

        Returns:
            Command stdout as string

        Raises:
            Various IssueTrackerError subclasses based on failure type
        """
        cmd = ["gh", *args]
        logger.debug(f"Running command: {' '.join(cmd[:4])} ...")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )

            try:
                stdout, stderr = await asyncio.wait_for(
                    proc.communicate(),
                    timeout=self.timeout,
                )
            except TimeoutError:
                proc.kill()
                raise

            stdout_str = stdout.decode() if stdout else ""
            stderr_str = stderr.decode() if stderr else ""

            if proc.returncode != 0:
                return self._handle_error(stderr_str)

            return stdout_str

        except TimeoutError:
            if retry and retry_count < self.MAX_RETRIES:
                msg = f"Command timed out, retrying ({retry_count + 1}/{self.MAX_RETRIES})"
                logger.warning(msg)
                await asyncio.sleep(self.RETRY_DELAY * (retry_count + 1))
                return await self._run_gh_command(args, retry_count + 1, retry)
            raise TrackerTimeoutError(self.timeout) from None

        except FileNotFoundError:
            raise GitHubCLINotFoundError from None

    def _handle_error(self, stderr: str) -> str:
        """Map gh CLI failures onto the error taxonomy."""
        stderr_lower = stderr.lower()

        if "not logged in" in stderr_lower or "authentication" in stderr_lower:
            raise TrackerAuthError(stderr.strip())

        if "rate limit" in stderr_lower:
            raise TrackerRateLimitError

        # GraphQL reports missing issues as "Could not resolve to an issue"
        if "could not resolve to" in stderr_lower:
            raise TrackerAPIError(stderr.strip(), 404)

        if "could not resolve" in stderr_lower or "network" in stderr_lower:
            raise TrackerNetworkError(stderr.strip())

        if "not found" in stderr_lower or "404" in stderr_lower:
            raise TrackerAPIError(stderr.strip(), 404)

        if "403" in stderr_lower:
            raise TrackerAPIError(stderr.strip(), 403)

        raise TrackerAPIError(stderr.strip())

    def _parse_label(self, data: dict[str, Any] | str) -> str:
        if isinstance(data, str):
            return data
        return data.get("name", "")

    def _parse_issue(self, data: dict[str, Any]) -> RemoteIssue:
        """Parse issue JSON into a RemoteIssue."""
        state_str = str(data.get("state", "open")).lower()
        state = IssueState.CLOSED if state_str == "closed" else IssueState.OPEN

        return RemoteIssue(
            number=data.get("number", 0),
            title=data.get("title", ""),
            body=data.get("body") or "",
            state=state,
            labels=[self._parse_label(lbl) for lbl in data.get("labels") or []],
            url=data.get("url"),
        )

    def _load_json(self, output: str) -> Any:
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON response: {e}")
            raise TrackerAPIError(f"Invalid JSON response: {e}") from e

    async def list_issues(self, repo: str, label: str) -> list[RemoteIssue]:
        await self._ensure_ready()

        args = [
            "issue",
            "list",
            "-R",
            repo,
            "--label",
            label,
            "--state",
            "all",
            "--limit",
            str(self.LIST_LIMIT + 1),
            "--json",
            ",".join(ISSUE_FIELDS),
        ]

        logger.info(f"Listing issues in {repo} labeled {label}")
        output = await self._run_gh_command(args)

        if not output.strip():
            return []

        issues_data = self._load_json(output)
        if not isinstance(issues_data, list):
            raise TrackerAPIError("Expected list of issues in response")
        if len(issues_data) > self.LIST_LIMIT:
            # gh stops at --limit without reporting truncation
            raise TrackerAPIError(
                f"More than {self.LIST_LIMIT} issues in {repo} are labeled {label}"
            )

        issues = [self._parse_issue(data) for data in issues_data]
        issues.sort(key=lambda i: i.number)
        return issues

    async def fetch_issue(self, repo: str, number: int) -> RemoteIssue:
        await self._ensure_ready()

        args = [
            "issue",
            "view",
            "-R",
            repo,
            str(number),
            "--json",
            ",".join(ISSUE_FIELDS),
        ]
        output = await self._run_gh_command(args)
        return self._parse_issue(self._load_json(output))

    async def create_issue(
        self,
        repo: str,
        title: str,
        body: str,
        labels: Sequence[str],
    ) -> int:
        await self._ensure_ready()

        args = ["issue", "create", "-R", repo, "--title", title, "--body", body]
        for label in labels:
            args.extend(["--label", label])

        output = await self._run_gh_command(args, retry=False)

        # gh prints the URL of the new issue
        match = ISSUE_URL_PATTERN.search(output.strip())
        if not match:
            raise TrackerAPIError(f"Could not determine new issue number from: {output.strip()}")
        return int(match.group(1))

    async def update_issue(
        self,
        repo: str,
        number: int,
        title: str,
        body: str,
        labels: Sequence[str],
        remove_labels: Sequence[str] = (),
    ) -> None:
        await self._ensure_ready()

        args = ["issue", "edit", "-R", repo, str(number), "--title", title, "--body", body]
        for label in labels:
            args.extend(["--add-label", label])
        for label in remove_labels:
            args.extend(["--remove-label", label])

        await self._run_gh_command(args, retry=False)

    async def close_issue(self, repo: str, number: int) -> None:
        await self._ensure_ready()
        await self._run_gh_command(["issue", "close", "-R", repo, str(number)], retry=False)

    async def list_labels(self, repo: str) -> list[str]:
        await self._ensure_ready()

        args = ["label", "list", "-R", repo, "--limit", str(self.LIST_LIMIT), "--json", "name"]
        output = await self._run_gh_command(args)
        if not output.strip():
            return []
        return [self._parse_label(data) for data in self._load_json(output)]

    async def create_label(self, repo: str, name: str, color: str, description: str = "") -> None:
        await self._ensure_ready()

        args = ["label", "create", "-R", repo, name, "--color", color]
        if description:
            args.extend(["--description", description])
        await self._run_gh_command(args, retry=False)
