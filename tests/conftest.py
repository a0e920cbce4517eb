"""Pytest configuration and fixtures."""

from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from goal_sync.exceptions import TrackerAPIError, TrackerRateLimitError
from goal_sync.models import IssueState, RemoteIssue, SyncConfig, SyncMode
from goal_sync.provider import IssueProvider, ProviderType

REPO = "owner/goals"


class FakeProvider(IssueProvider):
    """In-memory issue tracker that records every call."""

    def __init__(self, first_number: int = 101) -> None:
        self.issues: dict[int, RemoteIssue] = {}
        self.labels: set[str] = set()
        self.calls: list[tuple] = []
        self.fail_titles: set[str] = set()
        self.fail_list = False
        self._next = first_number

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.GITHUB

    @property
    def mutations(self) -> list[tuple]:
        return [c for c in self.calls if c[0] not in ("list_issues", "fetch_issue", "list_labels")]

    def add_issue(self, issue: RemoteIssue) -> None:
        self.issues[issue.number] = issue
        self._next = max(self._next, issue.number + 1)

    def snapshot(self) -> list[str]:
        return [issue.model_dump_json() for issue in sorted(self.issues.values(), key=lambda i: i.number)]

    async def close(self) -> None:
        pass

    async def check_connection(self) -> bool:
        return True

    def issue_url(self, repo: str, number: int) -> str:
        return f"https://example.test/{repo}/issues/{number}"

    async def list_issues(self, repo: str, label: str) -> list[RemoteIssue]:
        self.calls.append(("list_issues", repo, label))
        if self.fail_list:
            raise TrackerRateLimitError
        return [i for _, i in sorted(self.issues.items()) if label in i.labels]

    async def fetch_issue(self, repo: str, number: int) -> RemoteIssue:
        self.calls.append(("fetch_issue", repo, number))
        if number not in self.issues:
            raise TrackerAPIError("issue not found", 404)
        return self.issues[number]

    async def create_issue(self, repo: str, title: str, body: str, labels: Sequence[str]) -> int:
        self.calls.append(("create_issue", repo, title))
        if title in self.fail_titles:
            raise TrackerRateLimitError
        number = self._next
        self._next += 1
        self.issues[number] = RemoteIssue(number=number, title=title, body=body, labels=list(labels))
        return number

    async def update_issue(
        self,
        repo: str,
        number: int,
        title: str,
        body: str,
        labels: Sequence[str],
        remove_labels: Sequence[str] = (),
    ) -> None:
        self.calls.append(("update_issue", repo, number))
        if title in self.fail_titles:
            raise TrackerRateLimitError
        issue = self.issues[number]
        kept = [label for label in issue.labels if label not in remove_labels]
        merged = list(dict.fromkeys([*kept, *labels]))
        self.issues[number] = issue.model_copy(update={"title": title, "body": body, "labels": merged})

    async def close_issue(self, repo: str, number: int) -> None:
        self.calls.append(("close_issue", repo, number))
        issue = self.issues[number]
        if issue.title in self.fail_titles:
            raise TrackerRateLimitError
        self.issues[number] = issue.model_copy(update={"state": IssueState.CLOSED})

    async def list_labels(self, repo: str) -> list[str]:
        self.calls.append(("list_labels", repo))
        return sorted(self.labels)

    async def create_label(self, repo: str, name: str, color: str, description: str = "") -> None:
        self.calls.append(("create_label", repo, name))
        self.labels.add(name)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def goal_document(
    title: str = "Alpha",
    owners: str = "@alice",
    status: str = "Proposed",
    teams: str | None = None,
    tracking: str | None = None,
    body: str = "## Summary\n\nMake alpha happen.\n",
) -> str:
    rows = [
        "| Metadata       |         |",
        "| ---            | ---     |",
        f"| Owner(s)       | {owners} |",
    ]
    if teams is not None:
        rows.append(f"| Teams          | {teams} |")
    rows.append(f"| Status         | {status} |")
    if tracking is not None:
        rows.append(f"| Tracking issue | {tracking} |")
    return f"# {title}\n\n" + "\n".join(rows) + "\n\n" + body


@pytest.fixture
def goals_root(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    root.mkdir()
    return root


@pytest.fixture
def write_goal(goals_root: Path) -> Callable[..., Path]:
    """Write a goal document at ``<root>/<period>/<slug>.md``."""

    def _write(period: str, slug: str, **kwargs: str | None) -> Path:
        directory = goals_root / period
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{slug}.md"
        path.write_text(goal_document(**kwargs), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def dry_config() -> SyncConfig:
    return SyncConfig(repository=REPO, site_url="https://goals.example.test")


@pytest.fixture
def commit_config() -> SyncConfig:
    return SyncConfig(
        repository=REPO,
        mode=SyncMode.COMMIT,
        pace=0.25,
        site_url="https://goals.example.test",
    )
