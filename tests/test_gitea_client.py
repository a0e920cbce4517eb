"""Tests for the Gitea client against a mocked HTTP transport."""

import asyncio
import json

import httpx
import pytest

from goal_sync.exceptions import TrackerAPIError, TrackerAuthError, TrackerRateLimitError
from goal_sync.gitea_client import GiteaClient
from goal_sync.models import IssueState

LABELS = [{"id": 1, "name": "C-tracking-issue"}, {"id": 2, "name": "2025h1"}, {"id": 3, "name": "T-lang"}]


class FakeGitea:
    """Routes requests and remembers what was sent."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, dict | None]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.requests.append((request.method, path, body))

        if path == "/api/v1/repos/o/r/labels" and request.method == "GET":
            page = int(request.url.params.get("page", "1"))
            return httpx.Response(200, json=LABELS if page == 1 else [])
        if path == "/api/v1/repos/o/r/labels" and request.method == "POST":
            return httpx.Response(201, json={"id": 4, "name": body["name"]})
        if path == "/api/v1/repos/o/r/issues" and request.method == "GET":
            assert request.url.params["labels"] == "C-tracking-issue"
            assert request.url.params["state"] == "all"
            page = int(request.url.params.get("page", "1"))
            issues = [
                {
                    "number": 2,
                    "title": "B",
                    "body": None,
                    "state": "closed",
                    "labels": [{"id": 1, "name": "C-tracking-issue"}],
                },
                {"number": 1, "title": "A", "body": "a", "state": "open", "labels": []},
            ]
            return httpx.Response(200, json=issues if page == 1 else [])
        if path == "/api/v1/repos/o/r/issues" and request.method == "POST":
            return httpx.Response(201, json={"number": 77})
        if path == "/api/v1/repos/o/r/issues/404":
            return httpx.Response(404, text="not found")
        if path.startswith("/api/v1/repos/o/r/issues/"):
            return httpx.Response(200, json={"number": 5, "title": "x", "state": "open"})
        if path == "/api/v1/user":
            return httpx.Response(401)
        return httpx.Response(500, text="unexpected")


def make_client(fake: FakeGitea) -> GiteaClient:
    return GiteaClient("https://gitea.test/", token="t", transport=httpx.MockTransport(fake))


def test_list_issues() -> None:
    fake = FakeGitea()
    client = make_client(fake)

    issues = asyncio.run(client.list_issues("o/r", "C-tracking-issue"))

    assert [i.number for i in issues] == [1, 2]
    assert issues[1].state == IssueState.CLOSED
    assert issues[1].body == ""
    assert issues[1].labels == ["C-tracking-issue"]


def test_create_issue_uses_label_ids() -> None:
    fake = FakeGitea()
    client = make_client(fake)

    number = asyncio.run(client.create_issue("o/r", "Alpha", "body", ["C-tracking-issue", "2025h1"]))

    assert number == 77
    method, path, body = fake.requests[-1]
    assert (method, path) == ("POST", "/api/v1/repos/o/r/issues")
    assert body == {"title": "Alpha", "body": "body", "labels": [1, 2]}


def test_unknown_label_is_error() -> None:
    client = make_client(FakeGitea())
    with pytest.raises(TrackerAPIError):
        asyncio.run(client.create_issue("o/r", "Alpha", "body", ["nope"]))


def test_update_issue() -> None:
    fake = FakeGitea()
    client = make_client(fake)

    asyncio.run(client.update_issue("o/r", 5, "T", "B", ["T-lang"], ["2025h1"]))

    sent = [(m, p, b) for m, p, b in fake.requests if "/issues/5" in p]
    assert sent[0] == ("PATCH", "/api/v1/repos/o/r/issues/5", {"title": "T", "body": "B"})
    assert sent[1] == ("POST", "/api/v1/repos/o/r/issues/5/labels", {"labels": [3]})
    assert sent[2] == ("DELETE", "/api/v1/repos/o/r/issues/5/labels/2", None)


def test_update_issue_label_failure_after_patch_propagates() -> None:
    fake = FakeGitea()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path.endswith("/issues/5/labels"):
            return httpx.Response(500, text="label service down")
        return fake(request)

    client = GiteaClient("https://gitea.test/", token="t", transport=httpx.MockTransport(handler))

    with pytest.raises(TrackerAPIError) as exc_info:
        asyncio.run(client.update_issue("o/r", 5, "T", "B", ["T-lang"], ["2025h1"]))

    assert exc_info.value.status_code == 500
    methods = [(m, p) for m, p, _ in fake.requests if "/issues/5" in p]
    assert methods == [("PATCH", "/api/v1/repos/o/r/issues/5")]


def test_close_issue() -> None:
    fake = FakeGitea()
    asyncio.run(make_client(fake).close_issue("o/r", 5))
    assert fake.requests[-1] == ("PATCH", "/api/v1/repos/o/r/issues/5", {"state": "closed"})


def test_fetch_missing_issue() -> None:
    client = make_client(FakeGitea())
    with pytest.raises(TrackerAPIError) as exc_info:
        asyncio.run(client.fetch_issue("o/r", 404))
    assert exc_info.value.is_not_found


def test_create_label_refreshes_ids() -> None:
    fake = FakeGitea()
    client = make_client(fake)

    asyncio.run(client.create_label("o/r", "2025h2", "FBCA04"))

    post = next(r for r in fake.requests if r[0] == "POST")
    assert post[2]["color"] == "#FBCA04"
    assert fake.requests[-1][0] == "GET"


def test_bad_token() -> None:
    client = make_client(FakeGitea())
    with pytest.raises(TrackerAuthError):
        asyncio.run(client.check_connection())


def test_rate_limit() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(429))
    client = GiteaClient("https://gitea.test", token="t", transport=transport)
    with pytest.raises(TrackerRateLimitError):
        asyncio.run(client.list_labels("o/r"))


def test_issue_url() -> None:
    client = GiteaClient("https://gitea.test/", token="t")
    assert client.issue_url("o/r", 3) == "https://gitea.test/o/r/issues/3"
