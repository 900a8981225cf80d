from __future__ import annotations

import asyncio
import time
from types import SimpleNamespace

import httpx
import pytest
from github import GithubException

from app.linked_context.github_gateway import FetchError, GatewayError, GitHubGateway
from app.linked_context.keys import EntityKey


class StubRepo:
    def __init__(self) -> None:
        self.issue_calls = 0
        self.created: list[tuple[int, str]] = []
        self.issue = SimpleNamespace(
            html_url="https://github.com/acme/api/pull/4",
            url="https://api.github.com/repos/acme/api/issues/4",
            body="Fixes #2",
            pull_request=SimpleNamespace(url="https://api.github.com/repos/acme/api/pulls/4"),
            id=4004,
            user=SimpleNamespace(login="alice", type="User"),
            get_comments=lambda: [
                SimpleNamespace(
                    id=1,
                    body="issue comment",
                    user=SimpleNamespace(login="bob", type="User"),
                    issue_url="https://api.github.com/repos/acme/api/issues/4",
                    html_url="https://github.com/acme/api/pull/4#issuecomment-1",
                )
            ],
            create_comment=lambda body: self.created.append((4, body)),
        )
        self.pull = SimpleNamespace(
            get_review_comments=lambda: [
                SimpleNamespace(
                    id=9,
                    body="review comment",
                    user=SimpleNamespace(login="carol", type="User"),
                    pull_request_url="https://api.github.com/repos/acme/api/pulls/4",
                    html_url="https://github.com/acme/api/pull/4#discussion_r9",
                )
            ]
        )

    def get_issue(self, number):
        self.issue_calls += 1
        return self.issue

    def get_pull(self, number):
        return self.pull

    def get_contents(self, path, ref=None):
        if path == "src":
            return [SimpleNamespace(path="src/a.py")]
        return SimpleNamespace(decoded_content=b"print('hi')\n")


def _gateway(repo, transport=None, **kwargs) -> GitHubGateway:
    client = SimpleNamespace(get_repo=lambda full_name, lazy=True: repo)
    return GitHubGateway(token="token", client=client, transport=transport, **kwargs)


def test_get_entity_maps_issue_fields():
    gateway = _gateway(StubRepo())
    record = asyncio.run(gateway.get_entity("Acme", "API", 4))

    assert record.key == EntityKey("acme", "api", 4)
    assert record.is_pull_request is True
    assert record.body == "Fixes #2"
    assert record.url == "https://github.com/acme/api/pull/4"
    assert record.author_login == "alice"


def test_get_entity_is_cached_unless_fresh():
    repo = StubRepo()
    gateway = _gateway(repo)

    asyncio.run(gateway.get_entity("acme", "api", 4))
    asyncio.run(gateway.get_entity("acme", "api", 4))
    assert repo.issue_calls == 1

    asyncio.run(gateway.get_entity("acme", "api", 4, fresh=True))
    assert repo.issue_calls == 2


def test_expired_cache_entries_are_pruned_on_write():
    gateway = _gateway(StubRepo())
    stale_key = EntityKey("acme", "api", 99)
    gateway._entity_cache[stale_key] = (0.0, None)
    gateway._comment_cache[(stale_key, False)] = (0.0, [])

    asyncio.run(gateway.get_entity("acme", "api", 4))
    asyncio.run(gateway.list_comments("acme", "api", 4, False))

    assert list(gateway._entity_cache) == [EntityKey("acme", "api", 4)]
    assert list(gateway._comment_cache) == [(EntityKey("acme", "api", 4), False)]


def test_list_comments_uses_review_comments_for_pull_requests():
    gateway = _gateway(StubRepo())

    issue_comments = asyncio.run(gateway.list_comments("acme", "api", 4, False))
    review_comments = asyncio.run(gateway.list_comments("acme", "api", 4, True))

    assert [c.body for c in issue_comments] == ["issue comment"]
    assert issue_comments[0].issue_url.endswith("/issues/4")
    assert [c.body for c in review_comments] == ["review comment"]
    assert review_comments[0].pull_request_url.endswith("/pulls/4")
    assert review_comments[0].issue_url is None


def test_github_errors_become_fetch_errors():
    repo = StubRepo()

    def missing(number):
        raise GithubException(404, {"message": "Not Found"}, None)

    repo.get_issue = missing
    gateway = _gateway(repo)
    with pytest.raises(FetchError):
        asyncio.run(gateway.get_entity("acme", "api", 404))


def test_get_diff_requests_diff_media_type():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["accept"] = request.headers["accept"]
        captured["auth"] = request.headers["authorization"]
        return httpx.Response(200, text="diff --git a/x b/x")

    gateway = _gateway(StubRepo(), transport=httpx.MockTransport(handler))
    diff = asyncio.run(gateway.get_diff("acme", "api", 4))

    assert diff == "diff --git a/x b/x"
    assert captured["url"] == "https://api.github.com/repos/acme/api/pulls/4"
    assert captured["accept"] == "application/vnd.github.diff"
    assert captured["auth"] == "Bearer token"


def test_get_diff_handles_missing_and_failing_responses():
    statuses = iter([404, 502])
    gateway = _gateway(StubRepo(), transport=httpx.MockTransport(lambda request: httpx.Response(next(statuses))))

    assert asyncio.run(gateway.get_diff("acme", "api", 4)) is None
    with pytest.raises(FetchError):
        asyncio.run(gateway.get_diff("acme", "api", 4))


def test_enterprise_base_url_is_used_for_diffs():
    seen = []
    transport = httpx.MockTransport(lambda request: seen.append(str(request.url)) or httpx.Response(200, text=""))
    gateway = _gateway(StubRepo(), transport=transport, base_url="https://ghe.example.com/api/v3/")
    asyncio.run(gateway.get_diff("acme", "api", 1))
    assert seen == ["https://ghe.example.com/api/v3/repos/acme/api/pulls/1"]


def test_file_content_is_decoded_and_directories_ignored():
    gateway = _gateway(StubRepo())
    assert asyncio.run(gateway.get_file_content("acme", "api", "src/a.py", "main")) == "print('hi')\n"
    assert asyncio.run(gateway.get_file_content("acme", "api", "src")) is None


def test_post_comment_creates_issue_comment():
    repo = StubRepo()
    gateway = _gateway(repo)
    asyncio.run(gateway.post_comment("acme", "api", 4, "answer"))
    assert repo.created == [(4, "answer")]


def test_post_comment_failures_raise_gateway_error():
    repo = StubRepo()

    def forbidden(body):
        raise GithubException(403, {"message": "Forbidden"}, None)

    repo.issue.create_comment = forbidden
    gateway = _gateway(repo)
    with pytest.raises(GatewayError):
        asyncio.run(gateway.post_comment("acme", "api", 4, "answer"))


def test_slow_calls_time_out():
    repo = StubRepo()

    def slow(number):
        time.sleep(0.2)
        return repo.issue

    repo.get_issue = slow
    gateway = _gateway(repo, timeout_seconds=0.01)
    with pytest.raises(FetchError):
        asyncio.run(gateway.get_entity("acme", "api", 4))
