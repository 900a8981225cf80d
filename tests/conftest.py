from __future__ import annotations

import asyncio

import pytest

from app.linked_context.comments import RawComment
from app.linked_context.github_gateway import EntityRecord, FetchError
from app.linked_context.keys import EntityKey


class FakeGateway:
    """In-memory stand-in for the GitHub gateway that records every call."""

    def __init__(self) -> None:
        self.records: dict[EntityKey, EntityRecord] = {}
        self.comments: dict[EntityKey, list[RawComment]] = {}
        self.diffs: dict[EntityKey, str] = {}
        self.files: dict[tuple[str, str, str, str | None], str] = {}
        self.failing: set[EntityKey] = set()
        self.failing_comments: set[EntityKey] = set()
        self.failing_diffs: set[EntityKey] = set()
        self.broken: set[EntityKey] = set()
        self.entity_calls: list[EntityKey] = []
        self.fresh_calls: list[EntityKey] = []
        self.posted: list[tuple[str, str, int, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add(
        self,
        owner: str,
        repo: str,
        number: int,
        body: str | None,
        comments: list[tuple[str, str]] | None = None,
        *,
        is_pull_request: bool = False,
        diff: str | None = None,
        bot_comments: list[tuple[str, str]] | None = None,
    ) -> EntityKey:
        key = EntityKey(owner=owner.lower(), repo=repo.lower(), number=number)
        kind = "pull" if is_pull_request else "issues"
        self.records[key] = EntityRecord(
            key=key,
            url=f"https://github.com/{owner}/{repo}/{kind}/{number}",
            api_url=f"https://api.github.com/repos/{owner}/{repo}/issues/{number}",
            body=body,
            is_pull_request=is_pull_request,
            issue_id=number * 1000,
            author_login="author",
            author_type="User",
        )
        raw: list[RawComment] = []
        for index, (login, text) in enumerate(comments or []):
            raw.append(self.comment(owner, repo, number, number * 100 + index, login, text, is_pull_request=is_pull_request))
        for index, (login, text) in enumerate(bot_comments or []):
            raw.append(
                self.comment(
                    owner, repo, number, number * 100 + 50 + index, login, text, user_type="Bot", is_pull_request=is_pull_request
                )
            )
        self.comments[key] = raw
        if diff is not None:
            self.diffs[key] = diff
        return key

    @staticmethod
    def comment(
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        login: str,
        body: str,
        *,
        user_type: str = "User",
        is_pull_request: bool = False,
    ) -> RawComment:
        if is_pull_request:
            return RawComment(
                id=comment_id,
                body=body,
                user_login=login,
                user_type=user_type,
                pull_request_url=f"https://api.github.com/repos/{owner}/{repo}/pulls/{number}",
            )
        return RawComment(
            id=comment_id,
            body=body,
            user_login=login,
            user_type=user_type,
            issue_url=f"https://api.github.com/repos/{owner}/{repo}/issues/{number}",
        )

    async def get_entity(self, owner: str, repo: str, number: int, *, fresh: bool = False) -> EntityRecord:
        key = EntityKey(owner=owner.lower(), repo=repo.lower(), number=number)
        self.entity_calls.append(key)
        if fresh:
            self.fresh_calls.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if key in self.broken:
                raise ValueError("malformed payload")
            if key in self.failing or key not in self.records:
                raise FetchError(f"{key} not found")
            return self.records[key]
        finally:
            self.in_flight -= 1

    async def list_comments(self, owner: str, repo: str, number: int, is_pull_request: bool, *, fresh: bool = False):
        key = EntityKey(owner=owner.lower(), repo=repo.lower(), number=number)
        await asyncio.sleep(0)
        if key in self.failing_comments:
            raise FetchError(f"comments for {key} unavailable")
        return list(self.comments.get(key, []))

    async def get_diff(self, owner: str, repo: str, number: int) -> str | None:
        key = EntityKey(owner=owner.lower(), repo=repo.lower(), number=number)
        await asyncio.sleep(0)
        if key in self.failing_diffs:
            raise FetchError(f"diff for {key} unavailable")
        return self.diffs.get(key)

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str | None = None) -> str | None:
        await asyncio.sleep(0)
        return self.files.get((owner, repo, path, ref))

    async def post_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        self.posted.append((owner, repo, number, body))


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[dict] = []

    def publish(self, event: dict) -> None:
        self.events.append(event)

    def close(self) -> None:
        return None


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()
