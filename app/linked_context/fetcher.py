"""Entity fetching with partial-failure tolerance."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Protocol

from app.linked_context.comments import RawComment, without_bots
from app.linked_context.github_gateway import EntityRecord, FetchError
from app.linked_context.keys import EntityKey
from app.linked_context.references import CodeLink, EntityRef
from app.telemetry import increment_fetch_failures

_logger = logging.getLogger(__name__)


class SourceControlGateway(Protocol):
    """Narrow read interface the fetcher needs from the source-control client."""

    async def get_entity(self, owner: str, repo: str, number: int, *, fresh: bool = False) -> EntityRecord:  # pragma: no cover - interface
        ...

    async def list_comments(
        self, owner: str, repo: str, number: int, is_pull_request: bool, *, fresh: bool = False
    ) -> list[RawComment]:  # pragma: no cover - interface
        ...

    async def get_diff(self, owner: str, repo: str, number: int) -> str | None:  # pragma: no cover - interface
        ...

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str | None = None) -> str | None:  # pragma: no cover - interface
        ...


@dataclass
class FetchedEntity:
    key: EntityKey
    url: str
    body: str | None
    is_pull_request: bool
    raw_comments: list[RawComment] = field(default_factory=list)
    issue_id: int | None = None
    author_login: str | None = None
    author_type: str | None = None
    api_url: str | None = None


class EntityFetcher:
    """Fetch issues/pull requests and their conversations, never raising on I/O failure."""

    def __init__(self, gateway: SourceControlGateway) -> None:
        self._gateway = gateway

    async def fetch_entity(self, ref: EntityRef, *, fresh: bool = False) -> FetchedEntity | None:
        try:
            record = await self._gateway.get_entity(ref.owner, ref.repo, ref.number, fresh=fresh)
        except FetchError as exc:
            _logger.warning("Failed to fetch %s: %s", ref.key, exc)
            increment_fetch_failures("entity")
            return None
        comments = await self.fetch_comments(ref, record.is_pull_request, fresh=fresh)
        return FetchedEntity(
            key=ref.key,
            url=record.url or ref.url,
            body=record.body,
            is_pull_request=record.is_pull_request,
            raw_comments=comments,
            issue_id=record.issue_id,
            author_login=record.author_login,
            author_type=record.author_type,
            api_url=record.api_url,
        )

    async def fetch_comments(self, ref: EntityRef, is_pull_request: bool, *, fresh: bool = False) -> list[RawComment]:
        try:
            comments = await self._gateway.list_comments(ref.owner, ref.repo, ref.number, is_pull_request, fresh=fresh)
        except FetchError as exc:
            _logger.warning("Failed to fetch comments for %s: %s", ref.key, exc)
            increment_fetch_failures("comments")
            return []
        return without_bots(comments)

    async def fetch_diff(self, key: EntityKey) -> str | None:
        try:
            return await self._gateway.get_diff(key.owner, key.repo, key.number)
        except FetchError as exc:
            _logger.warning("Failed to fetch diff for %s: %s", key, exc)
            increment_fetch_failures("diff")
            return None

    async def fetch_file(self, link: CodeLink) -> str | None:
        try:
            return await self._gateway.get_file_content(link.owner, link.repo, link.path, link.ref)
        except FetchError as exc:
            _logger.warning("Failed to fetch linked file %s: %s", link.identifier, exc)
            increment_fetch_failures("file")
            return None


def body_as_comment(entity: FetchedEntity) -> RawComment:
    """Represent an entity's own body as a comment so it is scanned like any other."""

    return RawComment(
        id=entity.issue_id if entity.issue_id is not None else entity.key.number,
        body=entity.body or "",
        user_login=entity.author_login,
        user_type=entity.author_type,
        issue_url=entity.api_url or entity.url,
        html_url=entity.url,
    )
