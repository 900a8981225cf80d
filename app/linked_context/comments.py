"""Comment normalization, grouping, merging and deduplication."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Mapping

from app.linked_context.keys import EntityKey, parse_key

_logger = logging.getLogger(__name__)

BOT_USER_TYPE = "Bot"


@dataclass(frozen=True)
class RawComment:
    """Comment as returned by the source-control boundary.

    Issue comments carry ``issue_url``; pull request review comments carry
    ``pull_request_url``.
    """

    id: int | str
    body: str | None
    user_login: str | None
    user_type: str | None
    issue_url: str | None = None
    pull_request_url: str | None = None
    html_url: str | None = None

    @property
    def source_url(self) -> str | None:
        return self.issue_url or self.pull_request_url

    @property
    def is_bot(self) -> bool:
        return self.user_type == BOT_USER_TYPE


@dataclass(frozen=True)
class Comment:
    """Normalized comment, independent of the upstream comment shape."""

    id: int | str
    author_login: str
    author_type: str
    body: str
    owner_key: EntityKey
    url: str | None = None


StreamlinedComments = dict[EntityKey, list[Comment]]


def without_bots(raw_comments: Iterable[RawComment]) -> list[RawComment]:
    return [comment for comment in raw_comments if not comment.is_bot]


def normalize_comment(raw: RawComment) -> Comment | None:
    if raw.is_bot or not raw.user_login or not raw.body:
        return None
    owner_key = parse_key(raw.source_url)
    if owner_key is None:
        _logger.debug("Skipping comment %s with unparseable source url %r", raw.id, raw.source_url)
        return None
    return Comment(
        id=raw.id,
        author_login=raw.user_login,
        author_type=raw.user_type or "User",
        body=raw.body,
        owner_key=owner_key,
        url=raw.html_url,
    )


def streamline(raw_comments: Iterable[RawComment]) -> StreamlinedComments:
    """Group comments by owning entity, dropping bots and empty comments."""

    streamlined: StreamlinedComments = {}
    for raw in raw_comments:
        comment = normalize_comment(raw)
        if comment is None:
            continue
        streamlined.setdefault(comment.owner_key, []).append(comment)
    return streamlined


def merge(existing: Mapping[EntityKey, list[Comment]] | None, incoming: Mapping[EntityKey, list[Comment]]) -> StreamlinedComments:
    merged: StreamlinedComments = {key: list(comments) for key, comments in (existing or {}).items()}
    for key, comments in incoming.items():
        merged.setdefault(key, []).extend(comments)
    return merged


def dedupe(streamlined: Mapping[EntityKey, list[Comment]]) -> StreamlinedComments:
    """Keep the first occurrence of each ``(author, body)`` pair per entity."""

    deduped: StreamlinedComments = {}
    for key, comments in streamlined.items():
        seen: set[tuple[str, str]] = set()
        kept: list[Comment] = []
        for comment in comments:
            fingerprint = (comment.author_login, comment.body)
            if fingerprint in seen:
                continue
            seen.add(fingerprint)
            kept.append(comment)
        deduped[key] = kept
    return deduped
