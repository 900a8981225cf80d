"""Recursive discovery of linked issues and pull requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import partial
import logging
import time
from typing import Sequence

from app.core.identifiers import new_traversal_id
from app.linked_context.comments import Comment, StreamlinedComments, dedupe, merge, streamline
from app.linked_context.fetcher import EntityFetcher, FetchedEntity, body_as_comment
from app.linked_context.keys import EntityKey, InvalidKeyError, normalize_key
from app.linked_context.references import CodeLink, EntityRef, extract_code_links, extract_from_texts
from app.linked_context.throttle import throttle
from app.telemetry import (
    EventSink,
    NullEventSink,
    increment_fetch_failures,
    record_entities_resolved,
    record_traversal_duration,
)

_logger = logging.getLogger(__name__)

DEFAULT_CODE_LINK_EXTENSIONS = (".py", ".ts", ".js", ".json", ".sol", ".md")


class EntityStatus(str, Enum):
    """Per-key traversal state. Keys never return to ``UNSEEN``."""

    UNSEEN = "unseen"
    FETCHING = "fetching"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class LinkedEntity:
    key: EntityKey
    url: str
    depth: int = 0
    body: str | None = None
    comments: list[Comment] | None = None
    is_pull_request: bool = False
    diff: str | None = None
    status: EntityStatus = EntityStatus.UNSEEN


@dataclass
class LinkedCode:
    link: CodeLink
    content: str | None = None


@dataclass
class TraversalState:
    """Mutable state shared by every fetch task of one traversal run."""

    seed_key: EntityKey
    visited: set[EntityKey] = field(default_factory=set)
    entities: dict[EntityKey, LinkedEntity] = field(default_factory=dict)
    spec_or_bodies: dict[EntityKey, str] = field(default_factory=dict)
    streamlined: StreamlinedComments = field(default_factory=dict)
    scan_texts: dict[EntityKey, list[str]] = field(default_factory=dict)
    linked_code: dict[str, LinkedCode] = field(default_factory=dict)

    def mark_visited(self, key: EntityKey) -> bool:
        """Claim ``key`` for fetching. Must run before any await on that key."""

        if key in self.visited:
            return False
        self.visited.add(key)
        return True

    def register(self, ref: EntityRef, depth: int) -> LinkedEntity:
        entity = LinkedEntity(key=ref.key, url=ref.url, depth=depth, status=EntityStatus.FETCHING)
        self.entities[ref.key] = entity
        return entity

    def record_resolved(self, entity: LinkedEntity, fetched: FetchedEntity, diff: str | None) -> None:
        grouped = streamline(fetched.raw_comments)
        entity.url = fetched.url
        entity.body = fetched.body
        entity.is_pull_request = fetched.is_pull_request
        entity.diff = diff
        entity.comments = list(grouped.get(entity.key, []))
        entity.status = EntityStatus.RESOLVED
        self.spec_or_bodies[entity.key] = fetched.body or ""
        self.streamlined = merge(self.streamlined, grouped)
        self.scan_texts[entity.key] = [body_as_comment(fetched).body or ""] + [
            comment.body for comment in fetched.raw_comments if comment.body
        ]

    def record_failed(self, entity: LinkedEntity) -> None:
        entity.status = EntityStatus.FAILED
        entity.comments = []


@dataclass
class ContextResolution:
    seed_key: EntityKey
    entities: list[LinkedEntity]
    spec_or_bodies: dict[EntityKey, str]
    streamlined_comments: StreamlinedComments
    visited: frozenset[EntityKey]
    linked_code: list[LinkedCode] = field(default_factory=list)

    @property
    def resolved_keys(self) -> list[EntityKey]:
        return [entity.key for entity in self.entities if entity.status is EntityStatus.RESOLVED]

    @property
    def failed_keys(self) -> list[EntityKey]:
        return [entity.key for entity in self.entities if entity.status is EntityStatus.FAILED]


class LinkedContextResolver:
    """Walk cross-references outward from a seed issue or pull request.

    Traversal is breadth-first and level-synchronous: every newly discovered
    key of one hop is fetched concurrently (bounded by ``concurrency``) before
    the next hop is scanned. ``max_hops`` bounds how far from the seed entities
    are fetched; entities at the last hop are fetched but not scanned.
    """

    def __init__(
        self,
        fetcher: EntityFetcher,
        *,
        max_hops: int = 2,
        concurrency: int = 10,
        restrict_to_owner: bool = True,
        follow_hash_references: bool = True,
        follow_code_links: bool = False,
        code_link_extensions: Sequence[str] = DEFAULT_CODE_LINK_EXTENSIONS,
        sink: EventSink | None = None,
    ) -> None:
        if max_hops < 0:
            raise ValueError("max_hops must not be negative")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._fetcher = fetcher
        self._max_hops = max_hops
        self._concurrency = concurrency
        self._restrict_to_owner = restrict_to_owner
        self._follow_hash_references = follow_hash_references
        self._follow_code_links = follow_code_links
        self._code_link_extensions = tuple(code_link_extensions)
        self._sink = sink or NullEventSink()

    async def resolve_context(self, seed: EntityRef | EntityKey | str) -> ContextResolution:
        seed_ref = self._coerce_seed(seed)
        started = time.perf_counter()
        state = TraversalState(seed_key=seed_ref.key)

        state.mark_visited(seed_ref.key)
        seed_entity = state.register(seed_ref, depth=0)
        await self._fetch_into(state, seed_entity, seed_ref, fresh=True)

        frontier = [seed_entity] if seed_entity.status is EntityStatus.RESOLVED else []
        depth = 0
        while frontier and depth < self._max_hops:
            depth += 1
            thunks = []
            discovered: list[LinkedEntity] = []
            for entity in frontier:
                for ref in self._discover(state, entity):
                    if not state.mark_visited(ref.key):
                        continue
                    linked = state.register(ref, depth)
                    discovered.append(linked)
                    thunks.append(partial(self._fetch_into, state, linked, ref))
            if not thunks:
                break
            _logger.debug("Fetching %d linked entities at hop %d from %s", len(thunks), depth, seed_ref.key)
            await throttle(thunks, self._concurrency)
            frontier = [entity for entity in discovered if entity.status is EntityStatus.RESOLVED]

        if self._follow_code_links:
            await self._fetch_code_links(state)

        resolution = ContextResolution(
            seed_key=seed_ref.key,
            entities=list(state.entities.values()),
            spec_or_bodies=dict(state.spec_or_bodies),
            streamlined_comments=dedupe(state.streamlined),
            visited=frozenset(state.visited),
            linked_code=list(state.linked_code.values()),
        )
        duration = time.perf_counter() - started
        self._report(resolution, duration)
        return resolution

    async def _fetch_into(self, state: TraversalState, entity: LinkedEntity, ref: EntityRef, *, fresh: bool = False) -> None:
        try:
            fetched = await self._fetcher.fetch_entity(ref, fresh=fresh)
            if fetched is None:
                state.record_failed(entity)
                return
            diff = await self._fetcher.fetch_diff(ref.key) if fetched.is_pull_request else None
            state.record_resolved(entity, fetched, diff)
        except Exception:
            # Every claimed key must end resolved or failed.
            _logger.exception("Unexpected error while resolving %s", ref.key)
            increment_fetch_failures("entity")
            state.record_failed(entity)

    def _discover(self, state: TraversalState, entity: LinkedEntity) -> list[EntityRef]:
        return extract_from_texts(
            state.scan_texts.get(entity.key, []),
            default_owner=entity.key.owner,
            default_repo=entity.key.repo,
            origin_owner=state.seed_key.owner,
            restrict_to_owner=self._restrict_to_owner,
            follow_hash_references=self._follow_hash_references,
        )

    async def _fetch_code_links(self, state: TraversalState) -> None:
        thunks = []
        for texts in state.scan_texts.values():
            for text in texts:
                for link in extract_code_links(
                    text,
                    self._code_link_extensions,
                    origin_owner=state.seed_key.owner,
                    restrict_to_owner=self._restrict_to_owner,
                ):
                    if link.identifier in state.linked_code:
                        continue
                    linked = LinkedCode(link=link)
                    state.linked_code[link.identifier] = linked
                    thunks.append(partial(self._fetch_code_into, linked))
        if thunks:
            await throttle(thunks, self._concurrency)

    async def _fetch_code_into(self, linked: LinkedCode) -> None:
        linked.content = await self._fetcher.fetch_file(linked.link)

    @staticmethod
    def _coerce_seed(seed: EntityRef | EntityKey | str) -> EntityRef:
        if isinstance(seed, EntityRef):
            if not (seed.owner and seed.repo and seed.number):
                raise InvalidKeyError("Seed reference requires owner, repo and number")
            return EntityRef(owner=seed.owner.lower(), repo=seed.repo.lower(), number=int(seed.number), url=seed.url)
        if isinstance(seed, EntityKey):
            return EntityRef.from_key(seed)
        if isinstance(seed, str):
            key = normalize_key(seed)
            url = seed if seed.lower().startswith("http") else None
            return EntityRef.from_key(key, url)
        raise TypeError(f"Unsupported seed type: {type(seed).__name__}")

    def _report(self, resolution: ContextResolution, duration: float) -> None:
        resolved = resolution.resolved_keys
        failed = resolution.failed_keys
        _logger.info(
            "Resolved context for %s: %d entities resolved, %d failed in %.2fs",
            resolution.seed_key,
            len(resolved),
            len(failed),
            duration,
        )
        record_traversal_duration(duration)
        record_entities_resolved(len(resolved))
        self._sink.publish(
            {
                "event": "context_resolved",
                "traversal_id": new_traversal_id(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "seed": str(resolution.seed_key),
                "resolved": [str(key) for key in resolved],
                "failed": [str(key) for key in failed],
                "max_depth": max((entity.depth for entity in resolution.entities), default=0),
                "duration_seconds": round(duration, 4),
            }
        )
