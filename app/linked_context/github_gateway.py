"""GitHub-backed source-control boundary for linked-context resolution."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import time
from typing import Any, Callable, Optional

import httpx
from github import Github, GithubException
from github.Auth import Token

from app.linked_context.comments import RawComment
from app.linked_context.keys import EntityKey

_logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DIFF_MEDIA_TYPE = "application/vnd.github.diff"


class GatewayError(Exception):
    """Raised when a call to GitHub cannot be completed."""


class FetchError(GatewayError):
    """Raised when reading an entity, comment list, diff or file fails."""


@dataclass(frozen=True)
class EntityRecord:
    key: EntityKey
    url: str
    api_url: str | None
    body: str | None
    is_pull_request: bool
    issue_id: int | None = None
    author_login: str | None = None
    author_type: str | None = None


class GitHubGateway:
    """Async facade over PyGithub plus a raw diff endpoint.

    PyGithub is synchronous, so each call runs in a worker thread and is bounded
    by ``timeout_seconds``. Entity and comment lookups are cached for
    ``cache_ttl_seconds``.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str | None = None,
        cache_ttl_seconds: int = 300,
        timeout_seconds: float = 20.0,
        client: Github | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif token and base_url:
            self._client = Github(auth=Token(token), base_url=base_url.rstrip("/"))
        elif token:
            self._client = Github(auth=Token(token))
        elif base_url:
            self._client = Github(base_url=base_url.rstrip("/"))
        else:
            self._client = Github()
        self._api_url = (base_url or DEFAULT_API_URL).rstrip("/")
        self._cache_ttl = max(cache_ttl_seconds, 30)
        self._timeout = timeout_seconds
        headers = {"Accept": DIFF_MEDIA_TYPE}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=self._api_url + "/",
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )
        self._entity_cache: dict[EntityKey, tuple[float, EntityRecord]] = {}
        self._comment_cache: dict[tuple[EntityKey, bool], tuple[float, list[RawComment]]] = {}

    async def close(self) -> None:
        await self._http.aclose()

    async def get_entity(self, owner: str, repo: str, number: int, *, fresh: bool = False) -> EntityRecord:
        key = EntityKey(owner=owner.lower(), repo=repo.lower(), number=number)
        cached = self._entity_cache.get(key)
        now = time.monotonic()
        if not fresh and cached and cached[0] > now:
            return cached[1]
        record = await self._call(self._load_entity, key)
        self._store(self._entity_cache, key, record, now)
        return record

    async def list_comments(
        self,
        owner: str,
        repo: str,
        number: int,
        is_pull_request: bool,
        *,
        fresh: bool = False,
    ) -> list[RawComment]:
        key = EntityKey(owner=owner.lower(), repo=repo.lower(), number=number)
        cache_key = (key, is_pull_request)
        cached = self._comment_cache.get(cache_key)
        now = time.monotonic()
        if not fresh and cached and cached[0] > now:
            return list(cached[1])
        loader = self._load_review_comments if is_pull_request else self._load_issue_comments
        comments = await self._call(loader, key)
        self._store(self._comment_cache, cache_key, comments, now)
        return list(comments)

    async def get_diff(self, owner: str, repo: str, number: int) -> str | None:
        try:
            response = await self._http.get(f"repos/{owner}/{repo}/pulls/{number}")
        except httpx.HTTPError as exc:
            raise FetchError(f"Diff request for {owner}/{repo}#{number} failed: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise FetchError(f"Diff request for {owner}/{repo}#{number} returned {response.status_code}")
        return response.text

    async def get_file_content(self, owner: str, repo: str, path: str, ref: str | None = None) -> str | None:
        return await self._call(self._load_file, owner, repo, path, ref)

    async def post_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        try:
            await self._call(self._create_comment, owner, repo, number, body)
        except FetchError as exc:
            raise GatewayError(str(exc)) from exc

    def _store(self, cache: dict, key: Any, value: Any, now: float) -> None:
        for stale in [cached_key for cached_key, (expires, _) in cache.items() if expires <= now]:
            del cache[stale]
        cache[key] = (now + self._cache_ttl, value)

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise FetchError(f"{func.__name__} timed out after {self._timeout}s") from exc
        except (GithubException, OSError) as exc:
            raise FetchError(f"{func.__name__} failed: {exc}") from exc

    def _get_repo(self, owner: str, repo: str):
        return self._client.get_repo(f"{owner}/{repo}", lazy=True)

    def _load_entity(self, key: EntityKey) -> EntityRecord:
        issue = self._get_repo(key.owner, key.repo).get_issue(key.number)
        user = getattr(issue, "user", None)
        return EntityRecord(
            key=key,
            url=getattr(issue, "html_url", None) or key.html_url,
            api_url=getattr(issue, "url", None),
            body=issue.body,
            is_pull_request=getattr(issue, "pull_request", None) is not None,
            issue_id=getattr(issue, "id", None),
            author_login=getattr(user, "login", None),
            author_type=getattr(user, "type", None),
        )

    def _load_issue_comments(self, key: EntityKey) -> list[RawComment]:
        issue = self._get_repo(key.owner, key.repo).get_issue(key.number)
        return [self._to_raw_comment(comment, "issue_comment") for comment in issue.get_comments()]

    def _load_review_comments(self, key: EntityKey) -> list[RawComment]:
        pull = self._get_repo(key.owner, key.repo).get_pull(key.number)
        return [self._to_raw_comment(comment, "review_comment") for comment in pull.get_review_comments()]

    def _load_file(self, owner: str, repo: str, path: str, ref: Optional[str]) -> str | None:
        repository = self._get_repo(owner, repo)
        contents = repository.get_contents(path, ref=ref) if ref else repository.get_contents(path)
        if isinstance(contents, list):
            return None
        data = contents.decoded_content
        if data is None:
            return None
        return data.decode("utf-8", errors="replace")

    def _create_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        self._get_repo(owner, repo).get_issue(number).create_comment(body)

    @staticmethod
    def _to_raw_comment(comment, comment_type: str) -> RawComment:
        user = getattr(comment, "user", None)
        return RawComment(
            id=getattr(comment, "id", None),
            body=getattr(comment, "body", None),
            user_login=getattr(user, "login", None),
            user_type=getattr(user, "type", None),
            issue_url=getattr(comment, "issue_url", None) if comment_type == "issue_comment" else None,
            pull_request_url=getattr(comment, "pull_request_url", None) if comment_type == "review_comment" else None,
            html_url=getattr(comment, "html_url", None),
        )
