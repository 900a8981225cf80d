"""Application dependency wiring."""

from __future__ import annotations

from functools import lru_cache

from app.core.config import settings
from app.linked_context.fetcher import EntityFetcher
from app.linked_context.github_gateway import GitHubGateway
from app.linked_context.traversal import LinkedContextResolver
from app.services.ask import AskService
from app.services.completions import CompletionsClient
from app.services.context import ContextService
from app.telemetry import sink_from_settings, EventSink


@lru_cache
def get_github_gateway() -> GitHubGateway:
    return GitHubGateway(
        token=settings.github_token,
        base_url=settings.github_base_url,
        cache_ttl_seconds=settings.github_cache_ttl_seconds,
        timeout_seconds=settings.fetch_timeout_seconds,
    )


@lru_cache
def get_event_sink() -> EventSink:
    return sink_from_settings()


@lru_cache
def get_resolver() -> LinkedContextResolver:
    return LinkedContextResolver(
        EntityFetcher(get_github_gateway()),
        max_hops=settings.traversal_max_hops,
        concurrency=settings.traversal_concurrency,
        restrict_to_owner=settings.restrict_to_same_owner,
        follow_hash_references=settings.follow_hash_references,
        follow_code_links=settings.follow_code_links,
        code_link_extensions=settings.code_link_extensions,
        sink=get_event_sink(),
    )


@lru_cache
def get_context_service() -> ContextService:
    return ContextService(get_resolver())


@lru_cache
def get_completions_client() -> CompletionsClient | None:
    if not settings.openai_api_key:
        return None
    return CompletionsClient(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.openai_model,
        max_tokens=settings.openai_max_tokens,
        temperature=settings.openai_temperature,
    )


@lru_cache
def get_ask_service() -> AskService:
    return AskService(
        get_context_service(),
        get_github_gateway(),
        get_completions_client(),
        app_name=settings.app_name,
    )
