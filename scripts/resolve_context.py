"""Resolve the linked context of an issue or pull request from the command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging

from app.core.config import settings
from app.linked_context.fetcher import EntityFetcher
from app.linked_context.formatter import format_resolution, render_context
from app.linked_context.github_gateway import GitHubGateway
from app.linked_context.traversal import LinkedContextResolver


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Resolve and print the linked context of an issue or pull request")
    parser.add_argument("seed", help="Issue/pull request URL or owner/repo/number triple")
    parser.add_argument("--max-hops", type=int, default=settings.traversal_max_hops)
    parser.add_argument("--concurrency", type=int, default=settings.traversal_concurrency)
    parser.add_argument(
        "--any-owner",
        action="store_true",
        help="Follow references into repositories owned by other accounts",
    )
    parser.add_argument("--code-links", action="store_true", help="Fetch linked source files")
    parser.add_argument("--json", action="store_true", help="Print a JSON summary instead of the rendered context")
    return parser


async def _run(args: argparse.Namespace) -> str:
    gateway = GitHubGateway(
        token=settings.github_token,
        base_url=settings.github_base_url,
        cache_ttl_seconds=settings.github_cache_ttl_seconds,
        timeout_seconds=settings.fetch_timeout_seconds,
    )
    resolver = LinkedContextResolver(
        EntityFetcher(gateway),
        max_hops=args.max_hops,
        concurrency=args.concurrency,
        restrict_to_owner=not args.any_owner,
        follow_hash_references=settings.follow_hash_references,
        follow_code_links=args.code_links or settings.follow_code_links,
        code_link_extensions=settings.code_link_extensions,
    )
    try:
        resolution = await resolver.resolve_context(args.seed)
    finally:
        await gateway.close()

    blocks = format_resolution(resolution)
    if not args.json:
        return render_context(blocks)
    summary = {
        "seed": str(resolution.seed_key),
        "entities": [
            {
                "key": str(entity.key),
                "url": entity.url,
                "status": entity.status.value,
                "depth": entity.depth,
                "is_pull_request": entity.is_pull_request,
            }
            for entity in resolution.entities
        ],
        "blocks": blocks,
    }
    return json.dumps(summary, indent=2)


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=settings.log_level.upper())
    print(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
