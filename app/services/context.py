"""Service wrapper that resolves and renders linked context for a seed."""

from __future__ import annotations

from dataclasses import dataclass

from app.linked_context.formatter import format_resolution, render_context
from app.linked_context.keys import EntityKey
from app.linked_context.references import EntityRef
from app.linked_context.traversal import ContextResolution, LinkedContextResolver


@dataclass
class RenderedContext:
    resolution: ContextResolution
    blocks: list[str]

    @property
    def text(self) -> str:
        return render_context(self.blocks)


class ContextService:
    """Runs one traversal and formats its result."""

    def __init__(self, resolver: LinkedContextResolver) -> None:
        self._resolver = resolver

    async def build_context(self, seed: EntityRef | EntityKey | str) -> RenderedContext:
        resolution = await self._resolver.resolve_context(seed)
        return RenderedContext(resolution=resolution, blocks=format_resolution(resolution))
