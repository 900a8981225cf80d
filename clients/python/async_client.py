from __future__ import annotations

from typing import Dict

import httpx

from .client import ContextRequest


class AsyncContextClient:
    """Async variant of the linked-context API client."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        headers: Dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        normalized_base = base_url.rstrip("/") + "/"
        self._client = httpx.AsyncClient(
            base_url=normalized_base,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def __aenter__(self) -> "AsyncContextClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def resolve_context(
        self,
        url: str | None = None,
        *,
        owner: str | None = None,
        repo: str | None = None,
        number: int | None = None,
    ) -> dict:
        request = ContextRequest(url=url, owner=owner, repo=repo, number=number)
        response = await self._client.post("context", json=request.payload())
        response.raise_for_status()
        return response.json()

    async def healthcheck(self) -> dict:
        response = await self._client.get("healthz")
        response.raise_for_status()
        return response.json()
