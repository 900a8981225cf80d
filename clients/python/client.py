from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict

import httpx


@dataclass
class ContextRequest:
    """Convenience wrapper for POST /context payloads."""

    url: str | None = None
    owner: str | None = None
    repo: str | None = None
    number: int | None = None

    def payload(self) -> dict:
        return {key: value for key, value in asdict(self).items() if value is not None}


class ContextClient:
    """Lightweight synchronous client for the linked-context API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        headers: Dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        normalized_base = base_url.rstrip("/") + "/"
        self._client = httpx.Client(
            base_url=normalized_base,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    def __enter__(self) -> "ContextClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def resolve_context(
        self,
        url: str | None = None,
        *,
        owner: str | None = None,
        repo: str | None = None,
        number: int | None = None,
    ) -> dict:
        request = ContextRequest(url=url, owner=owner, repo=repo, number=number)
        response = self._client.post("context", json=request.payload())
        response.raise_for_status()
        return response.json()

    def healthcheck(self) -> dict:
        response = self._client.get("healthz")
        response.raise_for_status()
        return response.json()
