"""API schemas for linked-context resolution."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from app.linked_context.traversal import EntityStatus


class ContextRequest(BaseModel):
    """Request body for POST /v1/context.

    Either ``url`` or the ``owner``/``repo``/``number`` triple identifies the seed.
    """

    url: Optional[str] = Field(None, description="Issue or pull request URL, or an owner/repo/number triple.")
    owner: Optional[str] = None
    repo: Optional[str] = None
    number: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def _require_seed(self) -> "ContextRequest":
        if self.url:
            return self
        if self.owner and self.repo and self.number:
            return self
        raise ValueError("Provide either url or owner, repo and number")

    def seed_text(self) -> str:
        if self.url:
            return self.url
        return f"{self.owner}/{self.repo}/{self.number}"


class EntitySummary(BaseModel):
    key: str
    url: str
    is_pull_request: bool
    status: EntityStatus
    depth: int
    comment_count: int = 0


class ContextResponse(BaseModel):
    request_id: str
    seed: str
    entities: list[EntitySummary] = Field(default_factory=list)
    blocks: list[str] = Field(default_factory=list)
    context: str
