"""API schemas for GitHub webhook intake."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class WebhookAcceptedResponse(BaseModel):
    status: str
    event: Optional[str] = None
    action: Optional[str] = None
    request_id: str
