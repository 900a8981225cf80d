"""GitHub webhook intake."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request, status

from app.core.config import settings
from app.core.identifiers import new_request_id
from app.dependencies import get_ask_service
from app.schemas.webhooks import WebhookAcceptedResponse
from app.services.ask import AskService

_logger = logging.getLogger(__name__)

SUPPORTED_EVENTS = {("issue_comment", "created")}

router = APIRouter(prefix=f"{settings.api_v1_prefix}/webhooks", tags=["webhooks"])


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(f"sha256={expected}", signature)


async def _handle_comment_created(ask_service: AskService, payload: dict, request_id: str) -> None:
    try:
        result = await ask_service.handle_comment_created(payload)
    except Exception:
        _logger.exception("Unhandled error while answering webhook %s", request_id)
        return
    _logger.info("Webhook %s handled with status %s: %s", request_id, result.status, result.reason)


@router.post("/github", response_model=WebhookAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def receive_github_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_github_event: str | None = Header(None),
    x_hub_signature_256: str | None = Header(None),
    ask_service: AskService = Depends(get_ask_service),
) -> WebhookAcceptedResponse:
    body = await request.body()
    if settings.webhook_secret and not verify_signature(settings.webhook_secret, body, x_hub_signature_256):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")
    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook body is not valid JSON") from exc

    request_id = new_request_id()
    action = payload.get("action") if isinstance(payload, dict) else None
    if (x_github_event, action) not in SUPPORTED_EVENTS:
        _logger.info("Skipping unsupported webhook %s.%s", x_github_event, action)
        return WebhookAcceptedResponse(status="skipped", event=x_github_event, action=action, request_id=request_id)

    background_tasks.add_task(_handle_comment_created, ask_service, payload, request_id)
    return WebhookAcceptedResponse(status="accepted", event=x_github_event, action=action, request_id=request_id)
