"""API routes for linked-context resolution."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.core.config import settings
from app.core.identifiers import new_request_id
from app.dependencies import get_context_service
from app.linked_context.keys import InvalidKeyError
from app.schemas.context import ContextRequest, ContextResponse, EntitySummary
from app.services.context import ContextService


router = APIRouter(prefix=f"{settings.api_v1_prefix}/context", tags=["context"])


@router.post("", response_model=ContextResponse)
async def resolve_context(
    payload: ContextRequest,
    context_service: ContextService = Depends(get_context_service),
) -> ContextResponse:
    try:
        rendered = await context_service.build_context(payload.seed_text())
    except InvalidKeyError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    resolution = rendered.resolution
    return ContextResponse(
        request_id=new_request_id(),
        seed=str(resolution.seed_key),
        entities=[
            EntitySummary(
                key=str(entity.key),
                url=entity.url,
                is_pull_request=entity.is_pull_request,
                status=entity.status,
                depth=entity.depth,
                comment_count=len(resolution.streamlined_comments.get(entity.key, [])),
            )
            for entity in resolution.entities
        ],
        blocks=rendered.blocks,
        context=rendered.text,
    )
