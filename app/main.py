"""Application entrypoint for the linked-context bot service."""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from app.core.config import settings
from app.routers import context, webhooks
from app.telemetry import configure_metrics, shutdown_metrics, collect_prometheus_metrics
from app.dependencies import get_event_sink, get_github_gateway


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_metrics()
    yield
    if get_github_gateway.cache_info().currsize:
        await get_github_gateway().close()
    sink = get_event_sink()
    if hasattr(sink, "close"):
        sink.close()
    shutdown_metrics()


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(
        title="Linked Context Bot",
        description="Resolves the linked issues and pull requests behind a GitHub conversation and answers questions about them.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(context.router)
    app.include_router(webhooks.router)

    @app.get("/healthz", tags=["health"])
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    if settings.otel_exporter.lower().strip() == "prometheus":

        @app.get("/metrics", tags=["metrics"])
        def metrics_endpoint() -> PlainTextResponse:
            payload, content_type = collect_prometheus_metrics()
            return PlainTextResponse(payload, media_type=content_type)

    return app


app = create_app()
