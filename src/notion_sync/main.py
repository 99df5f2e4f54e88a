"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, lifespan events
for settings validation and worker wiring, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.requests import Request
from fastapi.responses import Response

from src.notion_sync.config import get_settings
from src.notion_sync.core.database import close_db
from src.notion_sync.core.monitoring import MetricsMiddleware, get_metrics_response
from src.notion_sync.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.notion_sync.api.v1.router import router as v1_router
from src.notion_sync.sync.worker import build_worker


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Validate settings and wire the sync worker on startup; release on shutdown.

    Invalid configuration raises ConfigInvalid here so the process refuses
    to start instead of failing on the first sync call.
    """
    settings = get_settings()
    configure_structlog(settings.LOG_LEVEL)
    log = structlog.get_logger(__name__)

    worker = build_worker(settings)
    app.state.sync_worker = worker
    log.info(
        "startup.sync_worker_initialized",
        database_id=settings.NOTION_DATABASE_ID,
        table=worker.table_name,
    )

    yield

    await worker.aclose()
    await close_db()
    app.state.sync_worker = None
    log.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Notion Postgres Sync",
        version="0.1.0",
        description="Mirror a Notion database into a Postgres table",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
