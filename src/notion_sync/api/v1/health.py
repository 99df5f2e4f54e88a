"""Health check endpoints.

/health is a liveness probe with no external calls. /health/ready checks
that the target Postgres answers and the sync worker was initialized.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from src.notion_sync.core.database import get_engine
from src.notion_sync.db.postgres import PostgresClient

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check."""
    return {"status": "ok"}


async def _check_dependencies(request: Request) -> dict:
    """Check database connectivity and worker wiring. Returns check results dict."""
    checks: dict = {"database": "ok", "sync_worker": "ok"}

    try:
        await PostgresClient(get_engine()).ping()
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    if getattr(request.app.state, "sync_worker", None) is None:
        checks["sync_worker"] = "missing"

    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: 200 when Postgres answers and the worker exists, else 503."""
    checks = await _check_dependencies(request)
    all_healthy = checks["database"] == "ok" and checks["sync_worker"] == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "degraded",
            "checks": checks,
        },
    )
