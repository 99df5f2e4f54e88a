"""REST endpoints wrapping the sync worker.

POST /sync/cycle runs one batch from the state the caller persisted;
POST /sync/schema reconciles the table on demand.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field

from src.notion_sync.core.exceptions import RemoteShapeInvalid, RemoteUnavailable, SchemaSyncFailed

router = APIRouter(prefix="/sync", tags=["sync"])


class CycleRequest(BaseModel):
    """Request body carrying the state returned by the previous cycle."""

    state: dict[str, Any] | None = None


class CycleResult(BaseModel):
    processed_count: int = 0
    error_count: int = 0
    errors: list[str] = Field(default_factory=list)


class CycleResponse(BaseModel):
    """Invocation contract output plus the batch counts."""

    changes: list[Any] = Field(default_factory=list)
    hasMore: bool = False
    nextState: dict[str, Any] | None = None
    result: CycleResult | None = None


class SchemaResponse(BaseModel):
    table: str
    summary: str


def _get_sync_worker(request: Request) -> Any:
    """Retrieve SyncWorker from app.state, 503 if not available."""
    worker = getattr(request.app.state, "sync_worker", None)
    if worker is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync worker not initialized",
        )
    return worker


@router.post("/cycle", response_model=CycleResponse)
async def run_cycle(body: CycleRequest, request: Request) -> CycleResponse:
    """Run one sync batch; persist nextState and call again while hasMore."""
    worker = _get_sync_worker(request)
    try:
        response, output = await worker.run_batch(body.state)
    except (RemoteUnavailable, RemoteShapeInvalid, SchemaSyncFailed) as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    return CycleResponse(**response, result=CycleResult(**output.result.model_dump()))


@router.post("/schema", response_model=SchemaResponse)
async def sync_schema(request: Request) -> SchemaResponse:
    """Create or alter the Postgres table to match the Notion schema."""
    worker = _get_sync_worker(request)
    try:
        summary = await worker.sync_schema()
    except (RemoteUnavailable, RemoteShapeInvalid, SchemaSyncFailed) as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Schema sync failed: {exc}",
        ) from exc
    return SchemaResponse(table=worker.table_name, summary=summary)
