"""Invocation contract exposed to the hosting runtime.

execute() runs one sync batch from the replayed state and returns
{"changes": [], "hasMore": ..., "nextState": ...}; changes is always empty
because rows are pushed to Postgres rather than reported back. sync_schema()
is the on-demand reconciliation returning a human-readable summary.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.notion_sync.config import Settings
from src.notion_sync.core.database import get_engine
from src.notion_sync.db.postgres import PostgresClient
from src.notion_sync.notion.client import NotionSource
from src.notion_sync.notion.markdown import BlockMarkdownConverter
from src.notion_sync.sync.content import ContentFlattener
from src.notion_sync.sync.orchestrator import SyncOrchestrator
from src.notion_sync.sync.schema import SchemaReconciler, summarize
from src.notion_sync.sync.types import RunSyncOutput, parse_sync_state
from src.notion_sync.sync.writer import UpsertWriter

logger = structlog.get_logger(__name__)


class SyncWorker:
    """Adapter between the runtime's opaque state and the orchestrator."""

    def __init__(self, orchestrator: SyncOrchestrator, notion: NotionSource | None = None) -> None:
        self._orchestrator = orchestrator
        self._notion = notion

    @property
    def table_name(self) -> str:
        return self._orchestrator.table_name

    async def execute(self, state: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run one sync batch from the runtime-persisted state."""
        response, _ = await self.run_batch(state)
        return response

    async def run_batch(self, state: dict[str, Any] | None = None) -> tuple[dict[str, Any], RunSyncOutput]:
        """Like execute(), also returning this batch's own RunSyncOutput."""
        output = await self._orchestrator.run_sync(parse_sync_state(state))

        if output.result.errors:
            logger.error(
                "worker.batch_errors",
                error_count=output.result.error_count,
                errors=output.result.errors,
            )
        logger.info(
            "worker.batch_result",
            processed=output.result.processed_count,
            errors=output.result.error_count,
        )

        response = {
            "changes": [],
            "hasMore": output.has_more,
            "nextState": output.next_state.to_wire() if output.next_state else None,
        }
        return response, output

    async def sync_schema(self) -> str:
        """Reconcile the table with the current Notion schema.

        Raises:
            SchemaSyncFailed: naming the statement that failed.
        """
        schema, result = await self._orchestrator.sync_schema()
        summary = summarize(self.table_name, schema, result)
        logger.info("worker.schema_synced", summary=summary)
        return summary

    async def aclose(self) -> None:
        if self._notion is not None:
            await self._notion.aclose()


def build_worker(settings: Settings) -> SyncWorker:
    """Wire a SyncWorker from settings using the process-wide engine."""
    notion = NotionSource.from_token(settings.NOTION_API_TOKEN)
    db = PostgresClient(get_engine())
    orchestrator = SyncOrchestrator(
        notion=notion,
        reconciler=SchemaReconciler(db),
        writer=UpsertWriter(db),
        flattener=ContentFlattener(BlockMarkdownConverter(notion.client)),
        database_id=settings.NOTION_DATABASE_ID,
    )
    return SyncWorker(orchestrator, notion=notion)
