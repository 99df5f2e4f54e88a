"""Incremental Notion -> Postgres sync: one bounded batch per invocation.

State machine (the state is persisted by the invoking runtime):
- no state: first run -- reconcile the table schema, full fetch
- CursorState: continue the current page sequence
- WatermarkState: start a new cycle with pages edited after the watermark

Pages are processed strictly in last_edited_time order, one at a time. A
failing page is counted and reported but never aborts the batch; failures
that make the schema or pagination state untrustworthy abort the invocation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from src.notion_sync.core.exceptions import RecordExtractFailed, WriteFailed
from src.notion_sync.core.monitoring import sync_cycles_total, sync_records_total
from src.notion_sync.notion.client import NotionSource
from src.notion_sync.sync.content import ContentFlattener
from src.notion_sync.sync.extract import extract_values
from src.notion_sync.sync.schema import SchemaReconciler, fetch_schema
from src.notion_sync.sync.type_mapping import get_table_name
from src.notion_sync.sync.types import (
    CursorState,
    RunSyncOutput,
    SchemaMapping,
    SchemaSyncResult,
    SyncRecord,
    SyncResult,
    SyncState,
    WatermarkState,
)
from src.notion_sync.sync.writer import UpsertWriter

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 100


class SyncOrchestrator:
    """Runs sync invocations for one Notion database.

    Args:
        notion: Notion source used for schema and queries.
        reconciler: Schema reconciler bound to the target Postgres.
        writer: Upsert writer bound to the target Postgres.
        flattener: Page body flattener.
        database_id: Notion database to mirror.
        page_size: Pages fetched per invocation.
    """

    def __init__(
        self,
        notion: NotionSource,
        reconciler: SchemaReconciler,
        writer: UpsertWriter,
        flattener: ContentFlattener,
        database_id: str,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._notion = notion
        self._reconciler = reconciler
        self._writer = writer
        self._flattener = flattener
        self._database_id = database_id
        self._page_size = page_size
        self.table_name = get_table_name(database_id)

    async def sync_schema(self) -> tuple[SchemaMapping, SchemaSyncResult]:
        """Fetch the remote schema and converge the table onto it."""
        schema = await fetch_schema(self._notion, self._database_id)
        result = await self._reconciler.reconcile(self.table_name, schema)
        return schema, result

    async def run_sync(self, state: SyncState | None = None) -> RunSyncOutput:
        """Run a single batch of the sync.

        Raises:
            RemoteUnavailable / RemoteShapeInvalid: schema fetch or query failed.
            SchemaSyncFailed: first-run reconciliation failed.
        """
        phase = _phase(state)
        log = logger.bind(database_id=self._database_id, table=self.table_name, phase=phase)
        log.info("sync.started")
        sync_cycles_total.labels(table=self.table_name, phase=phase).inc()

        # Schema is needed for extraction even on resumed pages
        schema = await fetch_schema(self._notion, self._database_id)

        if state is None:
            schema_result = await self._reconciler.reconcile(self.table_name, schema)
            if schema_result.created:
                log.info("sync.table_created")
            elif schema_result.columns_added:
                log.info("sync.columns_added", columns=schema_result.columns_added)

        query_page = await self._notion.query(
            self._database_id,
            page_size=self._page_size,
            start_cursor=state.cursor if isinstance(state, CursorState) else None,
            edited_after=state.last_sync_time if isinstance(state, WatermarkState) else None,
        )

        result = SyncResult()
        columns = await self._writable_columns(schema, log)

        for page in query_page.results:
            if "properties" not in page:
                continue
            page_id = page.get("id", "<unknown>")
            try:
                await self._sync_page(page, schema, columns)
            except (RecordExtractFailed, WriteFailed) as exc:
                result.error_count += 1
                message = f"Page {page_id}: {exc}"
                result.errors.append(message)
                sync_records_total.labels(table=self.table_name, outcome="error").inc()
                log.error("sync.page_failed", page_id=page_id, error=str(exc))
            else:
                result.processed_count += 1
                sync_records_total.labels(table=self.table_name, outcome="synced").inc()

        next_state = self._next_state(query_page.results, query_page.has_more, query_page.next_cursor)
        has_more = isinstance(next_state, CursorState)

        log.info(
            "sync.batch_complete",
            processed=result.processed_count,
            errors=result.error_count,
            has_more=has_more,
        )
        return RunSyncOutput(result=result, next_state=next_state, has_more=has_more)

    async def _writable_columns(self, schema: SchemaMapping, log: Any) -> list[str]:
        """Mapped columns the table already has; the rest wait for a schema sync."""
        existing = await self._reconciler.existing_columns(self.table_name)
        columns = [mapping.column_name for mapping in schema.values()]
        pending = [column for column in columns if column not in existing]
        if pending:
            log.warning("sync.columns_pending_schema_sync", columns=pending)
        return [column for column in columns if column in existing]

    async def _sync_page(self, page: dict[str, Any], schema: SchemaMapping, columns: list[str]) -> None:
        properties = extract_values(page, schema)
        content = await self._flattener.flatten(page["id"])
        record = SyncRecord(
            notion_page_id=page["id"],
            page_content=content,
            synced_at=datetime.now(timezone.utc),
            properties=properties,
        )
        await self._writer.upsert(self.table_name, record, columns)

    @staticmethod
    def _next_state(
        results: list[dict[str, Any]],
        has_more: bool,
        next_cursor: str | None,
    ) -> SyncState | None:
        """Carry the cursor while pages remain; otherwise emit the watermark."""
        if has_more and next_cursor:
            return CursorState(cursor=next_cursor)
        for page in reversed(results):
            last_edited = page.get("last_edited_time")
            if last_edited:
                return WatermarkState(last_sync_time=last_edited)
        return None


def _phase(state: SyncState | None) -> str:
    if state is None:
        return "first_run"
    if isinstance(state, CursorState):
        return "continue"
    return "incremental"
