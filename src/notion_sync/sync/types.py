"""Pydantic types shared by the schema-translation and sync layers.

Defines:
- PropertyKind: closed set of Notion property kinds the sync understands
- PropertyMapping / SchemaMapping: remote property -> relational column
- SyncRecord: one row bound for Postgres
- CursorState / WatermarkState: the two resumable sync states
- SyncResult, RunSyncOutput, SchemaSyncResult, TableColumn: operation results
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field


class PropertyKind(str, Enum):
    """Notion property kinds with a relational mapping."""

    TITLE = "title"
    RICH_TEXT = "rich_text"
    NUMBER = "number"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    DATE = "date"
    CHECKBOX = "checkbox"
    URL = "url"
    EMAIL = "email"
    PHONE_NUMBER = "phone_number"
    FORMULA = "formula"
    RELATION = "relation"
    ROLLUP = "rollup"
    CREATED_TIME = "created_time"
    CREATED_BY = "created_by"
    LAST_EDITED_TIME = "last_edited_time"
    LAST_EDITED_BY = "last_edited_by"
    FILES = "files"
    PEOPLE = "people"
    STATUS = "status"
    UNIQUE_ID = "unique_id"


class PropertyMapping(BaseModel):
    """How one Notion property lands in the table."""

    model_config = ConfigDict(frozen=True)

    notion_type: PropertyKind
    postgres_type: str
    column_name: str


# Notion property name -> mapping
SchemaMapping = dict[str, PropertyMapping]


class SyncRecord(BaseModel):
    """A page flattened into the row written by the upsert writer."""

    notion_page_id: str
    page_content: str = ""
    synced_at: datetime
    properties: dict[str, Any] = Field(default_factory=dict)


# ── Sync State ──────────────────────────────────────────────────────────────
# Absent state means first run. A cursor continues the current cycle; a
# watermark starts the next cycle from records edited after it.


class CursorState(BaseModel):
    """Continue the current page sequence from a Notion cursor."""

    model_config = ConfigDict(frozen=True)

    cursor: str

    def to_wire(self) -> dict[str, Any]:
        return {"cursor": self.cursor}


class WatermarkState(BaseModel):
    """Start a new cycle, fetching only pages edited after last_sync_time."""

    model_config = ConfigDict(frozen=True)

    last_sync_time: datetime

    def to_wire(self) -> dict[str, Any]:
        return {"lastSyncTime": self.last_sync_time.isoformat()}


SyncState = Union[CursorState, WatermarkState]


def parse_sync_state(raw: dict[str, Any] | None) -> SyncState | None:
    """Read the opaque state replayed by the invoking runtime.

    States written by older workers may carry both keys; the cursor wins
    because it continues a cycle that has not finished yet.
    """
    if not raw:
        return None
    cursor = raw.get("cursor")
    if cursor:
        return CursorState(cursor=cursor)
    last_sync_time = raw.get("lastSyncTime") or raw.get("last_sync_time")
    if last_sync_time:
        return WatermarkState(last_sync_time=last_sync_time)
    return None


# ── Results ─────────────────────────────────────────────────────────────────


class SyncResult(BaseModel):
    """Per-invocation page counts and literal error messages."""

    processed_count: int = 0
    error_count: int = 0
    errors: list[str] = Field(default_factory=list)


class RunSyncOutput(BaseModel):
    """Outcome of one sync invocation."""

    result: SyncResult
    next_state: SyncState | None = None
    has_more: bool = False


class SchemaSyncResult(BaseModel):
    """What reconciliation changed on the target table."""

    created: bool = False
    columns_added: list[str] = Field(default_factory=list)
    manual_intervention: list[str] = Field(default_factory=list)


class TableColumn(BaseModel):
    """Column row from information_schema.columns."""

    column_name: str
    data_type: str
    is_nullable: str
