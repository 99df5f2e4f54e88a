"""Shared test doubles for the sync tests.

Provides:
- InMemoryPostgres: PostgresClient stand-in that interprets the DDL and
  upsert statements the sync issues, and can be told to fail statements
- InMemoryNotion: NotionSource stand-in serving pages sorted by
  last_edited_time with integer-offset cursors
- StaticConverter: markdown converter returning canned page bodies
- Page/property builders mirroring Notion API payloads
"""

from __future__ import annotations

import copy
import re
from datetime import datetime
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError

from src.notion_sync.notion.client import QueryPage
from src.notion_sync.sync.types import TableColumn

DATABASE_ID = "0123456789abcdef0123456789abcdef"
TABLE_NAME = "notion_0123456789abcdef0123"

_CREATE_TABLE = re.compile(r'^CREATE TABLE "(?P<table>[^"]+)" \((?P<columns>.*)\)$')
_ADD_COLUMN = re.compile(r'^ALTER TABLE "(?P<table>[^"]+)" ADD COLUMN "(?P<column>[^"]+)" (?P<type>.+)$')
_INSERT = re.compile(r'^INSERT INTO "(?P<table>[^"]+)" \((?P<columns>[^)]*)\)')


# ── In-Memory Test Doubles ───────────────────────────────────────────────────


class InMemoryPostgres:
    """In-memory PostgresClient for testing without a database."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, str]] = {}
        self.rows: dict[str, dict[str, dict[str, Any]]] = {}
        self.ddl: list[str] = []
        self.fail_on: list[str] = []

    def _maybe_fail(self, statement: str, params: Any = None) -> None:
        for fragment in self.fail_on:
            if fragment in statement or (params and fragment in params.values()):
                raise OperationalError(statement, params or {}, Exception("simulated failure"))

    async def table_exists(self, table_name: str) -> bool:
        return table_name in self.tables

    async def get_table_columns(self, table_name: str) -> list[TableColumn]:
        return [
            TableColumn(column_name=name, data_type=data_type, is_nullable="YES")
            for name, data_type in self.tables.get(table_name, {}).items()
        ]

    async def execute_ddl(self, statement: str) -> None:
        self._maybe_fail(statement)
        self.ddl.append(statement)
        created = _CREATE_TABLE.match(statement)
        if created:
            columns: dict[str, str] = {}
            for definition in created["columns"].split(", "):
                name, _, data_type = definition.partition(" ")
                columns[name.strip('"')] = data_type
            self.tables[created["table"]] = columns
            self.rows[created["table"]] = {}
            return
        added = _ADD_COLUMN.match(statement)
        if added:
            self.tables[added["table"]][added["column"]] = added["type"]
            return
        raise AssertionError(f"unexpected DDL: {statement}")

    async def execute(self, statement: str, params: dict[str, Any]) -> None:
        self._maybe_fail(statement, params)
        insert = _INSERT.match(statement)
        if not insert:
            raise AssertionError(f"unexpected statement: {statement}")
        columns = [column.strip().strip('"') for column in insert["columns"].split(",")]
        values = [params[f"p{index}"] for index in range(len(columns))]
        row = dict(zip(columns, values))
        self.rows.setdefault(insert["table"], {})[row["notion_page_id"]] = row

    async def ping(self) -> None:
        return None


class InMemoryNotion:
    """In-memory NotionSource serving one database."""

    def __init__(self, properties: dict[str, Any], pages: list[dict[str, Any]] | None = None) -> None:
        self.properties = copy.deepcopy(properties)
        self.pages = copy.deepcopy(list(pages or []))
        self.queries: list[dict[str, Any]] = []

    async def retrieve_schema(self, database_id: str) -> dict[str, Any]:
        return self.properties

    async def query(
        self,
        database_id: str,
        page_size: int = 100,
        start_cursor: str | None = None,
        edited_after: datetime | None = None,
    ) -> QueryPage:
        self.queries.append(
            {"start_cursor": start_cursor, "edited_after": edited_after, "page_size": page_size}
        )
        pages = sorted(self.pages, key=lambda page: page["last_edited_time"])
        if edited_after is not None:
            pages = [
                page
                for page in pages
                if datetime.fromisoformat(page["last_edited_time"].replace("Z", "+00:00")) > edited_after
            ]
        offset = int(start_cursor) if start_cursor else 0
        batch = pages[offset:offset + page_size]
        has_more = offset + page_size < len(pages)
        return QueryPage(
            results=batch,
            has_more=has_more,
            next_cursor=str(offset + page_size) if has_more else None,
        )

    async def aclose(self) -> None:
        return None


class StaticConverter:
    """Markdown converter returning canned bodies; raises for failing ids."""

    def __init__(self, bodies: dict[str, str] | None = None, failing: set[str] | None = None) -> None:
        self.bodies = bodies or {}
        self.failing = failing or set()

    async def to_markdown(self, page_id: str) -> str:
        if page_id in self.failing:
            raise RuntimeError("block fetch failed")
        return self.bodies.get(page_id, "")


# ── Payload Builders ─────────────────────────────────────────────────────────


def title(text: str) -> dict[str, Any]:
    return {"type": "title", "title": [{"plain_text": text}]}


def select(name: str | None) -> dict[str, Any]:
    return {"type": "select", "select": {"name": name} if name else None}


def number(value: float | int | None) -> dict[str, Any]:
    return {"type": "number", "number": value}


def make_page(page_id: str, last_edited_time: str, **properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "object": "page",
        "id": page_id,
        "last_edited_time": last_edited_time,
        "properties": properties,
    }


@pytest.fixture
def db() -> InMemoryPostgres:
    return InMemoryPostgres()
