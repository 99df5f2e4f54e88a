"""Postgres access for the sync: introspection, DDL and parameterized writes.

Every statement runs in its own transaction (engine.begin()), so a DDL
statement or a single upsert commits independently of the rest of the cycle.
"""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from src.notion_sync.sync.types import TableColumn

logger = structlog.get_logger(__name__)


class PostgresClient:
    """Thin async wrapper over a shared AsyncEngine.

    Args:
        engine: Process-scoped engine (see core.database.get_engine).
        schema: Schema holding the synced tables.
    """

    def __init__(self, engine: AsyncEngine, schema: str = "public") -> None:
        self._engine = engine
        self._schema = schema

    async def table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the configured schema."""
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text(
                    """
                    SELECT EXISTS (
                        SELECT FROM information_schema.tables
                        WHERE table_schema = :schema AND table_name = :table_name
                    )
                    """
                ),
                {"schema": self._schema, "table_name": table_name},
            )
            return bool(result.scalar())

    async def get_table_columns(self, table_name: str) -> list[TableColumn]:
        """Get all columns for a table from information_schema, in table order."""
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text(
                    """
                    SELECT column_name, data_type, is_nullable
                    FROM information_schema.columns
                    WHERE table_schema = :schema AND table_name = :table_name
                    ORDER BY ordinal_position
                    """
                ),
                {"schema": self._schema, "table_name": table_name},
            )
            return [TableColumn(**row) for row in result.mappings().all()]

    async def execute_ddl(self, statement: str) -> None:
        """Run a DDL statement (CREATE TABLE / ALTER TABLE) in its own transaction."""
        async with self._engine.begin() as conn:
            await conn.execute(text(statement))
        logger.debug("postgres.ddl_executed", statement=statement)

    async def execute(self, statement: str, params: dict[str, Any]) -> None:
        """Run a parameterized statement in its own transaction."""
        async with self._engine.begin() as conn:
            await conn.execute(text(statement), params)

    async def ping(self) -> None:
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
