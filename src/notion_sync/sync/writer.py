"""Idempotent upsert of flattened pages keyed by notion_page_id."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError

from src.notion_sync.core.exceptions import WriteFailed
from src.notion_sync.db.postgres import PostgresClient
from src.notion_sync.sync.type_mapping import CONTENT_COLUMN, PAGE_ID_COLUMN, SYNCED_AT_COLUMN
from src.notion_sync.sync.types import SyncRecord

logger = structlog.get_logger(__name__)


def build_upsert_statement(
    table_name: str,
    record: SyncRecord,
    columns: list[str],
) -> tuple[str, dict[str, Any]]:
    """Build INSERT ... ON CONFLICT DO UPDATE for one record.

    Every non-key column is overwritten from EXCLUDED, so a property missing
    from record.properties clears the stored value (full-row replace).

    Returns:
        (statement, params) with params named p0..pN in column order.
    """
    all_columns = [PAGE_ID_COLUMN, CONTENT_COLUMN, SYNCED_AT_COLUMN, *columns]
    values = [
        record.notion_page_id,
        record.page_content,
        record.synced_at,
        *(record.properties.get(column) for column in columns),
    ]

    params = {f"p{index}": value for index, value in enumerate(values)}
    placeholders = ", ".join(f":p{index}" for index in range(len(values)))
    quoted_columns = ", ".join(f'"{column}"' for column in all_columns)
    update_set = ", ".join(
        f'"{column}" = EXCLUDED."{column}"' for column in all_columns if column != PAGE_ID_COLUMN
    )

    statement = (
        f'INSERT INTO "{table_name}" ({quoted_columns}) '
        f"VALUES ({placeholders}) "
        f'ON CONFLICT ("{PAGE_ID_COLUMN}") DO UPDATE SET {update_set}'
    )
    return statement, params


class UpsertWriter:
    """Write SyncRecords to Postgres, one committed statement per record.

    Args:
        db: Postgres client.
    """

    def __init__(self, db: PostgresClient) -> None:
        self._db = db

    async def upsert(self, table_name: str, record: SyncRecord, columns: list[str]) -> None:
        """Insert or fully replace the row for record.notion_page_id.

        Raises:
            WriteFailed: the statement was rejected.
        """
        statement, params = build_upsert_statement(table_name, record, columns)
        try:
            await self._db.execute(statement, params)
        except SQLAlchemyError as exc:
            raise WriteFailed(record.notion_page_id, exc) from exc
        logger.debug("writer.upserted", table=table_name, page_id=record.notion_page_id)
