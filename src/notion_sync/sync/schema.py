"""Schema synchronization: Notion database schema -> Postgres table structure.

fetch_schema() turns the remote property definitions into a SchemaMapping;
SchemaReconciler converges the table onto it (create table, or add the
missing columns). Down-migrations (drops, type changes) are never attempted.
"""

from __future__ import annotations

import hashlib
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError

from src.notion_sync.core.exceptions import RemoteShapeInvalid, SchemaSyncFailed
from src.notion_sync.core.monitoring import schema_columns_added_total
from src.notion_sync.db.postgres import PostgresClient
from src.notion_sync.notion.client import NotionSource
from src.notion_sync.sync.type_mapping import (
    MAX_IDENTIFIER_LENGTH,
    PAGE_ID_COLUMN,
    RESERVED_COLUMNS,
    TYPE_MAP,
    sanitize_identifier,
    to_property_kind,
)
from src.notion_sync.sync.types import PropertyMapping, SchemaMapping, SchemaSyncResult

logger = structlog.get_logger(__name__)


def _fallback_column_name(property_name: str) -> str:
    digest = hashlib.sha1(property_name.encode("utf-8")).hexdigest()[:8]
    return f"prop_{digest}"


def _suffixed(base: str, suffix: int) -> str:
    """Append _<suffix>, shortening base so the result stays a valid identifier."""
    tail = f"_{suffix}"
    return base[:MAX_IDENTIFIER_LENGTH - len(tail)].rstrip("_") + tail


def build_schema_mapping(properties: dict[str, Any]) -> SchemaMapping:
    """Map Notion property definitions to columns.

    Unsupported kinds are dropped with a warning. Column names are unique
    across the mapping and never shadow a reserved column: properties are
    claimed in sorted name order and later claimants of a taken name get a
    numeric suffix.
    """
    mapping: SchemaMapping = {}
    taken: set[str] = set(RESERVED_COLUMNS)

    for prop_name in sorted(properties):
        prop_def = properties[prop_name] or {}
        notion_type = prop_def.get("type", "")
        kind = to_property_kind(notion_type)
        if kind is None:
            logger.warning(
                "schema.unsupported_property_type",
                property=prop_name,
                notion_type=notion_type,
            )
            continue

        base = sanitize_identifier(prop_name) or _fallback_column_name(prop_name)
        column_name = base
        suffix = 2
        while column_name in taken:
            column_name = _suffixed(base, suffix)
            suffix += 1
        if column_name != base:
            logger.warning(
                "schema.column_name_collision",
                property=prop_name,
                requested=base,
                assigned=column_name,
            )
        taken.add(column_name)

        mapping[prop_name] = PropertyMapping(
            notion_type=kind,
            postgres_type=TYPE_MAP[kind],
            column_name=column_name,
        )

    return mapping


async def fetch_schema(notion: NotionSource, database_id: str) -> SchemaMapping:
    """Fetch the schema (properties) of a Notion database as a SchemaMapping.

    Raises:
        RemoteUnavailable: the metadata call failed.
        RemoteShapeInvalid: the response lacks a properties section.
    """
    logger.info("schema.fetch_started", database_id=database_id)
    properties = await notion.retrieve_schema(database_id)
    if not isinstance(properties, dict):
        raise RemoteShapeInvalid(f"Unable to retrieve database properties for {database_id}")

    mapping = build_schema_mapping(properties)
    logger.info(
        "schema.fetch_complete",
        database_id=database_id,
        supported=len(mapping),
        declared=len(properties),
    )
    return mapping


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


def create_table_statement(table_name: str, schema: SchemaMapping) -> str:
    column_defs = [f"{name} {definition}" for name, definition in RESERVED_COLUMNS.items()]
    column_defs.extend(
        f"{_quote(prop.column_name)} {prop.postgres_type}" for prop in schema.values()
    )
    return f"CREATE TABLE {_quote(table_name)} ({', '.join(column_defs)})"


def add_column_statement(table_name: str, column_name: str, definition: str) -> str:
    return f"ALTER TABLE {_quote(table_name)} ADD COLUMN {_quote(column_name)} {definition}"


class SchemaReconciler:
    """Create or alter the target table so it holds every mapped column.

    Statements commit one at a time; a failure aborts the remaining work and
    leaves whatever already committed in place.

    Args:
        db: Postgres client used for introspection and DDL.
    """

    def __init__(self, db: PostgresClient) -> None:
        self._db = db

    async def reconcile(self, table_name: str, schema: SchemaMapping) -> SchemaSyncResult:
        result = SchemaSyncResult()

        statement = f"introspect {table_name}"
        try:
            exists = await self._db.table_exists(table_name)
            if not exists:
                statement = create_table_statement(table_name, schema)
                await self._db.execute_ddl(statement)
                result.created = True
                logger.info("schema.table_created", table=table_name, columns=len(schema))
                return result

            statement = f"list columns of {table_name}"
            existing = {col.column_name for col in await self._db.get_table_columns(table_name)}

            for prop in schema.values():
                if prop.column_name in existing:
                    continue
                statement = add_column_statement(table_name, prop.column_name, prop.postgres_type)
                await self._db.execute_ddl(statement)
                existing.add(prop.column_name)
                result.columns_added.append(prop.column_name)
                schema_columns_added_total.labels(table=table_name).inc()
                logger.info("schema.column_added", table=table_name, column=prop.column_name)

            for column_name, definition in RESERVED_COLUMNS.items():
                if column_name in existing:
                    continue
                if column_name == PAGE_ID_COLUMN:
                    # A primary key cannot be retrofitted safely onto existing rows
                    logger.warning(
                        "schema.primary_key_missing",
                        table=table_name,
                        column=column_name,
                        hint="manual intervention required",
                    )
                    result.manual_intervention.append(column_name)
                    continue
                statement = add_column_statement(table_name, column_name, definition)
                await self._db.execute_ddl(statement)
                result.columns_added.append(column_name)
                schema_columns_added_total.labels(table=table_name).inc()
                logger.info("schema.reserved_column_added", table=table_name, column=column_name)
        except SQLAlchemyError as exc:
            logger.error("schema.statement_failed", table=table_name, statement=statement, error=str(exc))
            raise SchemaSyncFailed(statement, exc) from exc

        return result

    async def existing_columns(self, table_name: str) -> set[str]:
        """Column names currently on the table (empty if it does not exist)."""
        try:
            return {col.column_name for col in await self._db.get_table_columns(table_name)}
        except SQLAlchemyError as exc:
            raise SchemaSyncFailed(f"list columns of {table_name}", exc) from exc


def summarize(table_name: str, schema: SchemaMapping, result: SchemaSyncResult) -> str:
    """Human-readable summary of a reconciliation."""
    column_count = len(schema)
    if result.created:
        return f'Created new table "{table_name}" with {column_count} columns from Notion schema.'
    if result.columns_added:
        summary = f'Updated table "{table_name}". Added columns: {", ".join(result.columns_added)}'
    else:
        summary = f'Schema is up to date for table "{table_name}" ({column_count} columns).'
    if result.manual_intervention:
        summary += (
            f" Manual intervention required for: {', '.join(result.manual_intervention)}"
        )
    return summary
