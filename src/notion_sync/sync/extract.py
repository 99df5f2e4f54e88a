"""Notion property value decoding and row extraction.

decode_property() turns one typed Notion property value into a plain
Python value (scalar, list, or None) by its kind tag. adapt_value() then
shapes that value for the column type asyncpg will bind it to, and
extract_values() applies both across a page using the schema mapping.
"""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog

from src.notion_sync.core.exceptions import RecordExtractFailed
from src.notion_sync.sync.types import PropertyKind, SchemaMapping

logger = structlog.get_logger(__name__)

_FORMULA_PREFERENCE = ("string", "number", "boolean", "date")


def _plain_text(items: list[dict[str, Any]] | None) -> str:
    return "".join(item.get("plain_text", "") for item in items or [])


def _name(option: dict[str, Any] | None) -> str | None:
    return option.get("name") if option else None


def _computed(result: dict[str, Any] | None) -> Any:
    """Resolve a formula/rollup result to its populated sub-result."""
    if not result:
        return None
    if result.get("type") == "array":
        return json.dumps(result.get("array") or [], default=str)
    for key in _FORMULA_PREFERENCE:
        value = result.get(key)
        if value is None:
            continue
        if key == "date":
            return value.get("start")
        return value
    return None


def decode_property(prop: dict[str, Any] | None) -> Any:
    """Extract a plain value from a Notion property value object.

    Unrecognized kinds log a warning and return None; this never raises
    for well-formed property objects.
    """
    if not prop or not isinstance(prop, dict):
        return None

    prop_type = prop.get("type", "")
    try:
        kind = PropertyKind(prop_type)
    except ValueError:
        logger.warning("extract.unknown_property_type", notion_type=prop_type)
        return None

    value = prop.get(prop_type)

    if kind in (PropertyKind.TITLE, PropertyKind.RICH_TEXT):
        return _plain_text(value)
    if kind in (PropertyKind.SELECT, PropertyKind.STATUS):
        return _name(value)
    if kind == PropertyKind.MULTI_SELECT:
        return [option["name"] for option in value or []]
    if kind == PropertyKind.DATE:
        return value.get("start") if value else None
    if kind == PropertyKind.CHECKBOX:
        return bool(value) if value is not None else False
    if kind in (
        PropertyKind.NUMBER,
        PropertyKind.URL,
        PropertyKind.EMAIL,
        PropertyKind.PHONE_NUMBER,
        PropertyKind.CREATED_TIME,
        PropertyKind.LAST_EDITED_TIME,
    ):
        return value
    if kind in (PropertyKind.FORMULA, PropertyKind.ROLLUP):
        return _computed(value)
    if kind in (PropertyKind.RELATION, PropertyKind.PEOPLE):
        return [item["id"] for item in value or []]
    if kind in (PropertyKind.CREATED_BY, PropertyKind.LAST_EDITED_BY):
        return value.get("id") if value else None
    if kind == PropertyKind.FILES:
        urls = [
            (item.get("file") or {}).get("url") or (item.get("external") or {}).get("url")
            for item in value or []
        ]
        return [url for url in urls if url]
    if kind == PropertyKind.UNIQUE_ID:
        if not value:
            return None
        prefix = value.get("prefix")
        number = value.get("number")
        return f"{prefix}-{number}" if prefix else str(number)

    logger.warning("extract.unhandled_property_kind", notion_type=prop_type)
    return None


# ── Column adaptation ───────────────────────────────────────────────────────


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a Notion ISO date or datetime string into an aware datetime.

    Date-only values become midnight UTC; naive datetimes are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def adapt_value(value: Any, postgres_type: str, column: str = "") -> Any:
    """Shape a decoded value for the Postgres column type it is bound to.

    Values that cannot be represented in the column become None with a
    warning rather than failing the row.
    """
    if value is None:
        return None

    if postgres_type == "TEXT":
        return _to_text(value)

    if postgres_type == "TEXT[]":
        items = value if isinstance(value, list) else [value]
        return [_to_text(item) for item in items]

    if postgres_type == "NUMERIC":
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float, Decimal)):
            return value
        try:
            return Decimal(str(value))
        except InvalidOperation:
            logger.warning("extract.not_numeric", column=column, value=str(value)[:80])
            return None

    if postgres_type == "BOOLEAN":
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        return bool(value)

    if postgres_type == "TIMESTAMPTZ":
        parsed = parse_timestamp(value)
        if parsed is None:
            logger.warning("extract.bad_timestamp", column=column, value=str(value)[:80])
        return parsed

    return value


def extract_values(page: dict[str, Any], schema: SchemaMapping) -> dict[str, Any]:
    """Build column -> value for every mapped property present on the page.

    Properties in the mapping but missing from the page are omitted; the
    writer binds them as NULL.

    Raises:
        RecordExtractFailed: the page's property structure is malformed.
    """
    page_id = page.get("id", "<unknown>")
    properties = page.get("properties")
    if not isinstance(properties, dict):
        raise RecordExtractFailed(page_id, ValueError("page has no properties"))

    values: dict[str, Any] = {}
    for prop_name, mapping in schema.items():
        prop = properties.get(prop_name)
        if prop is None:
            continue
        try:
            decoded = decode_property(prop)
            values[mapping.column_name] = adapt_value(
                decoded, mapping.postgres_type, mapping.column_name
            )
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise RecordExtractFailed(page_id, exc) from exc
    return values
