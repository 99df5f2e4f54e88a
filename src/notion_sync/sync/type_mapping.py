"""Notion property kind -> Postgres column type, and identifier sanitizing."""

from __future__ import annotations

import re

from src.notion_sync.sync.types import PropertyKind

# Postgres truncates longer identifiers silently
MAX_IDENTIFIER_LENGTH = 63

PAGE_ID_COLUMN = "notion_page_id"
CONTENT_COLUMN = "page_content"
SYNCED_AT_COLUMN = "synced_at"

# Reserved columns present on every synced table, in table order
RESERVED_COLUMNS: dict[str, str] = {
    PAGE_ID_COLUMN: "TEXT PRIMARY KEY",
    CONTENT_COLUMN: "TEXT",
    SYNCED_AT_COLUMN: "TIMESTAMPTZ DEFAULT NOW()",
}

TYPE_MAP: dict[PropertyKind, str] = {
    PropertyKind.TITLE: "TEXT",
    PropertyKind.RICH_TEXT: "TEXT",
    PropertyKind.NUMBER: "NUMERIC",
    PropertyKind.SELECT: "TEXT",
    PropertyKind.MULTI_SELECT: "TEXT[]",
    PropertyKind.DATE: "TIMESTAMPTZ",
    PropertyKind.CHECKBOX: "BOOLEAN",
    PropertyKind.URL: "TEXT",
    PropertyKind.EMAIL: "TEXT",
    PropertyKind.PHONE_NUMBER: "TEXT",
    PropertyKind.FORMULA: "TEXT",
    PropertyKind.RELATION: "TEXT[]",
    PropertyKind.ROLLUP: "TEXT",
    PropertyKind.CREATED_TIME: "TIMESTAMPTZ",
    PropertyKind.CREATED_BY: "TEXT",
    PropertyKind.LAST_EDITED_TIME: "TIMESTAMPTZ",
    PropertyKind.LAST_EDITED_BY: "TEXT",
    PropertyKind.FILES: "TEXT[]",
    PropertyKind.PEOPLE: "TEXT[]",
    PropertyKind.STATUS: "TEXT",
    PropertyKind.UNIQUE_ID: "TEXT",
}

_INVALID_CHARS = re.compile(r"[^a-z0-9_]")
_REPEATED_UNDERSCORES = re.compile(r"_+")


def to_property_kind(kind: str) -> PropertyKind | None:
    """Return the PropertyKind for a Notion type tag, or None if unsupported."""
    try:
        return PropertyKind(kind)
    except ValueError:
        return None


def map_type(kind: str | PropertyKind) -> str | None:
    """Map a Notion property kind to its Postgres column type.

    Unknown kinds return None; callers log and drop the property.
    """
    property_kind = kind if isinstance(kind, PropertyKind) else to_property_kind(kind)
    if property_kind is None:
        return None
    return TYPE_MAP[property_kind]


def sanitize_identifier(name: str) -> str:
    """Produce a safe Postgres identifier from a Notion display name.

    Lowercases, replaces anything outside [a-z0-9_] with "_", collapses
    runs of "_", strips leading/trailing "_", and keeps the result within
    Postgres' identifier length. Empty input yields "".
    """
    sanitized = _INVALID_CHARS.sub("_", name.lower())
    sanitized = _REPEATED_UNDERSCORES.sub("_", sanitized).strip("_")
    return sanitized[:MAX_IDENTIFIER_LENGTH].rstrip("_")


def get_table_name(database_id: str) -> str:
    """Derive the table name from the Notion database id."""
    sanitized = database_id.lower().replace("-", "_")[:20]
    return f"notion_{sanitized}"
