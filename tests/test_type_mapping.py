"""Unit tests for Notion kind -> Postgres type mapping and identifier sanitizing."""

from __future__ import annotations

import re

import pytest

from src.notion_sync.sync.type_mapping import (
    MAX_IDENTIFIER_LENGTH,
    RESERVED_COLUMNS,
    TYPE_MAP,
    get_table_name,
    map_type,
    sanitize_identifier,
    to_property_kind,
)
from src.notion_sync.sync.types import PropertyKind


class TestMapType:
    """Every supported kind maps to a column type; unknown kinds map to None."""

    def test_type_map_covers_every_kind(self):
        assert set(TYPE_MAP) == set(PropertyKind)

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            ("title", "TEXT"),
            ("number", "NUMERIC"),
            ("multi_select", "TEXT[]"),
            ("date", "TIMESTAMPTZ"),
            ("checkbox", "BOOLEAN"),
            ("relation", "TEXT[]"),
            ("people", "TEXT[]"),
            ("last_edited_time", "TIMESTAMPTZ"),
            ("unique_id", "TEXT"),
        ],
    )
    def test_known_kinds(self, kind, expected):
        assert map_type(kind) == expected

    def test_accepts_enum(self):
        assert map_type(PropertyKind.STATUS) == "TEXT"

    @pytest.mark.parametrize("kind", ["button", "verification", "", "Title"])
    def test_unknown_kind_is_none(self, kind):
        assert map_type(kind) is None
        assert to_property_kind(kind) is None


class TestSanitizeIdentifier:
    def test_punctuation_and_spaces(self):
        assert sanitize_identifier("Due Date!!") == "due_date"

    def test_collapses_and_strips_underscores(self):
        assert sanitize_identifier("__Client -- Name__") == "client_name"

    def test_non_ascii_replaced(self):
        assert sanitize_identifier("Prix (€)") == "prix"

    def test_empty_when_nothing_survives(self):
        assert sanitize_identifier("!!!") == ""
        assert sanitize_identifier("") == ""

    @pytest.mark.parametrize("name", ["Due Date!!", "A  B", "x_1", "Ünïcödé name", "---"])
    def test_idempotent_and_well_formed(self, name):
        once = sanitize_identifier(name)
        assert sanitize_identifier(once) == once
        if once:
            assert re.fullmatch(r"[a-z0-9](?:[a-z0-9_]*[a-z0-9])?", once)
            assert "__" not in once

    def test_truncated_to_postgres_limit(self):
        result = sanitize_identifier("word " * 40)
        assert len(result) <= MAX_IDENTIFIER_LENGTH
        assert not result.endswith("_")


class TestTableName:
    def test_from_hyphenated_id(self):
        assert get_table_name("1a2b3c4d-5e6f-7a8b-9c0d-1e2f3a4b5c6d") == "notion_1a2b3c4d_5e6f_7a8b_9"

    def test_lowercases(self):
        assert get_table_name("ABCDEF0123456789ABCDEF0123456789") == "notion_abcdef0123456789abcd"


def test_reserved_columns_order():
    assert list(RESERVED_COLUMNS) == ["notion_page_id", "page_content", "synced_at"]
    assert "PRIMARY KEY" in RESERVED_COLUMNS["notion_page_id"]
