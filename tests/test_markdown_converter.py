"""Tests for block -> markdown conversion and the content flattener.

The Notion client is a MagicMock whose blocks.children.list is an
AsyncMock returning canned block pages keyed by parent id.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.notion_sync.core.exceptions import ContentFlattenFailed
from src.notion_sync.notion.markdown import BlockMarkdownConverter, rich_text_to_markdown
from src.notion_sync.sync.content import ContentFlattener
from tests.conftest import StaticConverter


def _text(content: str, **annotations: bool) -> dict[str, Any]:
    return {"plain_text": content, "annotations": annotations, "href": None}


def _block(block_id: str, block_type: str, has_children: bool = False, **body: Any) -> dict[str, Any]:
    return {"id": block_id, "type": block_type, "has_children": has_children, block_type: body}


def _client(children: dict[str, list[dict[str, Any]]]) -> MagicMock:
    client = MagicMock()

    async def list_children(block_id: str, **kwargs: Any) -> dict[str, Any]:
        return {"results": children.get(block_id, []), "has_more": False, "next_cursor": None}

    client.blocks.children.list = AsyncMock(side_effect=list_children)
    return client


class TestRichText:
    def test_annotations(self):
        rendered = rich_text_to_markdown(
            [_text("bold", bold=True), _text(" and "), _text("code", code=True), _text("gone", strikethrough=True)]
        )
        assert rendered == "**bold** and `code`~~gone~~"

    def test_link(self):
        item = {"plain_text": "docs", "annotations": {}, "href": "https://example.com"}
        assert rich_text_to_markdown([item]) == "[docs](https://example.com)"

    def test_empty(self):
        assert rich_text_to_markdown(None) == ""


class TestBlockMarkdownConverter:
    async def test_renders_headings_paragraphs_and_lists(self):
        client = _client(
            {
                "page": [
                    _block("b1", "heading_1", rich_text=[_text("Title")]),
                    _block("b2", "paragraph", rich_text=[_text("Intro")]),
                    _block("b3", "numbered_list_item", rich_text=[_text("one")]),
                    _block("b4", "numbered_list_item", rich_text=[_text("two")]),
                    _block("b5", "to_do", rich_text=[_text("ship")], checked=True),
                ]
            }
        )
        content = await BlockMarkdownConverter(client).to_markdown("page")

        assert content == "# Title\n\nIntro\n\n1. one\n2. two\n- [x] ship"

    async def test_suppresses_media_blocks(self):
        client = _client(
            {
                "page": [
                    _block("b1", "paragraph", rich_text=[_text("Before")]),
                    _block("b2", "image", type="external", external={"url": "https://img/x.png"}),
                    _block("b3", "video", type="external", external={"url": "https://vid/y.mp4"}),
                    _block("b4", "paragraph", rich_text=[_text("After")]),
                ]
            }
        )
        content = await BlockMarkdownConverter(client).to_markdown("page")

        assert "img" not in content and "vid" not in content
        assert "Before" in content and "After" in content

    async def test_nested_children_are_indented(self):
        client = _client(
            {
                "page": [_block("b1", "bulleted_list_item", has_children=True, rich_text=[_text("parent")])],
                "b1": [_block("b2", "bulleted_list_item", rich_text=[_text("child")])],
            }
        )
        content = await BlockMarkdownConverter(client).to_markdown("page")

        assert content == "- parent\n  - child"

    async def test_table_rows(self):
        client = _client(
            {
                "page": [_block("t1", "table", has_children=True, table_width=2)],
                "t1": [
                    {"id": "r1", "type": "table_row", "table_row": {"cells": [[_text("a")], [_text("b")]]}},
                    {"id": "r2", "type": "table_row", "table_row": {"cells": [[_text("1")], [_text("2")]]}},
                ],
            }
        )
        content = await BlockMarkdownConverter(client).to_markdown("page")

        assert content == "| a | b |\n| --- | --- |\n| 1 | 2 |"

    async def test_custom_suppressed_types(self):
        client = _client({"page": [_block("b1", "quote", rich_text=[_text("quoted")])]})
        content = await BlockMarkdownConverter(client, suppressed_types={"quote"}).to_markdown("page")

        assert content == ""


class TestContentFlattener:
    async def test_returns_converter_output(self):
        flattener = ContentFlattener(StaticConverter({"p1": "# Hello"}))
        assert await flattener.flatten("p1") == "# Hello"

    async def test_failure_degrades_to_empty(self):
        flattener = ContentFlattener(StaticConverter(failing={"p1"}))
        assert await flattener.flatten("p1") == ""

    async def test_none_becomes_empty(self):
        converter = AsyncMock()
        converter.to_markdown.return_value = None
        assert await ContentFlattener(converter).flatten("p1") == ""


async def test_block_fetch_failure_degrades_to_empty_content():
    client = MagicMock()
    client.blocks.children.list = AsyncMock(side_effect=httpx.ConnectError("refused"))
    converter = BlockMarkdownConverter(client)

    with pytest.raises(ContentFlattenFailed):
        await converter.to_markdown("page")
    assert await ContentFlattener(converter).flatten("page") == ""
