"""Convert a Notion page's block tree to markdown.

Binary and media blocks (images, video, files, embeds, ...) are suppressed:
their kinds render as an empty string so only text content reaches Postgres.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from notion_client import AsyncClient
from notion_client.errors import HTTPResponseError, RequestTimeoutError
from notion_client.helpers import async_collect_paginated_api

from src.notion_sync.core.exceptions import ContentFlattenFailed

logger = structlog.get_logger(__name__)

SUPPRESSED_BLOCK_TYPES: frozenset[str] = frozenset(
    {
        "image",
        "video",
        "file",
        "pdf",
        "embed",
        "bookmark",
        "link_preview",
        "audio",
    }
)

# Container blocks whose children render at the same level
_TRANSPARENT_CONTAINERS = {"column_list", "column", "synced_block", "template"}

_LIST_ITEMS = {"bulleted_list_item", "numbered_list_item", "to_do"}


def rich_text_to_markdown(rich_text: list[dict[str, Any]] | None) -> str:
    """Render a rich_text array with inline annotations and links."""
    parts: list[str] = []
    for item in rich_text or []:
        text = item.get("plain_text", "")
        if not text:
            continue
        annotations = item.get("annotations") or {}
        if annotations.get("code"):
            text = f"`{text}`"
        if annotations.get("bold"):
            text = f"**{text}**"
        if annotations.get("italic"):
            text = f"_{text}_"
        if annotations.get("strikethrough"):
            text = f"~~{text}~~"
        href = item.get("href")
        if href:
            text = f"[{text}]({href})"
        parts.append(text)
    return "".join(parts)


class BlockMarkdownConverter:
    """Render Notion blocks to markdown through the blocks API.

    Args:
        client: notion_client AsyncClient.
        suppressed_types: Block kinds rendered as empty strings.
    """

    def __init__(
        self,
        client: AsyncClient,
        suppressed_types: frozenset[str] | set[str] = SUPPRESSED_BLOCK_TYPES,
    ) -> None:
        self._client = client
        self._suppressed = frozenset(suppressed_types)

    async def to_markdown(self, page_id: str) -> str:
        """Return the page body as a markdown string.

        Raises:
            ContentFlattenFailed: the block tree could not be fetched.
        """
        try:
            blocks = await self._list_children(page_id)
            lines = await self._render_blocks(blocks, depth=0)
        except (HTTPResponseError, RequestTimeoutError, httpx.HTTPError) as exc:
            raise ContentFlattenFailed(f"Blocks for page {page_id} unavailable: {exc}") from exc
        content = "\n".join(lines).strip("\n")
        logger.debug("markdown.page_converted", page_id=page_id, chars=len(content))
        return content

    async def _list_children(self, block_id: str) -> list[dict[str, Any]]:
        return await async_collect_paginated_api(
            self._client.blocks.children.list, block_id=block_id, page_size=100
        )

    async def _render_blocks(self, blocks: list[dict[str, Any]], depth: int) -> list[str]:
        lines: list[str] = []
        number = 0
        for block in blocks:
            block_type = block.get("type", "")
            number = number + 1 if block_type == "numbered_list_item" else 0

            if block_type in self._suppressed:
                continue

            rendered = self._render_block(block, depth, number)
            if rendered is not None:
                lines.append(rendered)

            if not block.get("has_children") or block_type in ("child_page", "child_database"):
                continue
            children = await self._list_children(block["id"])
            if block_type in _TRANSPARENT_CONTAINERS:
                lines.extend(await self._render_blocks(children, depth))
            elif block_type == "table":
                lines.extend(self._render_table(children))
            elif block_type in _LIST_ITEMS or block_type == "toggle":
                lines.extend(await self._render_blocks(children, depth + 1))
            else:
                lines.extend(await self._render_blocks(children, depth))
        return lines

    def _render_block(self, block: dict[str, Any], depth: int, number: int) -> str | None:
        block_type = block.get("type", "")
        body = block.get(block_type) or {}
        indent = "  " * depth
        text = rich_text_to_markdown(body.get("rich_text"))

        if block_type == "paragraph":
            return f"{indent}{text}\n" if text else None
        if block_type in ("heading_1", "heading_2", "heading_3"):
            level = int(block_type[-1])
            return f"{'#' * level} {text}\n"
        if block_type == "bulleted_list_item":
            return f"{indent}- {text}"
        if block_type == "numbered_list_item":
            return f"{indent}{number}. {text}"
        if block_type == "to_do":
            checkbox = "[x]" if body.get("checked") else "[ ]"
            return f"{indent}- {checkbox} {text}"
        if block_type == "toggle":
            return f"{indent}- {text}"
        if block_type == "quote":
            return f"{indent}> {text}\n"
        if block_type == "callout":
            icon = (body.get("icon") or {}).get("emoji", "")
            prefix = f"{icon} " if icon else ""
            return f"{indent}> {prefix}{text}\n"
        if block_type == "code":
            language = body.get("language", "")
            if language == "plain text":
                language = ""
            return f"```{language}\n{text}\n```\n"
        if block_type == "equation":
            return f"$$\n{body.get('expression', '')}\n$$\n"
        if block_type == "divider":
            return "---\n"
        if block_type == "child_page":
            return f"{indent}[{body.get('title', '')}](https://www.notion.so/{block['id'].replace('-', '')})\n"
        if block_type == "child_database":
            return f"{indent}{body.get('title', '')}\n"
        if block_type in _TRANSPARENT_CONTAINERS or block_type == "table":
            return None

        logger.debug("markdown.block_skipped", block_type=block_type)
        return None

    def _render_table(self, rows: list[dict[str, Any]]) -> list[str]:
        lines: list[str] = []
        for index, row in enumerate(rows):
            cells = (row.get("table_row") or {}).get("cells") or []
            rendered = [rich_text_to_markdown(cell).replace("|", "\\|") for cell in cells]
            lines.append("| " + " | ".join(rendered) + " |")
            if index == 0:
                lines.append("|" + "|".join(" --- " for _ in rendered) + "|")
        if lines:
            lines.append("")
        return lines
