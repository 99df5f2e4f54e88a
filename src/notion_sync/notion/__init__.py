"""Notion API access -- database schema/query source and block-to-markdown conversion."""

from src.notion_sync.notion.client import NotionSource, QueryPage
from src.notion_sync.notion.markdown import BlockMarkdownConverter, rich_text_to_markdown

__all__ = [
    "BlockMarkdownConverter",
    "NotionSource",
    "QueryPage",
    "rich_text_to_markdown",
]
