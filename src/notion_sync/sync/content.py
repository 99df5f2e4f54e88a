"""Page body flattening with graceful degradation to empty content."""

from __future__ import annotations

from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


class MarkdownConverter(Protocol):
    async def to_markdown(self, page_id: str) -> str: ...


class ContentFlattener:
    """Produce a page's markdown body; failures never fail the record.

    Args:
        converter: Block-to-markdown collaborator (BlockMarkdownConverter in
            production) already configured with the suppressed block kinds.
    """

    def __init__(self, converter: MarkdownConverter) -> None:
        self._converter = converter

    async def flatten(self, page_id: str) -> str:
        try:
            content = await self._converter.to_markdown(page_id)
        except Exception as exc:
            logger.error("content.flatten_failed", page_id=page_id, error=str(exc))
            return ""
        content = content or ""
        logger.info("content.flattened", page_id=page_id, chars=len(content))
        return content
