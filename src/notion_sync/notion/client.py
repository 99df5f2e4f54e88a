"""Notion source adapter -- schema retrieval and paged database queries.

Key implementation details:
- Lazy data_source_id resolution when the SDK speaks API 2025-09-03
  (data_sources namespace); falls back to the databases endpoints otherwise
- Transient failures (rate limiting, 5xx, timeouts) retried with tenacity
  exponential backoff; everything else surfaces as RemoteUnavailable
- Queries always sort by last_edited_time ascending so the watermark taken
  from the last page of a cycle is a valid lower bound for the next one
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
import structlog
from notion_client import APIErrorCode, APIResponseError, AsyncClient
from notion_client.errors import HTTPResponseError, RequestTimeoutError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from src.notion_sync.core.exceptions import RemoteShapeInvalid, RemoteUnavailable

logger = structlog.get_logger(__name__)

_RETRYABLE_CODES = {
    APIErrorCode.RateLimited,
    APIErrorCode.InternalServerError,
    APIErrorCode.ServiceUnavailable,
    APIErrorCode.ConflictError,
}


def _is_transient(exc: BaseException) -> bool:
    """True for Notion failures worth retrying."""
    if isinstance(exc, APIResponseError):
        return exc.code in _RETRYABLE_CODES
    if isinstance(exc, HTTPResponseError):
        return exc.status >= 500 or exc.status == 429
    return isinstance(exc, (RequestTimeoutError, httpx.TransportError))


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)
async def _invoke(method: Any, **kwargs: Any) -> Any:
    # SDK endpoints are plain functions returning awaitables
    return await method(**kwargs)


@dataclass
class QueryPage:
    """One page of database query results."""

    results: list[dict[str, Any]] = field(default_factory=list)
    has_more: bool = False
    next_cursor: str | None = None


class NotionSource:
    """Read-only access to one Notion workspace's databases.

    Args:
        client: notion_client AsyncClient, shared with the content converter.
    """

    def __init__(self, client: AsyncClient) -> None:
        self._client = client
        self._data_sources: dict[str, str] = {}

    @classmethod
    def from_token(cls, token: str) -> NotionSource:
        return cls(AsyncClient(auth=token))

    @property
    def client(self) -> AsyncClient:
        return self._client

    def _uses_data_sources(self) -> bool:
        return hasattr(self._client, "data_sources")

    async def _ensure_data_source(self, database_id: str) -> str:
        """Resolve the data_source_id backing a database (API 2025-09-03).

        Falls back to the database id when the database lists no sources.
        """
        cached = self._data_sources.get(database_id)
        if cached is not None:
            return cached

        db = await self._call(self._client.databases.retrieve, database_id=database_id)
        sources = db.get("data_sources") or []
        data_source_id = sources[0]["id"] if sources else database_id
        if not sources:
            logger.warning("notion.data_source_fallback", database_id=database_id)
        self._data_sources[database_id] = data_source_id
        return data_source_id

    async def retrieve_schema(self, database_id: str) -> dict[str, dict[str, Any]]:
        """Return the database's property definitions keyed by property name.

        Raises:
            RemoteUnavailable: Notion could not be reached or refused the call.
            RemoteShapeInvalid: The response carries no properties section.
        """
        if self._uses_data_sources():
            data_source_id = await self._ensure_data_source(database_id)
            response = await self._call(
                self._client.data_sources.retrieve, data_source_id=data_source_id
            )
        else:
            response = await self._call(self._client.databases.retrieve, database_id=database_id)

        properties = response.get("properties") if isinstance(response, dict) else None
        if not isinstance(properties, dict):
            raise RemoteShapeInvalid(
                f"Unable to retrieve database properties for {database_id}"
            )
        return properties

    async def query(
        self,
        database_id: str,
        page_size: int = 100,
        start_cursor: str | None = None,
        edited_after: datetime | None = None,
    ) -> QueryPage:
        """Fetch one page of records sorted by last edit time ascending.

        start_cursor continues an existing page sequence; edited_after
        restricts the query to pages edited after the watermark.
        """
        params: dict[str, Any] = {
            "page_size": page_size,
            "sorts": [{"timestamp": "last_edited_time", "direction": "ascending"}],
        }
        if start_cursor:
            params["start_cursor"] = start_cursor
        if edited_after is not None:
            params["filter"] = {
                "timestamp": "last_edited_time",
                "last_edited_time": {"after": edited_after.isoformat()},
            }

        if self._uses_data_sources():
            data_source_id = await self._ensure_data_source(database_id)
            response = await self._call(
                self._client.data_sources.query, data_source_id=data_source_id, **params
            )
        else:
            response = await self._call(
                self._client.databases.query, database_id=database_id, **params
            )

        if not isinstance(response, dict) or "results" not in response:
            raise RemoteShapeInvalid(f"Query response for {database_id} has no results")

        page = QueryPage(
            results=list(response["results"]),
            has_more=bool(response.get("has_more")),
            next_cursor=response.get("next_cursor"),
        )
        logger.info(
            "notion.query_complete",
            database_id=database_id,
            count=len(page.results),
            has_more=page.has_more,
        )
        return page

    async def _call(self, method: Any, **kwargs: Any) -> Any:
        """Invoke an SDK endpoint with retries, normalizing failures."""
        try:
            return await _invoke(method, **kwargs)
        except (HTTPResponseError, RequestTimeoutError, httpx.HTTPError) as exc:
            logger.error("notion.call_failed", error=str(exc))
            raise RemoteUnavailable(f"Notion request failed: {exc}") from exc

    async def aclose(self) -> None:
        await self._client.aclose()
