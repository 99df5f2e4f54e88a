"""Async SQLAlchemy engine for the target Postgres database.

Provides:
- normalize_database_url(): postgres:// URLs -> postgresql+asyncpg://
- get_engine(): lazily created, process-wide engine
- close_db(): dispose the engine on shutdown
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.notion_sync.config import get_settings

# ── Module-level engine (lazy init) ────────────────────────────────────────

_engine: AsyncEngine | None = None


def normalize_database_url(url: str) -> str:
    """Point plain postgres URLs at the asyncpg driver.

    Query-string options asyncpg does not understand (sslmode, channel_binding)
    are translated or dropped.
    """
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            url = "postgresql+asyncpg://" + url[len(prefix):]
            break

    base, _, query = url.partition("?")
    if not query:
        return url
    options = []
    for option in query.split("&"):
        key, _, value = option.partition("=")
        if key == "sslmode":
            options.append(f"ssl={value}")
        elif key != "channel_binding":
            options.append(option)
    return f"{base}?{'&'.join(options)}" if options else base


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            normalize_database_url(settings.DATABASE_URL),
            pool_size=5,
            max_overflow=0,
            pool_pre_ping=True,
            echo=False,
        )
    return _engine


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None
