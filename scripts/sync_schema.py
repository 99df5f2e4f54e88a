#!/usr/bin/env python3
"""CLI script to create or update the Postgres table for the configured Notion database.

Usage:
    python scripts/sync_schema.py
    python scripts/sync_schema.py --log-level DEBUG

Reads NOTION_API_TOKEN, NOTION_DATABASE_ID and DATABASE_URL from the
environment or the project's .env file. Prints the reconciliation summary.
Exit code 1 if configuration is invalid or any schema statement fails.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

# Ensure project root is on sys.path so we can import src.notion_sync
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


async def sync_schema(log_level: str | None) -> int:
    """Run one schema reconciliation. Returns the process exit code."""
    from src.notion_sync.api.middleware.logging import configure_structlog
    from src.notion_sync.config import load_settings
    from src.notion_sync.core.database import close_db
    from src.notion_sync.core.exceptions import SyncError
    from src.notion_sync.sync.worker import build_worker

    overrides = {"LOG_LEVEL": log_level} if log_level else {}
    try:
        settings = load_settings(**overrides)
    except SyncError as exc:
        print(exc, file=sys.stderr)
        return 1
    configure_structlog(settings.LOG_LEVEL)

    worker = build_worker(settings)
    try:
        print(await worker.sync_schema())
    except SyncError as exc:
        print(f"Schema sync failed: {exc}", file=sys.stderr)
        return 1
    finally:
        await worker.aclose()
        await close_db()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Sync the Notion database schema to Postgres")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, WARN, ERROR)")
    args = parser.parse_args()

    sys.exit(asyncio.run(sync_schema(args.log_level)))


if __name__ == "__main__":
    main()
