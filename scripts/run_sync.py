#!/usr/bin/env python3
"""CLI script to run sync batches, persisting the resumable state in a JSON file.

Usage:
    python scripts/run_sync.py --state-file .sync_state.json
    python scripts/run_sync.py --state-file .sync_state.json --until-done
    python scripts/run_sync.py --state-file .sync_state.json --reset

Each invocation runs one batch (or, with --until-done, batches until the
current cycle is drained) and writes nextState back to the state file. A
batch with nothing new leaves the stored state untouched.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

# Ensure project root is on sys.path so we can import src.notion_sync
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from dotenv import load_dotenv  # noqa: E402

# Load .env from project root
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))


def read_state(path: Path) -> dict | None:
    if not path.exists():
        return None
    content = path.read_text(encoding="utf-8").strip()
    return json.loads(content) if content else None


def write_state(path: Path, state: dict | None) -> None:
    path.write_text(json.dumps(state, indent=2) + "\n", encoding="utf-8")


async def run(state_file: Path, until_done: bool, max_batches: int) -> int:
    """Run sync batches from the stored state. Returns the process exit code."""
    from src.notion_sync.api.middleware.logging import configure_structlog
    from src.notion_sync.config import load_settings
    from src.notion_sync.core.database import close_db
    from src.notion_sync.core.exceptions import SyncError
    from src.notion_sync.sync.worker import build_worker

    try:
        settings = load_settings()
    except SyncError as exc:
        print(exc, file=sys.stderr)
        return 1
    configure_structlog(settings.LOG_LEVEL)

    state = read_state(state_file)
    worker = build_worker(settings)
    total_processed = 0
    total_errors = 0
    try:
        for batch in range(1, max_batches + 1):
            output, batch_output = await worker.run_batch(state)
            result = batch_output.result
            total_processed += result.processed_count
            total_errors += result.error_count
            for error in result.errors:
                print(f"  ! {error}", file=sys.stderr)

            if output["nextState"] is not None:
                state = output["nextState"]
                write_state(state_file, state)
            print(
                f"Batch {batch}: processed={result.processed_count} "
                f"errors={result.error_count} hasMore={output['hasMore']}"
            )
            if not (until_done and output["hasMore"]):
                break
    except SyncError as exc:
        print(f"Sync failed: {exc}", file=sys.stderr)
        return 1
    finally:
        await worker.aclose()
        await close_db()

    print(f"Done: processed={total_processed} errors={total_errors}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run Notion -> Postgres sync batches")
    parser.add_argument("--state-file", default=".sync_state.json", help="JSON file holding the sync state")
    parser.add_argument("--until-done", action="store_true", help="Keep running batches while hasMore is true")
    parser.add_argument("--max-batches", type=int, default=1000, help="Upper bound on batches with --until-done")
    parser.add_argument("--reset", action="store_true", help="Discard stored state and start a full first run")
    args = parser.parse_args()

    state_file = Path(args.state_file)
    if args.reset and state_file.exists():
        state_file.unlink()

    sys.exit(asyncio.run(run(state_file, args.until_done, args.max_batches)))


if __name__ == "__main__":
    main()
