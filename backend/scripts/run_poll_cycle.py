#!/usr/bin/env python3
"""Run one poll cycle for a watch job and print the outcome as JSON.

The first run for a job only records a baseline; run it again to see events.

Examples:
  python backend/scripts/run_poll_cycle.py salesOrder.fulfilled
  python backend/scripts/run_poll_cycle.py inventory.changed --location Main --pretty
  python backend/scripts/run_poll_cycle.py product.created --checkpoint-dir /tmp/poll --page-size 10
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import get_settings
from integrations.inflow import InFlowClient
from polling.detector import ChangeDetector
from polling.models import PollJobConfig, PollOptions, UnsupportedWatchEventError, WatchedEvent
from polling.store import FileCheckpointStore


async def _run(job: PollJobConfig, *, checkpoint_dir: str, page_size: int) -> dict[str, Any]:
    settings = get_settings()
    detector = ChangeDetector(
        InFlowClient.from_settings(settings),
        FileCheckpointStore(checkpoint_dir),
        page_size=page_size,
    )
    result = await detector.run_cycle(job)
    summary: dict[str, Any] = {
        "status": result.status.value,
        "job_key": result.job_key,
        "records_seen": result.records_seen,
        "events": result.items() or [],
    }
    if result.error:
        summary["error"] = result.error
    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Run one inFlow poll cycle")
    parser.add_argument("event", help=f"Watched event, one of: {', '.join(e.value for e in WatchedEvent)}")
    parser.add_argument("--location", default=None, help="Location filter passed through to the fetch")
    parser.add_argument("--category", default=None, help="Category filter passed through to the fetch")
    parser.add_argument("--job-id", default=None, help="Checkpoint key override")
    parser.add_argument("--checkpoint-dir", default=None, help="Defaults to POLL_CHECKPOINT_DIR")
    parser.add_argument("--page-size", type=int, default=None, help="Defaults to POLL_PAGE_SIZE")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output")
    args = parser.parse_args()

    try:
        job = PollJobConfig(
            event=args.event,
            options=PollOptions(location_filter=args.location, category_filter=args.category),
            job_id=args.job_id,
        )
    except UnsupportedWatchEventError as exc:
        print(json.dumps({"status": "failed", "error": str(exc)}))
        return 2

    settings = get_settings()
    summary = asyncio.run(
        _run(
            job,
            checkpoint_dir=args.checkpoint_dir or settings.poll_checkpoint_dir,
            page_size=args.page_size or settings.poll_page_size,
        )
    )

    if args.pretty:
        print(json.dumps(summary, indent=2, sort_keys=True, default=str))
    else:
        print(json.dumps(summary, default=str))

    return 1 if summary["status"] == "failed" else 0


if __name__ == "__main__":
    raise SystemExit(main())
