"""
Change Detector — one poll cycle: load → fetch → detect → save.

The detector is a thin router around the resource watchers. It owns the
cycle lifecycle:

  1. Resolve the watcher for the job's event (configuration errors raise).
  2. Load the job's checkpoint and read the clock.
  3. Fetch one snapshot page.
  4. First run (or no slice yet for the watched resource): record the
     baseline, emit nothing.
     Later runs: diff against the baseline and emit.
  5. Save the new checkpoint exactly once.

Any failure in steps 2-5 is logged and swallowed: the cycle yields no
events, the stored checkpoint is left as it was, and the next scheduled
cycle re-diffs against the last good state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable

import structlog

from integrations.inflow import PAGE_SIZE
from polling.models import EmittedEvent, PollJobConfig, ResourceState, utc_now
from polling.snapshot import ResourceClient, SnapshotFetcher
from polling.store import CheckpointStore
from polling.watchers import get_watcher

logger = structlog.get_logger()


class PollStatus(str, Enum):
    """Outcome of one poll cycle."""

    BOOTSTRAPPED = "bootstrapped"
    EVENTS = "events"
    NO_CHANGES = "no_changes"
    FAILED = "failed"


@dataclass
class PollResult:
    """Standardized return from every poll cycle."""

    status: PollStatus
    job_key: str
    events: list[EmittedEvent] = field(default_factory=list)
    records_seen: int = 0
    error: str | None = None

    def items(self) -> list[dict[str, Any]] | None:
        """Events in the caller-facing shape; None when there is nothing to dispatch."""
        if not self.events:
            return None
        return [event.to_item() for event in self.events]


class ChangeDetector:
    """Runs poll cycles for jobs against a checkpoint store."""

    def __init__(
        self,
        client: ResourceClient,
        store: CheckpointStore,
        *,
        page_size: int = PAGE_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.fetcher = SnapshotFetcher(client, page_size=page_size)
        self.store = store
        self.clock = clock

    async def poll(self, job: PollJobConfig) -> list[dict[str, Any]] | None:
        """Run one cycle; return ``[{"json": {"event", "data"}}, ...]`` or None."""
        result = await self.run_cycle(job)
        return result.items()

    async def run_cycle(self, job: PollJobConfig) -> PollResult:
        watcher = get_watcher(job.event)
        log = logger.bind(event=job.event.value, job_key=job.key)

        bootstrapping = False
        polled_at = self.clock()

        try:
            checkpoint = self.store.load(job.key)
            # A shared job_id may carry slices for other resources only.
            bootstrapping = not checkpoint.is_initialized or watcher.resource not in checkpoint.resources
            snapshot = await self.fetcher.fetch(job.event, job.options)

            if bootstrapping:
                _, state = watcher.detect(ResourceState(), snapshot, since=None)
                events: list[EmittedEvent] = []
            else:
                events, state = watcher.detect(
                    checkpoint.state_for(watcher.resource),
                    snapshot,
                    since=checkpoint.last_poll_time,
                )

            self.store.save(job.key, checkpoint.advance(watcher.resource, state, polled_at))
        except Exception as exc:  # noqa: BLE001
            log.error(
                "poll.cycle.failed",
                bootstrap=bootstrapping,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return PollResult(status=PollStatus.FAILED, job_key=job.key, error=str(exc))

        if bootstrapping:
            log.info("poll.bootstrap.completed", records_seen=len(snapshot))
            return PollResult(status=PollStatus.BOOTSTRAPPED, job_key=job.key, records_seen=len(snapshot))

        log.info("poll.cycle.completed", records_seen=len(snapshot), events=len(events))
        return PollResult(
            status=PollStatus.EVENTS if events else PollStatus.NO_CHANGES,
            job_key=job.key,
            events=events,
            records_seen=len(snapshot),
        )
