"""
Poll Workers — timer-driven change detection for inFlow Inventory.

Workers:
  1. dispatch_poll_jobs: Beat entrypoint; parses POLL_JOBS and fans out one task per job
  2. poll_watch_job: Runs one poll cycle for one job and routes emitted events downstream

Each job keeps its checkpoint under POLL_CHECKPOINT_DIR. Cycles for the same
job must not overlap; run the ``polling`` queue with a single worker slot.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any

import structlog

from polling.models import PollJobConfig
from workers.celery_app import celery_app

logger = structlog.get_logger()


def load_poll_jobs(raw: str) -> list[PollJobConfig]:
    """Parse the POLL_JOBS setting.

    Raises:
        ValueError: If the payload is not a JSON list of job objects, or a
            job names an unsupported event.
    """
    if not raw or not raw.strip():
        return []
    payload = json.loads(raw)
    if not isinstance(payload, list):
        raise ValueError("POLL_JOBS must be a JSON list of job objects")

    jobs: list[PollJobConfig] = []
    for entry in payload:
        if isinstance(entry, str):
            entry = {"event": entry}
        if not isinstance(entry, dict):
            raise ValueError(f"Invalid poll job entry: {entry!r}")
        jobs.append(PollJobConfig.from_dict(entry))

    keys = [job.key for job in jobs]
    duplicates = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates:
        raise ValueError(f"Duplicate poll job keys: {duplicates}")
    return jobs


@celery_app.task(
    name="workers.polling.dispatch_poll_jobs",
    bind=True,
    acks_late=True,
)
def dispatch_poll_jobs(self):
    """
    Fan out one poll_watch_job per configured job.
    Scheduled via Celery Beat (every POLL_INTERVAL_SECONDS).
    """
    from core.config import get_settings

    run_id = self.request.id or "manual"
    settings = get_settings()

    try:
        jobs = load_poll_jobs(settings.poll_jobs)
    except ValueError as exc:
        logger.error("poll.dispatch.invalid_jobs", error=str(exc), run_id=run_id)
        return {"status": "failed", "reason": "invalid_poll_jobs", "error": str(exc), "run_id": run_id}

    for job in jobs:
        celery_app.send_task(
            "workers.polling.poll_watch_job",
            kwargs={"job": job.to_dict()},
            expires=settings.poll_interval_seconds,
        )

    summary = {
        "status": "success",
        "job_count": len(jobs),
        "jobs": [job.key for job in jobs],
        "triggered_at": datetime.now(timezone.utc).isoformat(),
        "run_id": run_id,
    }
    logger.info("poll.dispatch.complete", **summary)
    return summary


@celery_app.task(
    name="workers.polling.poll_watch_job",
    bind=True,
    acks_late=True,
)
def poll_watch_job(self, job: dict[str, Any]):
    """
    Run one poll cycle for a job.

    Flow:
      1. Validate the job config (unsupported events fail here, before any fetch)
      2. Build the inFlow client and the job's file checkpoint store
      3. Run the cycle (fetch failures are logged by the detector, not raised)
      4. Send each emitted event to POLL_EVENT_TASK, when configured
    """
    from core.config import get_settings
    from integrations.inflow import InFlowClient
    from polling.detector import ChangeDetector
    from polling.store import FileCheckpointStore

    run_id = self.request.id or "manual"
    config = PollJobConfig.from_dict(job)
    settings = get_settings()

    async def _poll():
        client = InFlowClient.from_settings(settings)
        detector = ChangeDetector(
            client,
            FileCheckpointStore(settings.poll_checkpoint_dir),
            page_size=settings.poll_page_size,
        )
        return await detector.run_cycle(config)

    result = asyncio.run(_poll())
    items = result.items() or []

    routed = 0
    if items and settings.poll_event_task:
        for item in items:
            celery_app.send_task(
                settings.poll_event_task,
                kwargs={"job_key": config.key, "event": item["json"]["event"], "data": item["json"]["data"]},
            )
            routed += 1

    summary = {
        "status": result.status.value,
        "job_key": config.key,
        "event": config.event.value,
        "records_seen": result.records_seen,
        "event_count": len(items),
        "routed_count": routed,
        "run_id": run_id,
    }
    if result.error:
        summary["error"] = result.error
    logger.info("poll.job.complete", **summary)
    return {**summary, "events": items}
