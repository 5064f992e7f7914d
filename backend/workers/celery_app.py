"""
Celery Application Configuration
"""

from celery import Celery

from core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "inflow_connector",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["workers.polling"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "workers.polling.*": {"queue": "polling"},
    },
    # ── Celery Beat Schedule ─────────────────────────────────────────
    # Fans out one poll_watch_job per configured job. Expiring the fan-out
    # after one interval keeps a backlog from stacking overlapping cycles.
    beat_schedule={
        "dispatch-poll-jobs": {
            "task": "workers.polling.dispatch_poll_jobs",
            "schedule": float(settings.poll_interval_seconds),
            "options": {"queue": "polling", "expires": settings.poll_interval_seconds},
        },
    },
)
