"""Celery application configuration for scheduled transform runs."""

import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_shutdown

from config.settings import settings
from teampulse.utils.database import cleanup_connections

logger = logging.getLogger(__name__)


def _schedule_minutes(minutes: int) -> str:
    """Crontab minute field for "every N minutes" (N clamped to 1..60)."""
    minutes = max(1, min(60, minutes))
    return "*" if minutes == 1 else f"*/{minutes}"


celery_app = Celery(
    "teampulse",
    include=[
        "teampulse.tasks.transform_tasks",
    ],
)

celery_app.conf.update(
    broker_url=settings.scheduler.broker_url,
    result_backend=settings.scheduler.result_backend,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=60 * 60,  # Matches the default transform lease
    task_soft_time_limit=55 * 60,
    worker_max_tasks_per_child=50,
    broker_connection_retry_on_startup=True,
    result_backend_table_prefix="celery_",
    result_expires=3600,
    # Only ack after the task finishes so a worker restart re-queues the run.
    # A re-queued run that finds the source still leased returns
    # "already in progress" instead of running twice.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "transform-all-sources": {
        "task": "teampulse.tasks.transform_tasks.transform_all_sources",
        "schedule": crontab(minute=_schedule_minutes(settings.scheduler.transform_schedule_minutes)),
    },
}


def on_worker_process_shutdown(**kwargs):
    """Release pooled connections when a worker child exits."""
    cleanup_connections()


worker_process_shutdown.connect(on_worker_process_shutdown)

__all__ = ["celery_app"]
