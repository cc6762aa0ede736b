# rentflow/workers/celery_app.py
from __future__ import annotations

from celery import Celery

from ..config import settings

celery_app = Celery(
    "rentflow",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["rentflow.workers.move_in_tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    timezone="UTC",
)

celery_app.conf.task_routes = {
    "rentflow.workers.move_in_tasks.*": {"queue": "move_in"},
}

# Only used when MOVE_IN_SCHEDULER_MODE=celery; requires celery beat.
celery_app.conf.beat_schedule = {
    "move-in-verification-tick": {
        "task": "rentflow.workers.move_in_tasks.run_verification_tick",
        "schedule": float(settings.move_in_scheduler_interval_minutes * 60),
    },
}
if settings.issue_automation_enabled:
    celery_app.conf.beat_schedule["move-in-issue-automation"] = {
        "task": "rentflow.workers.move_in_tasks.run_issue_automation",
        "schedule": float(settings.issue_automation_interval_minutes * 60),
    }
