# rentflow/workers/move_in_tasks.py
from __future__ import annotations

from ..services import verification_scheduler
from .celery_app import celery_app


@celery_app.task(name="rentflow.workers.move_in_tasks.run_verification_tick")
def run_verification_tick() -> dict:
    """
    Reminders + auto-finalization, same as one in-process scheduler tick.

    Requires celery-beat (see celery_app.beat_schedule). Both passes are
    idempotent, so an overlapping or repeated delivery is harmless.
    """
    return verification_scheduler.run_verification_tick()


@celery_app.task(name="rentflow.workers.move_in_tasks.run_issue_automation")
def run_issue_automation() -> dict:
    return verification_scheduler.run_automation_tick()
