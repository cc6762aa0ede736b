# rentflow/services/verification_scheduler.py
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from ..config import settings
from ..db import SessionLocal
from .issue_automation import run_issue_automation
from .move_in_verification import run_move_in_finalization, run_move_in_reminders

log = logging.getLogger(__name__)

VERIFICATION_JOB_ID = "move_in_verification_tick"
AUTOMATION_JOB_ID = "move_in_issue_automation"


def run_verification_tick(
    *, now: Optional[datetime] = None, session_factory: Callable[[], Session] = SessionLocal
) -> dict[str, Any]:
    """
    One scheduler tick: reminders, then finalization. Each pass gets its own
    session. Errors are logged, never raised; the next tick retries.
    """
    out: dict[str, Any] = {"reminders": None, "finalization": None}
    for key, fn in (("reminders", run_move_in_reminders), ("finalization", run_move_in_finalization)):
        db = session_factory()
        try:
            out[key] = fn(db, now=now)
        except Exception:
            db.rollback()
            log.exception("move-in %s pass failed", key, extra={"tick": key})
            out[key] = {"error": True}
        finally:
            db.close()
    return out


def run_automation_tick(
    *, now: Optional[datetime] = None, session_factory: Callable[[], Session] = SessionLocal
) -> dict[str, Any]:
    db = session_factory()
    try:
        return run_issue_automation(db, now=now)
    except Exception:
        db.rollback()
        log.exception("move-in issue automation failed", extra={"tick": "automation"})
        return {"error": True}
    finally:
        db.close()


class VerificationScheduler:
    """
    In-process scheduler for the move-in passes.

    Owned by the app lifespan: start() on startup, stop() on shutdown.
    Both are idempotent.
    """

    def __init__(
        self,
        *,
        interval_minutes: Optional[int] = None,
        automation_enabled: Optional[bool] = None,
        automation_interval_minutes: Optional[int] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.interval_minutes = int(interval_minutes or settings.move_in_scheduler_interval_minutes)
        self.automation_enabled = (
            settings.issue_automation_enabled if automation_enabled is None else bool(automation_enabled)
        )
        self.automation_interval_minutes = int(
            automation_interval_minutes or settings.issue_automation_interval_minutes
        )
        self.session_factory = session_factory
        self._scheduler: Optional[BackgroundScheduler] = None
        self._running = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        with self._lock:
            if self._running:
                return False
            sched = BackgroundScheduler(timezone="UTC")
            sched.add_job(
                self.run_once,
                trigger=IntervalTrigger(minutes=self.interval_minutes),
                id=VERIFICATION_JOB_ID,
                name="Move-in reminders and auto-finalization",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            if self.automation_enabled:
                sched.add_job(
                    self.run_automation,
                    trigger=IntervalTrigger(minutes=self.automation_interval_minutes),
                    id=AUTOMATION_JOB_ID,
                    name="Move-in issue escalation and auto-close",
                    max_instances=1,
                    coalesce=True,
                    replace_existing=True,
                )
            sched.start()
            self._scheduler = sched
            self._running = True
        log.info(
            "move-in verification scheduler started (every %s min, automation=%s)",
            self.interval_minutes,
            self.automation_enabled,
        )
        return True

    def stop(self) -> bool:
        with self._lock:
            if not self._running:
                return False
            sched = self._scheduler
            self._scheduler = None
            self._running = False
        if sched is not None:
            sched.shutdown(wait=False)
        log.info("move-in verification scheduler stopped")
        return True

    def job_ids(self) -> list[str]:
        sched = self._scheduler
        if sched is None:
            return []
        return [job.id for job in sched.get_jobs()]

    def run_once(self, now: Optional[datetime] = None) -> dict[str, Any]:
        return run_verification_tick(now=now, session_factory=self.session_factory)

    def run_automation(self, now: Optional[datetime] = None) -> dict[str, Any]:
        return run_automation_tick(now=now, session_factory=self.session_factory)
