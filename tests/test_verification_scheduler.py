from __future__ import annotations

from datetime import timedelta

from conftest import START, make_world
from rentflow.db import SessionLocal
from rentflow.models import Offer, VerificationStatus
from rentflow.services import verification_scheduler
from rentflow.services.verification_scheduler import (
    AUTOMATION_JOB_ID,
    VERIFICATION_JOB_ID,
    VerificationScheduler,
    run_verification_tick,
)


def test_start_and_stop_are_idempotent():
    sched = VerificationScheduler(interval_minutes=5, automation_enabled=False)
    try:
        assert sched.start() is True
        assert sched.start() is False
        assert sched.running
        assert sched.job_ids() == [VERIFICATION_JOB_ID]
    finally:
        assert sched.stop() is True
    assert sched.stop() is False
    assert not sched.running
    assert sched.job_ids() == []


def test_automation_job_is_opt_in():
    sched = VerificationScheduler(automation_enabled=True, automation_interval_minutes=60)
    try:
        sched.start()
        assert sorted(sched.job_ids()) == sorted([VERIFICATION_JOB_ID, AUTOMATION_JOB_ID])
    finally:
        sched.stop()


def test_tick_runs_both_passes(db):
    w = make_world(db)
    out = run_verification_tick(now=START + timedelta(hours=24, minutes=1))
    assert out["reminders"]["scanned"] == 1
    assert out["finalization"]["finalized"] == 1

    check = SessionLocal()
    try:
        assert check.get(Offer, w.offer_id).move_in_verification_status == VerificationStatus.SUCCESS
    finally:
        check.close()


def test_failing_pass_is_logged_not_raised(db, monkeypatch, caplog):
    make_world(db)

    def boom(db, *, now=None):
        raise RuntimeError("db down")

    monkeypatch.setattr(verification_scheduler, "run_move_in_reminders", boom)
    out = VerificationScheduler().run_once(now=START + timedelta(hours=25))

    assert out["reminders"] == {"error": True}
    assert out["finalization"]["finalized"] == 1
    assert "move-in reminders pass failed" in caplog.text
