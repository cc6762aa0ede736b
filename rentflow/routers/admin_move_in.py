# rentflow/routers/admin_move_in.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, require_admin
from ..db import get_db
from ..schemas import AdminQueueOut, MoveInIssueOut
from ..services import move_in_issues
from ..services.verification_scheduler import run_automation_tick, run_verification_tick
from ..services.move_in_verification import run_move_in_finalization, run_move_in_reminders

router = APIRouter(tags=["admin-move-in"])


@router.get("/admin/move-in/issues", response_model=AdminQueueOut)
def admin_queue(
    status: Optional[str] = Query(default=None, description="Comma-separated statuses; default OPEN,ESCALATED"),
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    statuses = [s for s in (status or "").split(",") if s.strip()]
    res = move_in_issues.list_admin_queue(db, statuses=statuses, page=page, limit=limit)
    return {
        "items": [MoveInIssueOut.model_validate(i) for i in res.items],
        "total": res.total,
        "page": res.page,
        "limit": res.limit,
    }


# Manual triggers: same passes the scheduler runs.
@router.post("/move-in/_run/reminders")
def run_reminders(db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return {"ok": True, "result": run_move_in_reminders(db)}


@router.post("/move-in/_run/finalize")
def run_finalize(db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return {"ok": True, "result": run_move_in_finalization(db)}


@router.post("/move-in/_run/tick")
def run_tick(p: Principal = Depends(require_admin)):
    return {"ok": True, "result": run_verification_tick()}


@router.post("/move-in/_run/automation")
def run_automation(p: Principal = Depends(require_admin)):
    return {"ok": True, "result": run_automation_tick()}
