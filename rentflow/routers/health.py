# rentflow/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Request

from ..config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request):
    sched = getattr(request.app.state, "verification_scheduler", None)
    return {
        "ok": True,
        "env": settings.app_env,
        "version": settings.app_version,
        "scheduler_mode": settings.move_in_scheduler_mode,
        "scheduler_running": bool(sched and sched.running),
    }
