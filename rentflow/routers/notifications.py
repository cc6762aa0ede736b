# rentflow/routers/notifications.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..models import Notification
from ..schemas import NotificationOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = Query(default=False),
    entity_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    q = select(Notification).where(Notification.user_id == p.user_id).order_by(desc(Notification.id))
    if unread_only:
        q = q.where(Notification.is_read.is_(False))
    if entity_id:
        q = q.where(Notification.entity_id == entity_id)
    return list(db.scalars(q.limit(limit)).all())
