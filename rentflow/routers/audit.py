# rentflow/routers/audit.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..auth import Principal, require_admin
from ..db import get_db
from ..domain.audit import loads_details
from ..models import AuditLog
from ..schemas import AuditLogOut

router = APIRouter(prefix="/admin/audit-logs", tags=["audit"])


@router.get("", response_model=list[AuditLogOut])
def list_audit_logs(
    resource_type: str | None = Query(default=None),
    resource_id: str | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=500),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    q = select(AuditLog).order_by(desc(AuditLog.id))
    if resource_type:
        q = q.where(AuditLog.resource_type == resource_type)
    if resource_id:
        q = q.where(AuditLog.resource_id == resource_id)
    return [
        AuditLogOut(
            id=row.id,
            admin_id=row.admin_id,
            action=row.action,
            resource_type=row.resource_type,
            resource_id=row.resource_id,
            details=loads_details(row.details_json),
            timestamp=row.timestamp,
        )
        for row in db.scalars(q.limit(limit)).all()
    ]
