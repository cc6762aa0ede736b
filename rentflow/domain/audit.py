# rentflow/domain/audit.py
from __future__ import annotations

import json
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models import AuditLog
from ..timeutil import utcnow


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def loads_details(s: Optional[str]) -> dict[str, Any]:
    if not s:
        return {}
    try:
        x = json.loads(s)
    except ValueError:
        return {}
    return x if isinstance(x, dict) else {}


def audit_write(
    db: Session,
    *,
    admin_id: int,
    action: str,
    resource_type: str,
    resource_id: Any,
    details: Optional[dict[str, Any]] = None,
    commit: bool = False,
) -> AuditLog:
    """
    Append-only audit writer.

    - Does NOT commit by default (so services can bundle writes in one txn).
    - Returns the AuditLog row for tests / introspection.
    """
    row = AuditLog(
        admin_id=int(admin_id),
        action=str(action),
        resource_type=str(resource_type),
        resource_id=str(resource_id),
        details_json=_dumps(details),
        timestamp=utcnow(),
    )
    db.add(row)
    if commit:
        db.commit()
        db.refresh(row)
    return row
