# rentflow/services/admin_decisions.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..auth import Principal
from ..config import settings
from ..domain.audit import audit_write
from ..domain.decisions import AdminDecision
from ..errors import AlreadyDecided, Forbidden, ValidationError
from ..models import Lease, LeaseStatus, MoveInIssue, Property, PropertyStatus
from ..timeutil import utcnow
from .notifications import NotificationTemplate, notifier
from .ownership import display_name, must_get_issue, participants_for_lease

log = logging.getLogger(__name__)


@dataclass
class DecisionOutcome:
    issue: MoveInIssue
    decision: AdminDecision
    actions: dict[str, Any] = field(default_factory=dict)


def _parse_refund(raw: Any) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValidationError("refund amount must be a number", code="invalid_refund")


def apply_admin_decision(
    db: Session,
    *,
    issue_id: int,
    decision: Any,
    admin: Principal,
    notes: Optional[str] = None,
    refund_amount: Any = None,
    today: Optional[date] = None,
) -> DecisionOutcome:
    """
    Record a one-time admin decision on a move-in issue.

    The decision row is written with a conditional update on
    admin_decision IS NULL, so concurrent deciders get AlreadyDecided.
    Audit entry and approval side effects run after that commit; their
    failures are logged and reported in `actions`, never raised.
    """
    if not admin.is_admin:
        raise Forbidden("admin decisions require the ADMIN role")

    d = AdminDecision.parse(decision)
    refund = _parse_refund(refund_amount)
    hold_until: Optional[date] = None
    if d.is_approval:
        if refund is None or refund <= 0:
            raise ValidationError("refund amount greater than 0 is required to approve", code="invalid_refund")
        hold_until = (today or utcnow().date()) + timedelta(days=int(settings.property_hold_days))
    else:
        refund = None

    issue = must_get_issue(db, issue_id=issue_id)
    notes_s = (notes or "").strip() or None
    now = utcnow()

    values: dict[str, Any] = {
        "admin_decision": d.value,
        "admin_decision_at": now,
        "admin_decision_by": admin.user_id,
        "admin_notes": notes_s,
        "status": d.resulting_status,
        "updated_at": now,
    }
    if d.is_approval:
        values["refund_amount"] = refund
        values["property_hold_until"] = hold_until

    res = db.execute(
        update(MoveInIssue)
        .where(MoveInIssue.id == issue.id, MoveInIssue.admin_decision.is_(None))
        .values(**values)
    )
    if res.rowcount != 1:
        db.rollback()
        raise AlreadyDecided("issue already has an admin decision")
    db.commit()
    db.refresh(issue)
    log.info(
        "admin decision recorded",
        extra={"issue_id": issue.id, "user_id": admin.user_id, "decision": d.value},
    )

    lease = issue.lease
    people = participants_for_lease(db, lease)
    actions: dict[str, Any] = {"audit_logged": _write_audit(db, issue=issue, lease=lease, decision=d, admin=admin, people=people)}

    if d.is_approval:
        actions.update(_apply_approval_effects(db, issue=issue, lease=lease, people=people))

    actions["notified"] = notifier.notify(
        db,
        people.all_ids,
        NotificationTemplate(
            title=f"Admin decision: {d.value}",
            body=(
                f"An administrator has made a decision on your move-in issue: {d.value}."
                + (f" Notes: {notes_s}" if notes_s else "")
            ),
        ),
        entity_id=issue.id,
    )
    return DecisionOutcome(issue=issue, decision=d, actions=actions)


def _write_audit(db: Session, *, issue: MoveInIssue, lease: Lease, decision: AdminDecision, admin: Principal, people) -> bool:
    try:
        audit_write(
            db,
            admin_id=admin.user_id,
            action=decision.audit_action,
            resource_type="MoveInIssue",
            resource_id=issue.id,
            details={
                "decision": decision.value,
                "notes": issue.admin_notes,
                "issue_title": issue.title,
                "lease_id": lease.id,
                "property_id": lease.property_id,
                "tenant_name": display_name(db, people.primary_tenant_id),
                "landlord_name": display_name(db, people.owner_ids[0] if people.owner_ids else None),
                "refund_amount": issue.refund_amount,
                "timestamp": issue.admin_decision_at,
            },
            commit=True,
        )
        return True
    except Exception:
        db.rollback()
        log.exception("audit write failed for admin decision", extra={"issue_id": issue.id})
        return False


def _apply_approval_effects(db: Session, *, issue: MoveInIssue, lease: Lease, people) -> dict[str, Any]:
    """Cancel lease, hold property, tell both sides. Each step skips work already done."""
    out: dict[str, Any] = {"lease_cancelled": False, "property_held": False, "refund_notified": False, "hold_notified": 0}
    now = utcnow()

    try:
        res = db.execute(
            update(Lease)
            .where(Lease.id == lease.id, Lease.status != LeaseStatus.CANCELLED)
            .values(status=LeaseStatus.CANCELLED, updated_at=now)
        )
        db.commit()
        out["lease_cancelled"] = res.rowcount == 1
    except Exception:
        db.rollback()
        log.exception("lease cancellation failed", extra={"issue_id": issue.id, "lease_id": lease.id})
        out["lease_cancelled"] = None

    try:
        res = db.execute(
            update(Property)
            .where(
                Property.id == lease.property_id,
                (Property.status != PropertyStatus.HOLD) | (Property.availability.is_(True)),
            )
            .values(status=PropertyStatus.HOLD, availability=False, updated_at=now)
        )
        db.commit()
        out["property_held"] = res.rowcount == 1
    except Exception:
        db.rollback()
        log.exception("property hold failed", extra={"issue_id": issue.id, "property_id": lease.property_id})
        out["property_held"] = None

    hold_until = issue.property_hold_until
    if people.primary_tenant_id is not None:
        sent = notifier.send_once(
            db,
            user_id=people.primary_tenant_id,
            entity_id=issue.id,
            template=NotificationTemplate(
                title="Move-in issue approved - Refund processing",
                body=(
                    "Your move-in issue has been approved by an administrator. "
                    f"A refund of ${issue.refund_amount:.2f} is being processed."
                ),
            ),
        )
        out["refund_notified"] = sent is not None

    hold_tpl = NotificationTemplate(
        title="Property on hold - Update required",
        body=(
            f"Your property has been placed on hold until {hold_until.isoformat() if hold_until else 'further notice'}. "
            "Please update your property listing during this period."
        ),
    )
    for owner_id in people.owner_ids:
        if notifier.send_once(db, user_id=owner_id, entity_id=issue.id, template=hold_tpl) is not None:
            out["hold_notified"] += 1

    return out


def decision_summary(db: Session, *, issue_id: int, viewer: Principal) -> dict[str, Any]:
    if not viewer.is_admin:
        raise Forbidden("decision summary requires the ADMIN role")
    issue = must_get_issue(db, issue_id=issue_id)
    lease = issue.lease
    return {
        "issue_id": issue.id,
        "status": issue.status,
        "admin_decision": issue.admin_decision,
        "admin_decision_at": issue.admin_decision_at,
        "admin_decision_by": issue.admin_decision_by,
        "admin_notes": issue.admin_notes,
        "refund_amount": issue.refund_amount,
        "property_hold_until": issue.property_hold_until,
        "lease_id": lease.id if lease else None,
        "lease_status": lease.status if lease else None,
    }
