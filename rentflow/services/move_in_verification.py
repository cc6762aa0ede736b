# rentflow/services/move_in_verification.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..auth import Principal
from ..config import settings
from ..domain.deadline_policy import (
    REMINDER_THRESHOLDS_HOURS,
    compute_verification_deadline,
    is_within_reminder_window,
    move_in_window,
    reminder_title,
)
from ..errors import Forbidden, InvalidState
from ..models import IssueStatus, MoveInIssue, Offer, VerificationStatus
from ..timeutil import utcnow
from .lease_provisioning import find_offer_lease
from .notifications import NotificationTemplate, notifier
from .ownership import must_get_offer, participants_for_offer

log = logging.getLogger(__name__)

REMINDER_BODY = "Please confirm your move-in or report an issue within the 24h window."
OWNER_LAST_HOUR = NotificationTemplate(
    title="Tenant has 1 hour left to verify move-in",
    body="The tenant has one hour left to confirm move-in or report an issue.",
)
AUTO_CONFIRMED_TENANT = NotificationTemplate(
    title="Move-in auto-confirmed",
    body="Your move-in was automatically confirmed after 24h.",
)
AUTO_CONFIRMED_OWNER = NotificationTemplate(
    title="Tenant move-in auto-confirmed",
    body="The verification window closed without an issue report; move-in is confirmed.",
)
TENANT_VERIFIED = NotificationTemplate(
    title="Tenant verified move-in",
    body="The tenant verified successful move-in.",
)


def open_verification(db: Session, offer: Offer) -> Offer:
    """
    Put a paid offer into the PENDING verification state with its deadline.
    Commits.
    """
    offer.move_in_verification_status = VerificationStatus.PENDING
    offer.move_in_verification_deadline = compute_verification_deadline(offer.lease_start_date)
    offer.move_in_verification_date = None
    offer.updated_at = utcnow()
    db.add(offer)
    db.commit()
    db.refresh(offer)
    return offer


# -------------------------
# scheduler passes
# -------------------------
def run_move_in_reminders(db: Session, *, now: Optional[datetime] = None) -> dict[str, int]:
    now = now or utcnow()
    window_minutes = int(settings.reminder_window_minutes)
    out = {"scanned": 0, "tenant_reminders": 0, "owner_reminders": 0, "skipped": 0}

    offer_ids = db.scalars(
        select(Offer.id)
        .where(
            Offer.move_in_verification_status == VerificationStatus.PENDING,
            Offer.move_in_verification_deadline.is_not(None),
        )
        .order_by(Offer.id.asc())
    ).all()

    for offer_id in offer_ids:
        out["scanned"] += 1
        try:
            sent = _remind_offer(db, offer_id=offer_id, now=now, window_minutes=window_minutes)
        except Exception:
            db.rollback()
            log.exception("reminder failed for offer", extra={"offer_id": offer_id})
            out["skipped"] += 1
            continue
        if sent is None:
            out["skipped"] += 1
            continue
        out["tenant_reminders"] += sent[0]
        out["owner_reminders"] += sent[1]

    log.info("move-in reminder pass done: %s", out)
    return out


def _remind_offer(db: Session, *, offer_id: int, now: datetime, window_minutes: int) -> Optional[tuple[int, int]]:
    # Status re-read: an issue report may have landed since the scan query.
    offer = db.get(Offer, int(offer_id))
    if offer is not None:
        db.refresh(offer)
    if offer is None or offer.move_in_verification_status != VerificationStatus.PENDING:
        return None

    deadline = offer.move_in_verification_deadline
    if deadline is None or deadline <= now:
        return None

    people = participants_for_offer(db, offer)
    tenant_sent = 0
    owner_sent = 0
    for hours in REMINDER_THRESHOLDS_HOURS:
        if not is_within_reminder_window(deadline, now, hours, window_minutes):
            continue

        if people.primary_tenant_id is not None:
            tpl = NotificationTemplate(title=reminder_title(hours), body=REMINDER_BODY)
            if notifier.send_once(db, user_id=people.primary_tenant_id, entity_id=offer.id, template=tpl):
                tenant_sent += 1

        if hours == 1:
            for owner_id in people.owner_ids:
                if notifier.send_once(db, user_id=owner_id, entity_id=offer.id, template=OWNER_LAST_HOUR):
                    owner_sent += 1

    return tenant_sent, owner_sent


def run_move_in_finalization(db: Session, *, now: Optional[datetime] = None) -> dict[str, int]:
    now = now or utcnow()
    out = {"scanned": 0, "finalized": 0, "skipped": 0}

    offer_ids = db.scalars(
        select(Offer.id)
        .where(
            Offer.move_in_verification_status == VerificationStatus.PENDING,
            Offer.move_in_verification_deadline.is_not(None),
            Offer.move_in_verification_deadline <= now,
        )
        .order_by(Offer.id.asc())
    ).all()

    for offer_id in offer_ids:
        out["scanned"] += 1
        try:
            res = db.execute(
                update(Offer)
                .where(
                    Offer.id == int(offer_id),
                    Offer.move_in_verification_status == VerificationStatus.PENDING,
                )
                .values(
                    move_in_verification_status=VerificationStatus.SUCCESS,
                    move_in_verification_date=now,
                    updated_at=now,
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            log.exception("finalization failed for offer", extra={"offer_id": offer_id})
            out["skipped"] += 1
            continue

        if res.rowcount != 1:
            # Lost the race to an issue report or a tenant confirmation.
            out["skipped"] += 1
            continue

        out["finalized"] += 1
        log.info("move-in auto-confirmed", extra={"offer_id": offer_id})

        offer = db.get(Offer, int(offer_id))
        people = participants_for_offer(db, offer)
        if people.primary_tenant_id is not None:
            notifier.send(db, user_id=people.primary_tenant_id, entity_id=offer_id, template=AUTO_CONFIRMED_TENANT)
        notifier.notify(db, people.owner_ids, AUTO_CONFIRMED_OWNER, entity_id=offer_id)

    log.info("move-in finalization pass done: %s", out)
    return out


# -------------------------
# tenant-facing
# -------------------------
def confirm_move_in(db: Session, *, offer_id: int, tenant: Principal, now: Optional[datetime] = None) -> Offer:
    now = now or utcnow()
    offer = must_get_offer(db, offer_id=offer_id)
    people = participants_for_offer(db, offer)
    if not people.is_tenant(tenant.user_id):
        raise Forbidden("only tenant-group members can confirm move-in")

    if offer.move_in_verification_status != VerificationStatus.PENDING:
        raise InvalidState(
            f"move-in verification is {offer.move_in_verification_status or 'not started'}",
            code="not_pending",
        )
    deadline = offer.move_in_verification_deadline
    if deadline is not None and deadline <= now:
        raise InvalidState("move-in verification deadline has passed", code="window_expired")

    res = db.execute(
        update(Offer)
        .where(Offer.id == offer.id, Offer.move_in_verification_status == VerificationStatus.PENDING)
        .values(
            move_in_verification_status=VerificationStatus.SUCCESS,
            move_in_verification_date=now,
            updated_at=now,
        )
    )
    db.commit()
    if res.rowcount != 1:
        raise InvalidState("move-in verification changed concurrently", code="not_pending")

    db.refresh(offer)
    log.info("tenant confirmed move-in", extra={"offer_id": offer.id, "user_id": tenant.user_id})
    notifier.notify(db, people.owner_ids, TENANT_VERIFIED, entity_id=offer.id)
    return offer


def _require_viewer(people, viewer: Principal) -> None:
    if not viewer.is_admin and not people.is_participant(viewer.user_id):
        raise Forbidden("not a participant of this offer")


def get_move_in_status(db: Session, *, offer_id: int, viewer: Principal) -> dict[str, Any]:
    offer = must_get_offer(db, offer_id=offer_id)
    _require_viewer(participants_for_offer(db, offer), viewer)

    deadline = offer.move_in_verification_deadline
    if deadline is None and offer.lease_start_date is not None:
        deadline = compute_verification_deadline(offer.lease_start_date)

    return {
        "offer_id": offer.id,
        "status": offer.move_in_verification_status,
        "deadline": deadline,
        "verified_at": offer.move_in_verification_date,
    }


def get_move_in_ui_state(
    db: Session, *, offer_id: int, viewer: Principal, now: Optional[datetime] = None
) -> dict[str, Any]:
    """What the tenant/landlord screens need to decide which actions to show."""
    now = now or utcnow()
    offer = must_get_offer(db, offer_id=offer_id)
    people = participants_for_offer(db, offer)
    _require_viewer(people, viewer)

    window = move_in_window(offer.lease_start_date, now)
    pending = offer.move_in_verification_status == VerificationStatus.PENDING

    lease = find_offer_lease(db, offer_id=offer.id)
    active_issue_id = None
    if lease is not None:
        active_issue_id = db.scalar(
            select(MoveInIssue.id)
            .where(MoveInIssue.lease_id == lease.id, MoveInIssue.status.in_(tuple(IssueStatus.ACTIVE)))
            .order_by(MoveInIssue.id.desc())
            .limit(1)
        )

    is_member = people.is_participant(viewer.user_id)
    return {
        "offer_id": offer.id,
        "verification_status": offer.move_in_verification_status,
        "deadline": offer.move_in_verification_deadline or window.window_close,
        "lease_id": lease.id if lease else None,
        "active_issue_id": active_issue_id,
        "can_report_issue": is_member and window.is_open,
        "can_confirm": people.is_tenant(viewer.user_id) and pending and window.is_open,
        **window.as_dict(),
    }
