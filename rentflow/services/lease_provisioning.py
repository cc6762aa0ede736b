# rentflow/services/lease_provisioning.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import InvalidState
from ..models import Lease, LeaseStatus, Offer, Property, Unit
from ..timeutil import utcnow

log = logging.getLogger(__name__)

DEFAULT_UNIT_LABEL = "Main unit"


def find_offer_lease(db: Session, *, offer_id: int) -> Optional[Lease]:
    """The offer's most recent lease, whatever its status."""
    return db.scalar(
        select(Lease)
        .where(Lease.offer_id == int(offer_id))
        .order_by(Lease.id.desc())
        .limit(1)
    )


def ensure_default_unit(db: Session, *, property_id: int) -> Unit:
    unit = db.scalar(select(Unit).where(Unit.property_id == int(property_id)).order_by(Unit.id.asc()).limit(1))
    if unit is not None:
        return unit

    unit = Unit(property_id=int(property_id), label=DEFAULT_UNIT_LABEL, created_at=utcnow())
    db.add(unit)
    db.flush()
    log.info("created default unit", extra={"property_id": property_id})
    return unit


def _require_open(lease: Lease) -> Lease:
    if lease.status in LeaseStatus.CLOSED:
        raise InvalidState(f"lease for this offer is {lease.status}", code="lease_closed")
    return lease


def ensure_lease_for_offer(db: Session, offer: Offer) -> Lease:
    """
    Idempotent: returns the offer's lease or creates one from the offer terms.
    A cancelled/terminated/ended lease is never replaced; InvalidState instead.

    Flushes but does not commit; the caller owns the transaction. When a
    concurrent caller inserts first, the transaction is rolled back and the
    winning lease returned.
    """
    existing = find_offer_lease(db, offer_id=offer.id)
    if existing is not None:
        return _require_open(existing)

    if offer.lease_start_date is None:
        raise InvalidState("offer has no lease start date", code="missing_lease_start")

    prop = db.get(Property, int(offer.property_id))
    if prop is None:
        raise InvalidState("offer property no longer exists", code="missing_property")

    offer_id = int(offer.id)
    unit = ensure_default_unit(db, property_id=prop.id)
    now = utcnow()
    lease = Lease(
        offer_id=offer_id,
        property_id=prop.id,
        tenant_group_id=offer.tenant_group_id,
        organization_id=offer.organization_id,
        unit_id=unit.id,
        status=LeaseStatus.ACTIVE,
        start_date=offer.lease_start_date,
        end_date=offer.lease_end_date,
        rent_amount=float(offer.rent_amount or 0.0),
        deposit_amount=float(offer.deposit_amount or 0.0),
        created_at=now,
        updated_at=now,
    )
    db.add(lease)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        winner = find_offer_lease(db, offer_id=offer_id)
        if winner is None:
            raise
        log.info("lease provisioned concurrently", extra={"offer_id": offer_id, "lease_id": winner.id})
        return _require_open(winner)

    log.info("provisioned lease for offer", extra={"offer_id": offer_id, "lease_id": lease.id})
    return lease
