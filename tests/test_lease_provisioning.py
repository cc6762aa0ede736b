from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from rentflow.errors import InvalidState
from rentflow.models import Lease, LeaseStatus, Offer, Unit
from rentflow.services import lease_provisioning
from rentflow.services.lease_provisioning import ensure_lease_for_offer, find_offer_lease


def test_lease_is_created_once_with_default_unit(db, world):
    offer = db.get(Offer, world.offer_id)
    first = ensure_lease_for_offer(db, offer)
    db.commit()
    second = ensure_lease_for_offer(db, offer)

    assert first.id == second.id
    assert first.rent_amount == 1500.0
    assert first.start_date == offer.lease_start_date
    assert len(db.scalars(select(Unit).where(Unit.property_id == world.property_id)).all()) == 1


def test_existing_unit_is_reused(db, world):
    unit = Unit(property_id=world.property_id, label="Unit 2B")
    db.add(unit)
    db.commit()

    lease = ensure_lease_for_offer(db, db.get(Offer, world.offer_id))
    assert lease.unit_id == unit.id


def test_closed_lease_is_never_replaced(db, world):
    offer = db.get(Offer, world.offer_id)
    old = ensure_lease_for_offer(db, offer)
    old.status = LeaseStatus.CANCELLED
    db.commit()

    assert find_offer_lease(db, offer_id=offer.id).id == old.id
    with pytest.raises(InvalidState):
        ensure_lease_for_offer(db, offer)
    assert len(db.scalars(select(Lease)).all()) == 1


def test_second_open_lease_for_offer_violates_index(db, world):
    offer = db.get(Offer, world.offer_id)
    first = ensure_lease_for_offer(db, offer)
    db.commit()

    db.add(
        Lease(
            offer_id=offer.id,
            property_id=first.property_id,
            tenant_group_id=first.tenant_group_id,
            organization_id=first.organization_id,
            unit_id=first.unit_id,
            status=LeaseStatus.ACTIVE,
            start_date=first.start_date,
        )
    )
    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_concurrent_insert_returns_the_winning_lease(db, world, monkeypatch):
    offer = db.get(Offer, world.offer_id)
    winner = ensure_lease_for_offer(db, offer)
    db.commit()

    # The first lookup misses the lease another request just committed.
    real_find = lease_provisioning.find_offer_lease
    calls = []

    def stale_find(db, *, offer_id):
        calls.append(offer_id)
        return None if len(calls) == 1 else real_find(db, offer_id=offer_id)

    monkeypatch.setattr(lease_provisioning, "find_offer_lease", stale_find)
    lease = ensure_lease_for_offer(db, offer)

    assert lease.id == winner.id
    assert len(calls) == 2
    assert len(db.scalars(select(Lease)).all()) == 1


def test_offer_without_start_date(db, world):
    offer = db.get(Offer, world.offer_id)
    offer.lease_start_date = None
    with pytest.raises(InvalidState):
        ensure_lease_for_offer(db, offer)
