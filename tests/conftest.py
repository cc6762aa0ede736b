from __future__ import annotations

import os
import tempfile
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

_DB_DIR = tempfile.mkdtemp(prefix="rentflow-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/test.db"
os.environ["MOVE_IN_SCHEDULER_MODE"] = "off"
os.environ["AUTH_MODE"] = "dev"
os.environ["JWT_SECRET"] = "test-secret-that-is-long-enough-for-hs256"
os.environ["APP_ENV"] = "test"
os.environ["ISSUE_AUTOMATION_ENABLED"] = "false"

import pytest  # noqa: E402

from rentflow.auth import Principal, principal_for  # noqa: E402
from rentflow.db import Base, SessionLocal, engine, init_db  # noqa: E402
from rentflow.models import (  # noqa: E402
    AppUser,
    Offer,
    Organization,
    OrganizationMember,
    OrgRole,
    Property,
    TenantGroup,
    TenantGroupMember,
    UserRole,
)
from rentflow.services.move_in_verification import open_verification  # noqa: E402

START = datetime(2026, 3, 1, 12, 0, 0)


@pytest.fixture(scope="session", autouse=True)
def _schema():
    init_db()
    yield


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@dataclass
class World:
    tenant: Principal
    cotenant: Principal
    landlord: Principal
    admin: Principal
    outsider: Principal
    offer_id: int
    property_id: int
    organization_id: int
    tenant_group_id: int


def _user(db, role: str, first: str) -> AppUser:
    u = AppUser(email=f"{first.lower()}-{uuid.uuid4().hex[:8]}@t.local", role=role, first_name=first, last_name="Test")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def make_world(db, *, start: Optional[datetime] = START, pending: bool = True) -> World:
    tenant = _user(db, UserRole.TENANT, "Tina")
    cotenant = _user(db, UserRole.TENANT, "Cody")
    landlord = _user(db, UserRole.LANDLORD, "Lena")
    admin = _user(db, UserRole.ADMIN, "Ada")
    outsider = _user(db, UserRole.TENANT, "Otto")

    org = Organization(name="Org")
    group = TenantGroup(name="Group")
    db.add_all([org, group])
    db.flush()
    db.add(OrganizationMember(organization_id=org.id, user_id=landlord.id, role=OrgRole.OWNER))
    db.add(TenantGroupMember(tenant_group_id=group.id, user_id=cotenant.id, is_primary=False))
    db.add(TenantGroupMember(tenant_group_id=group.id, user_id=tenant.id, is_primary=True))
    prop = Property(organization_id=org.id, name="Flat 1", address="1 Main St")
    db.add(prop)
    db.flush()

    offer = Offer(
        property_id=prop.id,
        organization_id=org.id,
        tenant_group_id=group.id,
        rent_amount=1500.0,
        deposit_amount=1500.0,
        lease_start_date=start,
        lease_end_date=start + timedelta(days=365) if start else None,
    )
    db.add(offer)
    db.commit()
    if pending and start is not None:
        open_verification(db, offer)

    return World(
        tenant=principal_for(tenant),
        cotenant=principal_for(cotenant),
        landlord=principal_for(landlord),
        admin=principal_for(admin),
        outsider=principal_for(outsider),
        offer_id=offer.id,
        property_id=prop.id,
        organization_id=org.id,
        tenant_group_id=group.id,
    )


@pytest.fixture
def world(db) -> World:
    return make_world(db)


def headers(p: Principal) -> dict[str, str]:
    return {"X-User-Id": str(p.user_id)}
