# rentflow/cli/seed_demo.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db import SessionLocal, init_db
from ..models import (
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
from ..services.move_in_verification import open_verification
from ..timeutil import utcnow


@dataclass(frozen=True)
class SeedResult:
    tenant_email: str
    landlord_email: str
    admin_email: str
    offer_id: int
    property_id: int


def _get_or_create_user(db: Session, email: str, role: str, first_name: str, last_name: str) -> AppUser:
    row = db.scalar(select(AppUser).where(AppUser.email == email))
    if row:
        return row
    row = AppUser(email=email, role=role, first_name=first_name, last_name=last_name)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def _get_or_create_org(db: Session, name: str, owner: AppUser) -> Organization:
    member = db.scalar(
        select(OrganizationMember).where(
            OrganizationMember.user_id == owner.id, OrganizationMember.role == OrgRole.OWNER
        )
    )
    if member:
        return member.organization
    org = Organization(name=name)
    db.add(org)
    db.flush()
    db.add(OrganizationMember(organization_id=org.id, user_id=owner.id, role=OrgRole.OWNER))
    db.commit()
    db.refresh(org)
    return org


def _get_or_create_group(db: Session, tenant: AppUser) -> TenantGroup:
    member = db.scalar(select(TenantGroupMember).where(TenantGroupMember.user_id == tenant.id))
    if member:
        return member.tenant_group
    group = TenantGroup(name=f"{tenant.display_name} household")
    db.add(group)
    db.flush()
    db.add(TenantGroupMember(tenant_group_id=group.id, user_id=tenant.id, is_primary=True))
    db.commit()
    db.refresh(group)
    return group


def seed_demo(
    *,
    tenant_email: str = "tenant@demo.local",
    landlord_email: str = "landlord@demo.local",
    admin_email: str = "admin@demo.local",
    moved_in_hours_ago: float = 2.0,
    property_name: Optional[str] = None,
) -> SeedResult:
    """
    One tenant, one landlord org, one admin and a paid offer whose move-in
    verification window is currently open.
    """
    init_db()
    db = SessionLocal()
    try:
        tenant = _get_or_create_user(db, tenant_email, UserRole.TENANT, "Demo", "Tenant")
        landlord = _get_or_create_user(db, landlord_email, UserRole.LANDLORD, "Demo", "Landlord")
        admin = _get_or_create_user(db, admin_email, UserRole.ADMIN, "Demo", "Admin")

        org = _get_or_create_org(db, "Demo Rentals", landlord)
        group = _get_or_create_group(db, tenant)

        prop = Property(
            organization_id=org.id,
            name=property_name or "Demo Apartment",
            address="1 Demo Street",
        )
        db.add(prop)
        db.flush()

        start = utcnow() - timedelta(hours=float(moved_in_hours_ago))
        offer = Offer(
            property_id=prop.id,
            organization_id=org.id,
            tenant_group_id=group.id,
            rent_amount=1800.0,
            deposit_amount=1800.0,
            lease_start_date=start,
            lease_end_date=start + timedelta(days=365),
        )
        db.add(offer)
        db.commit()
        open_verification(db, offer)

        return SeedResult(
            tenant_email=tenant.email,
            landlord_email=landlord.email,
            admin_email=admin.email,
            offer_id=offer.id,
            property_id=prop.id,
        )
    finally:
        db.close()
