# rentflow/services/ownership.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import NotFound
from ..models import (
    AppUser,
    Lease,
    MoveInIssue,
    Offer,
    OrganizationMember,
    OrgRole,
    TenantGroupMember,
    UserRole,
)


def must_get_offer(db: Session, *, offer_id: int) -> Offer:
    row = db.get(Offer, int(offer_id))
    if not row:
        raise NotFound("offer not found")
    return row


def must_get_lease(db: Session, *, lease_id: int) -> Lease:
    row = db.get(Lease, int(lease_id))
    if not row:
        raise NotFound("lease not found")
    return row


def must_get_issue(db: Session, *, issue_id: int) -> MoveInIssue:
    row = db.get(MoveInIssue, int(issue_id))
    if not row:
        raise NotFound("move-in issue not found")
    return row


@dataclass(frozen=True)
class Participants:
    """Tenant-group members and organization owners attached to an offer/lease."""

    tenant_ids: tuple[int, ...] = ()
    owner_ids: tuple[int, ...] = ()
    primary_tenant_id: Optional[int] = None

    @property
    def all_ids(self) -> list[int]:
        seen: dict[int, None] = {}
        for uid in (*self.tenant_ids, *self.owner_ids):
            seen.setdefault(uid, None)
        return list(seen)

    def is_tenant(self, user_id: int) -> bool:
        return int(user_id) in self.tenant_ids

    def is_owner(self, user_id: int) -> bool:
        return int(user_id) in self.owner_ids

    def is_participant(self, user_id: int) -> bool:
        return self.is_tenant(user_id) or self.is_owner(user_id)

    def others(self, user_id: Optional[int]) -> list[int]:
        return [uid for uid in self.all_ids if uid != user_id]


def load_participants(db: Session, *, tenant_group_id: int, organization_id: int) -> Participants:
    members = db.scalars(
        select(TenantGroupMember)
        .where(TenantGroupMember.tenant_group_id == int(tenant_group_id))
        .order_by(TenantGroupMember.id.asc())
    ).all()
    owners = db.scalars(
        select(OrganizationMember.user_id)
        .where(
            OrganizationMember.organization_id == int(organization_id),
            OrganizationMember.role == OrgRole.OWNER,
        )
        .order_by(OrganizationMember.id.asc())
    ).all()

    primary = next((m for m in members if m.is_primary), None) or (members[0] if members else None)
    return Participants(
        tenant_ids=tuple(int(m.user_id) for m in members),
        owner_ids=tuple(int(u) for u in owners),
        primary_tenant_id=int(primary.user_id) if primary else None,
    )


def participants_for_offer(db: Session, offer: Offer) -> Participants:
    return load_participants(db, tenant_group_id=offer.tenant_group_id, organization_id=offer.organization_id)


def participants_for_lease(db: Session, lease: Lease) -> Participants:
    return load_participants(db, tenant_group_id=lease.tenant_group_id, organization_id=lease.organization_id)


def admin_user_ids(db: Session) -> list[int]:
    return [int(u) for u in db.scalars(select(AppUser.id).where(AppUser.role == UserRole.ADMIN)).all()]


def display_name(db: Session, user_id: Optional[int]) -> str:
    if user_id is None:
        return "Unknown"
    user = db.get(AppUser, int(user_id))
    return user.display_name if user else "Unknown"
