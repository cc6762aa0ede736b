# rentflow/models.py
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base
from .timeutil import utcnow


# -----------------------------
# Enumerations (stored as strings)
# -----------------------------
class UserRole:
    TENANT = "TENANT"
    LANDLORD = "LANDLORD"
    ADMIN = "ADMIN"


class OrgRole:
    OWNER = "OWNER"
    MEMBER = "MEMBER"


class PropertyStatus:
    AVAILABLE = "AVAILABLE"
    RENTED = "RENTED"
    HOLD = "HOLD"


class VerificationStatus:
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    ISSUE_REPORTED = "ISSUE_REPORTED"


class LeaseStatus:
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    TERMINATED = "TERMINATED"
    ENDED = "ENDED"

    CLOSED = frozenset({CANCELLED, TERMINATED, ENDED})


class IssueStatus:
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    ADMIN_APPROVED = "ADMIN_APPROVED"
    ADMIN_REJECTED = "ADMIN_REJECTED"
    ESCALATED = "ESCALATED"

    ACTIVE = frozenset({OPEN, IN_PROGRESS})
    MANUAL = frozenset({OPEN, IN_PROGRESS, RESOLVED, CLOSED})
    ALL = frozenset({OPEN, IN_PROGRESS, RESOLVED, CLOSED, ADMIN_APPROVED, ADMIN_REJECTED, ESCALATED})


class EvidenceType:
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    DOCUMENT = "DOCUMENT"


_ACTIVE_ISSUE_SQL = "status IN ('OPEN', 'IN_PROGRESS')"
_OPEN_LEASE_SQL = "status NOT IN ('CANCELLED', 'TERMINATED', 'ENDED')"


# -----------------------------
# Users / organizations / tenant groups
# -----------------------------
class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.TENANT)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    @property
    def display_name(self) -> str:
        name = " ".join(x for x in (self.first_name, self.last_name) if x)
        return name or self.email


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    members: Mapped[List["OrganizationMember"]] = relationship(back_populates="organization")


class OrganizationMember(Base):
    __tablename__ = "organization_members"
    __table_args__ = (UniqueConstraint("organization_id", "user_id", name="uq_org_members_org_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), index=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=OrgRole.OWNER)

    organization: Mapped[Organization] = relationship(back_populates="members")
    user: Mapped[AppUser] = relationship()


class TenantGroup(Base):
    __tablename__ = "tenant_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    members: Mapped[List["TenantGroupMember"]] = relationship(
        back_populates="tenant_group", order_by="TenantGroupMember.id"
    )


class TenantGroupMember(Base):
    __tablename__ = "tenant_group_members"
    __table_args__ = (UniqueConstraint("tenant_group_id", "user_id", name="uq_tenant_group_members_group_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_group_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant_groups.id"), index=True, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), index=True, nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    tenant_group: Mapped[TenantGroup] = relationship(back_populates="members")
    user: Mapped[AppUser] = relationship()


# -----------------------------
# Properties / units
# -----------------------------
class Property(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PropertyStatus.AVAILABLE)
    availability: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    organization: Mapped[Organization] = relationship()
    units: Mapped[List["Unit"]] = relationship(back_populates="property", order_by="Unit.id")


class Unit(Base):
    __tablename__ = "units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    label: Mapped[str] = mapped_column(String(80), nullable=False, default="Main unit")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    property: Mapped[Property] = relationship(back_populates="units")


# -----------------------------
# Offers / leases
# -----------------------------
class Offer(Base):
    __tablename__ = "offers"
    __table_args__ = (Index("ix_offers_verification", "move_in_verification_status", "move_in_verification_deadline"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    tenant_group_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant_groups.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PAID")
    rent_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    deposit_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    lease_start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    lease_end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    move_in_verification_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    move_in_verification_deadline: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    move_in_verification_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    property: Mapped[Property] = relationship()
    organization: Mapped[Organization] = relationship()
    tenant_group: Mapped[TenantGroup] = relationship()


class Lease(Base):
    __tablename__ = "leases"
    __table_args__ = (
        # At most one open lease per offer.
        Index(
            "uq_leases_open_offer",
            "offer_id",
            unique=True,
            postgresql_where=text(_OPEN_LEASE_SQL),
            sqlite_where=text(_OPEN_LEASE_SQL),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    offer_id: Mapped[int] = mapped_column(Integer, ForeignKey("offers.id"), nullable=False, index=True)
    property_id: Mapped[int] = mapped_column(Integer, ForeignKey("properties.id"), nullable=False, index=True)
    tenant_group_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant_groups.id"), nullable=False, index=True)
    organization_id: Mapped[int] = mapped_column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    unit_id: Mapped[int] = mapped_column(Integer, ForeignKey("units.id"), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=LeaseStatus.ACTIVE)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    rent_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    deposit_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    offer: Mapped[Offer] = relationship()
    property: Mapped[Property] = relationship()
    tenant_group: Mapped[TenantGroup] = relationship()
    organization: Mapped[Organization] = relationship()
    unit: Mapped[Unit] = relationship()


# -----------------------------
# Move-in issues
# -----------------------------
class MoveInIssue(Base):
    __tablename__ = "move_in_issues"
    __table_args__ = (
        Index("ix_move_in_issues_lease_status", "lease_id", "status"),
        # At most one active issue per lease.
        Index(
            "uq_move_in_issues_active_lease",
            "lease_id",
            unique=True,
            postgresql_where=text(_ACTIVE_ISSUE_SQL),
            sqlite_where=text(_ACTIVE_ISSUE_SQL),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lease_id: Mapped[int] = mapped_column(Integer, ForeignKey("leases.id"), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=IssueStatus.OPEN, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    resolved_by_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    admin_decision: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    admin_decision_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    admin_decision_by: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refund_amount: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    property_hold_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    lease: Mapped[Lease] = relationship()
    comments: Mapped[List["MoveInIssueComment"]] = relationship(
        back_populates="issue",
        order_by="MoveInIssueComment.id",
    )


class MoveInIssueComment(Base):
    __tablename__ = "move_in_issue_comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    issue_id: Mapped[int] = mapped_column(Integer, ForeignKey("move_in_issues.id"), nullable=False, index=True)
    # NULL author marks a system-generated comment.
    author_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    evidence: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    evidence_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    issue: Mapped[MoveInIssue] = relationship(back_populates="comments")
    author: Mapped[Optional[AppUser]] = relationship()


# -----------------------------
# Notifications / audit
# -----------------------------
class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_dedupe", "user_id", "entity_id", "title"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(40), nullable=False, default="SYSTEM_ANNOUNCEMENT")
    # Offer or issue id depending on type; stored as text so both fit.
    entity_id: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    admin_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(80), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(80), nullable=False)
    resource_id: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    details_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
