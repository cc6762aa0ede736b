# rentflow/schemas.py
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# -------------------- Move-in issues --------------------

class MoveInIssueCreate(BaseModel):
    offer_id: int
    title: str
    description: str
    # Already-stored file paths; uploads are handled elsewhere.
    evidence: list[str] = Field(default_factory=list)


class CommentCreate(BaseModel):
    content: str
    evidence: list[str] = Field(default_factory=list)


class StatusUpdate(BaseModel):
    status: str


class AdminDecisionIn(BaseModel):
    # Parsed and validated by apply_admin_decision.
    decision: Any = None
    notes: Optional[str] = None
    refund_amount: Any = None


class AdminReviewRequest(BaseModel):
    reason: str


class CommentOut(BaseModel):
    id: int
    issue_id: int
    author_id: Optional[int] = None
    content: str
    evidence: list[str] = Field(default_factory=list)
    evidence_type: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class MoveInIssueOut(BaseModel):
    id: int
    lease_id: int
    title: str
    description: str
    status: str
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by_user_id: Optional[int] = None
    admin_decision: Optional[str] = None
    admin_decision_at: Optional[datetime] = None
    admin_decision_by: Optional[int] = None
    admin_notes: Optional[str] = None
    refund_amount: Optional[float] = None
    property_hold_until: Optional[date] = None
    model_config = ConfigDict(from_attributes=True)


class MoveInIssueCreateOut(BaseModel):
    reused: bool
    issue: MoveInIssueOut


class MoveInIssueDetailOut(MoveInIssueOut):
    comments: list[CommentOut] = Field(default_factory=list)


class AdminDecisionOut(BaseModel):
    decision: str
    issue: MoveInIssueOut
    actions: dict[str, Any] = Field(default_factory=dict)


class DecisionSummaryOut(BaseModel):
    issue_id: int
    status: str
    admin_decision: Optional[str] = None
    admin_decision_at: Optional[datetime] = None
    admin_decision_by: Optional[int] = None
    admin_notes: Optional[str] = None
    refund_amount: Optional[float] = None
    property_hold_until: Optional[date] = None
    lease_id: Optional[int] = None
    lease_status: Optional[str] = None


class AdminQueueOut(BaseModel):
    items: list[MoveInIssueOut]
    total: int
    page: int
    limit: int


# -------------------- Move-in verification --------------------

class MoveInStatusOut(BaseModel):
    offer_id: int
    status: Optional[str] = None
    deadline: Optional[datetime] = None
    verified_at: Optional[datetime] = None


class MoveInUIStateOut(BaseModel):
    offer_id: int
    verification_status: Optional[str] = None
    deadline: Optional[datetime] = None
    phase: str
    window_open: Optional[datetime] = None
    window_close: Optional[datetime] = None
    lease_id: Optional[int] = None
    active_issue_id: Optional[int] = None
    can_report_issue: bool
    can_confirm: bool


class OfferVerificationOut(BaseModel):
    id: int
    move_in_verification_status: Optional[str] = None
    move_in_verification_deadline: Optional[datetime] = None
    move_in_verification_date: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# -------------------- Notifications / audit --------------------

class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: str
    entity_id: Optional[str] = None
    title: str
    body: str
    is_read: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditLogOut(BaseModel):
    id: int
    admin_id: int
    action: str
    resource_type: str
    resource_id: str
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
