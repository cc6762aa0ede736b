# rentflow/services/move_in_issues.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth import Principal
from ..config import settings
from ..domain.deadline_policy import PHASE_PRE_MOVE_IN, move_in_window
from ..errors import AlreadyDecided, Forbidden, InvalidState, ValidationError, WindowClosed, WindowExpired
from ..models import (
    EvidenceType,
    IssueStatus,
    MoveInIssue,
    MoveInIssueComment,
    Offer,
    UserRole,
    VerificationStatus,
)
from ..timeutil import utcnow
from .issue_automation import mark_in_progress_on_owner_reply
from .lease_provisioning import ensure_lease_for_offer, find_offer_lease
from .notifications import NotificationTemplate, notifier
from .ownership import (
    Participants,
    admin_user_ids,
    must_get_issue,
    must_get_lease,
    must_get_offer,
    participants_for_lease,
    participants_for_offer,
)

log = logging.getLogger(__name__)

ADMIN_REVIEW_PREFIX = "[ADMIN_REVIEW_REQUEST]"

_IMAGE_EXT = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".bmp"}
_VIDEO_EXT = {".mp4", ".mov", ".avi", ".webm", ".mkv", ".m4v"}


@dataclass(frozen=True)
class IssueCreateResult:
    issue: MoveInIssue
    reused: bool


@dataclass(frozen=True)
class IssueDetail:
    issue: MoveInIssue
    comments: list[MoveInIssueComment]


@dataclass(frozen=True)
class AdminQueuePage:
    items: list[MoveInIssue]
    total: int
    page: int
    limit: int


# -------------------------
# helpers
# -------------------------
def infer_evidence_type(paths: Sequence[str]) -> Optional[str]:
    """Evidence type follows the first file's extension."""
    if not paths:
        return None
    ext = os.path.splitext(str(paths[0]).lower())[1]
    if ext in _IMAGE_EXT:
        return EvidenceType.IMAGE
    if ext in _VIDEO_EXT:
        return EvidenceType.VIDEO
    return EvidenceType.DOCUMENT


def _clean_evidence(evidence: Optional[Iterable[str]]) -> list[str]:
    out: list[str] = []
    for p in evidence or []:
        s = str(p or "").strip()
        if not s:
            raise ValidationError("evidence paths must be non-empty strings")
        out.append(s)
    return out


def _required_text(value: Optional[str], field: str) -> str:
    s = (value or "").strip()
    if not s:
        raise ValidationError(f"{field} is required")
    return s


def _active_issue_for_lease(db: Session, *, lease_id: int) -> Optional[MoveInIssue]:
    return db.scalar(
        select(MoveInIssue)
        .where(MoveInIssue.lease_id == int(lease_id), MoveInIssue.status.in_(tuple(IssueStatus.ACTIVE)))
        .order_by(MoveInIssue.id.asc())
        .limit(1)
    )


def issue_participants(db: Session, issue: MoveInIssue) -> Participants:
    return participants_for_lease(db, issue.lease)


def _require_viewer(people: Participants, p: Principal) -> None:
    if not p.is_admin and not people.is_participant(p.user_id):
        raise Forbidden("not a participant of this move-in issue")


# -------------------------
# create
# -------------------------
def create_issue(
    db: Session,
    *,
    offer_id: int,
    title: Optional[str],
    description: Optional[str],
    evidence: Optional[Iterable[str]] = None,
    reporter: Principal,
    now: Optional[datetime] = None,
) -> IssueCreateResult:
    now = now or utcnow()
    offer = must_get_offer(db, offer_id=offer_id)
    people = participants_for_offer(db, offer)
    if not people.is_participant(reporter.user_id):
        raise Forbidden("only tenants or landlords of this offer can report move-in issues")

    title_s = _required_text(title, "title")
    description_s = _required_text(description, "description")
    paths = _clean_evidence(evidence)

    if offer.lease_start_date is None:
        raise InvalidState("offer has no move-in date", code="missing_lease_start")

    window = move_in_window(offer.lease_start_date, now)
    if not window.is_open:
        if window.phase == PHASE_PRE_MOVE_IN:
            raise WindowClosed("move-in issue reporting opens on the move-in date")
        raise WindowExpired("move-in issue reporting window (24h) has expired")

    lease = ensure_lease_for_offer(db, offer)

    existing = _active_issue_for_lease(db, lease_id=lease.id)
    if existing is not None:
        db.commit()
        log.info("reusing active move-in issue", extra={"issue_id": existing.id, "lease_id": lease.id})
        return IssueCreateResult(issue=existing, reused=True)

    issue = MoveInIssue(
        lease_id=lease.id,
        title=title_s,
        description=description_s,
        status=IssueStatus.OPEN,
        created_at=now,
        updated_at=now,
    )
    db.add(issue)
    try:
        db.flush()
    except IntegrityError:
        # Another report for this lease won the race.
        db.rollback()
        lease = find_offer_lease(db, offer_id=offer.id)
        existing = _active_issue_for_lease(db, lease_id=lease.id) if lease else None
        if existing is None:
            raise
        return IssueCreateResult(issue=existing, reused=True)

    if paths:
        db.add(
            MoveInIssueComment(
                issue_id=issue.id,
                author_id=reporter.user_id,
                content=description_s,
                evidence=paths,
                evidence_type=infer_evidence_type(paths),
                created_at=now,
            )
        )

    db.execute(
        update(Offer)
        .where(Offer.id == offer.id, Offer.move_in_verification_status == VerificationStatus.PENDING)
        .values(move_in_verification_status=VerificationStatus.ISSUE_REPORTED, updated_at=now)
    )
    db.commit()
    db.refresh(issue)
    log.info(
        "move-in issue reported",
        extra={"issue_id": issue.id, "offer_id": offer.id, "lease_id": lease.id, "user_id": reporter.user_id},
    )

    notifier.notify(
        db,
        people.others(reporter.user_id),
        NotificationTemplate(
            title="New move-in issue reported",
            body=f'A new move-in issue has been reported: "{issue.title}"',
        ),
        entity_id=issue.id,
    )
    return IssueCreateResult(issue=issue, reused=False)


# -------------------------
# read
# -------------------------
def get_issue(db: Session, *, issue_id: int, viewer: Principal) -> IssueDetail:
    issue = must_get_issue(db, issue_id=issue_id)
    _require_viewer(issue_participants(db, issue), viewer)
    comments = db.scalars(
        select(MoveInIssueComment)
        .where(MoveInIssueComment.issue_id == issue.id)
        .order_by(MoveInIssueComment.created_at.asc(), MoveInIssueComment.id.asc())
    ).all()
    return IssueDetail(issue=issue, comments=list(comments))


def list_issues_for_lease(db: Session, *, lease_id: int, viewer: Principal) -> list[MoveInIssue]:
    lease = must_get_lease(db, lease_id=lease_id)
    _require_viewer(participants_for_lease(db, lease), viewer)
    return list(
        db.scalars(
            select(MoveInIssue).where(MoveInIssue.lease_id == lease.id).order_by(MoveInIssue.created_at.desc())
        ).all()
    )


def list_issues_for_offer(db: Session, *, offer_id: int, viewer: Principal) -> list[MoveInIssue]:
    offer = must_get_offer(db, offer_id=offer_id)
    _require_viewer(participants_for_offer(db, offer), viewer)
    lease = find_offer_lease(db, offer_id=offer.id)
    if lease is None:
        return []
    return list(
        db.scalars(
            select(MoveInIssue).where(MoveInIssue.lease_id == lease.id).order_by(MoveInIssue.created_at.desc())
        ).all()
    )


def list_admin_queue(
    db: Session,
    *,
    statuses: Optional[Iterable[str]] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> AdminQueuePage:
    wanted = {str(s).strip().upper() for s in (statuses or []) if str(s).strip()}
    if not wanted:
        wanted = {IssueStatus.OPEN, IssueStatus.ESCALATED}
    unknown = wanted - IssueStatus.ALL
    if unknown:
        raise ValidationError(f"unknown issue status: {', '.join(sorted(unknown))}")

    page = max(1, int(page or 1))
    limit = int(limit or settings.admin_queue_default_limit)
    limit = max(1, min(limit, int(settings.admin_queue_max_limit)))

    where = MoveInIssue.status.in_(sorted(wanted))
    total = int(db.scalar(select(func.count(MoveInIssue.id)).where(where)) or 0)
    items = db.scalars(
        select(MoveInIssue)
        .where(where)
        .order_by(MoveInIssue.created_at.desc(), MoveInIssue.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()
    return AdminQueuePage(items=list(items), total=total, page=page, limit=limit)


# -------------------------
# comments
# -------------------------
def add_comment(
    db: Session,
    *,
    issue_id: int,
    author: Principal,
    content: Optional[str],
    evidence: Optional[Iterable[str]] = None,
) -> MoveInIssueComment:
    issue = must_get_issue(db, issue_id=issue_id)
    people = issue_participants(db, issue)
    _require_viewer(people, author)
    body = _required_text(content, "content")
    paths = _clean_evidence(evidence)

    now = utcnow()
    comment = MoveInIssueComment(
        issue_id=issue.id,
        author_id=author.user_id,
        content=body,
        evidence=paths,
        evidence_type=infer_evidence_type(paths),
        created_at=now,
    )
    db.add(comment)
    issue.updated_at = now
    db.add(issue)
    db.commit()
    db.refresh(comment)
    log.info("move-in issue comment added", extra={"issue_id": issue.id, "user_id": author.user_id})

    if settings.issue_automation_enabled and people.is_owner(author.user_id):
        mark_in_progress_on_owner_reply(db, issue_id=issue.id, owner_id=author.user_id)

    notifier.notify(
        db,
        people.others(author.user_id),
        NotificationTemplate(
            title="New comment on move-in issue",
            body=f'A new comment was added to the move-in issue: "{issue.title}"',
        ),
        entity_id=issue.id,
    )
    return comment


def request_admin_review(
    db: Session,
    *,
    issue_id: int,
    tenant: Principal,
    reason: Optional[str],
) -> MoveInIssueComment:
    issue = must_get_issue(db, issue_id=issue_id)
    people = issue_participants(db, issue)
    if not people.is_tenant(tenant.user_id):
        raise Forbidden("only tenants on this lease can request admin review")
    why = _required_text(reason, "reason")

    now = utcnow()
    comment = MoveInIssueComment(
        issue_id=issue.id,
        author_id=tenant.user_id,
        content=f"{ADMIN_REVIEW_PREFIX} {why}",
        evidence=[],
        created_at=now,
    )
    db.add(comment)
    issue.updated_at = now
    db.add(issue)
    db.commit()
    db.refresh(comment)
    log.info("admin review requested", extra={"issue_id": issue.id, "user_id": tenant.user_id})

    notifier.notify(
        db,
        [*people.owner_ids, *admin_user_ids(db)],
        NotificationTemplate(
            title="Admin review requested",
            body=f'The tenant requested admin review of move-in issue "{issue.title}": {why}',
        ),
        entity_id=issue.id,
    )
    return comment


# -------------------------
# status
# -------------------------
def update_status(
    db: Session,
    *,
    issue_id: int,
    new_status: Optional[str],
    actor: Principal,
) -> MoveInIssue:
    status = str(new_status or "").strip().upper()
    if status not in IssueStatus.MANUAL:
        raise ValidationError(f"status must be one of: {', '.join(sorted(IssueStatus.MANUAL))}")
    if actor.role == UserRole.TENANT:
        raise Forbidden("tenants cannot change move-in issue status")

    issue = must_get_issue(db, issue_id=issue_id)
    people = issue_participants(db, issue)

    if actor.is_admin:
        if issue.admin_decision is not None:
            raise AlreadyDecided("issue already has an admin decision")
    else:
        if not people.is_owner(actor.user_id):
            raise Forbidden("only the property owner can update this issue")
        if status in (IssueStatus.RESOLVED, IssueStatus.CLOSED):
            raise Forbidden(f"{status} requires an admin")
        if not (status == IssueStatus.IN_PROGRESS and issue.status == IssueStatus.OPEN):
            raise Forbidden("landlords may only move an OPEN issue to IN_PROGRESS")

    now = utcnow()
    previous = issue.status
    issue.status = status
    issue.updated_at = now
    if status in (IssueStatus.RESOLVED, IssueStatus.CLOSED):
        issue.resolved_at = now
        issue.resolved_by_user_id = actor.user_id
    db.add(issue)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise InvalidState("lease already has an active move-in issue", code="active_issue_exists")
    db.refresh(issue)
    log.info(
        "move-in issue status %s -> %s",
        previous,
        status,
        extra={"issue_id": issue.id, "user_id": actor.user_id},
    )

    notifier.notify(
        db,
        people.all_ids,
        NotificationTemplate(
            title="Move-in issue status updated",
            body=f'The status of move-in issue "{issue.title}" has been updated to {status}',
        ),
        entity_id=issue.id,
    )
    return issue
