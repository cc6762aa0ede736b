# rentflow/services/issue_automation.py
"""
Opt-in housekeeping for move-in issues (settings.issue_automation_enabled).

- OPEN issues older than auto_escalate_after_hours with no owner comment are
  escalated to admin review.
- RESOLVED issues untouched for auto_close_resolved_after_days are closed.
- An owner's first comment on an OPEN issue moves it to IN_PROGRESS.

Issues that already carry an admin decision are never touched.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..config import settings
from ..models import IssueStatus, MoveInIssue, MoveInIssueComment
from ..timeutil import utcnow
from .notifications import MOVE_IN_ISSUE_UPDATED, NotificationTemplate, notifier
from .ownership import participants_for_lease

log = logging.getLogger(__name__)

ESCALATED_NOTE = (
    "AUTO-ESCALATED: This issue has been automatically escalated to admin review "
    "due to no landlord response within {hours} hours."
)
CLOSED_NOTE = "AUTO-CLOSED: This issue has been automatically closed after {days} days of resolution."
IN_PROGRESS_NOTE = "AUTO-UPDATED: Issue status automatically changed to IN_PROGRESS as landlord has responded."


def _transition(db: Session, *, issue_id: int, from_status: str, to_status: str, now: datetime) -> bool:
    res = db.execute(
        update(MoveInIssue)
        .where(
            MoveInIssue.id == int(issue_id),
            MoveInIssue.status == from_status,
            MoveInIssue.admin_decision.is_(None),
        )
        .values(status=to_status, updated_at=now)
    )
    return res.rowcount == 1


def _system_comment(db: Session, *, issue_id: int, content: str, now: datetime) -> None:
    db.add(MoveInIssueComment(issue_id=int(issue_id), author_id=None, content=content, evidence=[], created_at=now))


def auto_escalate_issues(db: Session, *, now: Optional[datetime] = None) -> dict[str, int]:
    now = now or utcnow()
    hours = int(settings.auto_escalate_after_hours)
    cutoff = now - timedelta(hours=hours)
    out = {"scanned": 0, "escalated": 0}

    stale = db.scalars(
        select(MoveInIssue)
        .where(
            MoveInIssue.status == IssueStatus.OPEN,
            MoveInIssue.created_at <= cutoff,
            MoveInIssue.admin_decision.is_(None),
        )
        .order_by(MoveInIssue.id.asc())
    ).all()

    for issue in stale:
        out["scanned"] += 1
        people = participants_for_lease(db, issue.lease)
        owner_comments = 0
        if people.owner_ids:
            owner_comments = int(
                db.scalar(
                    select(func.count(MoveInIssueComment.id)).where(
                        MoveInIssueComment.issue_id == issue.id,
                        MoveInIssueComment.author_id.in_(people.owner_ids),
                    )
                )
                or 0
            )
        if owner_comments:
            continue

        if not _transition(db, issue_id=issue.id, from_status=IssueStatus.OPEN, to_status=IssueStatus.ESCALATED, now=now):
            db.rollback()
            continue
        _system_comment(db, issue_id=issue.id, content=ESCALATED_NOTE.format(hours=hours), now=now)
        db.commit()
        out["escalated"] += 1
        log.info("move-in issue auto-escalated", extra={"issue_id": issue.id})

        notifier.notify(
            db,
            people.all_ids,
            NotificationTemplate(
                title="Issue Auto-Escalated to Admin",
                body=f'Issue "{issue.title}" has been automatically escalated due to no landlord response.',
                type=MOVE_IN_ISSUE_UPDATED,
            ),
            entity_id=issue.id,
        )

    return out


def auto_close_resolved_issues(db: Session, *, now: Optional[datetime] = None) -> dict[str, int]:
    now = now or utcnow()
    days = int(settings.auto_close_resolved_after_days)
    cutoff = now - timedelta(days=days)
    out = {"scanned": 0, "closed": 0}

    issue_ids = db.scalars(
        select(MoveInIssue.id)
        .where(
            MoveInIssue.status == IssueStatus.RESOLVED,
            MoveInIssue.updated_at <= cutoff,
            MoveInIssue.admin_decision.is_(None),
        )
        .order_by(MoveInIssue.id.asc())
    ).all()

    for issue_id in issue_ids:
        out["scanned"] += 1
        if not _transition(db, issue_id=issue_id, from_status=IssueStatus.RESOLVED, to_status=IssueStatus.CLOSED, now=now):
            db.rollback()
            continue
        _system_comment(db, issue_id=issue_id, content=CLOSED_NOTE.format(days=days), now=now)
        db.commit()
        out["closed"] += 1
        log.info("move-in issue auto-closed", extra={"issue_id": issue_id})

    return out


def mark_in_progress_on_owner_reply(db: Session, *, issue_id: int, owner_id: int) -> bool:
    """Only the first owner comment counts; later ones are ignored."""
    count = int(
        db.scalar(
            select(func.count(MoveInIssueComment.id)).where(
                MoveInIssueComment.issue_id == int(issue_id),
                MoveInIssueComment.author_id == int(owner_id),
            )
        )
        or 0
    )
    if count != 1:
        return False

    now = utcnow()
    if not _transition(db, issue_id=issue_id, from_status=IssueStatus.OPEN, to_status=IssueStatus.IN_PROGRESS, now=now):
        db.rollback()
        return False
    _system_comment(db, issue_id=issue_id, content=IN_PROGRESS_NOTE, now=now)
    db.commit()
    log.info("move-in issue auto-marked in progress", extra={"issue_id": issue_id, "user_id": owner_id})

    issue = db.get(MoveInIssue, int(issue_id))
    people = participants_for_lease(db, issue.lease)
    notifier.notify(
        db,
        people.tenant_ids,
        NotificationTemplate(
            title="Issue Status Updated",
            body=f'Issue "{issue.title}" is now being addressed by the landlord.',
            type=MOVE_IN_ISSUE_UPDATED,
        ),
        entity_id=issue_id,
    )
    return True


def run_issue_automation(db: Session, *, now: Optional[datetime] = None) -> dict[str, dict[str, int]]:
    return {
        "escalation": auto_escalate_issues(db, now=now),
        "auto_close": auto_close_resolved_issues(db, now=now),
    }
