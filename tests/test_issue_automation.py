from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from conftest import START
from rentflow.config import settings
from rentflow.models import IssueStatus, MoveInIssue, MoveInIssueComment, Notification
from rentflow.services.admin_decisions import apply_admin_decision
from rentflow.services.issue_automation import auto_close_resolved_issues, auto_escalate_issues
from rentflow.services.move_in_issues import add_comment, create_issue, update_status
from rentflow.timeutil import utcnow

REPORTED_AT = START + timedelta(hours=1)


@pytest.fixture
def issue_id(db, world):
    return create_issue(
        db,
        offer_id=world.offer_id,
        title="Broken lock",
        description="Front door lock broken",
        reporter=world.tenant,
        now=REPORTED_AT,
    ).issue.id


def _system_comments(db, issue_id):
    return db.scalars(
        select(MoveInIssueComment).where(
            MoveInIssueComment.issue_id == issue_id, MoveInIssueComment.author_id.is_(None)
        )
    ).all()


def test_stale_open_issue_is_escalated(db, world, issue_id):
    out = auto_escalate_issues(db, now=REPORTED_AT + timedelta(hours=25))
    assert out == {"scanned": 1, "escalated": 1}

    issue = db.get(MoveInIssue, issue_id)
    db.refresh(issue)
    assert issue.status == IssueStatus.ESCALATED
    assert issue.admin_decision is None
    assert len(_system_comments(db, issue_id)) == 1

    notified = set(
        db.scalars(select(Notification.user_id).where(Notification.title == "Issue Auto-Escalated to Admin")).all()
    )
    assert notified == {world.tenant.user_id, world.cotenant.user_id, world.landlord.user_id}


def test_fresh_issue_is_not_escalated(db, world, issue_id):
    out = auto_escalate_issues(db, now=REPORTED_AT + timedelta(hours=23))
    assert out["escalated"] == 0


def test_landlord_reply_prevents_escalation(db, world, issue_id):
    add_comment(db, issue_id=issue_id, author=world.landlord, content="Locksmith booked")
    out = auto_escalate_issues(db, now=REPORTED_AT + timedelta(hours=30))
    assert out["escalated"] == 0
    assert db.get(MoveInIssue, issue_id).status == IssueStatus.OPEN


def test_decided_issues_are_left_alone(db, world, issue_id):
    apply_admin_decision(db, issue_id=issue_id, decision="APPROVE", admin=world.admin, refund_amount=10)
    out = auto_close_resolved_issues(db, now=utcnow() + timedelta(days=30))
    assert out["closed"] == 0

    issue = db.get(MoveInIssue, issue_id)
    db.refresh(issue)
    assert issue.status == IssueStatus.RESOLVED


def test_resolved_issue_auto_closes_after_seven_days(db, world, issue_id):
    update_status(db, issue_id=issue_id, new_status=IssueStatus.RESOLVED, actor=world.admin)

    assert auto_close_resolved_issues(db, now=utcnow() + timedelta(days=6))["closed"] == 0
    assert auto_close_resolved_issues(db, now=utcnow() + timedelta(days=8))["closed"] == 1

    issue = db.get(MoveInIssue, issue_id)
    db.refresh(issue)
    assert issue.status == IssueStatus.CLOSED
    assert len(_system_comments(db, issue_id)) == 1


def test_owner_first_reply_marks_in_progress_when_enabled(db, world, issue_id, monkeypatch):
    monkeypatch.setattr(settings, "issue_automation_enabled", True)

    add_comment(db, issue_id=issue_id, author=world.landlord, content="Will fix today")
    issue = db.get(MoveInIssue, issue_id)
    db.refresh(issue)
    assert issue.status == IssueStatus.IN_PROGRESS
    assert len(_system_comments(db, issue_id)) == 1

    titles = db.scalars(select(Notification.title).where(Notification.user_id == world.tenant.user_id)).all()
    assert "Issue Status Updated" in titles


def test_owner_reply_does_nothing_when_disabled(db, world, issue_id):
    add_comment(db, issue_id=issue_id, author=world.landlord, content="Will fix today")
    assert db.get(MoveInIssue, issue_id).status == IssueStatus.OPEN
