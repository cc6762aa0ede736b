# rentflow/routers/move_in_issues.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_admin
from ..db import get_db
from ..schemas import (
    AdminDecisionIn,
    AdminDecisionOut,
    AdminReviewRequest,
    CommentCreate,
    CommentOut,
    DecisionSummaryOut,
    MoveInIssueCreate,
    MoveInIssueCreateOut,
    MoveInIssueDetailOut,
    MoveInIssueOut,
    StatusUpdate,
)
from ..services import admin_decisions, move_in_issues

router = APIRouter(prefix="/move-in-issues", tags=["move-in-issues"])


@router.post("", response_model=MoveInIssueCreateOut, status_code=status.HTTP_201_CREATED)
def create_issue(
    payload: MoveInIssueCreate,
    response: Response,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    res = move_in_issues.create_issue(
        db,
        offer_id=payload.offer_id,
        title=payload.title,
        description=payload.description,
        evidence=payload.evidence,
        reporter=p,
    )
    if res.reused:
        response.status_code = status.HTTP_200_OK
    return {"reused": res.reused, "issue": MoveInIssueOut.model_validate(res.issue)}


@router.get("/{issue_id}", response_model=MoveInIssueDetailOut)
def get_issue(issue_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    detail = move_in_issues.get_issue(db, issue_id=issue_id, viewer=p)
    out = MoveInIssueOut.model_validate(detail.issue).model_dump()
    out["comments"] = [CommentOut.model_validate(c) for c in detail.comments]
    return out


@router.post("/{issue_id}/comments", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def add_comment(
    issue_id: int,
    payload: CommentCreate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return move_in_issues.add_comment(
        db, issue_id=issue_id, author=p, content=payload.content, evidence=payload.evidence
    )


@router.put("/{issue_id}/status", response_model=MoveInIssueOut)
def update_status(
    issue_id: int,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return move_in_issues.update_status(db, issue_id=issue_id, new_status=payload.status, actor=p)


@router.post("/{issue_id}/admin-decision", response_model=AdminDecisionOut)
def admin_decision(
    issue_id: int,
    payload: AdminDecisionIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    # Role check lives in apply_admin_decision.
    outcome = admin_decisions.apply_admin_decision(
        db,
        issue_id=issue_id,
        decision=payload.decision,
        admin=p,
        notes=payload.notes,
        refund_amount=payload.refund_amount,
    )
    return {
        "decision": outcome.decision.value,
        "issue": MoveInIssueOut.model_validate(outcome.issue),
        "actions": outcome.actions,
    }


@router.get("/{issue_id}/decision-summary", response_model=DecisionSummaryOut)
def decision_summary(issue_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return admin_decisions.decision_summary(db, issue_id=issue_id, viewer=p)


@router.post("/{issue_id}/request-admin-review", response_model=CommentOut)
def request_admin_review(
    issue_id: int,
    payload: AdminReviewRequest,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    return move_in_issues.request_admin_review(db, issue_id=issue_id, tenant=p, reason=payload.reason)
