# rentflow/routers/move_in_verification.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import MoveInIssueOut, MoveInStatusOut, MoveInUIStateOut, OfferVerificationOut
from ..services import move_in_issues, move_in_verification

router = APIRouter(tags=["move-in-verification"])


@router.get("/offers/{offer_id}/move-in/status", response_model=MoveInStatusOut)
def move_in_status(offer_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return move_in_verification.get_move_in_status(db, offer_id=offer_id, viewer=p)


@router.get("/offers/{offer_id}/move-in/ui-state", response_model=MoveInUIStateOut)
def move_in_ui_state(offer_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return move_in_verification.get_move_in_ui_state(db, offer_id=offer_id, viewer=p)


@router.post("/offers/{offer_id}/move-in/verify", response_model=OfferVerificationOut)
def verify_move_in(offer_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return move_in_verification.confirm_move_in(db, offer_id=offer_id, tenant=p)


@router.get("/offers/{offer_id}/move-in/issues", response_model=list[MoveInIssueOut])
def offer_issues(offer_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return move_in_issues.list_issues_for_offer(db, offer_id=offer_id, viewer=p)


@router.get("/leases/{lease_id}/move-in-issues", response_model=list[MoveInIssueOut])
def lease_issues(lease_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    return move_in_issues.list_issues_for_lease(db, lease_id=lease_id, viewer=p)
