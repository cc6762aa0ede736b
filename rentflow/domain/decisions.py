# rentflow/domain/decisions.py
from __future__ import annotations

from enum import Enum

from ..errors import ValidationError
from ..models import IssueStatus


class AdminDecision(str, Enum):
    """
    Every decision value the admin endpoint accepts.

    ACCEPTED/REJECTED and APPROVE/REJECT are two separate families that land
    in different issue statuses.
    """

    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    ESCALATED = "ESCALATED"
    RESOLVED_APPROVED = "RESOLVED_APPROVED"
    RESOLVED_REJECTED = "RESOLVED_REJECTED"
    APPROVE = "APPROVE"
    REJECT = "REJECT"

    @classmethod
    def parse(cls, raw: object) -> "AdminDecision":
        s = str(raw or "").strip().upper()
        try:
            return cls(s)
        except ValueError:
            allowed = ", ".join(d.value for d in cls)
            raise ValidationError(f"Decision must be one of: {allowed}", code="invalid_decision")

    @property
    def is_approval(self) -> bool:
        return self in APPROVAL_FAMILY

    @property
    def resulting_status(self) -> str:
        return _STATUS_BY_DECISION.get(self, IssueStatus.ESCALATED)

    @property
    def audit_action(self) -> str:
        return f"ADMIN_DECISION_{self.value}"


APPROVAL_FAMILY = frozenset({AdminDecision.ACCEPTED, AdminDecision.APPROVE})

# Anything not listed maps to ESCALATED.
_STATUS_BY_DECISION = {
    AdminDecision.ACCEPTED: IssueStatus.ADMIN_APPROVED,
    AdminDecision.APPROVE: IssueStatus.RESOLVED,
    AdminDecision.REJECTED: IssueStatus.ADMIN_REJECTED,
    AdminDecision.REJECT: IssueStatus.CLOSED,
}
