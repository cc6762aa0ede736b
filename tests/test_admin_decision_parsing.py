from __future__ import annotations

import pytest

from rentflow.domain.decisions import APPROVAL_FAMILY, AdminDecision
from rentflow.errors import ValidationError
from rentflow.models import IssueStatus


@pytest.mark.parametrize(
    "raw,status",
    [
        ("ACCEPTED", IssueStatus.ADMIN_APPROVED),
        ("approve", IssueStatus.RESOLVED),
        ("REJECTED", IssueStatus.ADMIN_REJECTED),
        (" reject ", IssueStatus.CLOSED),
        ("ESCALATED", IssueStatus.ESCALATED),
        ("RESOLVED_APPROVED", IssueStatus.ESCALATED),
        ("RESOLVED_REJECTED", IssueStatus.ESCALATED),
    ],
)
def test_decision_to_status(raw, status):
    assert AdminDecision.parse(raw).resulting_status == status


def test_unknown_decision_is_validation_error():
    with pytest.raises(ValidationError) as ei:
        AdminDecision.parse("MAYBE")
    assert ei.value.code == "invalid_decision"


def test_only_accept_and_approve_are_approvals():
    assert APPROVAL_FAMILY == {AdminDecision.ACCEPTED, AdminDecision.APPROVE}
    assert not AdminDecision.RESOLVED_APPROVED.is_approval
    assert AdminDecision.APPROVE.is_approval


def test_audit_action_name():
    assert AdminDecision.REJECT.audit_action == "ADMIN_DECISION_REJECT"
