"""Unit tests for the approval state machine."""

import pytest

from portfolio_engine.approvals import (
    APPROVER_NAMES,
    ApprovalRole,
    ApprovalStatus,
    can_approve,
    domain_approval_status,
    initialize_approvals,
    set_approval,
    transition,
)
from portfolio_engine.models import ValidationIssue


@pytest.fixture()
def records(domains):
    return initialize_approvals(domains)


class TestInitializeApprovals:
    def test_one_record_per_domain_and_role(self, records):
        assert len(records) == 12
        assert {r.id for r in records if r.domain_id == "d1"} == {
            "d1-domainOwner",
            "d1-finance",
            "d1-risk",
            "d1-executive",
        }

    def test_initial_state(self, records):
        for record in records:
            assert record.status == ApprovalStatus.NOT_STARTED
            assert record.date is None
            assert record.comments is None
            assert record.approver == APPROVER_NAMES[record.role]

    def test_domain_name_copied(self, records):
        assert records[0].domain_name == "Energy"


class TestTransitions:
    def test_set_approval_stamps_time_and_comments(self, records, fixed_clock):
        updated = set_approval(records, "d1-finance", "approved", "Numbers check out", now=fixed_clock)
        record = next(r for r in updated if r.id == "d1-finance")
        assert record.status == ApprovalStatus.APPROVED
        assert record.date == fixed_clock()
        assert record.comments == "Numbers check out"

    def test_other_records_untouched(self, records, fixed_clock):
        updated = set_approval(records, "d1-finance", ApprovalStatus.PENDING, now=fixed_clock)
        assert [r for r in updated if r.id != "d1-finance"] == [r for r in records if r.id != "d1-finance"]
        assert records[1].status == ApprovalStatus.NOT_STARTED

    def test_roles_are_independent(self, records, fixed_clock):
        updated = set_approval(records, "d1-executive", "approved", now=fixed_clock)
        owner = next(r for r in updated if r.id == "d1-domainOwner")
        assert owner.status == ApprovalStatus.NOT_STARTED

    def test_decided_record_can_be_reopened(self, records, fixed_clock):
        updated = set_approval(records, "d2-risk", "rejected", now=fixed_clock)
        updated = set_approval(updated, "d2-risk", "pending", "Resubmitted", now=fixed_clock)
        record = next(r for r in updated if r.id == "d2-risk")
        assert record.status == ApprovalStatus.PENDING
        assert record.comments == "Resubmitted"

    def test_invalid_status_raises(self, records):
        with pytest.raises(ValueError):
            set_approval(records, "d1-finance", "maybe")

    def test_unknown_id_raises(self, records):
        with pytest.raises(KeyError):
            set_approval(records, "d9-finance", "approved")

    def test_default_clock_is_timezone_aware(self, records):
        record = transition(records[0], ApprovalStatus.PENDING)
        assert record.date is not None
        assert record.date.tzinfo is not None

    def test_role_values(self):
        assert [role.value for role in ApprovalRole] == ["domainOwner", "finance", "risk", "executive"]


class TestDomainStatus:
    def _set_all(self, records, domain_id, status, fixed_clock):
        for role in ApprovalRole:
            records = set_approval(records, f"{domain_id}-{role.value}", status, now=fixed_clock)
        return records

    def test_not_started(self, records):
        assert domain_approval_status(records, "d1") == ApprovalStatus.NOT_STARTED

    def test_pending_when_partially_approved(self, records, fixed_clock):
        updated = set_approval(records, "d1-finance", "approved", now=fixed_clock)
        assert domain_approval_status(updated, "d1") == ApprovalStatus.PENDING

    def test_approved_when_all_roles_approve(self, records, fixed_clock):
        updated = self._set_all(records, "d1", "approved", fixed_clock)
        assert domain_approval_status(updated, "d1") == ApprovalStatus.APPROVED
        assert domain_approval_status(updated, "d2") == ApprovalStatus.NOT_STARTED

    def test_any_rejection_wins(self, records, fixed_clock):
        updated = self._set_all(records, "d1", "approved", fixed_clock)
        updated = set_approval(updated, "d1-risk", "rejected", now=fixed_clock)
        assert domain_approval_status(updated, "d1") == ApprovalStatus.REJECTED

    def test_unknown_domain_raises(self, records):
        with pytest.raises(KeyError):
            domain_approval_status(records, "d9")


class TestCanApprove:
    def _critical(self, resolved=False):
        return ValidationIssue(
            id="critical-domain-budget-d1",
            severity="critical",
            category="consistency",
            title="Energy Budget Exceeded",
            description="over",
            check="Domain Budget",
            resolved=resolved,
        )

    def test_blocked_by_unresolved_critical(self):
        assert not can_approve([self._critical()])

    def test_resolved_critical_does_not_block(self):
        assert can_approve([self._critical(resolved=True)])

    def test_no_issues(self):
        assert can_approve([])
