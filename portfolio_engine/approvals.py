"""Per-domain, per-role approval records.

Lifecycle: ``not_started -> pending -> approved | rejected``. There is no
hard terminal lock: an explicit transition may reopen a decided record
(for instance back to ``pending``). Roles are independent of each other;
finance approval is not gated on the domain owner. Gating on validation
results is offered by :func:`can_approve` but left to the caller.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum

from portfolio_engine.models import BusinessDomain, ValidationIssue
from portfolio_engine.validation import has_blocking_issues

logger = logging.getLogger(__name__)


class ApprovalStatus(str, Enum):
    """Approval lifecycle states."""

    NOT_STARTED = "not_started"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalRole(str, Enum):
    """Roles that sign off on each domain."""

    DOMAIN_OWNER = "domainOwner"
    FINANCE = "finance"
    RISK = "risk"
    EXECUTIVE = "executive"


APPROVER_NAMES: dict[ApprovalRole, str] = {
    ApprovalRole.DOMAIN_OWNER: "Domain Owner",
    ApprovalRole.FINANCE: "Finance Team",
    ApprovalRole.RISK: "Risk Management",
    ApprovalRole.EXECUTIVE: "Executive Committee",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ApprovalRecord:
    """Approval state of one role for one domain.

    Parameters
    ----------
    id : str
        ``"{domain_id}-{role}"``.
    domain_id : str
        Domain under approval.
    domain_name : str
        Display name of the domain.
    role : ApprovalRole
        Approving role.
    status : ApprovalStatus
        Current state.
    approver : str
        Display name of the approving body.
    date : datetime, optional
        Time of the last transition.
    comments : str, optional
        Free text supplied with the last transition.
    """

    id: str
    domain_id: str
    domain_name: str
    role: ApprovalRole
    status: ApprovalStatus = ApprovalStatus.NOT_STARTED
    approver: str = ""
    date: datetime | None = None
    comments: str | None = None


def initialize_approvals(domains: Iterable[BusinessDomain]) -> list[ApprovalRecord]:
    """Create a ``not_started`` record for every (domain, role) pair."""
    return [
        ApprovalRecord(
            id=f"{domain.id}-{role.value}",
            domain_id=domain.id,
            domain_name=domain.name,
            role=role,
            approver=APPROVER_NAMES[role],
        )
        for domain in domains
        for role in ApprovalRole
    ]


def transition(
    record: ApprovalRecord,
    new_status: ApprovalStatus | str,
    comments: str | None = None,
    now: Callable[[], datetime] = _utc_now,
) -> ApprovalRecord:
    """Move a record to ``new_status``, stamping the time and comments.

    Parameters
    ----------
    record : ApprovalRecord
        Record to update.
    new_status : ApprovalStatus or str
        Target state; any state may follow any other.
    comments : str, optional
        Free text for this transition.
    now : Callable[[], datetime]
        Clock, injectable for deterministic tests.

    Returns
    -------
    ApprovalRecord

    Raises
    ------
    ValueError
        If ``new_status`` is not a known state.
    """
    status = ApprovalStatus(new_status)
    logger.info("Approval %s: %s -> %s", record.id, record.status.value, status.value)
    return replace(record, status=status, date=now(), comments=comments)


def set_approval(
    records: Sequence[ApprovalRecord],
    approval_id: str,
    new_status: ApprovalStatus | str,
    comments: str | None = None,
    now: Callable[[], datetime] = _utc_now,
) -> list[ApprovalRecord]:
    """Return a copy of ``records`` with one record transitioned.

    Raises
    ------
    KeyError
        If no record has ``approval_id``.
    ValueError
        If ``new_status`` is not a known state.
    """
    if not any(r.id == approval_id for r in records):
        raise KeyError(approval_id)
    return [transition(r, new_status, comments, now) if r.id == approval_id else r for r in records]


def domain_approval_status(records: Iterable[ApprovalRecord], domain_id: str) -> ApprovalStatus:
    """Overall state of a domain across its roles.

    ``rejected`` if any role rejected, ``approved`` if every role approved,
    ``not_started`` if no role has started, otherwise ``pending``.

    Raises
    ------
    KeyError
        If the domain has no records.
    """
    statuses = [r.status for r in records if r.domain_id == domain_id]
    if not statuses:
        raise KeyError(domain_id)
    if ApprovalStatus.REJECTED in statuses:
        return ApprovalStatus.REJECTED
    if all(s == ApprovalStatus.APPROVED for s in statuses):
        return ApprovalStatus.APPROVED
    if all(s == ApprovalStatus.NOT_STARTED for s in statuses):
        return ApprovalStatus.NOT_STARTED
    return ApprovalStatus.PENDING


def can_approve(issues: Iterable[ValidationIssue]) -> bool:
    """Conventional gate: approvals proceed only without unresolved critical issues."""
    return not has_blocking_issues(issues)
