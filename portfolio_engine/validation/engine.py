"""Validation pass over a snapshot of domains and projects.

The engine keeps no state between passes: it returns the full, fresh issue
list for the snapshot it is given. Reconciling against previously resolved
issues is the caller's job; issue ids are deterministic so the caller can
match them.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace

from portfolio_engine.config import ValidationThresholds
from portfolio_engine.models import BusinessDomain, Project, ValidationIssue
from portfolio_engine.validation._types import Check, SeverityCounts, ValidationContext, ValidationReport
from portfolio_engine.validation.checks import BUILTIN_CHECKS
from portfolio_engine.validation.rules import DEFAULT_RULES, Rule, evaluate_rules

logger = logging.getLogger(__name__)

SEVERITY_PENALTIES = {"critical": 30, "warning": 10, "info": 5}


def count_by_severity(issues: Iterable[ValidationIssue]) -> SeverityCounts:
    """Count unresolved issues per severity."""
    counts: SeverityCounts = {"critical": 0, "warning": 0, "info": 0}
    for issue in issues:
        if not issue.resolved:
            counts[issue.severity] += 1
    return counts


def health_score(issues: Iterable[ValidationIssue]) -> int:
    """``100 - 30*critical - 10*warning - 5*info`` over unresolved issues, floored at 0."""
    counts = count_by_severity(issues)
    return max(0, 100 - sum(SEVERITY_PENALTIES[s] * n for s, n in counts.items()))


def health_label(score: int) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    return "Needs Attention"


def has_blocking_issues(issues: Iterable[ValidationIssue]) -> bool:
    """Whether any critical issue is still unresolved."""
    return count_by_severity(issues)["critical"] > 0


def resolve_issue(issues: Sequence[ValidationIssue], issue_id: str, comments: str | None = None) -> list[ValidationIssue]:
    """Return a copy of ``issues`` with one issue marked resolved.

    Raises
    ------
    KeyError
        If no issue has ``issue_id``.
    """
    if not any(issue.id == issue_id for issue in issues):
        raise KeyError(issue_id)
    return [replace(i, resolved=True, comments=comments) if i.id == issue_id else i for i in issues]


def validate(
    domains: Iterable[BusinessDomain],
    projects: Iterable[Project],
    rules: Iterable[Rule] | None = None,
    thresholds: ValidationThresholds | None = None,
    checks: Iterable[Check] = BUILTIN_CHECKS,
) -> ValidationReport:
    """Run configurable rules and built-in checks over a snapshot.

    Parameters
    ----------
    domains : Iterable[BusinessDomain]
        All domains.
    projects : Iterable[Project]
        All projects; only selected ones are validated.
    rules : Iterable[Rule], optional
        Per-project rules. Defaults to :data:`DEFAULT_RULES`; pass an empty
        sequence to run the built-in checks only.
    thresholds : ValidationThresholds, optional
        Limits for the built-in checks.
    checks : Iterable[Check]
        Built-in checks to run.

    Returns
    -------
    ValidationReport
    """
    if rules is None:
        rules = DEFAULT_RULES
    ctx = ValidationContext(
        domains=tuple(domains),
        selected=tuple(p for p in projects if p.is_selected),
        thresholds=thresholds or ValidationThresholds(),
    )

    issues = evaluate_rules(rules, ctx.domains, ctx.selected)
    for check in checks:
        issues.extend(check.evaluate(check, ctx))

    counts = count_by_severity(issues)
    score = health_score(issues)
    logger.info(
        "Validation complete: %d critical, %d warning, %d info, health=%d",
        counts["critical"],
        counts["warning"],
        counts["info"],
        score,
    )
    return {
        "issues": issues,
        "health_score": score,
        "health_label": health_label(score),
        "counts": counts,
    }
