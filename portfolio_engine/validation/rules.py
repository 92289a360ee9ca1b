"""Configurable per-project validation rules.

A rule is data: a predicate plus the metadata of the issue it raises. The
engine evaluates every rule against every selected project whose domain is
known and emits one issue per failing ``(rule, project)`` pair.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from portfolio_engine.models import CATEGORIES, SEVERITIES, BusinessDomain, Project, ValidationIssue
from portfolio_engine.patterns import is_allocation_complete
from portfolio_engine.portfolio import filter_projects_by_risk
from portfolio_engine.validation._common import make_issue

logger = logging.getLogger(__name__)

RulePredicate = Callable[[Project, BusinessDomain, Sequence[Project]], bool]


@dataclass(frozen=True)
class Rule:
    """A validation rule.

    Parameters
    ----------
    name : str
        Rule name; part of the issue id.
    severity : str
        ``critical``, ``warning`` or ``info``.
    predicate : RulePredicate
        ``(project, domain, portfolio) -> bool``; ``False`` means violated.
    message : str
        Issue description.
    category : str
        Issue category.
    enabled : bool
        Disabled rules are skipped.
    """

    name: str
    severity: str
    predicate: RulePredicate
    message: str
    category: str = "compliance"
    enabled: bool = True

    def __post_init__(self) -> None:
        """Validate enumerated fields."""
        if self.severity not in SEVERITIES:
            raise ValueError(f"severity must be one of {SEVERITIES}, got {self.severity!r}")
        if self.category not in CATEGORIES:
            raise ValueError(f"category must be one of {CATEGORIES}, got {self.category!r}")


def _payback_within_limit(project: Project, domain: BusinessDomain, portfolio: Sequence[Project]) -> bool:
    return project.payback_years <= domain.max_payback


def _risk_within_tolerance(project: Project, domain: BusinessDomain, portfolio: Sequence[Project]) -> bool:
    return bool(filter_projects_by_risk([project], domain.risk_tolerance))


def _capex_reasonable(project: Project, domain: BusinessDomain, portfolio: Sequence[Project]) -> bool:
    return 1_000_000 <= project.capex <= 10_000_000_000


def _allocation_reconciles(project: Project, domain: BusinessDomain, portfolio: Sequence[Project]) -> bool:
    return not project.quarterly_allocation or is_allocation_complete(project)


DEFAULT_RULES: tuple[Rule, ...] = (
    Rule(
        name="Payback Within Domain Limit",
        severity="warning",
        predicate=_payback_within_limit,
        message="Payback period exceeds the domain's maximum payback.",
        category="compliance",
    ),
    Rule(
        name="Risk Within Domain Tolerance",
        severity="warning",
        predicate=_risk_within_tolerance,
        message="Risk score exceeds the domain's risk tolerance.",
        category="compliance",
    ),
    Rule(
        name="CAPEX Reasonableness",
        severity="warning",
        predicate=_capex_reasonable,
        message="CAPEX should be between $1M and $10B.",
        category="accuracy",
    ),
    Rule(
        name="Quarterly Allocation Reconciles",
        severity="warning",
        predicate=_allocation_reconciles,
        message="Quarterly allocation does not add up to the project's CAPEX.",
        category="consistency",
    ),
)


def evaluate_rules(
    rules: Iterable[Rule],
    domains: Iterable[BusinessDomain],
    selected: Sequence[Project],
) -> list[ValidationIssue]:
    """Evaluate every enabled rule against every selected project.

    Projects whose domain is unknown are skipped here; the built-in
    orphan check reports them.

    Parameters
    ----------
    rules : Iterable[Rule]
        Rules to evaluate.
    domains : Iterable[BusinessDomain]
        Known domains.
    selected : Sequence[Project]
        Selected projects; also passed to predicates as the portfolio.

    Returns
    -------
    list[ValidationIssue]
    """
    domains_by_id = {d.id: d for d in domains}
    issues = []
    for rule in rules:
        if not rule.enabled:
            continue
        for project in selected:
            domain = domains_by_id.get(project.domain)
            if domain is None:
                continue
            if not rule.predicate(project, domain, selected):
                issues.append(
                    make_issue(
                        rule.severity,
                        rule.category,
                        rule.name,
                        project.id,
                        title=rule.name,
                        description=rule.message,
                        affected_items=[project.id],
                    )
                )
    logger.debug("Rule evaluation produced %d issue(s)", len(issues))
    return issues
