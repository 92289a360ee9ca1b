"""Engine component: the data-in/data-out surface of the portfolio engine.

Callers hand over camelCase records (as produced by a UI or an API layer);
the component maps them onto the internal dataclasses, runs the requested
operation and maps the results back. Redundant flags (``isSelected``,
``risk``) only exist at this boundary.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Protocol

from portfolio_engine._types import CashFlowMetrics, PortfolioMetrics
from portfolio_engine.approvals import ApprovalRecord, ApprovalStatus, set_approval
from portfolio_engine.balancer import allocation_summary, apply_total_budget, rebalance
from portfolio_engine.cashflow import compute_metrics, normalize_cash_flows, recompute_project
from portfolio_engine.config import EngineConfig
from portfolio_engine.models import (
    BusinessDomain,
    CashFlow,
    Priority,
    Project,
    QuarterAllocation,
    ValidationIssue,
    risk_level_for_score,
)
from portfolio_engine.patterns import apply_pattern, generate_quarter_labels, quarterly_headroom
from portfolio_engine.portfolio import aggregate, domain_allocations
from portfolio_engine.solver import KnapsackSolver, SelectionResult, SelectionSolver, optimize_portfolio
from portfolio_engine.validation import Rule, ValidationReport, validate

logger = logging.getLogger(__name__)


class PipelineComponent(Protocol):
    """Structural interface for pipeline stage components."""

    def execute(self, event: dict) -> dict:
        """Process event and return result."""
        ...


@dataclass
class EngineResult:
    """Snapshot returned by :meth:`PortfolioEngine.execute`."""

    domains: list[dict[str, Any]]
    projects: list[dict[str, Any]]
    metrics: dict[str, Any]
    validation: dict[str, Any]


_DOMAIN_FIELD_MAP_IN: dict[str, str] = {
    "budgetPercent": "budget_percent",
    "remainingBudget": "remaining_budget",
    "riskTolerance": "risk_tolerance",
    "minIRR": "min_irr",
    "minIrr": "min_irr",
    "maxPayback": "max_payback",
    "strategicScore": "strategic_score",
    "isActive": "is_active",
}

_PROJECT_FIELD_MAP_IN: dict[str, str] = {
    "projectId": "project_id",
    "revenuePotential": "revenue_potential",
    "savingsPotential": "savings_potential",
    "cashFlows": "cash_flows",
    "paybackYears": "payback_years",
    "paybackPeriod": "payback_years",
    "riskScore": "risk_score",
    "riskLevel": "risk_level",
    "portfolioRank": "portfolio_rank",
    "quarterlyAllocation": "quarterly_allocation",
    "strategicFit": "strategic_fit",
    "startQuarter": "start_quarter",
    "businessUnit": "business_unit",
    "priorityAlignment": "priority_alignment",
}

_PRIORITY_FIELD_MAP_IN: dict[str, str] = {
    "minThreshold": "min_threshold",
}

_FIELD_MAP_OUT: dict[str, str] = {
    "project_count": "projectCount",
    "total_capex": "totalCapex",
    "total_npv": "totalNpv",
    "portfolio_irr": "portfolioIrr",
    "avg_payback": "avgPayback",
    "avg_risk": "avgRisk",
    "avg_strategic_fit": "avgStrategicFit",
    "risk_distribution": "riskDistribution",
    "undefined_irr_count": "undefinedIrrCount",
    "domain_id": "domainId",
    "affected_items": "affectedItems",
    "health_score": "healthScore",
    "health_label": "healthLabel",
    "total_percent": "totalPercent",
    "total_budget": "totalBudget",
    "active_count": "activeCount",
    "is_balanced": "isBalanced",
}


def _invert(field_map: dict[str, str]) -> dict[str, str]:
    inverted: dict[str, str] = {}
    for camel, snake in field_map.items():
        inverted.setdefault(snake, camel)
    return inverted


_DOMAIN_FIELD_MAP_OUT = _invert(_DOMAIN_FIELD_MAP_IN)
_PROJECT_FIELD_MAP_OUT = _invert(_PROJECT_FIELD_MAP_IN)

_DOMAIN_FIELDS = {f.name for f in fields(BusinessDomain)}
_PROJECT_FIELDS = {f.name for f in fields(Project)}
_PRIORITY_FIELDS = {f.name for f in fields(Priority)}


def _to_cash_flows(raw: Any) -> Any:
    if isinstance(raw, dict):
        return raw
    flows = []
    for position, item in enumerate(raw or ()):
        if isinstance(item, dict):
            period = item.get("period", item.get("year", position))
            flows.append(CashFlow(int(period), float(item["amount"])))
        else:
            flows.append(item)
    return flows


def _to_quarters(raw: Any) -> tuple[QuarterAllocation, ...]:
    allocation = []
    for item in raw or ():
        if isinstance(item, dict):
            allocation.append(QuarterAllocation(item["quarter"], float(item["amount"])))
        else:
            allocation.append(QuarterAllocation(*item))
    return tuple(allocation)


def domain_from_record(record: dict[str, Any]) -> BusinessDomain:
    """Map a camelCase domain record onto :class:`BusinessDomain`.

    Unknown keys are ignored.
    """
    mapped = {_DOMAIN_FIELD_MAP_IN.get(key, key): value for key, value in record.items()}
    return BusinessDomain(**{key: value for key, value in mapped.items() if key in _DOMAIN_FIELDS})


def project_from_record(record: dict[str, Any]) -> Project:
    """Map a camelCase project record onto :class:`Project`.

    ``status`` wins over ``isSelected`` and ``riskLevel`` over ``risk``;
    the boundary-only flags are used only when the authoritative field is
    absent. Without either risk field the level is derived from
    ``riskScore``. Cash flows may be numbers, pairs or ``{"year"|"period",
    "amount"}`` records.

    Parameters
    ----------
    record : dict[str, Any]
        Project record with camelCase field names.

    Returns
    -------
    Project
    """
    mapped = {_PROJECT_FIELD_MAP_IN.get(key, key): value for key, value in record.items()}
    if "status" not in mapped and "isSelected" in mapped:
        mapped["status"] = "selected" if mapped["isSelected"] else "available"
    if "risk_level" not in mapped and "risk" in mapped:
        mapped["risk_level"] = mapped["risk"]
    if "risk_level" not in mapped and "risk_score" in mapped:
        mapped["risk_level"] = risk_level_for_score(mapped["risk_score"])
    if "cash_flows" in mapped:
        mapped["cash_flows"] = _to_cash_flows(mapped["cash_flows"])
    if "quarterly_allocation" in mapped:
        mapped["quarterly_allocation"] = _to_quarters(mapped["quarterly_allocation"])
    if "priority_alignment" in mapped:
        mapped["priority_alignment"] = tuple(mapped["priority_alignment"] or ())
    project = Project(**{key: value for key, value in mapped.items() if key in _PROJECT_FIELDS})
    if project.status != "selected" and project.portfolio_rank is not None:
        logger.warning("Project %s has a portfolio rank but is not selected; rank dropped", project.id)
        project = replace(project, portfolio_rank=None)
    return project


def priority_from_record(record: dict[str, Any]) -> Priority:
    """Map a camelCase priority record onto :class:`Priority`.

    Unknown keys (KPIs, sponsor, colors) are ignored.
    """
    mapped = {_PRIORITY_FIELD_MAP_IN.get(key, key): value for key, value in record.items()}
    return Priority(**{key: value for key, value in mapped.items() if key in _PRIORITY_FIELDS})


def domain_to_record(domain: BusinessDomain) -> dict[str, Any]:
    """Map a :class:`BusinessDomain` onto a camelCase record."""
    return {_DOMAIN_FIELD_MAP_OUT.get(key, key): value for key, value in asdict(domain).items()}


def project_to_record(project: Project) -> dict[str, Any]:
    """Map a :class:`Project` onto a camelCase record, adding ``isSelected`` and ``risk``."""
    record = {_PROJECT_FIELD_MAP_OUT.get(key, key): value for key, value in asdict(project).items()}
    record["cashFlows"] = [{"period": cf.period, "amount": cf.amount} for cf in normalize_cash_flows(project.cash_flows)]
    record["quarterlyAllocation"] = [{"quarter": q.quarter, "amount": q.amount} for q in project.quarterly_allocation]
    record["priorityAlignment"] = list(project.priority_alignment)
    record["isSelected"] = project.is_selected
    record["risk"] = project.risk
    return record


def issue_to_record(issue: ValidationIssue) -> dict[str, Any]:
    record = {_FIELD_MAP_OUT.get(key, key): value for key, value in asdict(issue).items()}
    record["affectedItems"] = list(issue.affected_items)
    return record


def _camel_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_FIELD_MAP_OUT.get(key, key): value for key, value in data.items()}


class PortfolioEngine(PipelineComponent):
    """Facade over the engine's operations with configuration bound once.

    Parameters
    ----------
    config : EngineConfig
        Discount rate, budgets, IRR search settings and validation limits.
    rules : Iterable[Rule], optional
        Per-project validation rules. Defaults to the built-in rule set.
    solver : SelectionSolver, optional
        Selection rule used by :meth:`optimize`. Defaults to
        :class:`~portfolio_engine.solver.KnapsackSolver`.
    """

    def __init__(
        self,
        config: EngineConfig,
        rules: Iterable[Rule] | None = None,
        solver: SelectionSolver | None = None,
    ) -> None:
        self.config = config
        self.rules = list(rules) if rules is not None else None
        self.solver = solver if solver is not None else KnapsackSolver()

    @property
    def _irr_options(self) -> dict[str, Any]:
        return {
            "lower": self.config.irr_lower,
            "upper": self.config.irr_upper,
            "max_iterations": self.config.irr_max_iterations,
            "tolerance": self.config.irr_tolerance,
        }

    def compute_metrics(self, cash_flows) -> CashFlowMetrics:
        """NPV, IRR, MIRR and payback at the configured discount rate.

        Raises
        ------
        NoConvergence
            If the IRR is undefined.
        """
        return compute_metrics(cash_flows, self.config.discount_rate, **self._irr_options)

    def recompute(self, projects: Iterable[Project]) -> list[Project]:
        """Recompute every project's derived metrics from its cash flows."""
        return [recompute_project(p, self.config.discount_rate, **self._irr_options) for p in projects]

    def apply_pattern(self, pattern_name: str, total: float, periods: int) -> list[float]:
        """Spread ``total`` over ``periods`` following a named pattern.

        Raises
        ------
        UnknownPattern
            If ``pattern_name`` is not a known pattern.
        """
        return apply_pattern(pattern_name, total, periods)

    def rebalance(
        self,
        domains: Sequence[BusinessDomain],
        mode: str,
        changed_id: str | None = None,
        new_value: float | None = None,
        projects: Iterable[Project] = (),
    ) -> list[BusinessDomain]:
        """Rebalance domain shares against the configured total budget."""
        return rebalance(domains, mode, self.config.total_budget, changed_id, new_value, projects)

    def aggregate(self, projects: Iterable[Project]) -> PortfolioMetrics:
        return aggregate(projects)

    def validate(
        self,
        domains: Iterable[BusinessDomain],
        projects: Iterable[Project],
        rules: Iterable[Rule] | None = None,
    ) -> ValidationReport:
        """Validate a snapshot with the engine's rules unless ``rules`` is given."""
        if rules is None:
            rules = self.rules
        return validate(domains, projects, rules, self.config.thresholds)

    def set_approval(
        self,
        records: Sequence[ApprovalRecord],
        approval_id: str,
        status: ApprovalStatus | str,
        comments: str | None = None,
        now=None,
    ) -> list[ApprovalRecord]:
        """Transition one approval record; ``now`` overrides the clock."""
        if now is None:
            return set_approval(records, approval_id, status, comments)
        return set_approval(records, approval_id, status, comments, now)

    def optimize(
        self,
        projects: Sequence[Project],
        domains: Sequence[BusinessDomain],
        locked: Iterable[str] = (),
        excluded: Iterable[str] = (),
        priorities: Sequence[Priority] = (),
    ) -> SelectionResult:
        """Select projects with the configured solver under domain budgets and priority thresholds."""
        total_budget = self.config.total_budget or None
        return optimize_portfolio(
            projects, domains, self.solver, total_budget, locked, excluded, priorities=priorities
        )

    def quarterly_headroom(self, projects: Iterable[Project], quarters: Sequence[str] | None = None) -> dict[str, float]:
        """Capacity left per quarter against the configured quarterly limit."""
        if quarters is None:
            quarters = generate_quarter_labels()
        return quarterly_headroom(projects, quarters, self.config.quarterly_limit)

    def execute(self, event: dict) -> dict:
        """Recompute, aggregate and validate a camelCase snapshot.

        Parameters
        ----------
        event : dict
            Must contain ``domains`` and ``projects`` (lists of camelCase
            records); ``totalBudget`` optionally overrides the configured
            total.

        Returns
        -------
        dict
            Serialized :class:`EngineResult` with ``domains``, ``projects``,
            ``metrics`` and ``validation``.
        """
        total_budget = event.get("totalBudget", self.config.total_budget)
        projects = self.recompute(project_from_record(r) for r in event["projects"])
        domains = [domain_from_record(r) for r in event["domains"]]
        if self.config.budget_mode == "percentage" and total_budget:
            domains = apply_total_budget(domains, total_budget, projects)

        metrics = self.aggregate(projects)
        report = self.validate(domains, projects)
        logger.info(
            "Engine run complete: %d domains, %d projects, %d selected, health=%d",
            len(domains),
            len(projects),
            metrics["project_count"],
            report["health_score"],
        )

        summary = _camel_keys(dict(metrics))
        summary["riskDistribution"] = dict(metrics["risk_distribution"])
        summary["allocation"] = _camel_keys(allocation_summary(domains))
        summary["domainAllocations"] = [_camel_keys(dict(a)) for a in domain_allocations(domains, projects)]

        result = EngineResult(
            domains=[domain_to_record(d) for d in domains],
            projects=[project_to_record(p) for p in projects],
            metrics=summary,
            validation={
                "issues": [issue_to_record(i) for i in report["issues"]],
                "healthScore": report["health_score"],
                "healthLabel": report["health_label"],
                "counts": dict(report["counts"]),
            },
        )
        return asdict(result)
