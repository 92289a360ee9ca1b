"""Portfolio roll-ups and selection bookkeeping.

Selection state lives on each project's ``status``; ``portfolio_rank`` is a
1-based position among the selected projects of the same domain. The
mutators here return new project lists and keep ranks unique and
contiguous within each domain.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace

from portfolio_engine._common import mean, safe_divide
from portfolio_engine._types import DomainAllocation, PortfolioMetrics, RiskDistribution
from portfolio_engine.models import BusinessDomain, Project

logger = logging.getLogger(__name__)

_RISK_TOLERANCE_MAX_SCORE = {"low": 3, "medium": 6, "high": 10}


def risk_distribution(projects: Iterable[Project]) -> RiskDistribution:
    """Count projects per risk bucket: low <= 3, medium 4-6, high >= 7."""
    counts: RiskDistribution = {"low": 0, "medium": 0, "high": 0}
    for project in projects:
        if project.risk_score <= 3:
            counts["low"] += 1
        elif project.risk_score < 7:
            counts["medium"] += 1
        else:
            counts["high"] += 1
    return counts


def aggregate(projects: Iterable[Project]) -> PortfolioMetrics:
    """Roll up the selected projects into portfolio metrics.

    Parameters
    ----------
    projects : Iterable[Project]
        Any projects; only those with status ``selected`` are counted.

    Returns
    -------
    PortfolioMetrics
        All zeros for an empty selection. ``portfolio_irr`` is weighted by
        CAPEX over the projects whose IRR is defined.
    """
    selected = [p for p in projects if p.is_selected]
    total_capex = sum(p.capex for p in selected)
    defined = [p for p in selected if p.irr is not None]
    weight_base = sum(p.capex for p in defined)
    portfolio_irr = sum(p.irr * safe_divide(p.capex, weight_base) for p in defined)

    undefined_irr_count = len(selected) - len(defined)
    if undefined_irr_count:
        logger.warning("%d selected project(s) have an undefined IRR and are excluded from portfolio IRR", undefined_irr_count)

    return {
        "project_count": len(selected),
        "total_capex": total_capex,
        "total_npv": sum(p.npv for p in selected),
        "portfolio_irr": portfolio_irr,
        "avg_payback": mean(p.payback_years for p in selected),
        "avg_risk": mean(p.risk_score for p in selected),
        "avg_strategic_fit": mean(p.strategic_fit or 0 for p in selected),
        "risk_distribution": risk_distribution(selected),
        "undefined_irr_count": undefined_irr_count,
    }


def domain_spend(projects: Iterable[Project], domain_id: str) -> float:
    """CAPEX of the selected projects in one domain."""
    return sum(p.capex for p in projects if p.is_selected and p.domain == domain_id)


def check_budget_constraint(candidate: Project, domain: BusinessDomain, projects: Iterable[Project]) -> bool:
    """Whether adding ``candidate`` keeps the domain within its budget.

    Advisory only: the caller decides whether to block the selection. A
    candidate that is already selected is not counted twice.
    """
    current = sum(p.capex for p in projects if p.is_selected and p.domain == domain.id and p.id != candidate.id)
    return current + candidate.capex <= domain.budget


def domain_allocations(domains: Iterable[BusinessDomain], projects: Sequence[Project]) -> list[DomainAllocation]:
    """Budget usage per domain."""
    allocations: list[DomainAllocation] = []
    for domain in domains:
        spend = domain_spend(projects, domain.id)
        allocations.append(
            {
                "domain_id": domain.id,
                "budget": domain.budget,
                "spend": spend,
                "remaining": domain.budget - spend,
                "utilization": safe_divide(spend, domain.budget),
                "project_count": sum(1 for p in projects if p.is_selected and p.domain == domain.id),
            }
        )
    return allocations


def ranked_projects(projects: Iterable[Project], domain_id: str) -> list[Project]:
    """Selected projects of a domain ordered by rank."""
    selected = [p for p in projects if p.is_selected and p.domain == domain_id]
    return sorted(selected, key=lambda p: p.portfolio_rank if p.portfolio_rank is not None else float("inf"))


def _find(projects: Sequence[Project], project_id: str) -> Project:
    for project in projects:
        if project.id == project_id:
            return project
    raise KeyError(project_id)


def _apply_ranks(projects: Sequence[Project], domain_id: str, ordered_ids: list[str]) -> list[Project]:
    ranks = {pid: rank for rank, pid in enumerate(ordered_ids, start=1)}
    result = []
    for project in projects:
        if project.domain == domain_id and project.id in ranks:
            if project.portfolio_rank != ranks[project.id] or not project.is_selected:
                project = replace(project, status="selected", portfolio_rank=ranks[project.id])
        result.append(project)
    return result


def select_project(projects: Sequence[Project], project_id: str) -> list[Project]:
    """Add a project to the portfolio at the end of its domain's ranking.

    Raises
    ------
    KeyError
        If the project does not exist.
    """
    project = _find(projects, project_id)
    if project.is_selected:
        return list(projects)
    order = [p.id for p in ranked_projects(projects, project.domain)] + [project_id]
    return _apply_ranks(projects, project.domain, order)


def deselect_project(projects: Sequence[Project], project_id: str) -> list[Project]:
    """Remove a project from the portfolio and close the gap in its domain's ranks."""
    project = _find(projects, project_id)
    order = [p.id for p in ranked_projects(projects, project.domain) if p.id != project_id]
    result = [replace(p, status="available", portfolio_rank=None) if p.id == project_id else p for p in projects]
    return _apply_ranks(result, project.domain, order)


def reorder_project(projects: Sequence[Project], project_id: str, new_rank: int) -> list[Project]:
    """Move a selected project to ``new_rank`` within its domain.

    Other projects shift to keep ranks unique and contiguous. ``new_rank``
    is clamped to the valid range.

    Raises
    ------
    ValueError
        If the project is not selected.
    """
    project = _find(projects, project_id)
    if not project.is_selected:
        raise ValueError(f"Project {project_id} is not in the portfolio.")
    order = [p.id for p in ranked_projects(projects, project.domain) if p.id != project_id]
    position = min(max(new_rank, 1), len(order) + 1) - 1
    order.insert(position, project_id)
    return _apply_ranks(projects, project.domain, order)


def exclude_project(projects: Sequence[Project], project_id: str) -> list[Project]:
    """Mark a project as excluded, removing it from the portfolio if needed."""
    result = deselect_project(projects, project_id)
    return [replace(p, status="excluded") if p.id == project_id else p for p in result]


def filter_projects_by_risk(projects: Iterable[Project], risk_tolerance: str) -> list[Project]:
    """Projects whose risk score fits a domain's tolerance.

    ``low`` admits scores up to 3, ``medium`` up to 6 and ``high`` admits all.
    """
    if risk_tolerance not in _RISK_TOLERANCE_MAX_SCORE:
        raise ValueError(f"Unknown risk tolerance {risk_tolerance!r}")
    limit = _RISK_TOLERANCE_MAX_SCORE[risk_tolerance]
    return [p for p in projects if p.risk_score <= limit]
