"""Shared utilities for selection solvers.

Contains eligibility preprocessing, result extraction from PuLP variables,
and the empty result builder.
"""

import logging
from collections.abc import Iterable, Sequence

import pulp as lp

from portfolio_engine._common import safe_divide
from portfolio_engine.models import BusinessDomain, Priority, Project
from portfolio_engine.solver._types import SelectionResult
from portfolio_engine.solver.scoring import project_score

logger = logging.getLogger(__name__)


def profitability_index(project: Project) -> float:
    """NPV per unit of CAPEX; 0 for zero-CAPEX projects."""
    return safe_divide(project.npv, project.capex)


def meets_thresholds(project: Project, domain: BusinessDomain) -> bool:
    """Whether a project satisfies its domain's IRR and payback thresholds.

    An undefined IRR never meets the threshold.
    """
    return project.irr is not None and project.irr >= domain.min_irr and project.payback_years <= domain.max_payback


def eligible_projects(
    projects: Iterable[Project],
    domains: Iterable[BusinessDomain],
    locked: Iterable[str] = (),
    excluded: Iterable[str] = (),
    enforce_thresholds: bool = True,
    priorities: Sequence[Priority] = (),
) -> list[Project]:
    """Filter candidates down to those a solver may select.

    Drops excluded ids and ``excluded`` projects, projects of unknown or
    inactive domains and, when ``enforce_thresholds`` is set, projects
    failing their domain's IRR or payback threshold or the
    ``min_threshold`` of any priority. Locked projects bypass the
    thresholds but not the exclusions.

    Parameters
    ----------
    projects : Iterable[Project]
        Candidate projects.
    domains : Iterable[BusinessDomain]
        Known domains.
    locked : Iterable[str]
        Project ids that must be selected.
    excluded : Iterable[str]
        Project ids that must not be selected.
    enforce_thresholds : bool
        Apply domain IRR and payback thresholds.
    priorities : Sequence[Priority]
        Strategic priorities whose alignment thresholds apply; none by default.

    Returns
    -------
    list[Project]
        New list; input is not mutated.
    """
    projects = list(projects)
    domains_by_id = {d.id: d for d in domains}
    locked = set(locked)
    excluded = set(excluded)
    eligible = []
    for project in projects:
        domain = domains_by_id.get(project.domain)
        if project.id in excluded or project.status == "excluded":
            continue
        if domain is None or not domain.is_active:
            continue
        if enforce_thresholds and project.id not in locked:
            if not meets_thresholds(project, domain):
                continue
            if priorities and not project_score(project, priorities)["passes_threshold"]:
                continue
        eligible.append(project)
    logger.info("%d of %d projects eligible for selection", len(eligible), len(projects))
    return eligible


def extract_selection(
    x_vars: dict[str, lp.LpVariable],
    projects: Sequence[Project],
) -> tuple[list[str], float]:
    """Extract selected project ids and their total CAPEX from a solved BIP.

    Parameters
    ----------
    x_vars : dict[str, LpVariable]
        Binary selection variables keyed by project id.
    projects : Sequence[Project]
        Projects the problem was built from.

    Returns
    -------
    tuple[list[str], float]
        ``(selected_ids, total_capex)``.
    """
    selected: list[str] = []
    total_capex = 0.0
    for project in projects:
        if x_vars[project.id].varValue is not None and x_vars[project.id].varValue > 0.5:
            selected.append(project.id)
            total_capex += project.capex
    return selected, total_capex


def empty_selection_result(status: str, rule: str) -> SelectionResult:
    """Build a ``SelectionResult`` with no selection.

    Parameters
    ----------
    status : str
        Descriptive status string.
    rule : str
        Selection rule identifier.

    Returns
    -------
    SelectionResult
    """
    return {
        "status": status,
        "selected_projects": [],
        "total_capex": 0.0,
        "objective_value": None,
        "rule": rule,
        "detail": {},
    }
