"""Portfolio selection solvers.

Provides selection-rule implementations, a shared eligibility filter,
priority-weighted project scoring, and the ``SelectionSolver`` protocol
that all rules satisfy.

Convenience function ``optimize_portfolio`` wraps eligibility filtering and
a solver in a single call; ``apply_selection`` writes a result back onto the
project snapshot.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace

from portfolio_engine.models import BusinessDomain, Priority, Project
from portfolio_engine.solver._common import (
    eligible_projects,
    empty_selection_result,
    extract_selection,
    meets_thresholds,
    profitability_index,
)
from portfolio_engine.solver._types import PriorityScore, ProjectScore, SelectionResult, SelectionSolver
from portfolio_engine.solver.greedy import GreedySolver
from portfolio_engine.solver.knapsack import KnapsackSolver
from portfolio_engine.solver.scoring import alignment_score, priority_score_key, project_score, score_projects

__all__ = [
    "GreedySolver",
    "KnapsackSolver",
    "PriorityScore",
    "ProjectScore",
    "SelectionResult",
    "SelectionSolver",
    "alignment_score",
    "apply_selection",
    "eligible_projects",
    "empty_selection_result",
    "extract_selection",
    "meets_thresholds",
    "optimize_portfolio",
    "priority_score_key",
    "profitability_index",
    "project_score",
    "score_projects",
]

logger = logging.getLogger(__name__)


def optimize_portfolio(
    projects: Sequence[Project],
    domains: Sequence[BusinessDomain],
    solver: SelectionSolver | None = None,
    total_budget: float | None = None,
    locked: Iterable[str] = (),
    excluded: Iterable[str] = (),
    enforce_thresholds: bool = True,
    priorities: Sequence[Priority] = (),
) -> SelectionResult:
    """Filter eligible projects and solve the selection problem in one call.

    Parameters
    ----------
    projects : Sequence[Project]
        Candidate projects.
    domains : Sequence[BusinessDomain]
        Domains providing budgets and thresholds.
    solver : SelectionSolver, optional
        Selection rule. Default: :class:`KnapsackSolver`.
    total_budget : float, optional
        Additional cap on total selected CAPEX.
    locked : Iterable[str]
        Project ids that must be selected.
    excluded : Iterable[str]
        Project ids that must not be selected.
    enforce_thresholds : bool
        Drop projects failing their domain's IRR or payback threshold.
    priorities : Sequence[Priority]
        Strategic priorities; projects below any ``min_threshold`` are
        dropped. Pair with ``GreedySolver(key=priority_score_key(priorities))``
        to also rank by priority score.

    Returns
    -------
    SelectionResult
    """
    if solver is None:
        solver = KnapsackSolver()
    locked = list(locked)
    candidates = eligible_projects(projects, domains, locked, excluded, enforce_thresholds, priorities)
    if not candidates:
        return empty_selection_result("No Eligible Projects", getattr(solver, "rule", "custom"))
    result = solver(candidates, domains, total_budget, locked)
    logger.info(
        "Selection (%s) finished with status %s: %d projects, total CAPEX %.2f",
        result["rule"],
        result["status"],
        len(result["selected_projects"]),
        result["total_capex"],
    )
    return result


def apply_selection(projects: Sequence[Project], result: SelectionResult) -> list[Project]:
    """Write a solver result back onto the projects.

    Selected projects get status ``selected`` and a 1-based rank within
    their domain in result order. Projects that were selected but are not
    in the result return to ``available``. Excluded projects are untouched.

    Parameters
    ----------
    projects : Sequence[Project]
        Current project snapshot.
    result : SelectionResult
        Output of a selection solver.

    Returns
    -------
    list[Project]
        New project list in the input order.
    """
    chosen = list(dict.fromkeys(result["selected_projects"]))
    domain_of = {p.id: p.domain for p in projects}
    ranks: dict[str, int] = {}
    counters: dict[str, int] = {}
    for pid in chosen:
        if pid not in domain_of:
            continue
        domain_id = domain_of[pid]
        counters[domain_id] = counters.get(domain_id, 0) + 1
        ranks[pid] = counters[domain_id]

    updated = []
    for project in projects:
        if project.status == "excluded":
            updated.append(project)
        elif project.id in ranks:
            updated.append(replace(project, status="selected", portfolio_rank=ranks[project.id]))
        elif project.is_selected:
            updated.append(replace(project, status="available", portfolio_rank=None))
        else:
            updated.append(project)
    return updated
