"""Greedy ranking rule.

Walks projects in descending order of a score and adds each one while its
domain budget (and the optional total budget) still has room. Locked
projects are taken first regardless of score.
"""

import logging
from collections.abc import Callable, Iterable, Sequence

from portfolio_engine.models import BusinessDomain, Project
from portfolio_engine.solver._common import profitability_index
from portfolio_engine.solver._types import SelectionResult

logger = logging.getLogger(__name__)


class GreedySolver:
    """Score-ordered selection under budget constraints.

    Parameters
    ----------
    key : Callable[[Project], float]
        Ranking score; higher is better. Defaults to the profitability
        index (NPV per unit of CAPEX).
    """

    rule = "greedy"

    def __init__(self, key: Callable[[Project], float] = profitability_index) -> None:
        self.key = key

    def __call__(
        self,
        projects: Sequence[Project],
        domains: Sequence[BusinessDomain],
        total_budget: float | None = None,
        locked: Iterable[str] = (),
    ) -> SelectionResult:
        """Select projects greedily.

        Parameters
        ----------
        projects : Sequence[Project]
            Eligible projects; duplicate ids are considered once.
        domains : Sequence[BusinessDomain]
            Domains providing the per-domain budgets.
        total_budget : float, optional
            Additional cap on total selected CAPEX.
        locked : Iterable[str]
            Project ids that must be selected.

        Returns
        -------
        SelectionResult
        """
        candidates = list({p.id: p for p in projects}.values())
        locked_ids = set(locked)
        remaining = {d.id: d.budget for d in domains}
        total_remaining = total_budget if total_budget is not None else float("inf")

        selected: list[str] = []
        total_capex = 0.0
        total_npv = 0.0

        def take(project: Project) -> None:
            nonlocal total_capex, total_npv, total_remaining
            selected.append(project.id)
            remaining[project.domain] = remaining.get(project.domain, 0.0) - project.capex
            total_remaining -= project.capex
            total_capex += project.capex
            total_npv += project.npv

        for project in candidates:
            if project.id in locked_ids:
                take(project)
        if any(value < 0 for value in remaining.values()) or total_remaining < 0:
            logger.warning("Locked projects alone exceed the available budget")

        ranked = sorted(
            (p for p in candidates if p.id not in locked_ids),
            key=lambda p: (-self.key(p), p.id),
        )
        for project in ranked:
            if project.capex <= remaining.get(project.domain, 0.0) and project.capex <= total_remaining:
                take(project)

        logger.info("Greedy selection: %d projects, total CAPEX %.2f", len(selected), total_capex)
        return {
            "status": "Feasible",
            "selected_projects": selected,
            "total_capex": total_capex,
            "objective_value": total_npv,
            "rule": self.rule,
            "detail": {"locked": [pid for pid in selected if pid in locked_ids], "remaining_budget": remaining},
        }
