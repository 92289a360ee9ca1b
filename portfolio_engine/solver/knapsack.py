"""Budget-constrained NPV maximization.

Selects the subset of projects with the highest total NPV such that each
domain's selected CAPEX stays within its budget (and, optionally, the
portfolio within a total budget). Formulated as a binary integer program
and solved with PuLP/CBC.
"""

import logging
from collections.abc import Iterable, Sequence

import pulp as lp

from portfolio_engine.models import BusinessDomain, Project
from portfolio_engine.solver._common import empty_selection_result, extract_selection
from portfolio_engine.solver._types import SelectionResult

logger = logging.getLogger(__name__)


class KnapsackSolver:
    """Maximize total NPV under per-domain budgets.

    This solver receives **eligible** projects (already filtered by the
    shared preprocessing step). Locked projects are forced into the
    selection; if they alone break a budget the problem is infeasible and
    an empty result is returned.
    """

    rule = "knapsack"

    def __call__(
        self,
        projects: Sequence[Project],
        domains: Sequence[BusinessDomain],
        total_budget: float | None = None,
        locked: Iterable[str] = (),
    ) -> SelectionResult:
        """Solve the selection problem.

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
        locked = [pid for pid in dict.fromkeys(locked) if any(p.id == pid for p in candidates)]

        logger.info("Formulating NPV knapsack over %d projects", len(candidates))
        prob = lp.LpProblem("Portfolio_NPV_Selection", lp.LpMaximize)
        x = lp.LpVariable.dicts("Select", [p.id for p in candidates], 0, 1, lp.LpBinary)
        prob += lp.lpSum(x[p.id] * p.npv for p in candidates)

        for domain in domains:
            members = [p for p in candidates if p.domain == domain.id]
            if members:
                prob += lp.lpSum(x[p.id] * p.capex for p in members) <= domain.budget, f"Budget_{domain.id}"
        if total_budget is not None:
            prob += lp.lpSum(x[p.id] * p.capex for p in candidates) <= total_budget, "Total_Budget"
        for pid in locked:
            prob += x[pid] == 1, f"Locked_{pid}"

        logger.info("Solving the selection problem")
        try:
            prob.solve(lp.PULP_CBC_CMD(msg=False))
        except Exception:
            logger.exception("Error solving selection problem")
            result = empty_selection_result("Error solving selection problem", self.rule)
            result["detail"] = {"locked": locked}
            return result

        status = lp.LpStatus[prob.status]
        if prob.status != lp.LpStatusOptimal:
            logger.warning("Selection problem status: %s", status)
            result = empty_selection_result(status, self.rule)
            result["detail"] = {"locked": locked}
            return result

        selected, total_capex = extract_selection(x, candidates)
        by_id = {p.id: p for p in candidates}
        selected.sort(key=lambda pid: (-by_id[pid].npv, pid))
        domain_spend = {
            d.id: sum(by_id[pid].capex for pid in selected if by_id[pid].domain == d.id) for d in domains
        }
        return {
            "status": status,
            "selected_projects": selected,
            "total_capex": total_capex,
            "objective_value": lp.value(prob.objective),
            "rule": self.rule,
            "detail": {"locked": locked, "domain_spend": domain_spend},
        }
