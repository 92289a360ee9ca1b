"""What-if stress scenarios.

A scenario inflates costs, deflates benefits and shifts the discount rate;
applying it produces new projects whose metrics are recomputed from the
stressed cash flows.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from portfolio_engine.cashflow import normalize_cash_flows, recompute_project
from portfolio_engine.models import CashFlow, Project
from portfolio_engine.portfolio import aggregate

logger = logging.getLogger(__name__)

_COMPARED_METRICS = ("total_capex", "total_npv", "portfolio_irr", "avg_payback")


@dataclass(frozen=True)
class Scenario:
    """Stress parameters, all in percent.

    Parameters
    ----------
    name : str
        Display name.
    cost_increase_pct : float
        Increase applied to CAPEX, OPEX and period-0 cash flows.
    benefit_reduction_pct : float
        Reduction applied to revenue, savings and later cash flows.
    interest_rate_change_pct : float
        Percentage points added to the discount rate.
    """

    name: str
    cost_increase_pct: float = 0.0
    benefit_reduction_pct: float = 0.0
    interest_rate_change_pct: float = 0.0

    def __post_init__(self):
        if self.cost_increase_pct <= -100:
            raise ValueError(f"cost_increase_pct must be greater than -100, got {self.cost_increase_pct}")
        if self.benefit_reduction_pct > 100:
            raise ValueError(f"benefit_reduction_pct must be at most 100, got {self.benefit_reduction_pct}")

    @property
    def cost_factor(self) -> float:
        return 1 + self.cost_increase_pct / 100

    @property
    def benefit_factor(self) -> float:
        return 1 - self.benefit_reduction_pct / 100

    def stressed_rate(self, discount_rate: float) -> float:
        """Discount rate after the interest rate shift."""
        return discount_rate + self.interest_rate_change_pct / 100


def _stress_project(project: Project, scenario: Scenario) -> Project:
    flows = tuple(
        CashFlow(cf.period, cf.amount * (scenario.cost_factor if cf.period == 0 else scenario.benefit_factor))
        for cf in normalize_cash_flows(project.cash_flows)
    )
    return replace(
        project,
        capex=project.capex * scenario.cost_factor,
        opex=project.opex * scenario.cost_factor,
        revenue_potential=project.revenue_potential * scenario.benefit_factor,
        savings_potential=project.savings_potential * scenario.benefit_factor,
        cash_flows=flows,
    )


def apply_scenario(
    projects: Iterable[Project],
    scenario: Scenario,
    discount_rate: float,
    **irr_options,
) -> list[Project]:
    """Stress every project and recompute its metrics.

    Parameters
    ----------
    projects : Iterable[Project]
        Projects to stress; selection state is preserved.
    scenario : Scenario
        Stress parameters.
    discount_rate : float
        Base decimal discount rate, shifted by the scenario.
    **irr_options
        Forwarded to :func:`portfolio_engine.cashflow.compute_irr`.

    Returns
    -------
    list[Project]
    """
    rate = scenario.stressed_rate(discount_rate)
    stressed = [recompute_project(_stress_project(p, scenario), rate, **irr_options) for p in projects]
    logger.info("Applied scenario %r to %d projects at discount rate %.4f", scenario.name, len(stressed), rate)
    return stressed


def compare_scenario(
    projects: Sequence[Project],
    scenario: Scenario,
    discount_rate: float,
    **irr_options,
) -> dict[str, Any]:
    """Portfolio metrics before and after a scenario.

    Both sides are recomputed from the projects' cash flows so that the
    comparison does not depend on stale stored metrics.

    Returns
    -------
    dict[str, Any]
        ``{"scenario", "base", "stressed", "delta"}`` where ``delta`` holds
        stressed minus base for CAPEX, NPV, portfolio IRR and payback.
    """
    base = aggregate(recompute_project(p, discount_rate, **irr_options) for p in projects)
    stressed = aggregate(apply_scenario(projects, scenario, discount_rate, **irr_options))
    return {
        "scenario": scenario.name,
        "base": base,
        "stressed": stressed,
        "delta": {key: stressed[key] - base[key] for key in _COMPARED_METRICS},
    }
