"""Type definitions for metric results returned by the engine."""

from typing import TypedDict


class CashFlowMetrics(TypedDict):
    """Financial metrics of one cash-flow series.

    Parameters
    ----------
    npv : float
        Net present value at the configured discount rate.
    irr : float
        Internal rate of return in percent.
    mirr : float
        ``0.8 * irr``, in percent.
    payback_years : float
        Period in which the cumulative cash flow first turns positive.
    """

    npv: float
    irr: float
    mirr: float
    payback_years: float


class RiskDistribution(TypedDict):
    low: int
    medium: int
    high: int


class PortfolioMetrics(TypedDict):
    """Roll-up of the selected projects.

    Parameters
    ----------
    project_count : int
        Number of selected projects.
    total_capex : float
        Sum of CAPEX.
    total_npv : float
        Sum of NPV.
    portfolio_irr : float
        CAPEX-weighted IRR in percent over projects with a defined IRR.
    avg_payback : float
        Mean payback in years.
    avg_risk : float
        Mean risk score.
    avg_strategic_fit : float
        Mean strategic fit, missing values counted as 0.
    risk_distribution : RiskDistribution
        Project counts per risk bucket.
    undefined_irr_count : int
        Selected projects whose IRR is undefined and excluded from ``portfolio_irr``.
    """

    project_count: int
    total_capex: float
    total_npv: float
    portfolio_irr: float
    avg_payback: float
    avg_risk: float
    avg_strategic_fit: float
    risk_distribution: RiskDistribution
    undefined_irr_count: int


class DomainAllocation(TypedDict):
    domain_id: str
    budget: float
    spend: float
    remaining: float
    utilization: float
    project_count: int
