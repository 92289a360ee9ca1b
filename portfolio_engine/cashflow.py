"""Cash-flow metrics: NPV, IRR, approximate MIRR and payback period.

Every function accepts a cash-flow series in any of these shapes and sorts
it by period before use:

- plain amounts, where the position is the period (``[-1000, 300, 300]``),
- ``(period, amount)`` pairs or :class:`~portfolio_engine.models.CashFlow` tuples,
- a mapping from period to amount.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import replace
from numbers import Real
from typing import Union

from portfolio_engine._types import CashFlowMetrics
from portfolio_engine.errors import NoConvergence
from portfolio_engine.models import CashFlow, Project

logger = logging.getLogger(__name__)

CashFlowInput = Union[Iterable[float], Iterable[tuple[int, float]], Mapping[int, float]]

MIRR_FACTOR = 0.8

# Bracket scan resolution and the bracket width at which bisection hands over to Newton.
_SCAN_POINTS = 400
_NEWTON_HANDOFF_WIDTH = 1e-6


def normalize_cash_flows(cash_flows: CashFlowInput) -> tuple[CashFlow, ...]:
    """Convert any supported series shape into period-sorted ``CashFlow`` tuples.

    Parameters
    ----------
    cash_flows : CashFlowInput
        Plain amounts, ``(period, amount)`` pairs or a period-to-amount mapping.

    Returns
    -------
    tuple[CashFlow, ...]
        Cash flows sorted by period.
    """
    if isinstance(cash_flows, Mapping):
        pairs = [CashFlow(int(period), float(amount)) for period, amount in cash_flows.items()]
    else:
        pairs = []
        for index, item in enumerate(cash_flows):
            if isinstance(item, Real):
                pairs.append(CashFlow(index, float(item)))
            else:
                period, amount = item
                pairs.append(CashFlow(int(period), float(amount)))
    return tuple(sorted(pairs, key=lambda cf: cf.period))


def cash_flows_from_inputs(capex: float, annual_benefit: float, years: int = 5) -> tuple[CashFlow, ...]:
    """Build a conventional series: ``-capex`` up front, then a flat annual benefit.

    Parameters
    ----------
    capex : float
        Up-front investment.
    annual_benefit : float
        Revenue plus savings received each year.
    years : int
        Number of benefit years after period 0.

    Returns
    -------
    tuple[CashFlow, ...]
    """
    if years < 0:
        raise ValueError("years must be non-negative.")
    return (CashFlow(0, -float(capex)),) + tuple(CashFlow(year, float(annual_benefit)) for year in range(1, years + 1))


def _discount(rate: float, period: float) -> float:
    """``(1 + rate) ** -period``; ``inf`` when the factor overflows."""
    try:
        return (1 + rate) ** -period
    except (OverflowError, ZeroDivisionError):
        return math.inf


def _npv(flows: tuple[CashFlow, ...], rate: float) -> float:
    # Non-finite for long series near the ends of the rate domain.
    return sum(cf.amount * _discount(rate, cf.period) for cf in flows if cf.amount)


def _npv_slope(flows: tuple[CashFlow, ...], rate: float) -> float:
    return sum(-cf.period * cf.amount * _discount(rate, cf.period + 1) for cf in flows if cf.amount and cf.period)


def compute_npv(cash_flows: CashFlowInput, discount_rate: float) -> float:
    """Net present value of a series.

    Parameters
    ----------
    cash_flows : CashFlowInput
        Cash-flow series.
    discount_rate : float
        Decimal discount rate per period; must be greater than -1.

    Returns
    -------
    float
        ``sum(amount_t / (1 + discount_rate) ** t)``.
    """
    if discount_rate <= -1:
        raise ValueError("discount_rate must be greater than -1.")
    return _npv(normalize_cash_flows(cash_flows), discount_rate)


def _find_bracket(flows: tuple[CashFlow, ...], lower: float, upper: float) -> tuple[float, float] | None:
    """Scan ``[lower, upper]`` for the first interval where NPV changes sign.

    The grid is quadratic in the index so it is densest at low rates, where
    conventional project IRRs live. Grid points where NPV is not finite are
    skipped.
    """
    span = upper - lower
    previous: tuple[float, float] | None = None
    for i in range(_SCAN_POINTS + 1):
        rate = lower + span * (i / _SCAN_POINTS) ** 2
        value = _npv(flows, rate)
        if not math.isfinite(value):
            continue
        if value == 0:
            return rate, rate
        if previous is not None and (value < 0) != (previous[1] < 0):
            return previous[0], rate
        previous = (rate, value)
    return None


def compute_irr(
    cash_flows: CashFlowInput,
    lower: float = -0.99,
    upper: float = 10.0,
    max_iterations: int = 200,
    tolerance: float = 1e-10,
) -> float:
    """Internal rate of return as a decimal rate.

    The root is bracketed by scanning ``[lower, upper]`` for a sign change
    of NPV, narrowed by bisection, then refined with Newton steps that fall
    back to bisection whenever they would leave the bracket.

    Parameters
    ----------
    cash_flows : CashFlowInput
        Cash-flow series.
    lower, upper : float
        Search domain for the rate.
    max_iterations : int
        Combined bisection and Newton iteration budget.
    tolerance : float
        Convergence tolerance on the rate.

    Returns
    -------
    float
        Rate ``r`` with ``compute_npv(cash_flows, r) == 0`` within tolerance.

    Raises
    ------
    NoConvergence
        If the series has no sign change, no root lies in the search domain,
        or the iteration budget is exhausted.
    """
    flows = normalize_cash_flows(cash_flows)
    if not (any(cf.amount > 0 for cf in flows) and any(cf.amount < 0 for cf in flows)):
        raise NoConvergence("no_sign_change")

    bracket = _find_bracket(flows, lower, upper)
    if bracket is None:
        raise NoConvergence("no_bracket")
    low, high = bracket
    if low == high:
        return low
    f_low = _npv(flows, low)

    iterations = 0
    while high - low > _NEWTON_HANDOFF_WIDTH:
        if iterations >= max_iterations:
            raise NoConvergence("iteration_limit", iterations)
        iterations += 1
        mid = (low + high) / 2
        f_mid = _npv(flows, mid)
        if f_mid == 0:
            return mid
        if (f_mid < 0) == (f_low < 0):
            low, f_low = mid, f_mid
        else:
            high = mid

    rate = (low + high) / 2
    while iterations < max_iterations:
        iterations += 1
        value = _npv(flows, rate)
        if value == 0:
            return rate
        if (value < 0) == (f_low < 0):
            low, f_low = rate, value
        else:
            high = rate
        slope = _npv_slope(flows, rate)
        candidate = rate - value / slope if slope != 0 and math.isfinite(slope) else None
        if candidate is None or not (low < candidate < high):
            candidate = (low + high) / 2
        if abs(candidate - rate) <= tolerance or high - low <= tolerance:
            return candidate
        rate = candidate
    raise NoConvergence("iteration_limit", iterations)


def compute_mirr_approx(irr: float | None) -> float | None:
    """Approximate MIRR as ``0.8 * irr``.

    This is not a true modified IRR (which needs separate finance and
    reinvestment rates); downstream thresholds are calibrated to this scale.
    An undefined IRR stays undefined.
    """
    if irr is None:
        return None
    return MIRR_FACTOR * irr


def compute_payback_period(cash_flows: CashFlowInput) -> float:
    """Period in which the running cumulative cash flow first becomes positive.

    Parameters
    ----------
    cash_flows : CashFlowInput
        Cash-flow series.

    Returns
    -------
    float
        The period index, or the series length if the investment is never
        recovered within the horizon.
    """
    flows = normalize_cash_flows(cash_flows)
    cumulative = 0.0
    for cf in flows:
        cumulative += cf.amount
        if cumulative > 0:
            return float(cf.period)
    return float(len(flows))


def compute_metrics(cash_flows: CashFlowInput, discount_rate: float, **irr_options) -> CashFlowMetrics:
    """Compute NPV, IRR, MIRR and payback from one snapshot of a series.

    Parameters
    ----------
    cash_flows : CashFlowInput
        Cash-flow series.
    discount_rate : float
        Decimal discount rate for NPV.
    **irr_options
        Forwarded to :func:`compute_irr` (``lower``, ``upper``,
        ``max_iterations``, ``tolerance``).

    Returns
    -------
    CashFlowMetrics
        IRR and MIRR in percent.

    Raises
    ------
    NoConvergence
        If the IRR is undefined.
    """
    flows = normalize_cash_flows(cash_flows)
    irr = compute_irr(flows, **irr_options) * 100
    return {
        "npv": compute_npv(flows, discount_rate),
        "irr": irr,
        "mirr": compute_mirr_approx(irr),
        "payback_years": compute_payback_period(flows),
    }


def recompute_project(project: Project, discount_rate: float, **irr_options) -> Project:
    """Return a copy of ``project`` with all derived metrics recomputed together.

    An undefined IRR is stored as ``None`` for both ``irr`` and ``mirr``;
    NPV and payback are still computed.

    Parameters
    ----------
    project : Project
        Project whose ``cash_flows`` are the source of truth.
    discount_rate : float
        Decimal discount rate for NPV.
    **irr_options
        Forwarded to :func:`compute_irr`.

    Returns
    -------
    Project
    """
    flows = normalize_cash_flows(project.cash_flows)
    try:
        irr = compute_irr(flows, **irr_options) * 100
    except NoConvergence as exc:
        logger.warning("IRR undefined for project %s: %s", project.id, exc.reason)
        irr = None
    return replace(
        project,
        cash_flows=flows,
        npv=compute_npv(flows, discount_rate),
        irr=irr,
        mirr=compute_mirr_approx(irr),
        payback_years=compute_payback_period(flows),
    )
