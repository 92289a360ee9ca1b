"""Time-phased CAPEX allocation patterns.

A pattern maps ``(total, periods)`` to ``periods`` amounts that sum exactly
to ``total``. Each pattern is a weight vector normalized to 1; the
four-period shapes are the reference and longer horizons keep the same
intent (flat, declining, rising, slow-fast-slow).
"""

import logging
import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace

from portfolio_engine.errors import UnknownPattern
from portfolio_engine.models import Project, QuarterAllocation

logger = logging.getLogger(__name__)

S_CURVE_STEEPNESS = 8.0
ALLOCATION_TOLERANCE = 1000.0
_MAX_ULP_STEPS = 64


def _even_spread(periods: int) -> list[float]:
    return [1.0] * periods


def _front_loaded(periods: int) -> list[float]:
    return [float(periods - i) for i in range(periods)]


def _back_loaded(periods: int) -> list[float]:
    return list(reversed(_front_loaded(periods)))


def _s_curve(periods: int) -> list[float]:
    # Per-period increments of a logistic CDF sampled over [0, 1].
    cdf = [1 / (1 + math.exp(-S_CURVE_STEEPNESS * (i / periods - 0.5))) for i in range(periods + 1)]
    return [cdf[i + 1] - cdf[i] for i in range(periods)]


PATTERNS: dict[str, Callable[[int], list[float]]] = {
    "evenSpread": _even_spread,
    "frontLoaded": _front_loaded,
    "backLoaded": _back_loaded,
    "sCurve": _s_curve,
}

_ALIASES = {"even": "evenSpread"}


def pattern_weights(pattern_name: str, periods: int) -> list[float]:
    """Normalized weights of a pattern.

    Parameters
    ----------
    pattern_name : str
        Registered pattern name (or alias).
    periods : int
        Number of periods, at least 1.

    Returns
    -------
    list[float]
        Non-negative weights summing to 1.

    Raises
    ------
    UnknownPattern
        If the name is not registered.
    ValueError
        If ``periods`` is less than 1.
    """
    name = _ALIASES.get(pattern_name, pattern_name)
    if name not in PATTERNS:
        raise UnknownPattern(pattern_name, list(PATTERNS))
    if periods < 1:
        raise ValueError("periods must be at least 1.")
    raw = PATTERNS[name](periods)
    total = sum(raw)
    return [w / total for w in raw]


def apply_pattern(pattern_name: str, total: float, periods: int, decimals: int = 0) -> list[float]:
    """Split ``total`` into ``periods`` amounts following a pattern.

    Each amount is rounded to ``decimals``; the accumulated rounding error
    lands on the final period so the amounts sum to ``total`` exactly. On a
    float rounding tie the preceding amount may also move by one ulp.

    Parameters
    ----------
    pattern_name : str
        ``evenSpread``, ``frontLoaded``, ``backLoaded`` or ``sCurve``.
    total : float
        Amount to distribute.
    periods : int
        Number of periods, at least 1.
    decimals : int
        Rounding precision of each amount.

    Returns
    -------
    list[float]

    Examples
    --------
    >>> apply_pattern("frontLoaded", 1000, 4)
    [400.0, 300.0, 200.0, 100.0]
    """
    weights = pattern_weights(pattern_name, periods)
    amounts = [round(total * w, decimals) for w in weights[:-1]]
    amounts.append(total - sum(amounts))
    _reconcile(amounts, total)
    return amounts


def _reconcile(amounts: list[float], total: float) -> None:
    """Step the final amount by ulps until ``sum(amounts) == total``.

    When the sum straddles ``total`` (a rounding tie), the preceding amount
    moves by one ulp and the final amount is recomputed.
    """
    for _ in range(_MAX_ULP_STEPS):
        current = sum(amounts)
        if current == total:
            return
        direction = math.inf if current < total else -math.inf
        amounts[-1] = math.nextafter(amounts[-1], direction)
        stepped = sum(amounts)
        if len(amounts) > 1 and stepped != total and (stepped < total) != (current < total):
            amounts[-2] = math.nextafter(amounts[-2], direction)
            amounts[-1] = total - sum(amounts[:-1])
    logger.warning("Pattern amounts sum to %r instead of %r", sum(amounts), total)


def generate_quarter_labels(start_year: int = 2025, years: int = 5) -> list[str]:
    """Quarter labels such as ``Q1'25`` for ``years`` consecutive years."""
    return [f"Q{quarter}'{str(year)[-2:]}" for year in range(start_year, start_year + years) for quarter in range(1, 5)]


def allocate_project(
    project: Project,
    pattern_name: str,
    quarters: Sequence[str] | None = None,
    decimals: int = 0,
) -> Project:
    """Return a copy of ``project`` with its CAPEX spread over ``quarters``.

    Parameters
    ----------
    project : Project
        Project to schedule.
    pattern_name : str
        Allocation pattern.
    quarters : Sequence[str], optional
        Quarter labels; defaults to the first four quarters of
        :func:`generate_quarter_labels`.
    decimals : int
        Rounding precision of each amount.

    Returns
    -------
    Project
    """
    if quarters is None:
        quarters = generate_quarter_labels()[:4]
    amounts = apply_pattern(pattern_name, project.capex, len(quarters), decimals)
    allocation = tuple(QuarterAllocation(q, a) for q, a in zip(quarters, amounts))
    return replace(project, quarterly_allocation=allocation)


def update_quarter_amount(project: Project, quarter: str, amount: float) -> Project:
    """Set one quarter's amount, appending the quarter if it is not scheduled yet."""
    allocation = [QuarterAllocation(q, amount if q == quarter else a) for q, a in project.quarterly_allocation]
    if not any(q == quarter for q, _ in allocation):
        allocation.append(QuarterAllocation(quarter, amount))
    return replace(project, quarterly_allocation=tuple(allocation))


def allocation_gap(project: Project) -> float:
    """CAPEX not yet scheduled (negative when over-scheduled)."""
    return project.capex - sum(a for _, a in project.quarterly_allocation)


def is_allocation_complete(project: Project, tolerance: float = ALLOCATION_TOLERANCE) -> bool:
    return abs(allocation_gap(project)) < tolerance


def quarterly_totals(projects: Iterable[Project], quarters: Sequence[str]) -> dict[str, float]:
    """Scheduled CAPEX per quarter across the selected projects."""
    totals = {q: 0.0 for q in quarters}
    for project in projects:
        if not project.is_selected:
            continue
        for quarter, amount in project.quarterly_allocation:
            if quarter in totals:
                totals[quarter] += amount
    return totals


def quarterly_headroom(
    projects: Iterable[Project],
    quarters: Sequence[str],
    quarterly_limit: float,
) -> dict[str, float]:
    """Capacity left per quarter; negative values mark over-committed quarters."""
    headroom = {q: quarterly_limit - total for q, total in quarterly_totals(projects, quarters).items()}
    over = [q for q, value in headroom.items() if value < 0]
    if over:
        logger.info("Quarterly limit exceeded in %d quarter(s): %s", len(over), ", ".join(over))
    return headroom
