"""Budget balancing across business domains.

All functions return new domain lists; the input list and its domains are
never modified. Dollar amounts are always re-derived from percentages
(percentage mode) and ``remaining_budget`` from the selected projects'
CAPEX in each domain.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace

from portfolio_engine._common import safe_divide
from portfolio_engine.models import BusinessDomain, Project

logger = logging.getLogger(__name__)

BALANCE_TOLERANCE = 0.1
REBALANCE_MODES = ("equal", "targeted")


def _domain_spend(projects: Iterable[Project]) -> dict[str, float]:
    spend: dict[str, float] = {}
    for project in projects:
        if project.is_selected:
            spend[project.domain] = spend.get(project.domain, 0.0) + project.capex
    return spend


def _with_percent(domain: BusinessDomain, percent: float, total_budget: float, spend: dict[str, float]) -> BusinessDomain:
    budget = percent / 100 * total_budget
    return replace(
        domain,
        budget_percent=percent,
        budget=budget,
        remaining_budget=budget - spend.get(domain.id, 0.0),
    )


def auto_balance_equal(
    domains: Sequence[BusinessDomain],
    total_budget: float,
    projects: Iterable[Project] = (),
) -> list[BusinessDomain]:
    """Give every active domain an equal share of the budget.

    Parameters
    ----------
    domains : Sequence[BusinessDomain]
        Current domains.
    total_budget : float
        Total capital.
    projects : Iterable[Project]
        Projects used to derive ``remaining_budget``.

    Returns
    -------
    list[BusinessDomain]
        Active domains at ``round(100 / n, 2)`` percent, except the last
        active domain, which takes the rounding residual so the shares sum
        to 100; inactive domains unchanged. With no active domain the list
        is returned as a copy.
    """
    active_indices = [i for i, d in enumerate(domains) if d.is_active]
    if not active_indices:
        logger.info("No active domains to balance")
        return list(domains)
    percent = round(safe_divide(100, len(active_indices)), 2)
    last_percent = max(0.0, round(100 - percent * (len(active_indices) - 1), 2))
    spend = _domain_spend(projects)
    logger.info("Balancing %d active domains at %.2f%% each", len(active_indices), percent)
    result = []
    for index, domain in enumerate(domains):
        if not domain.is_active:
            result.append(domain)
        elif index == active_indices[-1]:
            result.append(_with_percent(domain, last_percent, total_budget, spend))
        else:
            result.append(_with_percent(domain, percent, total_budget, spend))
    return result


def smart_auto_balance(
    domains: Sequence[BusinessDomain],
    changed_domain_id: str,
    new_value: float,
    total_budget: float,
    projects: Iterable[Project] = (),
) -> list[BusinessDomain]:
    """Set one domain's share and redistribute the rest proportionally.

    The other active domains share ``100 - new_value`` in proportion to
    their prior shares. Domains with a zero prior share receive nothing,
    unless every other active domain is at zero, in which case the
    remainder is split equally among them. If the changed domain is the
    only active domain it takes the full 100%.

    Parameters
    ----------
    domains : Sequence[BusinessDomain]
        Current domains.
    changed_domain_id : str
        Domain whose share is set explicitly.
    new_value : float
        New share in percent, clamped to [0, 100].
    total_budget : float
        Total capital.
    projects : Iterable[Project]
        Projects used to derive ``remaining_budget``.

    Returns
    -------
    list[BusinessDomain]

    Raises
    ------
    KeyError
        If ``changed_domain_id`` is not among ``domains``.
    """
    changed = next((d for d in domains if d.id == changed_domain_id), None)
    if changed is None:
        raise KeyError(changed_domain_id)
    new_value = min(max(new_value, 0.0), 100.0)
    spend = _domain_spend(projects)

    others = [d for d in domains if d.is_active and d.id != changed_domain_id]
    if changed.is_active and not others:
        if new_value != 100.0:
            logger.warning("Domain %s is the only active domain; setting its share to 100%%", changed_domain_id)
        new_value = 100.0

    remainder = 100.0 - new_value if changed.is_active else 100.0
    prior_total = sum(d.budget_percent for d in others)
    if prior_total > 0:
        shares = {d.id: remainder * d.budget_percent / prior_total for d in others}
    else:
        shares = {d.id: safe_divide(remainder, len(others)) for d in others}

    result = []
    for domain in domains:
        if domain.id == changed_domain_id:
            result.append(_with_percent(domain, new_value, total_budget, spend))
        elif domain.id in shares:
            result.append(_with_percent(domain, shares[domain.id], total_budget, spend))
        else:
            result.append(domain)
    return result


def rebalance(
    domains: Sequence[BusinessDomain],
    mode: str,
    total_budget: float,
    changed_id: str | None = None,
    new_value: float | None = None,
    projects: Iterable[Project] = (),
) -> list[BusinessDomain]:
    """Dispatch to :func:`auto_balance_equal` or :func:`smart_auto_balance`.

    Parameters
    ----------
    domains : Sequence[BusinessDomain]
        Current domains.
    mode : str
        ``equal`` or ``targeted``.
    total_budget : float
        Total capital.
    changed_id : str, optional
        Required for ``targeted``.
    new_value : float, optional
        Required for ``targeted``.
    projects : Iterable[Project]
        Projects used to derive ``remaining_budget``.

    Returns
    -------
    list[BusinessDomain]
    """
    if mode == "equal":
        return auto_balance_equal(domains, total_budget, projects)
    if mode == "targeted":
        if changed_id is None or new_value is None:
            raise ValueError("targeted rebalance requires changed_id and new_value.")
        return smart_auto_balance(domains, changed_id, new_value, total_budget, projects)
    raise ValueError(f"mode must be one of {REBALANCE_MODES}, got {mode!r}")


def needs_rebalance(domains: Iterable[BusinessDomain], budget_mode: str = "percentage") -> bool:
    """Whether active shares drift more than 0.1 points from 100% in percentage mode.

    Dollar entries are authoritative and never trigger a rebalance.
    """
    if budget_mode != "percentage":
        return False
    active = [d for d in domains if d.is_active]
    if not active:
        return False
    return abs(sum(d.budget_percent for d in active) - 100) > BALANCE_TOLERANCE


def update_domain_budget(
    domains: Sequence[BusinessDomain],
    domain_id: str,
    value: float,
    budget_mode: str,
    total_budget: float,
    projects: Iterable[Project] = (),
) -> list[BusinessDomain]:
    """Set one domain's budget without touching the others.

    In percentage mode ``value`` is a percent and dollars are derived; in
    dollar mode ``value`` is a dollar amount and the percent is derived
    (0 when the total budget is 0).

    Raises
    ------
    KeyError
        If ``domain_id`` is not among ``domains``.
    ValueError
        If ``budget_mode`` is unknown.
    """
    if not any(d.id == domain_id for d in domains):
        raise KeyError(domain_id)
    spend = _domain_spend(projects)
    result = []
    for domain in domains:
        if domain.id != domain_id:
            result.append(domain)
        elif budget_mode == "percentage":
            result.append(_with_percent(domain, value, total_budget, spend))
        elif budget_mode == "dollar":
            result.append(
                replace(
                    domain,
                    budget=value,
                    budget_percent=safe_divide(value, total_budget) * 100,
                    remaining_budget=value - spend.get(domain.id, 0.0),
                )
            )
        else:
            raise ValueError(f"Unknown budget mode {budget_mode!r}")
    return result


def apply_total_budget(
    domains: Sequence[BusinessDomain],
    total_budget: float,
    projects: Iterable[Project] = (),
) -> list[BusinessDomain]:
    """Re-derive every domain's dollars from its percent for a new total."""
    spend = _domain_spend(projects)
    return [_with_percent(d, d.budget_percent, total_budget, spend) for d in domains]


def allocation_summary(domains: Iterable[BusinessDomain]) -> dict[str, float | int | bool]:
    """Totals over the active domains.

    Returns
    -------
    dict
        ``total_percent``, ``total_budget``, ``active_count`` and
        ``is_balanced`` (within 0.1 points of 100%).
    """
    active = [d for d in domains if d.is_active]
    total_percent = sum(d.budget_percent for d in active)
    return {
        "total_percent": total_percent,
        "total_budget": sum(d.budget for d in active),
        "active_count": len(active),
        "is_balanced": abs(total_percent - 100) < BALANCE_TOLERANCE,
    }
