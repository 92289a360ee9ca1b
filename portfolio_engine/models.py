"""Data models for business domains, projects, priorities and validation issues."""

from dataclasses import dataclass
from typing import NamedTuple

RISK_LEVELS = ("low", "medium", "high")
PROJECT_STATUSES = ("available", "selected", "excluded")
SEVERITIES = ("critical", "warning", "info")
CATEGORIES = ("completeness", "consistency", "accuracy", "compliance", "logic", "format")


class CashFlow(NamedTuple):
    """Signed amount received (positive) or spent (negative) in a period."""

    period: int
    amount: float


class QuarterAllocation(NamedTuple):
    """CAPEX scheduled for one quarter, e.g. ``("Q1'25", 2_500_000)``."""

    quarter: str
    amount: float


def risk_level_for_score(risk_score: float) -> str:
    """Map a 1-10 risk score onto the low / medium / high buckets.

    Parameters
    ----------
    risk_score : float
        Risk score between 1 and 10.

    Returns
    -------
    str
        ``"low"`` for scores up to 3, ``"medium"`` up to 6, ``"high"`` above.
    """
    if risk_score <= 3:
        return "low"
    if risk_score <= 6:
        return "medium"
    return "high"


@dataclass(frozen=True)
class BusinessDomain:
    """A business unit with its own budget share and acceptance policy.

    Parameters
    ----------
    id : str
        Domain identifier referenced by ``Project.domain``.
    code : str
        Short code, e.g. ``"ENR"``.
    name : str
        Display name.
    budget_percent : float
        Share of the total budget, 0-100.
    budget : float
        Dollar budget derived from ``budget_percent`` in percentage mode.
    remaining_budget : float
        ``budget`` minus CAPEX of the domain's selected projects.
    risk_tolerance : str
        One of ``low``, ``medium``, ``high``.
    min_irr : float
        Minimum acceptable IRR in percent.
    max_payback : float
        Maximum acceptable payback in years.
    strategic_score : float
        Strategic importance, 1-10.
    is_active : bool
        Whether the domain participates in budget balancing.
    """

    id: str
    code: str = ""
    name: str = ""
    budget_percent: float = 0.0
    budget: float = 0.0
    remaining_budget: float = 0.0
    risk_tolerance: str = "medium"
    min_irr: float = 15.0
    max_payback: float = 5.0
    strategic_score: float = 5.0
    is_active: bool = True

    def __post_init__(self) -> None:
        """Validate enumerated fields."""
        if self.risk_tolerance not in RISK_LEVELS:
            raise ValueError(f"risk_tolerance must be one of {RISK_LEVELS}, got {self.risk_tolerance!r}")


@dataclass(frozen=True)
class Project:
    """A candidate investment.

    ``status`` is the single source of truth for selection; ``is_selected``
    is derived from it. ``npv``, ``irr``, ``mirr`` and ``payback_years`` are
    only ever written together by
    :func:`portfolio_engine.cashflow.recompute_project`. ``irr`` and ``mirr``
    are in percent and ``None`` when the IRR is undefined.
    """

    id: str
    domain: str
    name: str = ""
    project_id: str = ""
    category: str = ""
    capex: float = 0.0
    opex: float = 0.0
    revenue_potential: float = 0.0
    savings_potential: float = 0.0
    cash_flows: tuple[CashFlow, ...] = ()
    npv: float = 0.0
    irr: float | None = None
    mirr: float | None = None
    payback_years: float = 0.0
    risk_score: float = 5.0
    risk_level: str = "medium"
    status: str = "available"
    portfolio_rank: int | None = None
    quarterly_allocation: tuple[QuarterAllocation, ...] = ()
    strategic_fit: float | None = None
    start_quarter: int | None = None
    business_unit: str | None = None
    geography: str | None = None
    sponsor: str | None = None
    priority_alignment: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate enumerated fields."""
        if self.status not in PROJECT_STATUSES:
            raise ValueError(f"status must be one of {PROJECT_STATUSES}, got {self.status!r}")
        if self.risk_level not in RISK_LEVELS:
            raise ValueError(f"risk_level must be one of {RISK_LEVELS}, got {self.risk_level!r}")

    @property
    def is_selected(self) -> bool:
        return self.status == "selected"

    @property
    def risk(self) -> str:
        return self.risk_level


@dataclass(frozen=True)
class Priority:
    """A strategic priority projects are scored against.

    Parameters
    ----------
    id : str
        Identifier referenced by ``Project.priority_alignment``.
    code : str
        Short code, e.g. ``"P1"``.
    name : str
        Display name.
    weight : float
        Share of the total score, 0-100.
    min_threshold : float
        Minimum alignment score, 0-100, a project must reach on this priority.
    """

    id: str
    code: str = ""
    name: str = ""
    weight: float = 0.0
    min_threshold: float = 0.0

    def __post_init__(self) -> None:
        """Validate ranges."""
        if not 0 <= self.weight <= 100:
            raise ValueError(f"weight must be in [0, 100], got {self.weight}")
        if not 0 <= self.min_threshold <= 100:
            raise ValueError(f"min_threshold must be in [0, 100], got {self.min_threshold}")


@dataclass(frozen=True)
class ValidationIssue:
    """One finding of a validation pass.

    Parameters
    ----------
    id : str
        Deterministic identity built from severity, check name and subject.
    severity : str
        ``critical``, ``warning`` or ``info``.
    category : str
        One of :data:`CATEGORIES`.
    title : str
        Short headline.
    description : str
        Detail message.
    check : str
        Name of the rule or built-in check that produced the issue.
    affected_items : tuple[str, ...]
        Project ids the issue refers to.
    resolved : bool
        Set by the caller through :func:`portfolio_engine.validation.resolve_issue`.
    comments : str, optional
        Resolution comments.
    """

    id: str
    severity: str
    category: str
    title: str
    description: str
    check: str
    affected_items: tuple[str, ...] = ()
    resolved: bool = False
    comments: str | None = None

    def __post_init__(self) -> None:
        """Validate enumerated fields."""
        if self.severity not in SEVERITIES:
            raise ValueError(f"severity must be one of {SEVERITIES}, got {self.severity!r}")
        if self.category not in CATEGORIES:
            raise ValueError(f"category must be one of {CATEGORIES}, got {self.category!r}")
