"""Engine configuration."""

from dataclasses import dataclass, field

BUDGET_MODES = ("percentage", "dollar")


@dataclass(frozen=True)
class ValidationThresholds:
    """Limits used by the built-in validation checks.

    Parameters
    ----------
    high_risk_score : float
        Risk score at or above which a project counts as high risk.
    risk_concentration_limit : float
        Maximum share of a domain's selected projects that may be high risk.
    risk_concentration_min_projects : int
        Concentration is only checked for domains with more selected projects.
    min_strategic_fit : float
        Strategic fit below this value is flagged.
    irr_range : tuple[float, float]
        Plausible IRR band in percent.
    payback_range : tuple[float, float]
        Plausible payback band in years.
    cluster_size : int
        Number of projects sharing a start quarter that counts as clustering.
    domain_share_limit : float
        Maximum share of total selected CAPEX a single domain may hold.
    required_fields : tuple[str, ...]
        Optional project fields reported when missing.
    """

    high_risk_score: float = 7
    risk_concentration_limit: float = 0.3
    risk_concentration_min_projects: int = 2
    min_strategic_fit: float = 5
    irr_range: tuple[float, float] = (5.0, 50.0)
    payback_range: tuple[float, float] = (0.5, 15.0)
    cluster_size: int = 5
    domain_share_limit: float = 0.3
    required_fields: tuple[str, ...] = ("business_unit", "geography", "sponsor")

    def __post_init__(self) -> None:
        """Validate threshold ranges."""
        for name in ("risk_concentration_limit", "domain_share_limit"):
            if not (0 <= getattr(self, name) <= 1):
                raise ValueError(f"{name} must be between 0 and 1.")
        for name in ("irr_range", "payback_range"):
            low, high = getattr(self, name)
            if low > high:
                raise ValueError(f"{name} lower bound must not exceed upper bound.")
        if self.cluster_size < 1:
            raise ValueError("cluster_size must be at least 1.")


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for :class:`portfolio_engine.adapter.PortfolioEngine`.

    The discount rate has no default: NPV results are only reproducible when
    the caller states the rate explicitly.

    Parameters
    ----------
    discount_rate : float
        Decimal discount rate used for NPV, e.g. ``0.1``.
    total_budget : float
        Total capital to distribute across domains.
    budget_mode : str
        ``percentage`` (shares authoritative) or ``dollar`` (amounts authoritative).
    irr_lower, irr_upper : float
        Bounds of the IRR search domain as decimal rates.
    irr_max_iterations : int
        Iteration budget of the IRR root-finder.
    irr_tolerance : float
        Convergence tolerance on the rate.
    quarterly_limit : float
        Capital that may be deployed per quarter across the portfolio.
    thresholds : ValidationThresholds
        Limits for the built-in validation checks.
    """

    discount_rate: float
    total_budget: float = 0.0
    budget_mode: str = "percentage"
    irr_lower: float = -0.99
    irr_upper: float = 10.0
    irr_max_iterations: int = 200
    irr_tolerance: float = 1e-10
    quarterly_limit: float = 50_000_000.0
    thresholds: ValidationThresholds = field(default_factory=ValidationThresholds)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.discount_rate <= -1:
            raise ValueError("discount_rate must be greater than -1.")
        if self.total_budget < 0:
            raise ValueError("total_budget must be non-negative.")
        if self.budget_mode not in BUDGET_MODES:
            raise ValueError(f"budget_mode must be one of {BUDGET_MODES}.")
        if not (-1 < self.irr_lower < self.irr_upper):
            raise ValueError("IRR bounds must satisfy -1 < irr_lower < irr_upper.")
        if self.irr_max_iterations < 1:
            raise ValueError("irr_max_iterations must be at least 1.")
