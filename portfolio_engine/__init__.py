"""Capital allocation, project selection and plan validation for investment portfolios."""

from portfolio_engine.adapter import PortfolioEngine
from portfolio_engine.approvals import ApprovalRecord, ApprovalRole, ApprovalStatus, initialize_approvals, set_approval
from portfolio_engine.cashflow import compute_irr, compute_metrics, compute_npv, compute_payback_period, recompute_project
from portfolio_engine.config import EngineConfig, ValidationThresholds
from portfolio_engine.errors import NoConvergence, PortfolioEngineError, UnknownPattern
from portfolio_engine.models import BusinessDomain, CashFlow, Priority, Project, QuarterAllocation, ValidationIssue
from portfolio_engine.patterns import apply_pattern
from portfolio_engine.portfolio import aggregate
from portfolio_engine.scenario import Scenario, apply_scenario, compare_scenario
from portfolio_engine.solver import GreedySolver, KnapsackSolver, apply_selection, optimize_portfolio
from portfolio_engine.validation import Rule, validate

__all__ = [
    "ApprovalRecord",
    "ApprovalRole",
    "ApprovalStatus",
    "BusinessDomain",
    "CashFlow",
    "EngineConfig",
    "GreedySolver",
    "KnapsackSolver",
    "NoConvergence",
    "PortfolioEngine",
    "PortfolioEngineError",
    "Priority",
    "Project",
    "QuarterAllocation",
    "Rule",
    "Scenario",
    "UnknownPattern",
    "ValidationIssue",
    "ValidationThresholds",
    "aggregate",
    "apply_pattern",
    "apply_scenario",
    "apply_selection",
    "compare_scenario",
    "compute_irr",
    "compute_metrics",
    "compute_npv",
    "compute_payback_period",
    "initialize_approvals",
    "optimize_portfolio",
    "recompute_project",
    "set_approval",
    "validate",
]
