"""Validation rule engine.

Provides configurable per-project rules, the built-in structural checks,
and :func:`validate`, which runs both over a snapshot and scores the
result.
"""

from portfolio_engine.validation._common import make_issue_id
from portfolio_engine.validation._types import Check, ValidationContext, ValidationReport
from portfolio_engine.validation.checks import BUILTIN_CHECKS
from portfolio_engine.validation.engine import (
    count_by_severity,
    has_blocking_issues,
    health_label,
    health_score,
    resolve_issue,
    validate,
)
from portfolio_engine.validation.rules import DEFAULT_RULES, Rule, evaluate_rules

__all__ = [
    "BUILTIN_CHECKS",
    "Check",
    "DEFAULT_RULES",
    "Rule",
    "ValidationContext",
    "ValidationReport",
    "count_by_severity",
    "evaluate_rules",
    "has_blocking_issues",
    "health_label",
    "health_score",
    "make_issue_id",
    "resolve_issue",
    "validate",
]
