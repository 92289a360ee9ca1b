"""Shared helpers for building validation issues."""

import re
from collections.abc import Iterable

from portfolio_engine.models import ValidationIssue

PORTFOLIO_SUBJECT = "portfolio"


def slugify(text: str) -> str:
    """Lower-case ``text`` and collapse non-alphanumeric runs into ``-``."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def make_issue_id(severity: str, check: str, subject: str) -> str:
    """Deterministic issue identity: the same condition always maps to the same id."""
    return f"{severity}-{slugify(check)}-{slugify(subject)}"


def make_issue(
    severity: str,
    category: str,
    check: str,
    subject: str,
    title: str,
    description: str,
    affected_items: Iterable[str] = (),
) -> ValidationIssue:
    """Build an unresolved issue whose id is derived from severity, check and subject."""
    return ValidationIssue(
        id=make_issue_id(severity, check, subject),
        severity=severity,
        category=category,
        title=title,
        description=description,
        check=check,
        affected_items=tuple(affected_items),
    )


def format_currency(amount: float) -> str:
    """Compact dollar formatting for issue descriptions, e.g. ``$450.0M``."""
    sign = "-" if amount < 0 else ""
    amount = abs(amount)
    for divisor, suffix in ((1e9, "B"), (1e6, "M"), (1e3, "K")):
        if amount >= divisor:
            return f"{sign}${amount / divisor:.1f}{suffix}"
    return f"{sign}${amount:.0f}"
