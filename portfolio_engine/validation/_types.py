"""Type definitions for validation checks and the validation report."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypedDict

from portfolio_engine.config import ValidationThresholds
from portfolio_engine.models import BusinessDomain, Project, ValidationIssue


class SeverityCounts(TypedDict):
    critical: int
    warning: int
    info: int


class ValidationReport(TypedDict):
    """Result of one validation pass.

    Parameters
    ----------
    issues : list[ValidationIssue]
        Every issue found, rule issues first, then built-in checks.
    health_score : int
        ``100 - 30*critical - 10*warning - 5*info`` over unresolved issues, floored at 0.
    health_label : str
        ``Excellent``, ``Good`` or ``Needs Attention``.
    counts : SeverityCounts
        Unresolved issues per severity.
    """

    issues: list[ValidationIssue]
    health_score: int
    health_label: str
    counts: SeverityCounts


@dataclass(frozen=True)
class ValidationContext:
    """Snapshot handed to every check.

    Parameters
    ----------
    domains : tuple[BusinessDomain, ...]
        All domains.
    selected : tuple[Project, ...]
        Projects with status ``selected``, duplicates preserved.
    thresholds : ValidationThresholds
        Check limits.
    """

    domains: tuple[BusinessDomain, ...]
    selected: tuple[Project, ...]
    thresholds: ValidationThresholds

    @property
    def domains_by_id(self) -> dict[str, BusinessDomain]:
        return {d.id: d for d in self.domains}

    def domain_projects(self, domain_id: str) -> list[Project]:
        return [p for p in self.selected if p.domain == domain_id]


@dataclass(frozen=True)
class Check:
    """A built-in structural check.

    Parameters
    ----------
    name : str
        Stable check name, part of every issue id it produces.
    severity : str
        Severity of the issues it produces.
    category : str
        Category of the issues it produces.
    evaluate : Callable[[Check, ValidationContext], list[ValidationIssue]]
        Produces zero or more issues for the snapshot.
    """

    name: str
    severity: str
    category: str
    evaluate: Callable[["Check", ValidationContext], list[ValidationIssue]]
