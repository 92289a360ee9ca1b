"""Type definitions for the selection solver protocol and result contract."""

from collections.abc import Iterable, Sequence
from typing import Any, Protocol, TypedDict

from portfolio_engine.models import BusinessDomain, Project


class SelectionResult(TypedDict):
    """Common output contract all selection rules must satisfy.

    Parameters
    ----------
    status : str
        Solver termination status (e.g. ``"Optimal"``).
    selected_projects : list[str]
        IDs of selected projects, in selection order.
    total_capex : float
        Aggregate CAPEX of the selected portfolio.
    objective_value : float | None
        Value of the rule's objective, or ``None`` if non-optimal.
    rule : str
        Identifier for the selection rule (e.g. ``"knapsack"``).
    detail : dict[str, Any]
        Rule-specific diagnostics.
    """

    status: str
    selected_projects: list[str]
    total_capex: float
    objective_value: float | None
    rule: str
    detail: dict[str, Any]


class SelectionSolver(Protocol):
    """Protocol for selection rules.

    Implementations receive eligible projects (already filtered by the
    shared preprocessing) and return a :class:`SelectionResult`.
    """

    def __call__(
        self,
        projects: Sequence[Project],
        domains: Sequence[BusinessDomain],
        total_budget: float | None = None,
        locked: Iterable[str] = (),
    ) -> SelectionResult: ...


class PriorityScore(TypedDict):
    """Score of one project against one priority.

    Parameters
    ----------
    priority_id : str
        Scored priority.
    alignment_score : float
        Alignment base plus financial bonuses, capped at 100.
    weighted_score : float
        ``alignment_score * weight / 100``.
    """

    priority_id: str
    alignment_score: float
    weighted_score: float


class ProjectScore(TypedDict):
    """Priority-weighted score of a project.

    Parameters
    ----------
    project_id : str
        Scored project.
    scores : list[PriorityScore]
        One entry per priority, in priority order.
    total_score : float
        Sum of the weighted scores.
    passes_threshold : bool
        Whether every alignment score reaches its priority's ``min_threshold``.
    """

    project_id: str
    scores: list[PriorityScore]
    total_score: float
    passes_threshold: bool
