"""Priority-weighted project scoring.

A project aligned with a priority starts from a base of 75 on it, an
unaligned one from 25. Financial bonuses are added on top: up to 15 points
for IRR (full marks at 25%) and up to 10 for NPV (full marks at 10M). The
alignment score is capped at 100 and weighted by the priority's weight.
"""

from collections.abc import Callable, Iterable, Sequence

from portfolio_engine.models import Priority, Project
from portfolio_engine.solver._types import PriorityScore, ProjectScore

ALIGNED_BASE = 75.0
UNALIGNED_BASE = 25.0
IRR_BONUS_MAX = 15.0
IRR_FULL_BONUS = 25.0
NPV_BONUS_MAX = 10.0
NPV_FULL_BONUS = 10_000_000.0


def alignment_score(project: Project, priority: Priority) -> float:
    """Alignment score of a project on one priority, at most 100.

    An undefined IRR earns no IRR bonus. Negative IRR or NPV lower the score.
    """
    base = ALIGNED_BASE if priority.id in project.priority_alignment else UNALIGNED_BASE
    irr_bonus = min((project.irr or 0.0) / IRR_FULL_BONUS * IRR_BONUS_MAX, IRR_BONUS_MAX)
    npv_bonus = min(project.npv / NPV_FULL_BONUS * NPV_BONUS_MAX, NPV_BONUS_MAX)
    return min(base + irr_bonus + npv_bonus, 100.0)


def project_score(project: Project, priorities: Sequence[Priority]) -> ProjectScore:
    """Score a project against every priority.

    Parameters
    ----------
    project : Project
        Project to score; ``irr`` in percent.
    priorities : Sequence[Priority]
        Strategic priorities with weights summing to 100.

    Returns
    -------
    ProjectScore
    """
    scores: list[PriorityScore] = []
    for priority in priorities:
        score = alignment_score(project, priority)
        scores.append(
            {
                "priority_id": priority.id,
                "alignment_score": score,
                "weighted_score": score * priority.weight / 100,
            }
        )
    passes = all(s["alignment_score"] >= p.min_threshold for s, p in zip(scores, priorities))
    return {
        "project_id": project.id,
        "scores": scores,
        "total_score": sum(s["weighted_score"] for s in scores),
        "passes_threshold": passes,
    }


def score_projects(projects: Iterable[Project], priorities: Sequence[Priority]) -> list[ProjectScore]:
    """Score projects and order them by total score, highest first (ties by id)."""
    scored = [project_score(project, priorities) for project in projects]
    return sorted(scored, key=lambda s: (-s["total_score"], s["project_id"]))


def priority_score_key(priorities: Sequence[Priority]) -> Callable[[Project], float]:
    """Ranking key for :class:`~portfolio_engine.solver.GreedySolver` by total priority score."""
    priorities = list(priorities)

    def key(project: Project) -> float:
        return project_score(project, priorities)["total_score"]

    return key
