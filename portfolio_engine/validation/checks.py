"""Built-in structural checks evaluated on every validation pass.

Each check is a :class:`~portfolio_engine.validation._types.Check`
descriptor; the engine runs everything in :data:`BUILTIN_CHECKS` in order,
so adding a check means adding a descriptor, not touching the engine.
"""

from collections import Counter

from portfolio_engine._common import safe_divide
from portfolio_engine.models import ValidationIssue
from portfolio_engine.validation._common import PORTFOLIO_SUBJECT, format_currency, make_issue
from portfolio_engine.validation._types import Check, ValidationContext


def _issue(check: Check, subject: str, title: str, description: str, affected_items=()) -> ValidationIssue:
    return make_issue(check.severity, check.category, check.name, subject, title, description, affected_items)


def _total_budget(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    available = sum(d.budget for d in ctx.domains)
    allocated = sum(p.capex for p in ctx.selected)
    if allocated <= available:
        return []
    return [
        _issue(
            check,
            PORTFOLIO_SUBJECT,
            "Total Allocation Exceeds Available Capital",
            f"Total project allocation ({format_currency(allocated)}) exceeds available capital "
            f"({format_currency(available)}).",
            [p.id for p in ctx.selected],
        )
    ]


def _duplicates(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    counts = Counter(p.id for p in ctx.selected)
    duplicated = sorted(pid for pid, n in counts.items() if n > 1)
    if not duplicated:
        return []
    return [
        _issue(
            check,
            PORTFOLIO_SUBJECT,
            "Duplicate Project Selections",
            f"Found {len(duplicated)} project(s) selected more than once.",
            duplicated,
        )
    ]


def _orphans(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    known = ctx.domains_by_id
    orphans = [p.id for p in ctx.selected if p.domain not in known]
    if not orphans:
        return []
    return [
        _issue(
            check,
            PORTFOLIO_SUBJECT,
            "Projects Reference Unknown Domains",
            f"{len(orphans)} selected project(s) belong to a domain that does not exist.",
            orphans,
        )
    ]


def _domain_budget(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    issues = []
    for domain in ctx.domains:
        projects = ctx.domain_projects(domain.id)
        allocated = sum(p.capex for p in projects)
        if allocated > domain.budget:
            issues.append(
                _issue(
                    check,
                    domain.id,
                    f"{domain.name or domain.id} Budget Exceeded",
                    f"Domain allocation ({format_currency(allocated)}) exceeds budget "
                    f"({format_currency(domain.budget)}).",
                    [p.id for p in projects],
                )
            )
    return issues


def _domain_irr(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    issues = []
    for domain in ctx.domains:
        low = [p.id for p in ctx.domain_projects(domain.id) if p.irr is not None and p.irr < domain.min_irr]
        if low:
            issues.append(
                _issue(
                    check,
                    domain.id,
                    f"{domain.name or domain.id}: Projects Below IRR Threshold",
                    f"{len(low)} project(s) have IRR below the {domain.min_irr}% threshold.",
                    low,
                )
            )
    return issues


def _risk_concentration(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    limits = ctx.thresholds
    issues = []
    for domain in ctx.domains:
        projects = ctx.domain_projects(domain.id)
        high = [p.id for p in projects if p.risk_score >= limits.high_risk_score]
        share = safe_divide(len(high), len(projects))
        if share > limits.risk_concentration_limit and len(projects) > limits.risk_concentration_min_projects:
            issues.append(
                _issue(
                    check,
                    domain.id,
                    f"{domain.name or domain.id}: High Risk Concentration",
                    f"{round(share * 100)}% of projects are high risk (score >= {limits.high_risk_score:g}).",
                    high,
                )
            )
    return issues


def _strategic_alignment(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    minimum = ctx.thresholds.min_strategic_fit
    issues = []
    for domain in ctx.domains:
        low = [p.id for p in ctx.domain_projects(domain.id) if (p.strategic_fit or 0) < minimum]
        if low:
            issues.append(
                _issue(
                    check,
                    domain.id,
                    f"{domain.name or domain.id}: Low Strategic Alignment",
                    f"{len(low)} project(s) have strategic fit scores below {minimum:g}.",
                    low,
                )
            )
    return issues


def _financial_outliers(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    irr_low, irr_high = ctx.thresholds.irr_range
    payback_low, payback_high = ctx.thresholds.payback_range
    outliers = [
        p.id
        for p in ctx.selected
        if p.irr is None
        or not (irr_low <= p.irr <= irr_high)
        or not (payback_low <= p.payback_years <= payback_high)
        or p.npv < 0
    ]
    if not outliers:
        return []
    return [
        _issue(
            check,
            PORTFOLIO_SUBJECT,
            "Financial Metric Outliers",
            f"{len(outliers)} project(s) have unusual financial metrics that may need review.",
            outliers,
        )
    ]


def _timeline_clustering(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    size = ctx.thresholds.cluster_size
    counts = Counter(p.start_quarter or 1 for p in ctx.selected)
    if not counts or max(counts.values()) < size:
        return []
    clustered = [p.id for p in ctx.selected if counts[p.start_quarter or 1] >= size]
    return [
        _issue(
            check,
            PORTFOLIO_SUBJECT,
            "Timeline Clustering Detected",
            f"{max(counts.values())} projects starting in the same period may strain resources.",
            clustered,
        )
    ]


def _data_completeness(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    fields = ctx.thresholds.required_fields
    incomplete = [p.id for p in ctx.selected if any(not getattr(p, f) for f in fields)]
    if not incomplete:
        return []
    missing = [f for f in fields if any(not getattr(p, f) for p in ctx.selected)]
    return [
        _issue(
            check,
            PORTFOLIO_SUBJECT,
            "Incomplete Project Data",
            f"{len(incomplete)} project(s) missing optional data ({', '.join(missing)}).",
            incomplete,
        )
    ]


def _portfolio_balance(check: Check, ctx: ValidationContext) -> list[ValidationIssue]:
    spend = {d.id: sum(p.capex for p in ctx.domain_projects(d.id)) for d in ctx.domains}
    total = sum(spend.values())
    if total <= 0:
        return []
    top_id = max(spend, key=spend.get)
    share = spend[top_id] / total
    if share <= ctx.thresholds.domain_share_limit:
        return []
    top = ctx.domains_by_id[top_id]
    return [
        _issue(
            check,
            top_id,
            "Unbalanced Portfolio",
            f"Portfolio allocation is heavily skewed towards {top.name or top.id} ({share:.0%} of selected CAPEX).",
            [p.id for p in ctx.domain_projects(top_id)],
        )
    ]


BUILTIN_CHECKS: tuple[Check, ...] = (
    Check("Total Budget", "critical", "consistency", _total_budget),
    Check("Duplicate Selection", "critical", "logic", _duplicates),
    Check("Unknown Domain", "critical", "consistency", _orphans),
    Check("Domain Budget", "critical", "consistency", _domain_budget),
    Check("IRR Threshold", "warning", "accuracy", _domain_irr),
    Check("Risk Concentration", "warning", "compliance", _risk_concentration),
    Check("Strategic Alignment", "warning", "accuracy", _strategic_alignment),
    Check("Financial Outliers", "warning", "accuracy", _financial_outliers),
    Check("Timeline Clustering", "warning", "logic", _timeline_clustering),
    Check("Data Completeness", "info", "completeness", _data_completeness),
    Check("Portfolio Balance", "warning", "logic", _portfolio_balance),
)
