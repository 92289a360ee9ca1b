"""Unit tests for the validation rule engine."""

import logging

import pytest

from portfolio_engine.config import ValidationThresholds
from portfolio_engine.models import QuarterAllocation, ValidationIssue
from portfolio_engine.validation import (
    BUILTIN_CHECKS,
    DEFAULT_RULES,
    Rule,
    count_by_severity,
    has_blocking_issues,
    health_label,
    health_score,
    make_issue_id,
    resolve_issue,
    validate,
)


def _issue(severity, resolved=False, name="x"):
    return ValidationIssue(
        id=f"{severity}-{name}",
        severity=severity,
        category="logic",
        title="t",
        description="d",
        check=name,
        resolved=resolved,
    )


def _by_check(report, check):
    return [i for i in report["issues"] if i.check == check]


class TestBudgetOverrunScenario:
    def test_within_budget_has_no_critical_issue(self, domains, make_project):
        projects = [
            make_project("p1", "d1", capex=200e6, status="selected"),
            make_project("p2", "d1", capex=150e6, status="selected"),
        ]
        report = validate(domains, projects)
        assert report["counts"]["critical"] == 0

    def test_overrun_emits_exactly_one_critical_issue(self, domains, make_project):
        projects = [
            make_project("p1", "d1", capex=200e6, status="selected"),
            make_project("p2", "d1", capex=250e6, status="selected"),
        ]
        report = validate(domains, projects)
        critical = [i for i in report["issues"] if i.severity == "critical"]
        assert len(critical) == 1
        assert critical[0].title == "Energy Budget Exceeded"
        assert critical[0].check == "Domain Budget"
        assert set(critical[0].affected_items) == {"p1", "p2"}
        assert critical[0].id == make_issue_id("critical", "Domain Budget", "d1")

    def test_ids_are_deterministic(self, domains, make_project):
        projects = [
            make_project("p1", "d1", capex=200e6, status="selected"),
            make_project("p2", "d1", capex=250e6, status="selected"),
        ]
        first = [i.id for i in validate(domains, projects)["issues"]]
        second = [i.id for i in validate(domains, projects)["issues"]]
        assert first == second
        assert len(set(first)) == len(first)


class TestBuiltinChecks:
    def test_clean_portfolio(self, domains, make_project):
        projects = [
            make_project("p1", "d1", capex=100e6, status="selected"),
            make_project("p2", "d2", capex=100e6, status="selected"),
            make_project("p3", "d3", capex=100e6, status="selected", irr=25.0),
        ]
        report = validate(domains, projects, thresholds=ValidationThresholds(domain_share_limit=0.5))
        assert report["issues"] == []
        assert report["health_score"] == 100
        assert report["health_label"] == "Excellent"

    def test_unselected_projects_ignored(self, domains, make_project):
        projects = [make_project("p1", "d1", capex=5e9, irr=None)]
        assert validate(domains, projects)["issues"] == []

    def test_total_budget_exceeded(self, domains, make_project):
        projects = [make_project(f"p{i}", "zz", capex=400e6, status="selected") for i in range(3)]
        issues = _by_check(validate(domains, projects, rules=[]), "Total Budget")
        assert len(issues) == 1
        assert issues[0].severity == "critical"
        assert len(issues[0].affected_items) == 3

    def test_duplicate_selection(self, domains, make_project):
        project = make_project("p1", "d1", status="selected")
        issues = _by_check(validate(domains, [project, project], rules=[]), "Duplicate Selection")
        assert len(issues) == 1
        assert issues[0].affected_items == ("p1",)
        assert issues[0].category == "logic"

    def test_unknown_domain(self, domains, make_project):
        projects = [make_project("p1", "ghost", status="selected")]
        issues = _by_check(validate(domains, projects), "Unknown Domain")
        assert [i.severity for i in issues] == ["critical"]
        assert issues[0].affected_items == ("p1",)

    def test_irr_threshold(self, domains, make_project):
        projects = [make_project("p1", "d1", status="selected", irr=12.0), make_project("p2", "d1", status="selected")]
        issues = _by_check(validate(domains, projects), "IRR Threshold")
        assert len(issues) == 1
        assert issues[0].severity == "warning"
        assert issues[0].affected_items == ("p1",)

    def test_risk_concentration(self, domains, make_project):
        projects = [
            make_project("p1", "d3", status="selected", capex=10e6, irr=25.0, risk_score=8, risk_level="high"),
            make_project("p2", "d3", status="selected", capex=10e6, irr=25.0, risk_score=9, risk_level="high"),
            make_project("p3", "d3", status="selected", capex=10e6, irr=25.0, risk_score=2),
        ]
        issues = _by_check(validate(domains, projects), "Risk Concentration")
        assert len(issues) == 1
        assert set(issues[0].affected_items) == {"p1", "p2"}

    def test_risk_concentration_needs_enough_projects(self, domains, make_project):
        projects = [
            make_project("p1", "d3", status="selected", irr=25.0, risk_score=8, risk_level="high"),
            make_project("p2", "d3", status="selected", irr=25.0, risk_score=9, risk_level="high"),
        ]
        assert _by_check(validate(domains, projects), "Risk Concentration") == []

    def test_strategic_alignment(self, domains, make_project):
        projects = [make_project("p1", "d1", status="selected", strategic_fit=None)]
        issues = _by_check(validate(domains, projects), "Strategic Alignment")
        assert issues[0].affected_items == ("p1",)

    def test_financial_outliers(self, domains, make_project):
        projects = [
            make_project("p1", "d1", status="selected", irr=75.0),
            make_project("p2", "d1", status="selected", irr=None, mirr=None),
            make_project("p3", "d1", status="selected", payback_years=20),
            make_project("p4", "d1", status="selected", npv=-1e6),
            make_project("p5", "d1", status="selected"),
        ]
        issues = _by_check(validate(domains, projects, rules=[]), "Financial Outliers")
        assert len(issues) == 1
        assert issues[0].affected_items == ("p1", "p2", "p3", "p4")

    def test_timeline_clustering(self, domains, make_project):
        projects = [make_project(f"p{i}", "d1", status="selected", capex=10e6) for i in range(5)]
        issues = _by_check(validate(domains, projects), "Timeline Clustering")
        assert len(issues) == 1
        assert len(issues[0].affected_items) == 5

    def test_missing_start_quarter_defaults_to_first(self, domains, make_project):
        projects = [make_project(f"p{i}", "d1", status="selected", capex=10e6, start_quarter=None) for i in range(4)]
        projects.append(make_project("p9", "d1", status="selected", capex=10e6, start_quarter=1))
        assert len(_by_check(validate(domains, projects), "Timeline Clustering")) == 1

    def test_data_completeness_is_info(self, domains, make_project):
        projects = [make_project("p1", "d1", status="selected", sponsor=None)]
        issues = _by_check(validate(domains, projects), "Data Completeness")
        assert issues[0].severity == "info"
        assert "sponsor" in issues[0].description

    def test_portfolio_balance(self, domains, make_project):
        projects = [
            make_project("p1", "d1", status="selected", capex=300e6),
            make_project("p2", "d2", status="selected", capex=50e6),
        ]
        issues = _by_check(validate(domains, projects), "Portfolio Balance")
        assert len(issues) == 1
        assert issues[0].id == make_issue_id("warning", "Portfolio Balance", "d1")
        assert "Energy" in issues[0].description

    def test_custom_thresholds(self, domains, make_project):
        projects = [make_project(f"p{i}", "d1", status="selected", capex=10e6) for i in range(3)]
        thresholds = ValidationThresholds(cluster_size=3)
        assert len(_by_check(validate(domains, projects, thresholds=thresholds), "Timeline Clustering")) == 1

    def test_subset_of_checks(self, domains, make_project):
        projects = [make_project("p1", "ghost", status="selected")]
        report = validate(domains, projects, rules=[], checks=BUILTIN_CHECKS[:1])
        assert report["issues"] == []


class TestRules:
    def test_default_rules_are_warnings(self):
        assert all(rule.severity == "warning" for rule in DEFAULT_RULES)

    def test_payback_rule(self, domains, make_project):
        projects = [make_project("p1", "d3", status="selected", irr=25.0, payback_years=4.5)]
        issues = _by_check(validate(domains, projects), "Payback Within Domain Limit")
        assert len(issues) == 1
        assert issues[0].affected_items == ("p1",)

    def test_risk_tolerance_rule(self, domains, make_project):
        projects = [make_project("p1", "d2", status="selected", risk_score=5, risk_level="medium")]
        issues = _by_check(validate(domains, projects), "Risk Within Domain Tolerance")
        assert len(issues) == 1

    def test_capex_rule(self, domains, make_project):
        projects = [make_project("p1", "d1", status="selected", capex=500_000)]
        assert len(_by_check(validate(domains, projects), "CAPEX Reasonableness")) == 1

    def test_allocation_rule(self, domains, make_project):
        projects = [
            make_project("p1", "d1", status="selected", quarterly_allocation=(QuarterAllocation("Q1'25", 50e6),)),
        ]
        assert len(_by_check(validate(domains, projects), "Quarterly Allocation Reconciles")) == 1

    def test_rule_issues_come_first(self, domains, make_project):
        projects = [make_project("p1", "d1", status="selected", capex=500_000, sponsor=None)]
        checks = [i.check for i in validate(domains, projects)["issues"]]
        assert checks.index("CAPEX Reasonableness") < checks.index("Data Completeness")

    def test_custom_rule(self, domains, make_project):
        rule = Rule(
            name="Named Sponsor",
            severity="critical",
            predicate=lambda project, domain, portfolio: project.sponsor != "TBD",
            message="Every project needs a named sponsor.",
        )
        projects = [make_project("p1", "d1", status="selected", sponsor="TBD")]
        report = validate(domains, projects, rules=[rule])
        assert report["counts"]["critical"] == 1
        assert report["issues"][0].id == "critical-named-sponsor-p1"

    def test_disabled_rule_skipped(self, domains, make_project):
        rule = Rule("Never", "warning", lambda project, domain, portfolio: False, "always fails", enabled=False)
        projects = [make_project("p1", "d1", status="selected")]
        assert _by_check(validate(domains, projects, rules=[rule]), "Never") == []

    def test_rule_predicate_sees_portfolio(self, domains, make_project):
        rule = Rule("Small Portfolio", "info", lambda project, domain, portfolio: len(portfolio) <= 1, "too many")
        projects = [make_project("p1", "d1", status="selected"), make_project("p2", "d2", status="selected")]
        assert len(_by_check(validate(domains, projects, rules=[rule]), "Small Portfolio")) == 2

    def test_invalid_rule_severity_raises(self):
        with pytest.raises(ValueError, match="severity"):
            Rule("Bad", "fatal", lambda project, domain, portfolio: True, "bad")


class TestHealthScore:
    def test_penalties(self):
        issues = [_issue("critical"), _issue("warning"), _issue("info")]
        assert health_score(issues) == 55

    def test_resolved_issues_do_not_count(self):
        issues = [_issue("critical", resolved=True), _issue("warning")]
        assert health_score(issues) == 90
        assert count_by_severity(issues) == {"critical": 0, "warning": 1, "info": 0}

    def test_floored_at_zero(self):
        assert health_score([_issue("critical", name=str(i)) for i in range(5)]) == 0

    @pytest.mark.parametrize(("score", "label"), [(100, "Excellent"), (80, "Excellent"), (79, "Good"), (60, "Good"), (59, "Needs Attention")])
    def test_labels(self, score, label):
        assert health_label(score) == label

    def test_blocking_issues(self):
        assert has_blocking_issues([_issue("critical")])
        assert not has_blocking_issues([_issue("critical", resolved=True), _issue("warning")])


class TestResolveIssue:
    def test_marks_resolved(self):
        issues = [_issue("critical"), _issue("warning")]
        updated = resolve_issue(issues, "critical-x", comments="Budget increase approved")
        assert updated[0].resolved
        assert updated[0].comments == "Budget increase approved"
        assert not issues[0].resolved
        assert updated[1] is issues[1]

    def test_unknown_id_raises(self):
        with pytest.raises(KeyError):
            resolve_issue([_issue("warning")], "nope")

    def test_logs_summary(self, domains, make_project, caplog):
        with caplog.at_level(logging.INFO, logger="portfolio_engine.validation.engine"):
            validate(domains, [make_project("p1", "d1", status="selected")])
        assert "Validation complete" in caplog.text
