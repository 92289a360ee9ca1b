"""Unit tests for cash-flow metrics."""

import logging

import pytest

from portfolio_engine.cashflow import (
    cash_flows_from_inputs,
    compute_irr,
    compute_metrics,
    compute_mirr_approx,
    compute_npv,
    compute_payback_period,
    normalize_cash_flows,
    recompute_project,
)
from portfolio_engine.errors import NoConvergence
from portfolio_engine.models import CashFlow, Project

SINGLE_SIGN_CHANGE_SERIES = [
    [-1000, 1100],
    [-1000, 300, 300, 300, 300, 300],
    [-5_000_000, 1_200_000, 1_500_000, 1_800_000, 2_000_000],
    [-250, 20, 20, 20, 20, 300],
    [-100, 50, 50],
    [-1000, 5000],
]


class TestNormalizeCashFlows:
    def test_plain_amounts_use_position(self):
        assert normalize_cash_flows([-100, 60, 60]) == (CashFlow(0, -100.0), CashFlow(1, 60.0), CashFlow(2, 60.0))

    def test_pairs_sorted_by_period(self):
        flows = normalize_cash_flows([(2, 60), (0, -100), (1, 60)])
        assert [cf.period for cf in flows] == [0, 1, 2]

    def test_mapping(self):
        flows = normalize_cash_flows({1: 1100, 0: -1000})
        assert flows == (CashFlow(0, -1000.0), CashFlow(1, 1100.0))

    def test_from_inputs(self):
        flows = cash_flows_from_inputs(1000, 300, years=5)
        assert len(flows) == 6
        assert flows[0] == CashFlow(0, -1000.0)
        assert all(cf.amount == 300.0 for cf in flows[1:])

    def test_from_inputs_negative_years_raises(self):
        with pytest.raises(ValueError, match="non-negative"):
            cash_flows_from_inputs(1000, 300, years=-1)


class TestComputeNPV:
    def test_known_value(self):
        assert compute_npv([-1000, 1100], 0.1) == pytest.approx(0.0, abs=1e-9)

    def test_zero_rate_is_plain_sum(self):
        assert compute_npv([-1000, 300, 300, 300, 300, 300], 0.0) == pytest.approx(500.0)

    def test_discounting(self):
        assert compute_npv([0, 110], 0.1) == pytest.approx(100.0)

    def test_shapes_agree(self):
        plain = compute_npv([-1000, 400, 400, 400], 0.08)
        pairs = compute_npv([(0, -1000), (1, 400), (2, 400), (3, 400)], 0.08)
        mapping = compute_npv({3: 400, 2: 400, 1: 400, 0: -1000}, 0.08)
        assert plain == pytest.approx(pairs)
        assert plain == pytest.approx(mapping)

    def test_empty_series(self):
        assert compute_npv([], 0.1) == 0

    def test_rate_at_minus_one_raises(self):
        with pytest.raises(ValueError, match="greater than -1"):
            compute_npv([-100, 200], -1.0)


class TestComputeIRR:
    def test_simple_return(self):
        assert compute_irr([-1000, 1100]) == pytest.approx(0.1, abs=1e-8)

    def test_annuity(self):
        assert compute_irr([-1000, 300, 300, 300, 300, 300]) == pytest.approx(0.15238, abs=1e-4)

    @pytest.mark.parametrize("series", SINGLE_SIGN_CHANGE_SERIES)
    def test_npv_at_irr_is_zero(self, series):
        irr = compute_irr(series)
        assert compute_npv(series, irr) == pytest.approx(0.0, abs=1e-2)

    def test_zero_return(self):
        assert compute_irr([-100, 50, 50]) == pytest.approx(0.0, abs=1e-8)

    def test_all_negative_raises(self):
        with pytest.raises(NoConvergence) as excinfo:
            compute_irr([-100, -50, -20])
        assert excinfo.value.reason == "no_sign_change"
        assert excinfo.value.code == "IRR_NO_CONVERGENCE"

    def test_all_positive_raises(self):
        with pytest.raises(NoConvergence, match="no_sign_change"):
            compute_irr([100, 50])

    def test_root_outside_domain_raises(self):
        with pytest.raises(NoConvergence) as excinfo:
            compute_irr([-1000, 1])
        assert excinfo.value.reason == "no_bracket"

    def test_iteration_budget_exhausted_raises(self):
        with pytest.raises(NoConvergence) as excinfo:
            compute_irr([-1000, 1100], max_iterations=1)
        assert excinfo.value.reason == "iteration_limit"
        assert excinfo.value.iterations == 1

    def test_narrow_domain(self):
        assert compute_irr([-1000, 1100], lower=0.05, upper=0.2) == pytest.approx(0.1, abs=1e-8)

    @pytest.mark.parametrize("periods", [200, 400])
    def test_long_series(self, periods):
        flows = [-1000] + [30] * periods
        irr = compute_irr(flows)
        assert 0 < irr < 0.03
        assert compute_npv(flows, irr) == pytest.approx(0, abs=1e-3)

    def test_long_non_conventional_series(self):
        flows = [1000] + [-30] * 400
        irr = compute_irr(flows)
        assert compute_npv(flows, irr) == pytest.approx(0, abs=1e-3)


class TestMirrAndPayback:
    def test_mirr_is_fixed_multiple(self):
        assert compute_mirr_approx(15.0) == pytest.approx(12.0)

    def test_mirr_of_undefined(self):
        assert compute_mirr_approx(None) is None

    def test_payback_scenario(self):
        assert compute_payback_period([-1000, 300, 300, 300, 300, 300]) == 4

    def test_payback_never_recovered(self):
        assert compute_payback_period([-1000, 100, 100]) == 3

    def test_payback_exact_break_even_is_not_positive(self):
        assert compute_payback_period([-100, 50, 50, 10]) == 3

    def test_payback_unsorted_input(self):
        assert compute_payback_period([(2, 300), (0, -500), (1, 300)]) == 2


class TestComputeMetrics:
    def test_percent_units(self):
        metrics = compute_metrics([-1000, 1100], 0.1)
        assert metrics["irr"] == pytest.approx(10.0, abs=1e-6)
        assert metrics["mirr"] == pytest.approx(8.0, abs=1e-6)
        assert metrics["npv"] == pytest.approx(0.0, abs=1e-9)
        assert metrics["payback_years"] == 1

    def test_undefined_irr_raises(self):
        with pytest.raises(NoConvergence):
            compute_metrics([-100, -100], 0.1)

    def test_irr_options_forwarded(self):
        with pytest.raises(NoConvergence, match="no_bracket"):
            compute_metrics([-1000, 1100], 0.1, lower=0.5, upper=1.0)


class TestRecomputeProject:
    def test_metrics_recomputed_together(self):
        project = Project(id="p1", domain="d1", capex=1000, cash_flows=[-1000, 300, 300, 300, 300, 300])
        updated = recompute_project(project, 0.1)
        assert updated is not project
        assert updated.npv == pytest.approx(compute_npv([-1000, 300, 300, 300, 300, 300], 0.1))
        assert updated.irr == pytest.approx(15.238, abs=1e-2)
        assert updated.mirr == pytest.approx(0.8 * updated.irr)
        assert updated.payback_years == 4
        assert updated.cash_flows[0] == CashFlow(0, -1000.0)

    def test_input_not_mutated(self):
        project = Project(id="p1", domain="d1", cash_flows=((0, -100), (1, 200)))
        recompute_project(project, 0.1)
        assert project.npv == 0.0
        assert project.irr is None

    def test_undefined_irr_stored_as_none(self, caplog):
        project = Project(id="p1", domain="d1", cash_flows=[-100, -10], irr=12.0, mirr=9.6)
        with caplog.at_level(logging.WARNING, logger="portfolio_engine.cashflow"):
            updated = recompute_project(project, 0.1)
        assert updated.irr is None
        assert updated.mirr is None
        assert updated.npv == pytest.approx(-100 - 10 / 1.1)
        assert "IRR undefined for project p1" in caplog.text

    @pytest.mark.parametrize("periods", [200, 400])
    def test_long_series_keeps_irr(self, periods, caplog):
        project = Project(id="p1", domain="d1", capex=1000, cash_flows=[-1000] + [30] * periods)
        with caplog.at_level(logging.WARNING, logger="portfolio_engine.cashflow"):
            updated = recompute_project(project, 0.1)
        assert 0 < updated.irr < 3
        assert updated.npv == pytest.approx(compute_npv([-1000] + [30] * periods, 0.1))
        assert caplog.text == ""
