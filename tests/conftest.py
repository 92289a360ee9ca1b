"""Shared fixtures for portfolio engine tests."""

from datetime import datetime, timezone

import pytest

from portfolio_engine.models import BusinessDomain, Project

FIXED_TIME = datetime(2025, 3, 31, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def domains():
    """Three domains at 40/30/30% of a $1B total."""
    return [
        BusinessDomain(
            id="d1",
            code="ENR",
            name="Energy",
            budget_percent=40.0,
            budget=400e6,
            remaining_budget=400e6,
            risk_tolerance="medium",
            min_irr=15.0,
            max_payback=5.0,
            strategic_score=8.0,
        ),
        BusinessDomain(
            id="d2",
            code="MOB",
            name="Mobility",
            budget_percent=30.0,
            budget=300e6,
            remaining_budget=300e6,
            risk_tolerance="low",
            min_irr=12.0,
            max_payback=6.0,
            strategic_score=6.0,
        ),
        BusinessDomain(
            id="d3",
            code="DIG",
            name="Digital",
            budget_percent=30.0,
            budget=300e6,
            remaining_budget=300e6,
            risk_tolerance="high",
            min_irr=20.0,
            max_payback=4.0,
            strategic_score=7.0,
        ),
    ]


@pytest.fixture()
def make_project():
    """Factory for fully populated projects; keyword arguments override defaults."""

    def _make(id, domain="d1", **overrides):
        values = {
            "name": f"Project {id}",
            "project_id": f"PRJ-{id}",
            "category": "Infrastructure",
            "capex": 100e6,
            "npv": 20e6,
            "irr": 20.0,
            "mirr": 16.0,
            "payback_years": 3.0,
            "risk_score": 3.0,
            "risk_level": "low",
            "strategic_fit": 8.0,
            "start_quarter": 1,
            "business_unit": "Corporate",
            "geography": "EMEA",
            "sponsor": "CFO",
        }
        values.update(overrides)
        return Project(id=id, domain=domain, **values)

    return _make


@pytest.fixture()
def candidates(make_project):
    """Candidate projects for selection.

    In ``d1`` the best NPV under the $400M budget is p2 + p3, while the
    profitability-index ranking prefers p1. p5 fails its domain's IRR floor.
    """
    return [
        make_project("p1", "d1", capex=200e6, npv=80e6, irr=25.0, payback_years=3.0),
        make_project("p2", "d1", capex=250e6, npv=90e6, irr=22.0, payback_years=3.5),
        make_project("p3", "d1", capex=150e6, npv=40e6, irr=18.0, payback_years=4.0),
        make_project("p4", "d2", capex=100e6, npv=30e6, irr=16.0, payback_years=4.0),
        make_project("p5", "d2", capex=120e6, npv=10e6, irr=10.0, payback_years=5.0),
        make_project("p6", "d3", capex=280e6, npv=100e6, irr=30.0, payback_years=2.5),
    ]


@pytest.fixture()
def fixed_clock():
    return lambda: FIXED_TIME
