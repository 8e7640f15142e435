import dataclasses
import datetime as dt
import json
from pathlib import Path

import pytest

from cashplan_core.domain.errors import ValidationError
from cashplan_core.domain.models import Frequency, Kind
from cashplan_core.io import config as config_io
from cashplan_core.io import ledger as ledger_io
from cashplan_core.services import metrics
from cashplan_core.services.cache import cache_key
from cashplan_core.services.pipeline import build_plan

DATA = Path(__file__).parent / "data"
AS_OF = dt.date(2024, 3, 15)


def _load_all():
    return (
        ledger_io.load_streams(DATA / "streams.csv"),
        ledger_io.load_entries(DATA / "entries.csv"),
        ledger_io.load_goals(DATA / "goals.csv"),
        ledger_io.load_contributions(DATA / "contributions.csv"),
    )


def test_load_streams():
    streams = ledger_io.load_streams(DATA / "streams.csv")
    by_id = {s.id: s for s in streams}
    assert set(by_id) == {"salary", "rent", "gym"}
    assert by_id["salary"].kind == Kind.INCOME
    assert by_id["salary"].frequency == Frequency.MONTHLY
    assert by_id["salary"].active_until is None
    assert by_id["gym"].is_active is False
    assert by_id["gym"].active_until == dt.date(2023, 12, 31)


def test_load_goals_with_asset_params():
    goals = {g.id: g for g in ledger_io.load_goals(DATA / "goals.csv")}
    assert goals["car"].asset_params is None
    house = goals["house"]
    assert house.asset_params.initial_price == 80000
    assert house.asset_params.down_payment_ratio == pytest.approx(0.2)
    assert house.priority == 2


def test_load_contributions_and_entries():
    contributions = ledger_io.load_contributions(DATA / "contributions.csv")
    assert len(contributions) == 4
    assert contributions[0].notes == ""
    assert contributions[-1].notes == "first"
    entries = ledger_io.load_entries(DATA / "entries.csv")
    assert entries[0].category == "work"


def test_loader_errors(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        ledger_io.load_streams(tmp_path / "missing.csv")

    bad = tmp_path / "streams.csv"
    bad.write_text("id,kind,amount\nx,income,10\n")
    with pytest.raises(ValueError):
        ledger_io.load_streams(bad)


def test_config_loaders(tmp_path: Path):
    path = tmp_path / "projection.json"
    path.write_text(json.dumps({"decay_per_month": 0.05}))
    cfg = config_io.load_projection_config(path)
    assert cfg.decay_per_month == pytest.approx(0.05)
    assert cfg.initial_confidence == pytest.approx(0.95)

    path = tmp_path / "scenario.json"
    path.write_text(json.dumps({"candidate_rates": [0.2, 0.05]}))
    assert config_io.load_scenario_config(path).candidate_rates == (0.05, 0.2)

    path = tmp_path / "weights.json"
    path.write_text(json.dumps([0.5, 0.3, 0.2]))
    with pytest.raises(ValueError):
        config_io.load_health_weights(path)


def test_build_plan_from_fixture_ledger():
    streams, entries, goals, contributions = _load_all()
    report = build_plan(1000, streams, entries, goals, contributions, AS_OF, horizon_months=3)

    # 1000 + 3*3000 - 3*2000 + 500 bonus - 1200 contributions
    assert report.balance == pytest.approx(3300)
    assert report.metrics.total_income == 3000
    assert report.metrics.burn_rate + report.metrics.savings_rate == pytest.approx(100)
    assert [p.month for p in report.projection] == [dt.date(2024, 4, 1), dt.date(2024, 5, 1), dt.date(2024, 6, 1)]
    assert report.projection[-1].projected_balance == pytest.approx(6300)
    assert report.runway.sustainable

    by_goal = {r.goal.id: r for r in report.goals}
    assert set(by_goal) == {"car", "house"}
    assert by_goal["car"].asset is None
    assert by_goal["car"].analysis.count == 3
    assert by_goal["house"].asset.projected_price == pytest.approx(89379.92, abs=0.01)
    assert by_goal["house"].asset.years == 2
    assert all(s.feasible for s in by_goal["car"].scenarios.feasible)


def test_build_plan_rejects_unreconciled_goal():
    streams, entries, goals, contributions = _load_all()
    goals = [dataclasses.replace(g, current_amount=g.current_amount + 50) for g in goals]
    with pytest.raises(ValidationError):
        build_plan(1000, streams, entries, goals, contributions, AS_OF)


def test_cache_key_is_stable():
    streams, entries, _, _ = _load_all()
    key = cache_key({"streams": streams, "entries": entries}, AS_OF)
    assert key == cache_key({"entries": entries, "streams": streams}, AS_OF)
    assert key.startswith("cashplan:")
    assert key != cache_key({"streams": streams, "entries": entries}, dt.date(2024, 3, 16))


def test_build_plan_reports_insights_and_risk():
    streams, entries, goals, contributions = _load_all()
    report = build_plan(1000, streams, entries, goals, contributions, AS_OF)

    assert report.risk.level == "critical"
    assert report.risk.factors == ["High burn rate", "Insufficient emergency fund", "Single income source"]
    titles = {i.title for i in report.insights}
    assert titles == {
        "High Expense Category Detected",
        "Optimize Spending",
        "Excellent Savings Rate",
        "Goals Behind Schedule",
        "Build Emergency Fund",
        "High Wealth Building Potential",
    }
    behind = next(i for i in report.insights if i.title == "Goals Behind Schedule")
    assert "2 goal(s)" in behind.description
    cushion = next(i for i in report.insights if i.title == "Build Emergency Fund")
    assert cushion.potential_saving == pytest.approx(2700)


def test_build_plan_compares_against_earlier_snapshots():
    streams, entries, goals, contributions = _load_all()
    february = metrics.generate_snapshot("u1", dt.date(2024, 2, 1), 3500, 1500)
    stale_march = metrics.generate_snapshot("u1", dt.date(2024, 3, 1), 3000, 9000)

    report = build_plan(1000, streams, entries, goals, contributions, AS_OF, snapshots=[stale_march, february])
    jump = next(i for i in report.insights if i.title == "Expenses Trending Upward")
    assert "33.3%" in jump.description

    without = build_plan(1000, streams, entries, goals, contributions, AS_OF)
    assert "Expenses Trending Upward" not in {i.title for i in without.insights}
