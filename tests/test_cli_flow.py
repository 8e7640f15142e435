import json
from pathlib import Path

from typer.testing import CliRunner

from cashplan_core.cli import app


runner = CliRunner()
DATA = Path(__file__).parent / "data"


def _copy_fixture(tmp_path: Path, name: str) -> Path:
    target = tmp_path / name
    target.write_text((DATA / name).read_text())
    return target


def test_cli_balance_with_breakdown(tmp_path: Path):
    streams = _copy_fixture(tmp_path, "streams.csv")
    entries = _copy_fixture(tmp_path, "entries.csv")
    contributions = _copy_fixture(tmp_path, "contributions.csv")
    out = tmp_path / "balance.json"

    result = runner.invoke(
        app,
        [
            "balance",
            "--streams",
            str(streams),
            "--entries",
            str(entries),
            "--contributions",
            str(contributions),
            "--starting-balance",
            "1000",
            "--as-of",
            "2024-03-15",
            "--breakdown",
            "--out",
            str(out),
        ],
    )
    assert result.exit_code == 0, result.stdout
    assert out.exists()

    payload = json.loads(out.read_text())
    assert payload["balance"] == 3300
    assert payload["as_of"] == "2024-03-15"
    assert payload["months"][-1]["running_balance"] == 3300


def test_cli_project_and_scenarios_to_stdout():
    result_project = runner.invoke(
        app,
        ["project", "--balance", "1000", "--income", "3000", "--expenses", "2500", "--months", "2", "--start-month", "2024-01-01"],
    )
    assert result_project.exit_code == 0, result_project.stdout
    projection = json.loads(result_project.stdout)
    assert [p["projected_balance"] for p in projection["points"]] == [1500, 2000]
    assert projection["runway"]["sustainable"] is True

    result_scenarios = runner.invoke(
        app,
        [
            "scenarios",
            "--income",
            "5000",
            "--surplus",
            "2000",
            "--target",
            "20000",
            "--saved",
            "5000",
            "--desired-months",
            "30",
            "--rate",
            "10%",
            "--rate",
            "0.2",
        ],
    )
    assert result_scenarios.exit_code == 0, result_scenarios.stdout
    payload = json.loads(result_scenarios.stdout)
    assert [s["timeline_months"] for s in payload["scenarios"]] == [30, 15]
    assert payload["recommended"]["monthly_amount"] == 500
    assert payload["feasible"] is True


def test_cli_asset_and_goal_analysis(tmp_path: Path):
    out = tmp_path / "asset.json"
    result_asset = runner.invoke(
        app,
        ["asset", "--price", "80000", "--rate", "0.057", "--months", "24", "--down-payment-ratio", "0.2", "--out", str(out)],
    )
    assert result_asset.exit_code == 0, result_asset.stdout
    payload = json.loads(out.read_text())
    assert abs(payload["projected_price"] - 89379.92) < 0.01
    assert "option20" in payload["options"]

    result_goal = runner.invoke(
        app,
        [
            "analyze-goal",
            "--goals",
            str(DATA / "goals.csv"),
            "--contributions",
            str(DATA / "contributions.csv"),
            "--goal-id",
            "car",
            "--today",
            "2024-03-15",
        ],
    )
    assert result_goal.exit_code == 0, result_goal.stdout
    analysis = json.loads(result_goal.stdout)
    assert analysis["count"] == 3
    assert analysis["consistency"] == "excellent"


def test_cli_snapshot_and_plan(tmp_path: Path):
    out = tmp_path / "snapshot.json"
    result_snapshot = runner.invoke(
        app,
        [
            "snapshot",
            "--user-id",
            "u1",
            "--month",
            "2024-02-20",
            "--streams",
            str(DATA / "streams.csv"),
            "--entries",
            str(DATA / "entries.csv"),
            "--goals",
            str(DATA / "goals.csv"),
            "--out",
            str(out),
        ],
    )
    assert result_snapshot.exit_code == 0, result_snapshot.stdout
    snapshot = json.loads(out.read_text())
    assert snapshot["month"] == "2024-02-01"
    assert snapshot["total_income"] == 3500
    assert snapshot["income_change_percent"] is None

    result_next = runner.invoke(
        app,
        [
            "snapshot",
            "--user-id",
            "u1",
            "--month",
            "2024-03-01",
            "--streams",
            str(DATA / "streams.csv"),
            "--previous",
            str(out),
        ],
    )
    assert result_next.exit_code == 0, result_next.stdout
    march = json.loads(result_next.stdout)
    assert abs(march["income_change_percent"] - (3000 - 3500) / 3500 * 100) < 1e-9

    result_plan = runner.invoke(
        app,
        [
            "plan",
            "--streams",
            str(DATA / "streams.csv"),
            "--entries",
            str(DATA / "entries.csv"),
            "--goals",
            str(DATA / "goals.csv"),
            "--contributions",
            str(DATA / "contributions.csv"),
            "--starting-balance",
            "1000",
            "--as-of",
            "2024-03-15",
        ],
    )
    assert result_plan.exit_code == 0, result_plan.stdout
    assert "Plan as of 2024-03-15" in result_plan.stdout
    assert "Risk: critical" in result_plan.stdout
    assert "Single income source" in result_plan.stdout

    result_trend = runner.invoke(
        app,
        [
            "plan",
            "--streams",
            str(DATA / "streams.csv"),
            "--as-of",
            "2024-03-15",
            "--snapshot",
            str(out),
        ],
    )
    assert result_trend.exit_code == 0, result_trend.stdout
    assert "Insights" in result_trend.stdout


def test_cli_reports_validation_errors():
    result = runner.invoke(
        app,
        ["scenarios", "--income", "5000", "--surplus", "2000", "--target=-5"],
    )
    assert result.exit_code == 2


def test_cli_reports_loader_errors_without_traceback(tmp_path: Path):
    bad = tmp_path / "streams.csv"
    bad.write_text("id,kind,amount\nx,income,10\n")
    result = runner.invoke(app, ["balance", "--streams", str(bad), "--as-of", "2024-03-15"])
    assert result.exit_code == 2
    assert not isinstance(result.exception, ValueError)

    result_missing = runner.invoke(app, ["balance", "--streams", str(tmp_path / "missing.csv"), "--as-of", "2024-03-15"])
    assert result_missing.exit_code == 2
    assert not isinstance(result_missing.exception, FileNotFoundError)

    config = tmp_path / "projection.json"
    config.write_text("[1, 2]")
    result_config = runner.invoke(
        app, ["project", "--balance", "1", "--income", "1", "--expenses", "1", "--config", str(config)]
    )
    assert result_config.exit_code == 2


def test_cli_analyze_goal_rejects_unreconciled_goal(tmp_path: Path):
    goals = tmp_path / "goals.csv"
    goals.write_text((DATA / "goals.csv").read_text().replace("car,20000,900,", "car,20000,1500,"))
    result = runner.invoke(
        app,
        [
            "analyze-goal",
            "--goals",
            str(goals),
            "--contributions",
            str(DATA / "contributions.csv"),
            "--goal-id",
            "car",
            "--today",
            "2024-03-15",
        ],
    )
    assert result.exit_code == 2
    assert "does not match" in result.output
