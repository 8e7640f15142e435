from __future__ import annotations

import dataclasses
import datetime as dt
import enum
import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from cashplan_core.domain.models import MonthlySnapshot, ScenarioConfig
from cashplan_core.io import config as config_io
from cashplan_core.io import ledger as ledger_io
from cashplan_core.services import asset, balance, contributions, metrics, pipeline, projection
from cashplan_core.services import scenario as scenario_service

app = typer.Typer(help="Cash position, projection and savings-scenario calculator.")

# ValidationError is a ValueError; loaders also raise ValueError and FileNotFoundError
INPUT_ERRORS = (ValueError, FileNotFoundError)


def _json_default(value):
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    raise TypeError(f"Not JSON serializable: {type(value).__name__}")


def _to_payload(obj):
    if dataclasses.is_dataclass(obj):
        return dataclasses.asdict(obj)
    if isinstance(obj, list):
        return [_to_payload(o) for o in obj]
    return obj


def _save_json(path: Path, payload):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=_json_default)


def _emit(payload, out: Optional[Path], label: str) -> None:
    if out:
        _save_json(out, payload)
        typer.echo(f"{label} written to {out}")
    else:
        typer.echo(json.dumps(payload, indent=2, default=_json_default))


def _parse_date(raw: Optional[str]) -> dt.date:
    if not raw:
        return dt.date.today()
    try:
        return dt.date.fromisoformat(raw)
    except ValueError as exc:
        raise typer.BadParameter(f"Expected YYYY-MM-DD, got {raw!r}") from exc


def _parse_rate(raw: str) -> float:
    """
    Parse a rate string that may contain a percent sign or plain float.
    Accepts "0.08", "8%", or "8" (treated as 8%).
    """
    txt = raw.strip().replace("%", "")
    if not txt:
        return 0.0
    try:
        val = float(txt)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid rate {raw!r}") from exc
    return val / 100.0 if val > 1 else val


def _load_previous(path: Optional[Path]) -> Optional[MonthlySnapshot]:
    if path is None:
        return None
    data = json.loads(path.read_text(encoding="utf-8"))
    data["month"] = dt.date.fromisoformat(data["month"])
    return MonthlySnapshot(**data)


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=2)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("balance")
def balance_cmd(
    streams: Optional[Path] = typer.Option(None, help="CSV with id,kind,amount,frequency,active_from[,active_until,is_active]"),
    entries: Optional[Path] = typer.Option(None, help="CSV with id,kind,amount,date[,category]"),
    contributions_csv: Optional[Path] = typer.Option(None, "--contributions", help="CSV with id,goal_id,amount,month[,notes]"),
    starting_balance: float = typer.Option(0.0, help="Balance before any recorded cash flow"),
    as_of: Optional[str] = typer.Option(None, help="As-of date (YYYY-MM-DD), defaults to today"),
    breakdown: bool = typer.Option(False, help="Include the month-by-month breakdown"),
    out: Optional[Path] = typer.Option(None, help="Output path for balance JSON"),
):
    """Compute the current balance from streams, one-time entries and goal contributions."""
    as_of_date = _parse_date(as_of)
    try:
        stream_list = ledger_io.load_streams(streams) if streams else []
        entry_list = ledger_io.load_entries(entries) if entries else []
        contribution_list = ledger_io.load_contributions(contributions_csv) if contributions_csv else []
    except INPUT_ERRORS as exc:
        _fail(exc)

    payload = {
        "as_of": as_of_date,
        "balance": balance.compute_balance(starting_balance, stream_list, entry_list, contribution_list, as_of_date),
    }
    if breakdown:
        table = balance.monthly_breakdown(starting_balance, stream_list, entry_list, contribution_list, as_of_date)
        payload["months"] = [
            {"month": month, **{col: round(float(val), 2) for col, val in row.items()}}
            for month, row in table.iterrows()
        ]
    _emit(payload, out, "Balance")


@app.command()
def snapshot(
    user_id: str = typer.Option(..., help="Owner of the snapshot"),
    month: Optional[str] = typer.Option(None, help="Any date inside the month (YYYY-MM-DD)"),
    streams: Optional[Path] = typer.Option(None, help="Streams CSV"),
    entries: Optional[Path] = typer.Option(None, help="One-time entries CSV"),
    goals: Optional[Path] = typer.Option(None, help="Goals CSV"),
    previous: Optional[Path] = typer.Option(None, help="Previous month's snapshot JSON"),
    scorer: str = typer.Option("weighted", help="Health score strategy: weighted|banded"),
    weights: Optional[Path] = typer.Option(None, help="Health weights JSON (weighted scorer only)"),
    out: Optional[Path] = typer.Option(None, help="Output path for snapshot JSON"),
):
    """Generate the monthly snapshot (metrics plus deltas vs the previous month)."""
    month_date = _parse_date(month)
    if scorer not in metrics.HEALTH_SCORERS:
        raise typer.BadParameter(f"Unknown scorer {scorer!r}")
    score_fn = metrics.HEALTH_SCORERS[scorer]

    try:
        if weights is not None:
            score_fn = metrics.scorer_with_weights(config_io.load_health_weights(weights))
        previous_snapshot = _load_previous(previous)
        stream_list = ledger_io.load_streams(streams) if streams else []
        entry_list = ledger_io.load_entries(entries) if entries else []
        goal_list = ledger_io.load_goals(goals) if goals else []
    except INPUT_ERRORS as exc:
        _fail(exc)

    income, expenses = balance.monthly_totals(stream_list, entry_list, month_date)
    result = metrics.generate_snapshot(
        user_id,
        month_date,
        income,
        expenses,
        goals=goal_list,
        previous_snapshot=previous_snapshot,
        scorer=score_fn,
    )
    _emit(_to_payload(result), out, "Snapshot")


@app.command()
def project(
    balance_now: float = typer.Option(..., "--balance", help="Current balance"),
    income: float = typer.Option(..., help="Monthly income held constant"),
    expenses: float = typer.Option(..., help="Monthly expenses held constant"),
    months: int = typer.Option(6, help="Months to project"),
    start_month: Optional[str] = typer.Option(None, help="Month the projection starts after (YYYY-MM-DD)"),
    config: Optional[Path] = typer.Option(None, help="Projection config JSON (confidence decay)"),
    out: Optional[Path] = typer.Option(None, help="Output path for projection JSON"),
):
    """Project the balance forward under constant income and expenses."""
    try:
        proj_config = config_io.load_projection_config(config) if config else None
    except INPUT_ERRORS as exc:
        _fail(exc)
    points = projection.project_forward(
        balance_now, income, expenses, months, start_month=_parse_date(start_month), config=proj_config
    )
    payload = {
        "points": _to_payload(points),
        "runway": _to_payload(projection.financial_runway(balance_now, income, expenses)),
    }
    _emit(payload, out, "Projection")


@app.command("asset")
def asset_cmd(
    price: float = typer.Option(..., help="Current price of the asset"),
    rate: float = typer.Option(..., help="Annual price drift applied as (1 + rate) ** years"),
    months: int = typer.Option(..., help="Months until purchase"),
    down_payment_ratio: Optional[float] = typer.Option(None, help="Down payment share of the price (0-1)"),
    current: float = typer.Option(0.0, help="Amount already saved"),
    surplus: Optional[float] = typer.Option(None, help="Monthly surplus, used for the affordability score"),
    out: Optional[Path] = typer.Option(None, help="Output path for forecast JSON"),
):
    """Forecast an asset price and the monthly savings needed for it."""
    try:
        result = asset.forecast_asset(
            price, rate, months, down_payment_ratio=down_payment_ratio, current_amount=current, monthly_surplus=surplus
        )
    except INPUT_ERRORS as exc:
        _fail(exc)
    payload = _to_payload(result)
    payload["options"] = asset.down_payment_options(result.projected_price)
    _emit(payload, out, "Asset forecast")


@app.command()
def scenarios(
    income: float = typer.Option(..., help="Monthly income"),
    surplus: float = typer.Option(..., help="Monthly surplus (income - expenses)"),
    target: float = typer.Option(..., help="Target amount"),
    saved: float = typer.Option(0.0, help="Amount already saved"),
    desired_months: int = typer.Option(12, help="Desired timeline in months"),
    rate: Optional[List[str]] = typer.Option(None, help="Candidate rate, repeatable (e.g. 0.1 or 10%)"),
    config: Optional[Path] = typer.Option(None, help="Scenario config JSON with candidate_rates"),
    out: Optional[Path] = typer.Option(None, help="Output path for scenarios JSON"),
):
    """Compare candidate savings rates for reaching a target."""
    if rate:
        candidates = tuple(_parse_rate(r) for r in rate)
    else:
        candidates = ScenarioConfig().candidate_rates

    try:
        if not rate and config is not None:
            candidates = config_io.load_scenario_config(config).candidate_rates
        result = scenario_service.generate_scenarios(income, surplus, target, saved, candidates, desired_months)
    except INPUT_ERRORS as exc:
        _fail(exc)

    payload = {
        "scenarios": _to_payload(result.scenarios),
        "recommended": _to_payload(result.recommended),
        "feasible": bool(result.feasible),
    }
    _emit(payload, out, "Scenarios")


@app.command("analyze-goal")
def analyze_goal(
    goals: Path = typer.Option(..., help="Goals CSV"),
    contributions_csv: Path = typer.Option(..., "--contributions", help="Contributions CSV"),
    goal_id: str = typer.Option(..., help="Goal to analyze"),
    today: Optional[str] = typer.Option(None, help="Reference date (YYYY-MM-DD)"),
    out: Optional[Path] = typer.Option(None, help="Output path for analysis JSON"),
):
    """Analyze a goal's contribution history for consistency, trend and on-track status."""
    try:
        goal_list = ledger_io.load_goals(goals)
        history = [c for c in ledger_io.load_contributions(contributions_csv) if c.goal_id == goal_id]
    except INPUT_ERRORS as exc:
        _fail(exc)

    goal = next((g for g in goal_list if g.id == goal_id), None)
    if goal is None:
        raise typer.BadParameter(f"Goal {goal_id!r} not found in {goals}")

    try:
        result = contributions.analyze_contributions(
            history, goal.target_amount, goal.current_amount, goal.created_at, goal.target_date, today=_parse_date(today)
        )
    except INPUT_ERRORS as exc:
        _fail(exc)
    _emit(_to_payload(result), out, "Goal analysis")


@app.command()
def plan(
    streams: Optional[Path] = typer.Option(None, help="Streams CSV"),
    entries: Optional[Path] = typer.Option(None, help="One-time entries CSV"),
    goals: Optional[Path] = typer.Option(None, help="Goals CSV"),
    contributions_csv: Optional[Path] = typer.Option(None, "--contributions", help="Contributions CSV"),
    starting_balance: float = typer.Option(0.0, help="Balance before any recorded cash flow"),
    as_of: Optional[str] = typer.Option(None, help="As-of date (YYYY-MM-DD)"),
    months: int = typer.Option(6, help="Projection horizon in months"),
    snapshot_files: Optional[List[Path]] = typer.Option(
        None, "--snapshot", help="Snapshot JSON written by the snapshot command (repeatable)"
    ),
):
    """Run the whole engine and print a summary."""
    console = Console()
    as_of_date = _parse_date(as_of)
    try:
        report = pipeline.build_plan(
            starting_balance,
            ledger_io.load_streams(streams) if streams else [],
            ledger_io.load_entries(entries) if entries else [],
            ledger_io.load_goals(goals) if goals else [],
            ledger_io.load_contributions(contributions_csv) if contributions_csv else [],
            as_of_date,
            horizon_months=months,
            snapshots=[_load_previous(p) for p in snapshot_files or []],
        )
    except INPUT_ERRORS as exc:
        _fail(exc)

    m = report.metrics
    console.print(f"[bold cyan]== Plan as of {report.as_of.isoformat()} ==[/bold cyan]")
    console.print(f"Balance: [bold]{report.balance:,.2f}[/bold]")
    console.print(
        f"Income {m.total_income:,.2f} | Expenses {m.total_expenses:,.2f} | "
        f"Burn {m.burn_rate:.1f}% | Savings {m.savings_rate:.1f}% | Health [bold]{m.health_score:.0f}[/bold]"
    )
    if not report.runway.sustainable:
        console.print(f"[red]Runway: {report.runway.runway_months:.1f} months at the current net flow[/red]")

    table = Table(title="Projection")
    table.add_column("Month")
    table.add_column("Balance", justify="right")
    table.add_column("Confidence", justify="right")
    for point in report.projection:
        table.add_row(point.month.isoformat(), f"{point.projected_balance:,.2f}", f"{point.confidence_level:.0%}")
    console.print(table)

    for goal_report in report.goals:
        analysis = goal_report.analysis
        best = goal_report.scenarios.recommended
        status = "[green]on track[/green]" if analysis.is_on_track else "[yellow]behind[/yellow]"
        console.print(
            f"Goal {goal_report.goal.id}: {goal_report.goal.current_amount:,.2f} / "
            f"{goal_report.goal.target_amount:,.2f} ({status}, {analysis.consistency} consistency, {analysis.trend})"
        )
        if best is None:
            console.print("  [yellow]No feasible savings scenario.[/yellow]")
        else:
            console.print(
                f"  Save {best.savings_rate:.1%} of income ({best.monthly_amount:,.2f}/mo) "
                f"for {best.timeline_months} months"
            )

    if report.risk is not None:
        colour = {"low": "green", "moderate": "yellow"}.get(report.risk.level, "red")
        console.print(f"Risk: [{colour}]{report.risk.level}[/{colour}]")
        for factor, advice in zip(report.risk.factors, report.risk.recommendations):
            console.print(f"  - {factor}: {advice}")

    if report.insights:
        insight_table = Table(title="Insights")
        insight_table.add_column("Type")
        insight_table.add_column("Insight")
        insight_table.add_column("Impact")
        insight_table.add_column("Potential saving", justify="right")
        for item in report.insights:
            saving = "" if item.potential_saving is None else f"{item.potential_saving:,.2f}"
            insight_table.add_row(item.kind, f"{item.title}: {item.description}", item.impact, saving)
        console.print(insight_table)


if __name__ == "__main__":
    app()
