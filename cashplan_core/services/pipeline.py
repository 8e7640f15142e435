from __future__ import annotations

import datetime as dt
import math
from typing import Iterable, List, Optional

from cashplan_core.domain.models import (
    CashFlowStream,
    Goal,
    GoalContribution,
    GoalReport,
    MonthlySnapshot,
    OneTimeEntry,
    PlanReport,
    ProjectionConfig,
    ScenarioConfig,
)
from cashplan_core.services import asset, balance, contributions, goals as goal_service, insights, metrics, projection
from cashplan_core.services import scenario as scenario_service
from cashplan_core.services.accrual import month_start, months_between


def build_plan(
    starting_balance: float,
    streams: Iterable[CashFlowStream],
    one_time_entries: Iterable[OneTimeEntry],
    goals: Iterable[Goal],
    goal_contributions: Iterable[GoalContribution],
    as_of: dt.date,
    horizon_months: int = 6,
    projection_config: Optional[ProjectionConfig] = None,
    scenario_config: Optional[ScenarioConfig] = None,
    snapshots: Iterable[MonthlySnapshot] = (),
) -> PlanReport:
    """
    Runs the engine end to end for one user: balance, the as-of month's metrics,
    forward projection, a per-goal analysis with savings scenarios, and
    the insight and risk read-outs. Stored snapshots of earlier months feed the trend insights.
    Goals whose current_amount does not match their contribution log are rejected.
    """
    streams = list(streams)
    one_time_entries = list(one_time_entries)
    goals = list(goals)
    goal_contributions = list(goal_contributions)
    scenario_config = scenario_config or ScenarioConfig()

    for goal in goals:
        goal_service.reconcile(goal, goal_contributions)

    current_balance = balance.compute_balance(
        starting_balance, streams, one_time_entries, goal_contributions, as_of
    )
    income, expenses = balance.monthly_totals(streams, one_time_entries, as_of)
    month_metrics = metrics.compute_monthly_metrics(
        income, expenses, goal_progress_percent=metrics.goal_progress(goals)
    )
    points = projection.project_forward(
        current_balance, income, expenses, horizon_months, start_month=as_of, config=projection_config
    )
    surplus = income - expenses

    reports: List[GoalReport] = []
    for goal in goals:
        if goal.is_completed:
            continue
        history = [c for c in goal_contributions if c.goal_id == goal.id]
        months_left = contributions.months_until(as_of, goal.target_date)
        analysis = contributions.analyze_contributions(
            history, goal.target_amount, goal.current_amount, goal.created_at, goal.target_date, today=as_of
        )
        scenarios = scenario_service.generate_scenarios(
            income,
            surplus,
            goal.target_amount,
            goal.current_amount,
            scenario_config.candidate_rates,
            months_left,
        )
        forecast = None
        if goal.asset_params is not None:
            horizon = max(0, months_between(as_of, goal.target_date))
            forecast = asset.forecast_goal_asset(
                goal.asset_params, horizon, current_amount=goal.current_amount, monthly_surplus=surplus
            )
        reports.append(GoalReport(goal=goal, analysis=analysis, scenarios=scenarios, asset=forecast))

    runway = projection.financial_runway(current_balance, income, expenses)
    # trend rules compare the as-of month against the stored snapshots before it
    history = sorted((s for s in snapshots if month_start(s.month) < month_start(as_of)), key=lambda s: s.month)
    if history:
        history.append(metrics.generate_snapshot(history[-1].user_id, as_of, income, expenses, goals=goals))
    found = insights.generate_insights(
        month_metrics,
        current_balance,
        as_of,
        breakdown=insights.expense_breakdown(streams, one_time_entries, as_of),
        goals=goals,
        goal_reports=reports,
        snapshots=history,
    )
    cover = insights.emergency_fund_months(current_balance, expenses)
    risk = insights.assess_risk(
        month_metrics.burn_rate,
        math.inf if cover is None else cover,
        income_streams=insights.active_income_streams(streams, as_of),
    )

    return PlanReport(
        as_of=as_of,
        balance=current_balance,
        metrics=month_metrics,
        projection=points,
        runway=runway,
        goals=reports,
        insights=found,
        risk=risk,
    )
