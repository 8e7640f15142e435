from __future__ import annotations

import datetime as dt
import logging
import math
from typing import Callable, Iterable, Optional

from cashplan_core.domain.models import Goal, HealthWeights, MonthlyMetrics, MonthlySnapshot
from cashplan_core.services.accrual import add_months, month_start

logger = logging.getLogger(__name__)

# (burn_rate, savings_rate, goal_progress) -> score in [0, 100]
HealthScorer = Callable[[float, float, float], float]


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    if math.isnan(value):
        return low
    return max(low, min(high, value))


def burn_rate(total_income: float, total_expenses: float) -> float:
    if total_income <= 0:
        return 0.0
    return total_expenses / total_income * 100


def savings_rate(total_income: float, total_expenses: float) -> float:
    if total_income <= 0:
        return 0.0
    return (total_income - total_expenses) / total_income * 100


def change_percent(current: float, previous: Optional[float]) -> Optional[float]:
    if previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100


def weighted_health_score(
    burn: float,
    savings: float,
    goal_progress: float,
    weights: HealthWeights = HealthWeights(),
) -> float:
    """
    Default scorer: savings rate (0.5), inverted burn rate (0.3) and goal progress (0.2).
    Each component is clamped to [0, 100] before weighting.
    """
    score = (
        weights.savings * _clamp(savings)
        + weights.burn * max(0.0, 100.0 - burn)
        + weights.goals * _clamp(goal_progress)
    )
    return round(_clamp(score), 2)


def banded_health_score(burn: float, savings: float, goal_progress: float) -> float:
    """Tiered score: burn bands up to 40 points, savings bands up to 40, goals up to 20."""
    if burn > 85:
        burn_points = 5
    elif burn > 70:
        burn_points = 15
    elif burn > 50:
        burn_points = 30
    else:
        burn_points = 40

    if savings > 30:
        savings_points = 40
    elif savings > 20:
        savings_points = 35
    elif savings > 10:
        savings_points = 25
    else:
        savings_points = 10

    goal_points = min(20.0, _clamp(goal_progress) / 100 * 20)
    return float(round(burn_points + savings_points + goal_points))


def scorer_with_weights(weights: HealthWeights) -> HealthScorer:
    def _score(burn: float, savings: float, goal_progress: float) -> float:
        return weighted_health_score(burn, savings, goal_progress, weights)

    return _score


HEALTH_SCORERS = {
    "weighted": weighted_health_score,
    "banded": banded_health_score,
}


def goal_progress(goals: Iterable[Goal]) -> float:
    """Aggregate progress of the active goals, in percent of their combined target."""
    active = [g for g in goals if not g.is_completed]
    target = math.fsum(g.target_amount for g in active)
    if target <= 0:
        return 0.0
    current = math.fsum(g.current_amount for g in active)
    return _clamp(current / target * 100)


def compute_monthly_metrics(
    total_income: float,
    total_expenses: float,
    previous_snapshot: Optional[MonthlySnapshot] = None,
    goal_progress_percent: float = 0.0,
    scorer: HealthScorer = weighted_health_score,
) -> MonthlyMetrics:
    total_savings = total_income - total_expenses
    burn = burn_rate(total_income, total_expenses)
    savings = savings_rate(total_income, total_expenses)
    score = scorer(burn, savings, goal_progress_percent)

    income_change = expense_change = savings_change = health_change = None
    if previous_snapshot is not None:
        income_change = change_percent(total_income, previous_snapshot.total_income)
        expense_change = change_percent(total_expenses, previous_snapshot.total_expenses)
        savings_change = change_percent(total_savings, previous_snapshot.total_savings)
        health_change = score - previous_snapshot.health_score

    return MonthlyMetrics(
        total_income=total_income,
        total_expenses=total_expenses,
        total_savings=total_savings,
        burn_rate=burn,
        savings_rate=savings,
        health_score=score,
        income_change_percent=income_change,
        expense_change_percent=expense_change,
        savings_change_percent=savings_change,
        health_score_change=health_change,
    )


def generate_snapshot(
    user_id: str,
    month: dt.date,
    total_income: float,
    total_expenses: float,
    goals: Iterable[Goal] = (),
    previous_snapshot: Optional[MonthlySnapshot] = None,
    scorer: HealthScorer = weighted_health_score,
) -> MonthlySnapshot:
    """
    Build the snapshot row for (user_id, month). Deltas are taken against the
    snapshot of the preceding calendar month only; any other snapshot is ignored.
    """
    month = month_start(month)
    goals = list(goals)

    previous = previous_snapshot
    if previous is not None and (previous.user_id != user_id or month_start(previous.month) != add_months(month, -1)):
        logger.debug("ignoring snapshot %s for deltas of %s/%s", previous.key, user_id, month)
        previous = None

    metrics = compute_monthly_metrics(
        total_income,
        total_expenses,
        previous_snapshot=previous,
        goal_progress_percent=goal_progress(goals),
        scorer=scorer,
    )
    return MonthlySnapshot(
        user_id=user_id,
        month=month,
        total_income=metrics.total_income,
        total_expenses=metrics.total_expenses,
        total_savings=metrics.total_savings,
        burn_rate=metrics.burn_rate,
        savings_rate=metrics.savings_rate,
        health_score=metrics.health_score,
        income_change_percent=metrics.income_change_percent,
        expense_change_percent=metrics.expense_change_percent,
        savings_change_percent=metrics.savings_change_percent,
        health_score_change=metrics.health_score_change,
        active_goals_count=sum(1 for g in goals if not g.is_completed),
        completed_goals_count=sum(1 for g in goals if g.is_completed),
    )
