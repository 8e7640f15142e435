from __future__ import annotations

import dataclasses
import datetime as dt
import math
from typing import Iterable, List, Optional

from cashplan_core.domain.errors import ValidationError
from cashplan_core.domain.models import Goal, GoalContribution

RECONCILE_EPSILON = 0.01


def contribution_sum(goal: Goal, contributions: Iterable[GoalContribution]) -> float:
    return math.fsum(c.amount for c in contributions if c.goal_id == goal.id)


def reconcile(goal: Goal, contributions: Iterable[GoalContribution], epsilon: float = RECONCILE_EPSILON) -> Goal:
    """Returns the goal unchanged when current_amount matches its contribution log."""
    recorded = contribution_sum(goal, contributions)
    if abs(goal.current_amount - recorded) > epsilon:
        raise ValidationError(
            f"Goal {goal.id}: current_amount {goal.current_amount:.2f} does not match contributions {recorded:.2f}"
        )
    return goal


def apply_contribution(goal: Goal, contribution: GoalContribution) -> Goal:
    if contribution.goal_id != goal.id:
        raise ValidationError(f"Contribution {contribution.id} belongs to goal {contribution.goal_id}, not {goal.id}")
    current = round(goal.current_amount + contribution.amount, 2)
    return dataclasses.replace(goal, current_amount=current, is_completed=current >= goal.target_amount)


def goal_from_log(goal: Goal, contributions: Iterable[GoalContribution]) -> Goal:
    """Rebuilds the materialized aggregate from the contribution log."""
    current = round(contribution_sum(goal, contributions), 2)
    return dataclasses.replace(goal, current_amount=current, is_completed=current >= goal.target_amount)


def monthly_savings_required(target_amount: float, current_amount: float, months_remaining: int) -> float:
    if months_remaining <= 0:
        return 0.0
    return max(0.0, (target_amount - current_amount) / months_remaining)


def goal_timeline(target_amount: float, current_amount: float, monthly_savings: float) -> Optional[int]:
    """Months to reach the target at a fixed monthly saving; None when it never gets there."""
    if monthly_savings <= 0:
        return None
    return math.ceil(max(0.0, (target_amount - current_amount) / monthly_savings))


def goal_allocations(goals: Iterable[Goal], available_monthly: float, today: Optional[dt.date] = None) -> List[dict]:
    """
    Splits the available monthly savings across open goals, weighted by priority
    (1 = highest) and by how close the target date is. Overdue goals get double weight.
    """
    today = today or dt.date.today()
    open_goals = [g for g in goals if not g.is_completed]
    if available_monthly <= 0 or not open_goals:
        return [{"goal_id": g.id, "allocation": 0.0, "percentage": 0.0} for g in open_goals]

    weights = []
    for goal in sorted(open_goals, key=lambda g: g.priority):
        years_left = (goal.target_date - today).days / 365.25
        urgency = 2.0 if years_left <= 0 else 1 / max(years_left, 1 / 12)
        weights.append((goal, (1 / max(goal.priority, 1)) * urgency))

    total = math.fsum(w for _, w in weights)
    return [
        {
            "goal_id": goal.id,
            "allocation": round(available_monthly * w / total, 2),
            "percentage": round(w / total * 100, 2),
        }
        for goal, w in weights
    ]
