from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Tuple

from django.db import transaction
from django.db.models import Sum

from cashplan_core.domain import ValidationError
from cashplan_core.services import goals as goal_service
from cashplan_core.services.accrual import month_start

from .models import Goal, GoalContribution

logger = logging.getLogger(__name__)


def _to_cents(amount) -> Decimal:
    return Decimal(str(amount)).quantize(Decimal("0.01"))


def record_contribution(goal_id: int, amount, month: dt.date, notes: str = "") -> Tuple[GoalContribution, Goal]:
    """
    Appends a contribution and moves the goal's current_amount in the same transaction.
    The goal row is locked so concurrent contributions serialize on it.
    """
    value = _to_cents(amount)
    if value <= 0:
        raise ValidationError(f"Contribution amount must be positive, got {value}")

    with transaction.atomic():
        goal = Goal.objects.select_for_update().get(pk=goal_id)
        contribution = GoalContribution.objects.create(goal=goal, amount=value, month=month_start(month), notes=notes)
        goal.current_amount = goal.current_amount + value
        goal.is_completed = goal.current_amount >= goal.target_amount
        goal.save(update_fields=["current_amount", "is_completed"])

    logger.info("goal %s: recorded contribution %s of %s", goal.pk, contribution.pk, value)
    return contribution, goal


def delete_contribution(contribution_id: int) -> Goal:
    goal_id = GoalContribution.objects.filter(pk=contribution_id).values_list("goal_id", flat=True).first()
    if goal_id is None:
        raise GoalContribution.DoesNotExist(f"Contribution {contribution_id} does not exist")
    return remove_contribution(goal_id, contribution_id)


def remove_contribution(goal_id: int, contribution_id: int) -> Goal:
    """
    Deletes a contribution under the goal's row lock and recomputes current_amount
    from the remaining log. A contribution that is already gone leaves the goal as is.
    """
    with transaction.atomic():
        goal = Goal.objects.select_for_update().get(pk=goal_id)
        deleted, _ = GoalContribution.objects.filter(pk=contribution_id, goal=goal).delete()
        if not deleted:
            logger.info("goal %s: contribution %s was already removed", goal.pk, contribution_id)
            return goal
        goal.current_amount = contribution_total(goal.pk)
        goal.is_completed = goal.current_amount >= goal.target_amount
        goal.save(update_fields=["current_amount", "is_completed"])

    logger.info("goal %s: removed contribution %s", goal.pk, contribution_id)
    return goal


def reconcile_goal(goal_id: int) -> Goal:
    """Checks current_amount against the stored contributions; raises ValidationError on drift."""
    goal = Goal.objects.get(pk=goal_id)
    records = [c.to_domain() for c in goal.contributions.all()]
    goal_service.reconcile(goal.to_domain(), records)
    return goal


def contribution_total(goal_id: int) -> Decimal:
    total = GoalContribution.objects.filter(goal_id=goal_id).aggregate(total=Sum("amount"))["total"]
    return total or Decimal("0")
