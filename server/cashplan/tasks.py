from __future__ import annotations

import datetime as dt
import logging

from celery import shared_task
from django.contrib.auth import get_user_model
from django.db import transaction

from cashplan_core.domain import ValidationError
from cashplan_core.services import balance, metrics
from cashplan_core.services.accrual import add_months, month_start

from .models import MonthlySnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = [
    "total_income",
    "total_expenses",
    "total_savings",
    "burn_rate",
    "savings_rate",
    "health_score",
    "income_change_percent",
    "expense_change_percent",
    "savings_change_percent",
    "health_score_change",
    "active_goals_count",
    "completed_goals_count",
]


@shared_task
def generate_monthly_snapshot(user_id: int, month_iso: str) -> int:
    """
    Recomputes the (user, month) snapshot from current records and replaces the
    stored row. Deltas always come from the stored snapshot of the previous month.
    """
    user = get_user_model().objects.get(pk=user_id)
    month = month_start(dt.date.fromisoformat(month_iso))

    try:
        streams = [s.to_domain() for s in user.cash_streams.all()]
        entries = [e.to_domain() for e in user.one_time_entries.all()]
        goals = [g.to_domain() for g in user.cash_goals.all()]
        income, expenses = balance.monthly_totals(streams, entries, month)
        snapshot_pk, created = _store_snapshot(user, month, income, expenses, goals)
    except ValidationError:
        logger.exception("snapshot for user %s %s failed", user.pk, month)
        raise

    logger.info("snapshot %s for user %s %s (%s)", snapshot_pk, user.pk, month, "created" if created else "replaced")
    return snapshot_pk


def _store_snapshot(user, month: dt.date, income: float, expenses: float, goals):
    with transaction.atomic():
        previous_row = MonthlySnapshot.objects.filter(user=user, month=add_months(month, -1)).first()
        snapshot = metrics.generate_snapshot(
            str(user.pk),
            month,
            income,
            expenses,
            goals=goals,
            previous_snapshot=previous_row.to_domain() if previous_row else None,
        )
        row, created = MonthlySnapshot.objects.update_or_create(
            user=user,
            month=month,
            defaults={field: getattr(snapshot, field) for field in SNAPSHOT_FIELDS},
        )

    return row.pk, created
