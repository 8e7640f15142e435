from __future__ import annotations

import dataclasses
import datetime as dt
import logging
from typing import List

import pandas as pd

from cashplan_core.domain.errors import ValidationError
from cashplan_core.domain.models import WEEKS_PER_MONTH, CashFlowStream, Frequency

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Accrual:
    stream_id: str
    monthly_amount: float
    months: List[dt.date]

    @property
    def total(self) -> float:
        return self.monthly_amount * len(self.months)


def month_start(date: dt.date) -> dt.date:
    return dt.date(date.year, date.month, 1)


def add_months(date: dt.date, months: int) -> dt.date:
    return (pd.Period(month_start(date), freq="M") + months).to_timestamp().date()


def months_between(start: dt.date, end: dt.date) -> int:
    """Whole calendar months from start's month to end's month (may be negative)."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def normalize_monthly(amount: float, frequency: Frequency) -> float:
    if frequency == Frequency.WEEKLY:
        return amount * WEEKS_PER_MONTH
    if frequency == Frequency.YEARLY:
        return amount / 12
    if frequency == Frequency.MONTHLY:
        return amount
    raise ValidationError("ONE_TIME cash flows must be recorded as one-time entries, not streams")


def active_months(stream: CashFlowStream, as_of: dt.date) -> List[dt.date]:
    """
    Calendar months (as first-of-month dates) in which the stream accrued up to as_of.
    A mid-month start or end counts for the whole month.
    """
    if not stream.is_active or as_of < stream.active_from:
        return []

    first = month_start(stream.active_from)
    last = month_start(as_of)
    if stream.active_until is not None:
        last = min(last, month_start(stream.active_until))
    if last < first:
        return []

    periods = pd.period_range(start=first, end=last, freq="M")
    return [p.to_timestamp().date() for p in periods]


def resolve_accrual(stream: CashFlowStream, as_of: dt.date) -> Accrual:
    monthly = normalize_monthly(stream.amount, stream.frequency)
    months = active_months(stream, as_of)
    logger.debug("stream %s accrues %.2f/month over %d months", stream.id, monthly, len(months))
    return Accrual(stream_id=stream.id, monthly_amount=monthly, months=months)
