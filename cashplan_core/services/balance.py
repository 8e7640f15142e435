from __future__ import annotations

import datetime as dt
import logging
import math
from typing import Iterable, List, Tuple

import pandas as pd

from cashplan_core.domain.models import CashFlowStream, GoalContribution, Kind, OneTimeEntry
from cashplan_core.services.accrual import add_months, month_start, resolve_accrual

logger = logging.getLogger(__name__)

BREAKDOWN_COLUMNS = ["income", "expenses", "contributions"]


def _sign(kind: Kind) -> int:
    return 1 if kind == Kind.INCOME else -1


def compute_balance(
    starting_balance: float,
    streams: Iterable[CashFlowStream],
    one_time_entries: Iterable[OneTimeEntry],
    contributions: Iterable[GoalContribution],
    as_of: dt.date,
) -> float:
    """
    Point-in-time balance: start + recurring accruals + one-time entries - goal contributions.

    Terms are summed with math.fsum, so the result does not depend on the order
    of the input collections. Only the final value is rounded to cents.
    """
    terms: List[float] = [float(starting_balance)]

    for stream in streams:
        accrual = resolve_accrual(stream, as_of)
        if accrual.months:
            terms.append(_sign(stream.kind) * accrual.total)

    for entry in one_time_entries:
        if entry.date <= as_of:
            terms.append(_sign(entry.kind) * entry.amount)

    for contribution in contributions:
        if contribution.month <= as_of:
            terms.append(-contribution.amount)

    balance = round(math.fsum(terms), 2)
    logger.debug("balance as of %s from %d terms: %.2f", as_of, len(terms), balance)
    return balance


def month_records(
    streams: Iterable[CashFlowStream],
    one_time_entries: Iterable[OneTimeEntry],
    month: dt.date,
) -> List[Tuple[Kind, str, float]]:
    """(kind, category, amount) for everything landing in one calendar month; a recurring stream is its own category."""
    target = month_start(month)
    month_end = add_months(target, 1) - dt.timedelta(days=1)
    records: List[Tuple[Kind, str, float]] = []

    for stream in streams:
        accrual = resolve_accrual(stream, month_end)
        if accrual.months and accrual.months[-1] == target:
            records.append((stream.kind, stream.id, accrual.monthly_amount))

    for entry in one_time_entries:
        if month_start(entry.date) == target:
            records.append((entry.kind, entry.category, entry.amount))

    return records


def monthly_totals(
    streams: Iterable[CashFlowStream],
    one_time_entries: Iterable[OneTimeEntry],
    month: dt.date,
) -> Tuple[float, float]:
    """Income and expense totals for a single calendar month."""
    records = month_records(streams, one_time_entries, month)
    income = math.fsum(amount for kind, _, amount in records if kind == Kind.INCOME)
    expenses = math.fsum(amount for kind, _, amount in records if kind != Kind.INCOME)
    return round(income, 2), round(expenses, 2)


def monthly_breakdown(
    starting_balance: float,
    streams: Iterable[CashFlowStream],
    one_time_entries: Iterable[OneTimeEntry],
    contributions: Iterable[GoalContribution],
    as_of: dt.date,
) -> pd.DataFrame:
    """
    Month-by-month table of income, expenses, contributions, net flow and running
    balance from the earliest record up to as_of.
    """
    rows = []
    for stream in streams:
        accrual = resolve_accrual(stream, as_of)
        column = "income" if stream.kind == Kind.INCOME else "expenses"
        for month in accrual.months:
            rows.append({"month": month, "column": column, "amount": accrual.monthly_amount})

    for entry in one_time_entries:
        if entry.date <= as_of:
            column = "income" if entry.kind == Kind.INCOME else "expenses"
            rows.append({"month": month_start(entry.date), "column": column, "amount": entry.amount})

    for contribution in contributions:
        if contribution.month <= as_of:
            rows.append({"month": month_start(contribution.month), "column": "contributions", "amount": contribution.amount})

    if not rows:
        return pd.DataFrame(columns=BREAKDOWN_COLUMNS + ["net", "running_balance"])

    df = pd.DataFrame(rows)
    table = df.groupby(["month", "column"])["amount"].sum().unstack(fill_value=0.0)
    table = table.reindex(columns=BREAKDOWN_COLUMNS, fill_value=0.0)

    months = pd.period_range(start=min(table.index), end=month_start(as_of), freq="M")
    table = table.reindex([p.to_timestamp().date() for p in months], fill_value=0.0)
    table.index.name = "month"

    table["net"] = table["income"] - table["expenses"] - table["contributions"]
    table["running_balance"] = float(starting_balance) + table["net"].cumsum()
    return table
