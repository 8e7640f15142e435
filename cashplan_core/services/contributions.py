from __future__ import annotations

import datetime as dt
import math
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np

from cashplan_core.domain.errors import ValidationError
from cashplan_core.domain.models import ContributionAnalysis, GoalContribution
from cashplan_core.services.goals import RECONCILE_EPSILON

AVG_DAYS_PER_MONTH = 365.25 / 12
TREND_WINDOW = 3
TREND_THRESHOLD = 20.0

HistoryItem = Union[GoalContribution, Tuple[dt.date, float]]


def _as_pairs(history: Iterable[HistoryItem]) -> List[Tuple[dt.date, float]]:
    pairs = []
    for item in history:
        if isinstance(item, GoalContribution):
            month, amount = item.month, float(item.amount)
        else:
            month, amount = item[0], float(item[1])
        if amount <= 0:
            raise ValidationError(f"Contribution amounts must be positive, got {amount} for {month}")
        pairs.append((month, amount))
    return sorted(pairs, key=lambda p: p[0])


def classify_consistency(score: float) -> str:
    if score >= 90:
        return "excellent"
    if score >= 75:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


def contribution_trend(amounts: List[float], consistency_score: float) -> str:
    """
    Compares the mean of the last three contributions with the first three.
    Short histories (under two full windows) are reported as stable.
    """
    if len(amounts) < 2 * TREND_WINDOW:
        return "stable"
    older = float(np.mean(amounts[:TREND_WINDOW]))
    recent = float(np.mean(amounts[-TREND_WINDOW:]))
    if older <= 0:
        return "stable"
    change = (recent - older) / older * 100
    if change > TREND_THRESHOLD:
        return "increasing"
    if change < -TREND_THRESHOLD:
        return "decreasing"
    if consistency_score < 60:
        return "volatile"
    return "stable"


def months_until(start: dt.date, end: dt.date) -> int:
    return max(0, math.ceil((end - start).days / AVG_DAYS_PER_MONTH))


def analyze_contributions(
    history: Iterable[HistoryItem],
    target_amount: float,
    current_amount: float,
    created_at: dt.date,
    target_date: dt.date,
    today: Optional[dt.date] = None,
) -> ContributionAnalysis:
    """
    Contribution statistics for one goal. The history must be the goal's full
    contribution log: current_amount has to match its sum.
    """
    if target_amount < 0:
        raise ValidationError(f"target_amount cannot be negative, got {target_amount}")
    today = today or dt.date.today()
    pairs = _as_pairs(history)
    recorded = math.fsum(amount for _, amount in pairs)
    if abs(current_amount - recorded) > RECONCILE_EPSILON:
        raise ValidationError(
            f"current_amount {current_amount:.2f} does not match the contribution history total {recorded:.2f}"
        )
    months_since_start = max(1, months_until(created_at, today))

    if not pairs:
        return ContributionAnalysis(
            average_monthly=0.0,
            variance=0.0,
            consistency_score=0.0,
            consistency="poor",
            trend="stable",
            is_on_track=False,
            projected_completion_date=target_date,
            months_since_start=months_since_start,
        )

    amounts = np.array([amount for _, amount in pairs], dtype=float)
    average = float(np.mean(amounts))
    spread = float(np.std(amounts))  # population std (ddof=0)

    if average > 0:
        score = max(0.0, min(100.0, 100 - (spread / average) * 100))
    else:
        score = 0.0

    remaining = max(0.0, target_amount - current_amount)
    if average > 0:
        days = int(round(remaining / average * AVG_DAYS_PER_MONTH))
        projected = today + dt.timedelta(days=days)
    else:
        projected = target_date

    months_left = months_until(today, target_date)
    on_track = current_amount + average * months_left >= target_amount

    return ContributionAnalysis(
        average_monthly=average,
        variance=spread,
        consistency_score=score,
        consistency=classify_consistency(score),
        trend=contribution_trend(amounts.tolist(), score),
        is_on_track=bool(on_track),
        projected_completion_date=projected,
        total=float(amounts.sum()),
        highest=float(amounts.max()),
        lowest=float(amounts.min()),
        count=len(pairs),
        months_since_start=months_since_start,
    )
