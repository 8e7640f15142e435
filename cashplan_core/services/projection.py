from __future__ import annotations

import datetime as dt
from typing import List, Optional

from cashplan_core.domain.models import ProjectionConfig, ProjectionPoint, Runway
from cashplan_core.services.accrual import add_months, month_start


def confidence_level(month_index: int, config: ProjectionConfig = ProjectionConfig()) -> float:
    level = max(config.floor_confidence, config.initial_confidence - config.decay_per_month * month_index)
    return max(0.0, min(1.0, level))


def project_forward(
    current_balance: float,
    monthly_income: float,
    monthly_expenses: float,
    horizon_months: int,
    start_month: Optional[dt.date] = None,
    config: Optional[ProjectionConfig] = None,
) -> List[ProjectionPoint]:
    """
    Linear projection: income and expenses are held constant, so the balance moves
    by the same net amount every month. Confidence decays with the month index.
    """
    config = config or ProjectionConfig()
    if start_month is None:
        start_month = dt.date.today()
    base = month_start(start_month)
    net = monthly_income - monthly_expenses

    points: List[ProjectionPoint] = []
    for m in range(1, horizon_months + 1):
        points.append(
            ProjectionPoint(
                month=add_months(base, m),
                projected_balance=round(current_balance + net * m, 2),
                projected_income=monthly_income,
                projected_expenses=monthly_expenses,
                confidence_level=confidence_level(m, config),
            )
        )
    return points


def financial_runway(current_balance: float, monthly_income: float, monthly_expenses: float) -> Runway:
    net = monthly_income - monthly_expenses
    balance_only: Optional[float] = None
    if monthly_expenses > 0:
        balance_only = max(0.0, current_balance) / monthly_expenses

    if net >= 0:
        return Runway(monthly_net_flow=net, balance_only_months=balance_only, runway_months=None, sustainable=True)

    runway = max(0.0, current_balance) / -net
    return Runway(monthly_net_flow=net, balance_only_months=balance_only, runway_months=runway, sustainable=False)
