from __future__ import annotations

import math
from typing import Dict, Optional

from cashplan_core.domain.errors import ValidationError
from cashplan_core.domain.models import AssetForecast, AssetParams


def projected_price(initial_price: float, annual_rate: float, horizon_months: int) -> float:
    years = horizon_months / 12
    return initial_price * math.pow(1 + annual_rate, years)


def affordability_score(monthly_required: float, monthly_surplus: Optional[float]) -> float:
    """100 when nothing is required, 0 once the requirement eats the whole surplus."""
    if monthly_required <= 0:
        return 100.0
    if monthly_surplus is None or monthly_surplus <= 0:
        return 0.0
    ratio = monthly_required / monthly_surplus
    if ratio >= 1:
        return 0.0
    return round(100 * (1 - ratio), 2)


def forecast_asset(
    initial_price: float,
    annual_rate: float,
    horizon_months: int,
    down_payment_ratio: Optional[float] = None,
    current_amount: float = 0.0,
    months_remaining: Optional[int] = None,
    monthly_surplus: Optional[float] = None,
) -> AssetForecast:
    """
    Projects the purchase price over the horizon and derives the monthly savings
    needed to cover the down payment (or the whole price without a ratio).
    """
    if initial_price < 0:
        raise ValidationError("initial_price cannot be negative")
    if annual_rate <= -1:
        raise ValidationError(f"annual_rate must be greater than -1, got {annual_rate}")
    if down_payment_ratio is not None and not 0 <= down_payment_ratio <= 1:
        raise ValidationError(f"down_payment_ratio must be within [0, 1], got {down_payment_ratio}")

    price = projected_price(initial_price, annual_rate, horizon_months)
    remaining = horizon_months if months_remaining is None else months_remaining

    required_down_payment = None
    target = price
    if down_payment_ratio is not None:
        required_down_payment = round(price * down_payment_ratio, 2)
        target = required_down_payment

    monthly_required = max(0.0, (target - current_amount) / max(1, remaining))

    return AssetForecast(
        years=horizon_months / 12,
        projected_price=round(price, 2),
        affordability_score=affordability_score(monthly_required, monthly_surplus),
        required_down_payment=required_down_payment,
        monthly_required_savings=round(monthly_required, 2),
    )


def forecast_goal_asset(
    params: AssetParams,
    horizon_months: int,
    current_amount: float = 0.0,
    monthly_surplus: Optional[float] = None,
) -> AssetForecast:
    return forecast_asset(
        params.initial_price,
        params.annual_rate,
        horizon_months,
        down_payment_ratio=params.down_payment_ratio,
        current_amount=current_amount,
        monthly_surplus=monthly_surplus,
    )


def down_payment_options(price: float, closing_cost_rate: float = 0.0) -> Dict[str, float]:
    closing = price * closing_cost_rate
    return {
        "option10": round(price * 0.10 + closing, 2),
        "option20": round(price * 0.20 + closing, 2),
        "option30": round(price * 0.30 + closing, 2),
        "full_cash": round(price + closing, 2),
        "closing_costs": round(closing, 2),
    }
