from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence

from cashplan_core.domain.errors import ValidationError
from cashplan_core.domain.models import Scenario, ScenarioSet
from cashplan_core.services.metrics import burn_rate

logger = logging.getLogger(__name__)


def _build_scenario(
    rate: float,
    monthly_income: float,
    monthly_surplus: float,
    shortfall: float,
) -> Optional[Scenario]:
    monthly_amount = monthly_income * rate
    if monthly_amount <= 0:
        return None
    timeline = math.ceil(shortfall / monthly_amount)
    if not math.isfinite(timeline) or timeline <= 0:
        return None
    return Scenario(
        savings_rate=rate,
        monthly_amount=monthly_amount,
        timeline_months=int(timeline),
        feasible=monthly_amount <= monthly_surplus,
        remaining_surplus=monthly_surplus - monthly_amount,
    )


def recommend(scenarios: Sequence[Scenario], desired_timeline_months: int) -> Optional[Scenario]:
    """Feasible scenario closest to the desired timeline; ties go to the lower rate."""
    feasible = [s for s in scenarios if s.feasible]
    if not feasible:
        return None
    return min(feasible, key=lambda s: (abs(s.timeline_months - desired_timeline_months), s.savings_rate))


def generate_scenarios(
    monthly_income: float,
    monthly_surplus: float,
    target_amount: float,
    current_saved: float,
    candidate_rates: Sequence[float],
    desired_timeline_months: int,
) -> ScenarioSet:
    """
    One scenario per candidate savings rate. Rates that cannot reach the target in a
    positive, finite number of months are left out entirely.
    """
    if target_amount < 0:
        raise ValidationError("target_amount cannot be negative")
    for rate in candidate_rates:
        if not 0 < rate <= 1:
            raise ValidationError(f"candidate savings rate must be within (0, 1], got {rate}")

    shortfall = target_amount - current_saved
    scenarios: List[Scenario] = []
    for rate in sorted(candidate_rates):
        scenario = _build_scenario(rate, monthly_income, monthly_surplus, shortfall)
        if scenario is not None:
            scenarios.append(scenario)

    best = recommend(scenarios, desired_timeline_months)
    logger.debug(
        "%d scenarios (%d feasible) for shortfall %.2f", len(scenarios), sum(s.feasible for s in scenarios), shortfall
    )
    return ScenarioSet(scenarios=scenarios, recommended=best)


def stress_burn_rates(monthly_income: float, monthly_expenses: float) -> Dict[str, float]:
    return {
        "current": burn_rate(monthly_income, monthly_expenses),
        "income_down_20": burn_rate(monthly_income * 0.8, monthly_expenses),
        "income_down_30": burn_rate(monthly_income * 0.7, monthly_expenses),
        "expenses_up_15": burn_rate(monthly_income, monthly_expenses * 1.15),
        "expenses_up_25": burn_rate(monthly_income, monthly_expenses * 1.25),
    }
