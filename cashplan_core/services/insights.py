from __future__ import annotations

import datetime as dt
import logging
import math
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from cashplan_core.domain.models import (
    CashFlowStream,
    Goal,
    GoalReport,
    Insight,
    Kind,
    MonthlyMetrics,
    MonthlySnapshot,
    OneTimeEntry,
    RiskAssessment,
)
from cashplan_core.services import goals as goal_service
from cashplan_core.services.accrual import month_start, resolve_accrual
from cashplan_core.services.balance import month_records
from cashplan_core.services.contributions import months_until

logger = logging.getLogger(__name__)

DOMINANT_CATEGORY_SHARE = 40.0
CATEGORY_SAVING_RATIO = 0.15
EXPENSE_JUMP_PERCENT = 15.0
CRITICAL_BURN = 80.0
HIGH_BURN = 60.0
BURN_SAVING_RATIO = 0.125
LOW_SAVINGS = 10.0
HIGH_SAVINGS = 30.0
EMERGENCY_FLOOR_MONTHS = 3.0
EMERGENCY_STRONG_MONTHS = 6.0
INCOME_GROWTH_PERCENT = 10.0
WEALTH_CAPACITY = 0.3

RISK_LEVELS = ("low", "moderate", "high", "critical")


def expense_breakdown(
    streams: Iterable[CashFlowStream], one_time_entries: Iterable[OneTimeEntry], month: dt.date
) -> pd.Series:
    """Expense total per category for one month, largest first (ties by category name)."""
    rows = [
        {"category": category, "amount": amount}
        for kind, category, amount in month_records(streams, one_time_entries, month)
        if kind == Kind.EXPENSE
    ]
    if not rows:
        return pd.Series(dtype=float, name="amount")
    totals = pd.DataFrame(rows).groupby("category")["amount"].sum()
    return totals.sort_values(ascending=False, kind="mergesort")


def emergency_fund_months(current_balance: float, monthly_expenses: float) -> Optional[float]:
    if monthly_expenses <= 0:
        return None
    return current_balance / monthly_expenses


def active_income_streams(streams: Iterable[CashFlowStream], as_of: dt.date) -> int:
    """Income streams still paying in the as-of month."""
    current = month_start(as_of)
    count = 0
    for stream in streams:
        if stream.kind != Kind.INCOME:
            continue
        months = resolve_accrual(stream, as_of).months
        if months and months[-1] == current:
            count += 1
    return count


def assess_risk(
    burn_rate: float,
    emergency_months: float,
    debt_to_income_ratio: float = 0.0,
    income_streams: int = 0,
) -> RiskAssessment:
    """
    Collects risk factors from burn rate, emergency-fund cover, debt load and
    income diversification. The level follows the number of factors found:
    none is low, one moderate, two high, more critical.
    """
    factors: List[str] = []
    recommendations: List[str] = []

    if burn_rate > CRITICAL_BURN:
        factors.append("Very high burn rate")
        recommendations.append("Reduce expenses immediately")
    elif burn_rate > HIGH_BURN:
        factors.append("High burn rate")
        recommendations.append("Review and optimize expenses")

    if emergency_months < 1:
        factors.append("No emergency fund")
        recommendations.append("Build emergency fund urgently")
    elif emergency_months < EMERGENCY_FLOOR_MONTHS:
        factors.append("Insufficient emergency fund")
        recommendations.append("Increase emergency fund to 3-6 months")

    if debt_to_income_ratio > 40:
        factors.append("High debt burden")
        recommendations.append("Focus on debt reduction")
    elif debt_to_income_ratio > 25:
        factors.append("Moderate debt burden")
        recommendations.append("Consider debt consolidation")

    if income_streams < 2:
        factors.append("Single income source")
        recommendations.append("Diversify income streams")

    level = RISK_LEVELS[min(len(factors), len(RISK_LEVELS) - 1)]
    return RiskAssessment(level=level, factors=factors, recommendations=recommendations)


def _expense_insights(metrics: MonthlyMetrics, breakdown: Optional[pd.Series]) -> List[Insight]:
    if breakdown is None or breakdown.empty or metrics.total_expenses <= 0:
        return []
    category = str(breakdown.index[0])
    amount = float(breakdown.iloc[0])
    share = amount / metrics.total_expenses * 100
    if share <= DOMINANT_CATEGORY_SHARE:
        return []
    return [
        Insight(
            kind="opportunity",
            title="High Expense Category Detected",
            description=f"{category} accounts for {share:.1f}% of your expenses.",
            impact="high",
            category="expenses",
            recommendation=f"Review {category} expenses for potential optimization opportunities.",
            potential_saving=round(amount * CATEGORY_SAVING_RATIO, 2),
            timeline="2-4 weeks",
        )
    ]


def _trend_insights(snapshots: Sequence[MonthlySnapshot]) -> List[Insight]:
    recent = sorted(snapshots, key=lambda s: s.month, reverse=True)
    found: List[Insight] = []

    if len(recent) >= 2 and recent[1].total_expenses > 0:
        jump = (recent[0].total_expenses - recent[1].total_expenses) / recent[1].total_expenses * 100
        if jump > EXPENSE_JUMP_PERCENT:
            found.append(
                Insight(
                    kind="warning",
                    title="Expenses Trending Upward",
                    description=f"Your expenses increased by {jump:.1f}% this month.",
                    impact="high",
                    category="expenses",
                    recommendation="Review recent spending patterns and identify areas to cut back.",
                    timeline="This week",
                )
            )

    if len(recent) >= 3 and recent[2].total_income > 0:
        growth = (recent[0].total_income - recent[2].total_income) / recent[2].total_income * 100
        if growth > INCOME_GROWTH_PERCENT:
            found.append(
                Insight(
                    kind="achievement",
                    title="Strong Income Growth",
                    description=f"Your income has grown {growth:.1f}% over the last 3 months.",
                    impact="high",
                    category="income",
                    recommendation="Capitalize on this growth by increasing savings and investment contributions.",
                )
            )
    return found


def _rate_insights(metrics: MonthlyMetrics) -> List[Insight]:
    found: List[Insight] = []
    if metrics.burn_rate > CRITICAL_BURN:
        found.append(
            Insight(
                kind="warning",
                title="Critical Burn Rate",
                description=f"Your burn rate of {metrics.burn_rate:.1f}% means you spend most of your income.",
                impact="high",
                category="savings",
                recommendation="Immediate expense reduction needed. Consider emergency budget adjustments.",
                timeline="This week",
            )
        )
    elif metrics.burn_rate > HIGH_BURN:
        found.append(
            Insight(
                kind="opportunity",
                title="Optimize Spending",
                description=f"With a {metrics.burn_rate:.1f}% burn rate there is room to save more.",
                impact="medium",
                category="savings",
                recommendation="Target reducing expenses by 10-15% to improve your savings rate.",
                potential_saving=round(metrics.total_expenses * BURN_SAVING_RATIO, 2),
                timeline="1-2 months",
            )
        )

    if metrics.savings_rate < LOW_SAVINGS:
        found.append(
            Insight(
                kind="warning",
                title="Low Savings Rate",
                description=f"Your savings rate of {metrics.savings_rate:.1f}% is below the recommended 20% minimum.",
                impact="high",
                category="savings",
                recommendation="Focus on increasing income or reducing expenses to reach a 20% savings rate.",
                timeline="3-6 months",
            )
        )
    elif metrics.savings_rate > HIGH_SAVINGS:
        found.append(
            Insight(
                kind="achievement",
                title="Excellent Savings Rate",
                description=f"Your {metrics.savings_rate:.1f}% savings rate is well above the usual target.",
                impact="high",
                category="savings",
                recommendation="Consider investing excess savings for long-term wealth building.",
            )
        )
    return found


def _goal_insights(
    metrics: MonthlyMetrics, goals: Sequence[Goal], goal_reports: Sequence[GoalReport], as_of: dt.date
) -> List[Insight]:
    found: List[Insight] = []
    behind = [r for r in goal_reports if not r.analysis.is_on_track]
    if behind:
        required = math.fsum(
            goal_service.monthly_savings_required(
                r.goal.target_amount, r.goal.current_amount, months_until(as_of, r.goal.target_date)
            )
            for r in behind
        )
        if metrics.total_income > 0:
            advice = f"Consider increasing monthly contributions by {required / metrics.total_income * 100:.1f}% of income."
        else:
            advice = f"These goals need {required:,.2f} per month in total to land on time."
        found.append(
            Insight(
                kind="warning",
                title="Goals Behind Schedule",
                description=f"{len(behind)} goal(s) may not meet their target dates at current pace.",
                impact="medium",
                category="goals",
                recommendation=advice,
                timeline="Next month",
            )
        )

    completed = [g for g in goals if g.is_completed or g.current_amount >= g.target_amount]
    if completed:
        found.append(
            Insight(
                kind="achievement",
                title="Goals Achieved",
                description=f"You have completed {len(completed)} financial goal(s).",
                impact="high",
                category="goals",
                recommendation="Set new goals to keep your savings momentum.",
            )
        )
    return found


def _cushion_insights(metrics: MonthlyMetrics, current_balance: float) -> List[Insight]:
    found: List[Insight] = []
    cover = emergency_fund_months(current_balance, metrics.total_expenses)
    if cover is not None and cover < EMERGENCY_FLOOR_MONTHS:
        found.append(
            Insight(
                kind="opportunity",
                title="Build Emergency Fund",
                description=f"Your current balance covers {cover:.1f} months of expenses.",
                impact="high",
                category="savings",
                recommendation="Prioritize building a 3-6 month emergency fund.",
                potential_saving=round(metrics.total_expenses * EMERGENCY_FLOOR_MONTHS - current_balance, 2),
                timeline="6-12 months",
            )
        )
    elif cover is not None and cover >= EMERGENCY_STRONG_MONTHS:
        found.append(
            Insight(
                kind="achievement",
                title="Strong Emergency Fund",
                description=f"Your emergency fund covers {cover:.1f} months of expenses.",
                impact="medium",
                category="savings",
                recommendation="Consider investing the excess above six months of expenses.",
            )
        )

    if metrics.total_income > 0 and metrics.total_expenses > 0:
        capacity = (metrics.total_income - metrics.total_expenses) / metrics.total_income
        if capacity > WEALTH_CAPACITY:
            found.append(
                Insight(
                    kind="tip",
                    title="High Wealth Building Potential",
                    description="Your income-expense ratio leaves strong room for wealth building.",
                    impact="medium",
                    category="general",
                    recommendation="Consider accelerating investments in diversified portfolios.",
                )
            )
    return found


def generate_insights(
    metrics: MonthlyMetrics,
    current_balance: float,
    as_of: dt.date,
    breakdown: Optional[pd.Series] = None,
    goals: Sequence[Goal] = (),
    goal_reports: Sequence[GoalReport] = (),
    snapshots: Sequence[MonthlySnapshot] = (),
) -> List[Insight]:
    """
    Rule-based observations about one month: a dominant expense category,
    month-over-month expense jumps, burn and savings rates, goals behind
    schedule or completed, emergency-fund cover, income growth across the
    last three snapshots and spare capacity for wealth building.

    Snapshots may come in any order; the newest month is taken as current.
    """
    found: List[Insight] = []
    found.extend(_expense_insights(metrics, breakdown))
    found.extend(_rate_insights(metrics))
    found.extend(_goal_insights(metrics, goals, goal_reports, as_of))
    found.extend(_cushion_insights(metrics, current_balance))
    found.extend(_trend_insights(snapshots))
    logger.debug("generated %d insights for %s", len(found), as_of)
    return found
