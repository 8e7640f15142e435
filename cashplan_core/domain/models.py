from __future__ import annotations

import dataclasses
import datetime as dt
import enum
from typing import List, Optional, Tuple

from cashplan_core.domain.errors import ValidationError

WEEKS_PER_MONTH = (365.25 / 7) / 12


class Kind(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Frequency(str, enum.Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    ONE_TIME = "one_time"


@dataclasses.dataclass(frozen=True)
class CashFlowStream:
    id: str
    kind: Kind
    amount: float
    frequency: Frequency
    active_from: dt.date
    active_until: Optional[dt.date] = None
    is_active: bool = True

    def __post_init__(self) -> None:
        if self.active_until is not None and self.active_until < self.active_from:
            raise ValidationError(
                f"Stream {self.id}: active_until {self.active_until} is before active_from {self.active_from}"
            )

    @property
    def monthly_equivalent(self) -> float:
        if self.frequency == Frequency.WEEKLY:
            return self.amount * WEEKS_PER_MONTH
        if self.frequency == Frequency.YEARLY:
            return self.amount / 12
        if self.frequency == Frequency.MONTHLY:
            return self.amount
        raise ValidationError(f"Stream {self.id}: one-time amounts belong in OneTimeEntry")


@dataclasses.dataclass(frozen=True)
class OneTimeEntry:
    id: str
    kind: Kind
    amount: float
    date: dt.date
    category: str = "other"


@dataclasses.dataclass(frozen=True)
class GoalContribution:
    id: str
    goal_id: str
    amount: float
    month: dt.date
    notes: str = ""

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValidationError(f"Contribution {self.id}: amount must be positive, got {self.amount}")


@dataclasses.dataclass(frozen=True)
class AssetParams:
    initial_price: float
    annual_rate: float  # signed yearly price drift
    down_payment_ratio: Optional[float] = None  # 0..1


@dataclasses.dataclass(frozen=True)
class Goal:
    id: str
    target_amount: float
    current_amount: float
    target_date: dt.date
    created_at: dt.date
    is_completed: bool = False
    asset_params: Optional[AssetParams] = None
    priority: int = 1

    def __post_init__(self) -> None:
        if self.target_amount < 0:
            raise ValidationError(f"Goal {self.id}: target_amount cannot be negative")

    @property
    def progress(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return min(100.0, self.current_amount / self.target_amount * 100)


@dataclasses.dataclass(frozen=True)
class MonthlyMetrics:
    total_income: float
    total_expenses: float
    total_savings: float
    burn_rate: float
    savings_rate: float
    health_score: float
    income_change_percent: Optional[float] = None
    expense_change_percent: Optional[float] = None
    savings_change_percent: Optional[float] = None
    health_score_change: Optional[float] = None


@dataclasses.dataclass(frozen=True)
class MonthlySnapshot:
    user_id: str
    month: dt.date
    total_income: float
    total_expenses: float
    total_savings: float
    burn_rate: float
    savings_rate: float
    health_score: float
    income_change_percent: Optional[float] = None
    expense_change_percent: Optional[float] = None
    savings_change_percent: Optional[float] = None
    health_score_change: Optional[float] = None
    active_goals_count: int = 0
    completed_goals_count: int = 0

    @property
    def key(self) -> Tuple[str, dt.date]:
        return (self.user_id, self.month)


@dataclasses.dataclass(frozen=True)
class HealthWeights:
    savings: float = 0.5
    burn: float = 0.3
    goals: float = 0.2


@dataclasses.dataclass(frozen=True)
class ProjectionConfig:
    initial_confidence: float = 0.95
    decay_per_month: float = 0.03
    floor_confidence: float = 0.50


@dataclasses.dataclass(frozen=True)
class ProjectionPoint:
    month: dt.date
    projected_balance: float
    projected_income: float
    projected_expenses: float
    confidence_level: float


@dataclasses.dataclass(frozen=True)
class Runway:
    monthly_net_flow: float
    balance_only_months: Optional[float]
    runway_months: Optional[float]  # None while net flow is non-negative
    sustainable: bool


@dataclasses.dataclass(frozen=True)
class ScenarioConfig:
    candidate_rates: Tuple[float, ...] = (0.01, 0.025, 0.05, 0.10, 0.15, 0.20, 0.25)


@dataclasses.dataclass(frozen=True)
class Scenario:
    savings_rate: float
    monthly_amount: float
    timeline_months: int
    feasible: bool
    remaining_surplus: float


@dataclasses.dataclass(frozen=True)
class ScenarioSet:
    scenarios: List[Scenario]
    recommended: Optional[Scenario]

    @property
    def feasible(self) -> List[Scenario]:
        return [s for s in self.scenarios if s.feasible]


@dataclasses.dataclass(frozen=True)
class AssetForecast:
    years: float
    projected_price: float
    affordability_score: float
    required_down_payment: Optional[float] = None
    monthly_required_savings: Optional[float] = None


@dataclasses.dataclass(frozen=True)
class ContributionAnalysis:
    average_monthly: float
    variance: float  # population standard deviation of amounts
    consistency_score: float
    consistency: str  # excellent|good|fair|poor
    trend: str  # increasing|decreasing|stable|volatile
    is_on_track: bool
    projected_completion_date: dt.date
    total: float = 0.0
    highest: float = 0.0
    lowest: float = 0.0
    count: int = 0
    months_since_start: int = 1


@dataclasses.dataclass(frozen=True)
class Insight:
    kind: str  # opportunity|warning|achievement|tip
    title: str
    description: str
    impact: str  # high|medium|low
    category: str  # income|expenses|goals|savings|general
    recommendation: Optional[str] = None
    potential_saving: Optional[float] = None
    timeline: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class RiskAssessment:
    level: str  # low|moderate|high|critical
    factors: List[str]
    recommendations: List[str]


@dataclasses.dataclass
class GoalReport:
    goal: Goal
    analysis: ContributionAnalysis
    scenarios: ScenarioSet
    asset: Optional[AssetForecast] = None


@dataclasses.dataclass
class PlanReport:
    as_of: dt.date
    balance: float
    metrics: MonthlyMetrics
    projection: List[ProjectionPoint]
    runway: Runway
    goals: List[GoalReport]
    insights: List[Insight] = dataclasses.field(default_factory=list)
    risk: Optional[RiskAssessment] = None
