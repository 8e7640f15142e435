from cashplan_core.domain.errors import ValidationError  # noqa: F401
from cashplan_core.domain.models import (  # noqa: F401
    AssetForecast,
    AssetParams,
    CashFlowStream,
    ContributionAnalysis,
    Frequency,
    Goal,
    GoalContribution,
    GoalReport,
    HealthWeights,
    Insight,
    Kind,
    MonthlyMetrics,
    MonthlySnapshot,
    OneTimeEntry,
    PlanReport,
    ProjectionConfig,
    ProjectionPoint,
    RiskAssessment,
    Runway,
    Scenario,
    ScenarioConfig,
    ScenarioSet,
)

__all__ = [
    "AssetForecast",
    "AssetParams",
    "CashFlowStream",
    "ContributionAnalysis",
    "Frequency",
    "Goal",
    "GoalContribution",
    "GoalReport",
    "HealthWeights",
    "Insight",
    "Kind",
    "MonthlyMetrics",
    "MonthlySnapshot",
    "OneTimeEntry",
    "PlanReport",
    "ProjectionConfig",
    "ProjectionPoint",
    "RiskAssessment",
    "Runway",
    "Scenario",
    "ScenarioConfig",
    "ScenarioSet",
    "ValidationError",
]
