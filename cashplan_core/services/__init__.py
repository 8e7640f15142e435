from cashplan_core.services.asset import forecast_asset  # noqa: F401
from cashplan_core.services.balance import compute_balance, monthly_breakdown  # noqa: F401
from cashplan_core.services.contributions import analyze_contributions  # noqa: F401
from cashplan_core.services.metrics import compute_monthly_metrics, generate_snapshot  # noqa: F401
from cashplan_core.services.pipeline import build_plan  # noqa: F401
from cashplan_core.services.projection import financial_runway, project_forward  # noqa: F401
from cashplan_core.services.scenario import generate_scenarios  # noqa: F401

__all__ = [
    "compute_balance",
    "monthly_breakdown",
    "compute_monthly_metrics",
    "generate_snapshot",
    "project_forward",
    "financial_runway",
    "forecast_asset",
    "generate_scenarios",
    "analyze_contributions",
    "build_plan",
]
