from django.urls import path

from .views import (
    AssetForecastView,
    BalanceView,
    ContributionView,
    GoalAnalysisView,
    ProjectionView,
    ScenarioView,
    SnapshotView,
)

urlpatterns = [
    path("balance/", BalanceView.as_view(), name="balance"),
    path("projections/", ProjectionView.as_view(), name="projection-create"),
    path("scenarios/", ScenarioView.as_view(), name="scenario-create"),
    path("assets/forecast/", AssetForecastView.as_view(), name="asset-forecast"),
    path("goals/<int:pk>/analysis/", GoalAnalysisView.as_view(), name="goal-analysis"),
    path("goals/<int:pk>/contributions/", ContributionView.as_view(), name="goal-contributions"),
    path("snapshots/", SnapshotView.as_view(), name="snapshots"),
]
