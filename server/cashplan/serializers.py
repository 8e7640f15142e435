from __future__ import annotations

from rest_framework import serializers

from .models import GoalContribution, MonthlySnapshot


class ProjectionRequestSerializer(serializers.Serializer):
    balance = serializers.FloatField()
    monthly_income = serializers.FloatField(min_value=0.0)
    monthly_expenses = serializers.FloatField(min_value=0.0)
    months = serializers.IntegerField(min_value=1, max_value=600, default=6)
    start_month = serializers.DateField(required=False)


class ScenarioRequestSerializer(serializers.Serializer):
    monthly_income = serializers.FloatField(min_value=0.0)
    monthly_surplus = serializers.FloatField()
    target_amount = serializers.FloatField(min_value=0.0)
    current_saved = serializers.FloatField(min_value=0.0, default=0.0)
    desired_timeline_months = serializers.IntegerField(min_value=1)
    candidate_rates = serializers.ListField(
        child=serializers.FloatField(min_value=0.0, max_value=1.0), required=False, allow_empty=False
    )


class AssetRequestSerializer(serializers.Serializer):
    initial_price = serializers.FloatField(min_value=0.0)
    annual_rate = serializers.FloatField()
    horizon_months = serializers.IntegerField(min_value=0)
    down_payment_ratio = serializers.FloatField(min_value=0.0, max_value=1.0, required=False, allow_null=True)
    current_amount = serializers.FloatField(min_value=0.0, default=0.0)
    monthly_surplus = serializers.FloatField(required=False, allow_null=True)


class ContributionRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    month = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class GoalContributionSerializer(serializers.ModelSerializer):
    class Meta:
        model = GoalContribution
        fields = ["id", "goal", "amount", "month", "notes", "created_at"]


class MonthlySnapshotSerializer(serializers.ModelSerializer):
    class Meta:
        model = MonthlySnapshot
        fields = [
            "id",
            "month",
            "total_income",
            "total_expenses",
            "total_savings",
            "burn_rate",
            "savings_rate",
            "health_score",
            "income_change_percent",
            "expense_change_percent",
            "savings_change_percent",
            "health_score_change",
            "active_goals_count",
            "completed_goals_count",
            "updated_at",
        ]
