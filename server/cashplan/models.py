from django.conf import settings
from django.db import models

from cashplan_core.domain import models as domain


class UserProfile(models.Model):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="cash_profile")
    starting_balance = models.DecimalField(max_digits=14, decimal_places=2, default=0)


class CashFlowStream(models.Model):
    KIND_CHOICES = [
        ("income", "Income"),
        ("expense", "Expense"),
    ]
    FREQUENCY_CHOICES = [
        ("weekly", "Weekly"),
        ("monthly", "Monthly"),
        ("yearly", "Yearly"),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="cash_streams")
    name = models.CharField(max_length=120, blank=True, default="")
    kind = models.CharField(max_length=16, choices=KIND_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    frequency = models.CharField(max_length=16, choices=FREQUENCY_CHOICES, default="monthly")
    active_from = models.DateField()
    active_until = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    def to_domain(self) -> domain.CashFlowStream:
        return domain.CashFlowStream(
            id=str(self.pk),
            kind=domain.Kind(self.kind),
            amount=float(self.amount),
            frequency=domain.Frequency(self.frequency),
            active_from=self.active_from,
            active_until=self.active_until,
            is_active=self.is_active,
        )


class OneTimeEntry(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="one_time_entries")
    kind = models.CharField(max_length=16, choices=CashFlowStream.KIND_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    date = models.DateField()
    category = models.CharField(max_length=64, default="other")

    def to_domain(self) -> domain.OneTimeEntry:
        return domain.OneTimeEntry(
            id=str(self.pk),
            kind=domain.Kind(self.kind),
            amount=float(self.amount),
            date=self.date,
            category=self.category,
        )


class Goal(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="cash_goals")
    name = models.CharField(max_length=120)
    target_amount = models.DecimalField(max_digits=14, decimal_places=2)
    current_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    target_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)
    is_completed = models.BooleanField(default=False)
    priority = models.PositiveSmallIntegerField(default=1)
    initial_price = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    annual_rate = models.FloatField(null=True, blank=True)
    down_payment_ratio = models.FloatField(null=True, blank=True)

    def to_domain(self) -> domain.Goal:
        asset_params = None
        if self.initial_price is not None:
            asset_params = domain.AssetParams(
                initial_price=float(self.initial_price),
                annual_rate=self.annual_rate or 0.0,
                down_payment_ratio=self.down_payment_ratio,
            )
        return domain.Goal(
            id=str(self.pk),
            target_amount=float(self.target_amount),
            current_amount=float(self.current_amount),
            target_date=self.target_date,
            created_at=self.created_at.date(),
            is_completed=self.is_completed,
            asset_params=asset_params,
            priority=self.priority,
        )


class GoalContribution(models.Model):
    goal = models.ForeignKey(Goal, on_delete=models.CASCADE, related_name="contributions")
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    month = models.DateField()
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["month", "id"]

    def to_domain(self) -> domain.GoalContribution:
        return domain.GoalContribution(
            id=str(self.pk),
            goal_id=str(self.goal_id),
            amount=float(self.amount),
            month=self.month,
            notes=self.notes,
        )


class MonthlySnapshot(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="monthly_snapshots")
    month = models.DateField()
    total_income = models.FloatField()
    total_expenses = models.FloatField()
    total_savings = models.FloatField()
    burn_rate = models.FloatField()
    savings_rate = models.FloatField()
    health_score = models.FloatField()
    income_change_percent = models.FloatField(null=True, blank=True)
    expense_change_percent = models.FloatField(null=True, blank=True)
    savings_change_percent = models.FloatField(null=True, blank=True)
    health_score_change = models.FloatField(null=True, blank=True)
    active_goals_count = models.PositiveIntegerField(default=0)
    completed_goals_count = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-month"]
        constraints = [
            models.UniqueConstraint(fields=["user", "month"], name="unique_snapshot_per_user_month"),
        ]

    def to_domain(self) -> domain.MonthlySnapshot:
        return domain.MonthlySnapshot(
            user_id=str(self.user_id),
            month=self.month,
            total_income=self.total_income,
            total_expenses=self.total_expenses,
            total_savings=self.total_savings,
            burn_rate=self.burn_rate,
            savings_rate=self.savings_rate,
            health_score=self.health_score,
            income_change_percent=self.income_change_percent,
            expense_change_percent=self.expense_change_percent,
            savings_change_percent=self.savings_change_percent,
            health_score_change=self.health_score_change,
            active_goals_count=self.active_goals_count,
            completed_goals_count=self.completed_goals_count,
        )
