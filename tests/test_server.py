import datetime as dt
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from cashplan_core.domain.errors import ValidationError
from server.cashplan.ledger import (
    contribution_total,
    delete_contribution,
    reconcile_goal,
    record_contribution,
    remove_contribution,
)
from server.cashplan.models import CashFlowStream, Goal, GoalContribution, MonthlySnapshot, OneTimeEntry, UserProfile
from server.cashplan.tasks import generate_monthly_snapshot

pytestmark = pytest.mark.django_db


@pytest.fixture
def user():
    return get_user_model().objects.create_user(username="ana", password="secret")


@pytest.fixture
def api(user):
    api = APIClient()
    api.force_authenticate(user=user)
    return api


@pytest.fixture
def ledger(user):
    UserProfile.objects.create(user=user, starting_balance=Decimal("1000"))
    CashFlowStream.objects.create(
        user=user, name="salary", kind="income", amount=Decimal("3000"), active_from=dt.date(2024, 1, 1)
    )
    CashFlowStream.objects.create(
        user=user, name="rent", kind="expense", amount=Decimal("2000"), active_from=dt.date(2024, 1, 1)
    )
    return user


@pytest.fixture
def goal(user):
    return Goal.objects.create(
        user=user, name="car", target_amount=Decimal("1000"), target_date=dt.date(2025, 1, 1)
    )


def test_record_contribution_moves_goal_total(goal):
    record_contribution(goal.pk, "600", dt.date(2024, 2, 14))
    contribution, updated = record_contribution(goal.pk, Decimal("400"), dt.date(2024, 3, 2))

    assert contribution.month == dt.date(2024, 3, 1)
    assert updated.current_amount == Decimal("1000.00")
    assert updated.is_completed
    assert contribution_total(goal.pk) == Decimal("1000.00")
    assert reconcile_goal(goal.pk).pk == goal.pk


def test_rejected_contribution_leaves_no_trace(goal):
    with pytest.raises(ValidationError):
        record_contribution(goal.pk, "0", dt.date(2024, 2, 1))
    assert GoalContribution.objects.count() == 0
    goal.refresh_from_db()
    assert goal.current_amount == 0


def test_delete_contribution_reverses_total(goal):
    contribution, _ = record_contribution(goal.pk, "250", dt.date(2024, 2, 1))
    updated = delete_contribution(contribution.pk)
    assert updated.current_amount == 0
    assert not updated.is_completed
    assert not GoalContribution.objects.exists()


def test_deleting_a_contribution_twice_does_not_double_count(goal):
    first, _ = record_contribution(goal.pk, "250", dt.date(2024, 2, 1))
    record_contribution(goal.pk, "400", dt.date(2024, 3, 1))

    updated = delete_contribution(first.pk)
    assert updated.current_amount == Decimal("400.00")
    with pytest.raises(GoalContribution.DoesNotExist):
        delete_contribution(first.pk)

    # a concurrent deleter that lost the race finds the row gone under the goal lock
    again = remove_contribution(goal.pk, first.pk)
    assert again.current_amount == Decimal("400.00")
    assert contribution_total(goal.pk) == Decimal("400.00")
    assert reconcile_goal(goal.pk).current_amount == Decimal("400.00")


def test_remove_contribution_ignores_rows_of_other_goals(user, goal):
    other = Goal.objects.create(user=user, name="trip", target_amount=Decimal("500"), target_date=dt.date(2025, 1, 1))
    contribution, _ = record_contribution(other.pk, "100", dt.date(2024, 2, 1))

    unchanged = remove_contribution(goal.pk, contribution.pk)
    assert unchanged.current_amount == 0
    assert GoalContribution.objects.filter(pk=contribution.pk).exists()


def test_reconcile_detects_drift(goal):
    record_contribution(goal.pk, "250", dt.date(2024, 2, 1))
    Goal.objects.filter(pk=goal.pk).update(current_amount=Decimal("300"))
    with pytest.raises(ValidationError):
        reconcile_goal(goal.pk)


def test_snapshot_task_upserts_one_row_per_month(ledger):
    first = generate_monthly_snapshot(ledger.pk, "2024-02-10")
    before = MonthlySnapshot.objects.get(pk=first)
    second = generate_monthly_snapshot(ledger.pk, "2024-02-25")
    after = MonthlySnapshot.objects.get(pk=second)

    assert first == second
    assert MonthlySnapshot.objects.filter(user=ledger).count() == 1
    assert after.month == dt.date(2024, 2, 1)
    assert after.to_domain() == before.to_domain()
    assert after.burn_rate == pytest.approx(2000 / 3000 * 100)


def test_snapshot_task_uses_previous_month_for_deltas(ledger):
    generate_monthly_snapshot(ledger.pk, "2024-02-01")
    OneTimeEntry.objects.create(user=ledger, kind="income", amount=Decimal("1000"), date=dt.date(2024, 3, 5))
    march = MonthlySnapshot.objects.get(pk=generate_monthly_snapshot(ledger.pk, "2024-03-01"))

    assert march.total_income == 4000
    assert march.income_change_percent == pytest.approx(1000 / 3000 * 100)
    assert march.expense_change_percent == pytest.approx(0)

    may = MonthlySnapshot.objects.get(pk=generate_monthly_snapshot(ledger.pk, "2024-05-01"))
    assert may.income_change_percent is None


def test_balance_view(api, ledger):
    response = api.get("/api/balance/", {"as_of": "2024-03-15"})
    assert response.status_code == 200
    assert response.data["balance"] == 4000

    bad = api.get("/api/balance/", {"as_of": "15/03/2024"})
    assert bad.status_code == 400


def test_projection_and_scenario_views(api):
    response = api.post(
        "/api/projections/",
        {"balance": 1000, "monthly_income": 3000, "monthly_expenses": 3500, "months": 2, "start_month": "2024-01-01"},
        format="json",
    )
    assert response.status_code == 200
    assert [p["projected_balance"] for p in response.data["points"]] == [500, 0]
    assert response.data["runway"]["runway_months"] == pytest.approx(2)

    response = api.post(
        "/api/scenarios/",
        {
            "monthly_income": 5000,
            "monthly_surplus": 2000,
            "target_amount": 20000,
            "current_saved": 5000,
            "desired_timeline_months": 30,
        },
        format="json",
    )
    assert response.status_code == 200
    assert response.data["recommended"]["timeline_months"] == 30
    assert response.data["feasible"] is True

    response = api.post(
        "/api/scenarios/",
        {
            "monthly_income": 5000,
            "monthly_surplus": 2000,
            "target_amount": 20000,
            "desired_timeline_months": 30,
            "candidate_rates": [0.0],
        },
        format="json",
    )
    assert response.status_code == 400


def test_asset_forecast_view(api):
    response = api.post(
        "/api/assets/forecast/",
        {"initial_price": 80000, "annual_rate": 0.057, "horizon_months": 24},
        format="json",
    )
    assert response.status_code == 200
    assert response.data["projected_price"] == pytest.approx(89379.92, abs=0.01)

    response = api.post(
        "/api/assets/forecast/",
        {"initial_price": 80000, "annual_rate": -1.5, "horizon_months": 24},
        format="json",
    )
    assert response.status_code == 400


def test_contribution_and_analysis_views(api, goal):
    response = api.post(
        f"/api/goals/{goal.pk}/contributions/", {"amount": "250.00", "month": "2024-02-01"}, format="json"
    )
    assert response.status_code == 201
    assert response.data["goal_current_amount"] == "250.00"

    response = api.post(
        f"/api/goals/{goal.pk}/contributions/", {"amount": "-5", "month": "2024-02-01"}, format="json"
    )
    assert response.status_code == 400

    response = api.get(f"/api/goals/{goal.pk}/analysis/", {"today": "2024-03-01"})
    assert response.status_code == 200
    assert response.data["count"] == 1
    assert response.data["average_monthly"] == pytest.approx(250)


def test_analysis_view_rejects_drifted_goal(api, goal):
    record_contribution(goal.pk, "250", dt.date(2024, 2, 1))
    Goal.objects.filter(pk=goal.pk).update(current_amount=Decimal("900"))

    response = api.get(f"/api/goals/{goal.pk}/analysis/", {"today": "2024-03-01"})
    assert response.status_code == 400
    assert "does not match" in response.data["error"]


def test_goals_of_other_users_are_hidden(api):
    other = get_user_model().objects.create_user(username="bo", password="secret")
    foreign = Goal.objects.create(user=other, name="trip", target_amount=Decimal("500"), target_date=dt.date(2025, 1, 1))
    response = api.get(f"/api/goals/{foreign.pk}/analysis/")
    assert response.status_code == 404


def test_snapshot_view_triggers_task(api, ledger):
    response = api.post("/api/snapshots/", {"month": "2024-03-20"}, format="json")
    assert response.status_code == 202
    assert response.data["month"] == "2024-03-01"

    listing = api.get("/api/snapshots/")
    assert listing.status_code == 200
    assert len(listing.data) == 1
    assert listing.data[0]["month"] == "2024-03-01"


def test_views_require_authentication():
    response = APIClient().get("/api/snapshots/")
    assert response.status_code in (401, 403)
