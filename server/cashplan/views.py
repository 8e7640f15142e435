import dataclasses
import datetime as dt

from django.conf import settings
from django.core.cache import cache
from django.http import Http404
from rest_framework import status
from rest_framework.parsers import FormParser, JSONParser
from rest_framework.response import Response
from rest_framework.views import APIView

from cashplan_core.domain import ValidationError
from cashplan_core.services import asset, balance, contributions, projection
from cashplan_core.services import scenario as scenario_service
from cashplan_core.services.cache import cache_key

from .ledger import record_contribution
from .models import Goal, MonthlySnapshot, UserProfile
from .serializers import (
    AssetRequestSerializer,
    ContributionRequestSerializer,
    GoalContributionSerializer,
    MonthlySnapshotSerializer,
    ProjectionRequestSerializer,
    ScenarioRequestSerializer,
)
from .tasks import generate_monthly_snapshot


def _options() -> dict:
    return getattr(settings, "CASHPLAN", {})


def _bad_request(exc: ValidationError) -> Response:
    return Response({"error": str(exc)}, status=status.HTTP_400_BAD_REQUEST)


def _parse_as_of(raw) -> dt.date:
    if not raw:
        return dt.date.today()
    try:
        return dt.date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(f"as_of must be YYYY-MM-DD, got {raw!r}") from exc


def _get_goal(request, pk: int) -> Goal:
    try:
        return Goal.objects.get(pk=pk, user=request.user)
    except Goal.DoesNotExist as exc:
        raise Http404 from exc


class BalanceView(APIView):
    def get(self, request):
        try:
            as_of = _parse_as_of(request.query_params.get("as_of"))
        except ValidationError as exc:
            return _bad_request(exc)

        profile, _ = UserProfile.objects.get_or_create(user=request.user)
        starting = float(profile.starting_balance)
        streams = [s.to_domain() for s in request.user.cash_streams.all()]
        entries = [e.to_domain() for e in request.user.one_time_entries.all()]
        records = [
            c.to_domain() for goal in request.user.cash_goals.prefetch_related("contributions") for c in goal.contributions.all()
        ]

        key = cache_key({"start": starting, "streams": streams, "entries": entries, "contributions": records}, as_of)
        payload = cache.get(key)
        if payload is None:
            payload = {
                "as_of": as_of.isoformat(),
                "starting_balance": starting,
                "balance": balance.compute_balance(starting, streams, entries, records, as_of),
            }
            cache.set(key, payload, timeout=_options().get("CACHE_TTL", 300))
        return Response(payload)


class ProjectionView(APIView):
    parser_classes = [JSONParser, FormParser]

    def post(self, request):
        serializer = ProjectionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        points = projection.project_forward(
            data["balance"],
            data["monthly_income"],
            data["monthly_expenses"],
            data["months"],
            start_month=data.get("start_month"),
        )
        runway = projection.financial_runway(data["balance"], data["monthly_income"], data["monthly_expenses"])
        return Response(
            {
                "points": [dataclasses.asdict(p) for p in points],
                "runway": dataclasses.asdict(runway),
            }
        )


class ScenarioView(APIView):
    parser_classes = [JSONParser, FormParser]

    def post(self, request):
        serializer = ScenarioRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        rates = data.get("candidate_rates") or _options().get("CANDIDATE_RATES")
        try:
            result = scenario_service.generate_scenarios(
                data["monthly_income"],
                data["monthly_surplus"],
                data["target_amount"],
                data["current_saved"],
                rates,
                data["desired_timeline_months"],
            )
        except ValidationError as exc:
            return _bad_request(exc)

        return Response(
            {
                "scenarios": [dataclasses.asdict(s) for s in result.scenarios],
                "recommended": dataclasses.asdict(result.recommended) if result.recommended else None,
                "feasible": bool(result.feasible),
            }
        )


class AssetForecastView(APIView):
    parser_classes = [JSONParser, FormParser]

    def post(self, request):
        serializer = AssetRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            result = asset.forecast_asset(
                data["initial_price"],
                data["annual_rate"],
                data["horizon_months"],
                down_payment_ratio=data.get("down_payment_ratio"),
                current_amount=data["current_amount"],
                monthly_surplus=data.get("monthly_surplus"),
            )
        except ValidationError as exc:
            return _bad_request(exc)
        return Response(dataclasses.asdict(result))


class GoalAnalysisView(APIView):
    def get(self, request, pk: int):
        goal = _get_goal(request, pk)
        record = goal.to_domain()
        history = [c.to_domain() for c in goal.contributions.all()]
        try:
            today = _parse_as_of(request.query_params.get("today"))
        except ValidationError as exc:
            return _bad_request(exc)

        try:
            analysis = contributions.analyze_contributions(
                history, record.target_amount, record.current_amount, record.created_at, record.target_date, today=today
            )
        except ValidationError as exc:
            return _bad_request(exc)
        return Response(dataclasses.asdict(analysis))


class ContributionView(APIView):
    parser_classes = [JSONParser, FormParser]

    def post(self, request, pk: int):
        goal = _get_goal(request, pk)
        serializer = ContributionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            contribution, goal = record_contribution(goal.pk, data["amount"], data["month"], data.get("notes", ""))
        except ValidationError as exc:
            return _bad_request(exc)

        payload = GoalContributionSerializer(contribution).data
        payload["goal_current_amount"] = str(goal.current_amount)
        payload["goal_is_completed"] = goal.is_completed
        return Response(payload, status=status.HTTP_201_CREATED)


class SnapshotView(APIView):
    parser_classes = [JSONParser, FormParser]

    def get(self, request):
        snapshots = MonthlySnapshot.objects.filter(user=request.user)
        return Response(MonthlySnapshotSerializer(snapshots, many=True).data)

    def post(self, request):
        try:
            month = _parse_as_of(request.data.get("month"))
        except ValidationError as exc:
            return _bad_request(exc)
        generate_monthly_snapshot.delay(request.user.pk, month.isoformat())
        return Response({"month": month.replace(day=1).isoformat()}, status=status.HTTP_202_ACCEPTED)
