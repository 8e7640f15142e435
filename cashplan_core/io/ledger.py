from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any, List, Optional, Set

import pandas as pd

from cashplan_core.domain.models import (
    AssetParams,
    CashFlowStream,
    Frequency,
    Goal,
    GoalContribution,
    Kind,
    OneTimeEntry,
)

STREAM_COLUMNS = {"id", "kind", "amount", "frequency", "active_from"}
ENTRY_COLUMNS = {"id", "kind", "amount", "date"}
CONTRIBUTION_COLUMNS = {"id", "goal_id", "amount", "month"}
GOAL_COLUMNS = {"id", "target_amount", "current_amount", "target_date", "created_at"}


def _read_csv(csv_path: str | Path, required: Set[str]) -> pd.DataFrame:
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(path)

    df = pd.read_csv(path)
    missing = required - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns in {path.name}: {missing}")
    return df


def _date(value: Any) -> Optional[dt.date]:
    if value is None or pd.isna(value) or value == "":
        return None
    return pd.to_datetime(value).date()


def _float(value: Any) -> Optional[float]:
    if value is None or pd.isna(value) or value == "":
        return None
    return float(value)


def _bool(value: Any, default: bool) -> bool:
    if value is None or pd.isna(value):
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y"}
    return bool(value)


def load_streams(csv_path: str | Path) -> List[CashFlowStream]:
    df = _read_csv(csv_path, STREAM_COLUMNS)
    streams: List[CashFlowStream] = []
    for _, row in df.iterrows():
        streams.append(
            CashFlowStream(
                id=str(row["id"]),
                kind=Kind(str(row["kind"]).strip().lower()),
                amount=float(row["amount"]),
                frequency=Frequency(str(row["frequency"]).strip().lower()),
                active_from=_date(row["active_from"]),
                active_until=_date(row.get("active_until")),
                is_active=_bool(row.get("is_active"), True),
            )
        )
    return streams


def load_entries(csv_path: str | Path) -> List[OneTimeEntry]:
    df = _read_csv(csv_path, ENTRY_COLUMNS)
    entries: List[OneTimeEntry] = []
    for _, row in df.iterrows():
        category = row.get("category")
        entries.append(
            OneTimeEntry(
                id=str(row["id"]),
                kind=Kind(str(row["kind"]).strip().lower()),
                amount=float(row["amount"]),
                date=_date(row["date"]),
                category="other" if category is None or pd.isna(category) else str(category),
            )
        )
    return entries


def load_contributions(csv_path: str | Path) -> List[GoalContribution]:
    df = _read_csv(csv_path, CONTRIBUTION_COLUMNS)
    contributions: List[GoalContribution] = []
    for _, row in df.iterrows():
        notes = row.get("notes")
        contributions.append(
            GoalContribution(
                id=str(row["id"]),
                goal_id=str(row["goal_id"]),
                amount=float(row["amount"]),
                month=_date(row["month"]),
                notes="" if notes is None or pd.isna(notes) else str(notes),
            )
        )
    return contributions


def load_goals(csv_path: str | Path) -> List[Goal]:
    df = _read_csv(csv_path, GOAL_COLUMNS)
    goals: List[Goal] = []
    for _, row in df.iterrows():
        asset_params = None
        initial_price = _float(row.get("initial_price"))
        if initial_price is not None:
            asset_params = AssetParams(
                initial_price=initial_price,
                annual_rate=_float(row.get("annual_rate")) or 0.0,
                down_payment_ratio=_float(row.get("down_payment_ratio")),
            )
        priority = _float(row.get("priority"))
        goals.append(
            Goal(
                id=str(row["id"]),
                target_amount=float(row["target_amount"]),
                current_amount=float(row["current_amount"]),
                target_date=_date(row["target_date"]),
                created_at=_date(row["created_at"]),
                is_completed=_bool(row.get("is_completed"), False),
                asset_params=asset_params,
                priority=int(priority) if priority is not None else 1,
            )
        )
    return goals
