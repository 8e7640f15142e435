from __future__ import annotations

import dataclasses
import datetime as dt
import enum
import hashlib
import json
from typing import Any


def _default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Cannot hash {type(value).__name__}")


def cache_key(payload: Any, as_of: dt.date, prefix: str = "cashplan") -> str:
    """Stable key for (inputs, as_of); equal inputs always map to the same key."""
    canonical = json.dumps({"inputs": payload, "as_of": as_of}, default=_default, sort_keys=True, separators=(",", ":"))
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"
