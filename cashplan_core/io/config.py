from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from cashplan_core.domain.models import HealthWeights, ProjectionConfig, ScenarioConfig


def load_projection_config(path: str | Path) -> ProjectionConfig:
    data = _read_json(path)
    return ProjectionConfig(
        initial_confidence=float(data.get("initial_confidence", 0.95)),
        decay_per_month=float(data.get("decay_per_month", 0.03)),
        floor_confidence=float(data.get("floor_confidence", 0.50)),
    )


def load_scenario_config(path: str | Path) -> ScenarioConfig:
    data = _read_json(path)
    rates = data.get("candidate_rates") or ScenarioConfig().candidate_rates
    return ScenarioConfig(candidate_rates=tuple(sorted(float(r) for r in rates)))


def load_health_weights(path: str | Path) -> HealthWeights:
    data = _read_json(path)
    return HealthWeights(
        savings=float(data.get("savings", 0.5)),
        burn=float(data.get("burn", 0.3)),
        goals=float(data.get("goals", 0.2)),
    )


def _read_json(path: str | Path) -> Dict[str, Any]:
    config_path = Path(path)
    data = json.loads(config_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{config_path.name} must hold a JSON object, got {type(data).__name__}")
    return data
