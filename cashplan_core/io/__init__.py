from cashplan_core.io.config import (  # noqa: F401
    load_health_weights,
    load_projection_config,
    load_scenario_config,
)
from cashplan_core.io.ledger import load_contributions, load_entries, load_goals, load_streams  # noqa: F401

__all__ = [
    "load_contributions",
    "load_entries",
    "load_goals",
    "load_health_weights",
    "load_projection_config",
    "load_scenario_config",
    "load_streams",
]
