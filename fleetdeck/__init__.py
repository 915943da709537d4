"""Read-only telemetry for an OpenClaw agent fleet."""

from .data import DataProvider, TTLCache, run_diagnostics, snapshot_to_dict
from .roster import AgentId

__version__ = "0.1.0"

__all__ = [
    "AgentId",
    "DataProvider",
    "TTLCache",
    "run_diagnostics",
    "snapshot_to_dict",
]
