"""
The fixed fleet roster and label → agent resolution.

The roster is closed: every data source is normalised onto one of these six
identities, and anything that does not resolve is attributed to the lead.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .models import AgentRecord
from .timefmt import utc_now

ACTIVE_WINDOW_SECS = 5 * 60
IDLE_WINDOW_SECS = 30 * 60


class AgentId(str, enum.Enum):
    KIRA     = "kira"
    HUNTER   = "hunter"
    FORGE    = "forge"
    ECHO     = "echo"
    ATLAS    = "atlas"
    SENTINEL = "sentinel"


LEAD = AgentId.KIRA


@dataclass(frozen=True)
class AgentMeta:
    name:  str
    role:  str
    emoji: str


AGENT_META: dict[AgentId, AgentMeta] = {
    AgentId.KIRA:     AgentMeta("ApoMac",   "CEO", "👑"),
    AgentId.HUNTER:   AgentMeta("Hunter",   "CRO", "💰"),
    AgentId.FORGE:    AgentMeta("Forge",    "CTO", "🔨"),
    AgentId.ECHO:     AgentMeta("Echo",     "CMO", "📢"),
    AgentId.ATLAS:    AgentMeta("Atlas",    "COO", "📊"),
    AgentId.SENTINEL: AgentMeta("Sentinel", "CCO", "🛡️"),
}

# Display order == declaration order.
DISPLAY_ORDER: tuple[AgentId, ...] = tuple(AgentId)

# Runtime agent directories under <root>/agents/ that belong to one fleet member.
# fleet-csuite hosts several agents at once and is not mapped.
AGENT_DIRS: dict[str, AgentId] = {
    "hunter":    AgentId.HUNTER,
    "cto-forge": AgentId.FORGE,
    "sentinel":  AgentId.SENTINEL,
}

# Per-agent folders under <workspace>/fleet/agents/ (the lead uses the workspace root).
FLEET_DIRS: dict[AgentId, str] = {
    AgentId.HUNTER:   "cro-hunter",
    AgentId.FORGE:    "cto-forge",
    AgentId.ECHO:     "cmo-echo",
    AgentId.ATLAS:    "coo-atlas",
    AgentId.SENTINEL: "auditor-sentinel",
}


def lookup(agent_id: str) -> Optional[AgentId]:
    try:
        return AgentId(agent_id)
    except ValueError:
        return None


def from_runtime_id(agent_id: Optional[str]) -> Optional[AgentId]:
    """Roster id or runtime agent dir name ('main', 'cto-forge') → AgentId."""
    if not agent_id:
        return None
    key = agent_id.strip().lower()
    if key == "main":
        return LEAD
    return lookup(key) or AGENT_DIRS.get(key)


def resolve_label(label: Optional[str]) -> Optional[AgentId]:
    """'forge-refactor-auth' → FORGE, '' → the lead, unknown prefix → None."""
    if not label:
        return LEAD
    return lookup(label.split("-", 1)[0].lower())


def infer_status(last_ts: Optional[datetime], now: Optional[datetime] = None) -> str:
    if last_ts is None:
        return "offline"
    age = ((now or utc_now()) - last_ts).total_seconds()
    if age < ACTIVE_WINDOW_SECS:
        return "active"
    if age < IDLE_WINDOW_SECS:
        return "idle"
    return "offline"


def blank_record(agent: AgentId, **overrides) -> AgentRecord:
    """A roster member with no activity observed in this pass."""
    meta = AGENT_META[agent]
    fields = dict(
        id                 = agent.value,
        name               = meta.name,
        role               = meta.role,
        emoji              = meta.emoji,
        status             = "offline",
        current_task       = "No recent activity",
        last_seen          = None,
        last_seen_relative = "never",
        session_id         = "",
        model              = "",
    )
    fields.update(overrides)
    return AgentRecord(**fields)
