"""
Plain data records produced by the fleetdeck readers.

Everything here is rebuilt from scratch on every cache miss; nothing is
persisted.  Timestamps are timezone-aware UTC datetimes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


# ── Sessions ──────────────────────────────────────────────────────────────────

@dataclass
class ActivitySummary:
    last_timestamp: Optional[datetime]
    last_task:      str
    model:          str
    tokens_in:      int              # input + cacheRead
    tokens_out:     int
    api_calls:      int              # assistant turns


@dataclass
class AgentRecord:
    id:                 str
    name:               str
    role:               str
    emoji:              str
    status:             str          # active | idle | offline
    current_task:       str
    last_seen:          Optional[datetime]
    last_seen_relative: str
    session_id:         str
    model:              str
    tokens_used:        int = 0
    api_calls:          int = 0
    label:              str = ""


@dataclass
class SubagentRun:
    id:           str
    name:         str
    parent_agent: str
    task:         str
    status:       str                # running | completed | error
    progress:     float              # 0.5 | 1.0 | 0.0
    start_time:   Optional[datetime]
    end_time:     Optional[datetime]
    session_id:   str
    label:        str
    duration_ms:  Optional[int]
    tokens_used:  int = 0


@dataclass
class FleetEvent:
    id:        str
    type:      str                   # agent:status | subagent:spawn
    timestamp: Optional[datetime]
    data:      dict[str, Any]


@dataclass
class SessionsSnapshot:
    agents:    list[AgentRecord] = field(default_factory=list)
    subagents: list[SubagentRun] = field(default_factory=list)
    events:    list[FleetEvent]  = field(default_factory=list)


# ── Cron ──────────────────────────────────────────────────────────────────────

@dataclass
class CronJob:
    id:                 Optional[str]
    name:               str
    description:        str
    schedule:           str
    timezone:           str
    next_run:           Optional[datetime]
    next_run_relative:  str
    last_run:           Optional[datetime]
    last_run_relative:  str
    last_status:        str
    last_duration_ms:   int
    last_error:         Optional[str]
    consecutive_errors: int
    status:             str          # active | disabled
    enabled:            bool
    owner:              str
    model:              str


# ── Memory ────────────────────────────────────────────────────────────────────

@dataclass
class LongTermNote:
    content:       str               # capped excerpt
    size:          int               # true byte size
    last_modified: Optional[datetime]


@dataclass
class DailyNote:
    date:    str                     # file stem, e.g. 2026-02-18 or 2026-02-18-standup
    content: str
    size:    int


@dataclass
class MemorySnapshot:
    long_term: Optional[LongTermNote] = None
    daily:     list[DailyNote] = field(default_factory=list)
    heartbeat: Optional[Any] = None


@dataclass
class AgentInfo:
    id:     str
    name:   str
    role:   str
    emoji:  str
    soul:   Optional[str]
    memory: Optional[str]


# ── Metrics ───────────────────────────────────────────────────────────────────

@dataclass
class FleetMetrics:
    tokens_today:          int = 0
    tokens_this_week:      int = 0
    tokens_this_month:     int = 0
    api_calls_today:       int = 0
    api_calls_this_week:   int = 0
    api_calls_this_month:  int = 0
    active_sessions:       int = 0   # session files on disk
    active_agents:         int = 0
    idle_agents:           int = 0
    active_subagents:      int = 0
    uptime:                str = "unknown"
    last_restart:          Optional[datetime] = None
    active_crons:          int = 0
    total_crons:           int = 0
    failed_crons:          int = 0
    success_rate:          float = 0.99
    memory_usage:          Optional[float] = None   # 0..1
    cpu_usage:             Optional[float] = None   # 0..1
    disk_usage:            Optional[float] = None   # 0..1


# ── Full snapshot ─────────────────────────────────────────────────────────────

@dataclass
class FleetMeta:
    mode:          str               # live | fallback
    available:     bool
    openclaw_root: Optional[str]
    workspace:     Optional[str]
    timestamp:     datetime


@dataclass
class FleetSnapshot:
    agents:    list[AgentRecord]
    subagents: list[SubagentRun]
    events:    list[FleetEvent]
    crons:     list[CronJob]
    memory:    MemorySnapshot
    metrics:   FleetMetrics
    meta:      FleetMeta
