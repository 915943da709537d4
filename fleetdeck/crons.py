"""Scheduler state: <root>/cron/jobs.json → CronJob records."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .fileio import load_json
from .models import CronJob
from .roster import LEAD, AgentId, from_runtime_id
from .timefmt import parse_ts, relative_time, until_time, utc_now

# First matching group wins; order matters ("fleet backup" belongs to atlas).
OWNER_KEYWORDS: tuple[tuple[tuple[str, ...], AgentId], ...] = (
    (("forge",),                          AgentId.FORGE),
    (("hunter", "revenue"),               AgentId.HUNTER),
    (("echo", "content", "marketing"),    AgentId.ECHO),
    (("atlas", "standup", "fleet"),       AgentId.ATLAS),
    (("sentinel", "security", "audit"),   AgentId.SENTINEL),
    (("backup", "git"),                   AgentId.FORGE),
    (("morning", "inspiration"),          AgentId.KIRA),
)

CRON_MODEL = "claude-sonnet-4"


def infer_owner(name: Optional[str], explicit: Any = None) -> str:
    """Owning agent id for a job: explicit agentId, else name keywords, else the lead."""
    if isinstance(explicit, str):
        known = from_runtime_id(explicit)
        if known is not None:
            return known.value
    lowered = (name or "").lower()
    for keywords, agent in OWNER_KEYWORDS:
        if any(k in lowered for k in keywords):
            return agent.value
    return LEAD.value


def _int(v: Any) -> int:
    return int(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else 0


def normalize_job(job: dict, now: datetime) -> CronJob:
    state = job.get("state") if isinstance(job.get("state"), dict) else {}
    schedule = job.get("schedule") if isinstance(job.get("schedule"), dict) else {}
    payload = job.get("payload") if isinstance(job.get("payload"), dict) else {}

    name = str(job.get("name") or "")
    message = payload.get("message")
    description = message[:120] if isinstance(message, str) and message else name

    next_run = parse_ts(state.get("nextRunAtMs"))
    last_run = parse_ts(state.get("lastRunAtMs"))
    enabled = bool(job.get("enabled"))

    owner = infer_owner(name, job.get("agentId"))

    return CronJob(
        id                 = job.get("id"),
        name               = name,
        description        = description,
        schedule           = str(schedule.get("expr") or ""),
        timezone           = str(schedule.get("tz") or "UTC"),
        next_run           = next_run,
        next_run_relative  = until_time(next_run, now),
        last_run           = last_run,
        last_run_relative  = relative_time(last_run, now),
        last_status        = str(state.get("lastStatus") or "unknown"),
        last_duration_ms   = _int(state.get("lastDurationMs")),
        last_error         = state.get("lastError") or None,
        consecutive_errors = _int(state.get("consecutiveErrors")),
        status             = "active" if enabled else "disabled",
        enabled            = enabled,
        owner              = owner,
        model              = CRON_MODEL if (payload.get("model") or payload.get("timeoutSeconds")) else "",
    )


def fetch_crons(root: Optional[Path], now: Optional[datetime] = None) -> list[CronJob]:
    if root is None:
        return []
    data = load_json(root / "cron" / "jobs.json")
    jobs = data.get("jobs") if isinstance(data, dict) else None
    if not isinstance(jobs, list):
        return []
    now = now or utc_now()
    return [normalize_job(job, now) for job in jobs if isinstance(job, dict)]
