"""
Fleet identity reconciliation.

Three sources disagree about who is who, so they are folded into one
accumulator keyed by AgentId in three explicit passes:

  1. main transcripts     agents/main/sessions/*.jsonl  → the lead
  2. run registry         subagents/runs.json           → label-prefixed agents
  3. agent directories    agents/<dir>/sessions/*.jsonl → mapped agents

Status, task and last-seen follow "strictly newer wins"; token and call
counters accumulate.  assemble_agents() then emits the roster in display
order, filling gaps with offline records.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .events import is_session_header, list_session_files, parse_session_tail
from .fileio import load_json
from .models import (
    ActivitySummary,
    AgentRecord,
    FleetEvent,
    SessionsSnapshot,
    SubagentRun,
)
from .paths import main_sessions_dir
from .roster import (
    AGENT_DIRS,
    DISPLAY_ORDER,
    LEAD,
    AgentId,
    blank_record,
    infer_status,
    resolve_label,
)
from .timefmt import parse_ts, relative_time, utc_now

logger = logging.getLogger("fleetdeck")

MAIN_SESSION_FILES = 15
TAIL_LINES = 50
MAX_SUBAGENTS = 20
MAX_EVENTS = 10
SUBAGENT_MODEL = "claude-sonnet-4-20250514"

Accumulator = dict[AgentId, AgentRecord]


def _newer(ts: Optional[datetime], than: Optional[datetime]) -> bool:
    return ts is not None and (than is None or ts > than)


# ── Pass 1: lead transcripts ──────────────────────────────────────────────────

def merge_main_sessions(acc: Accumulator, sessions_dir: Optional[Path],
                        now: datetime, default_model: str = "",
                        max_files: int = MAIN_SESSION_FILES) -> None:
    """Fold the lead's most recent transcripts into one aggregate record."""
    if sessions_dir is None or not sessions_dir.is_dir():
        return

    lead = blank_record(LEAD)
    seen_any = False
    for path in list_session_files(sessions_dir)[:max_files]:
        if not is_session_header(path):
            continue
        parsed = parse_session_tail(path, TAIL_LINES)

        # the first transcript always seeds the record; later ones must be newer
        if not seen_any or _newer(parsed.last_timestamp, lead.last_seen):
            lead.status             = infer_status(parsed.last_timestamp, now)
            lead.current_task       = parsed.last_task or "Main session"
            lead.last_seen          = parsed.last_timestamp
            lead.last_seen_relative = relative_time(parsed.last_timestamp, now)
            lead.session_id         = "agent:main:main"
            lead.model              = parsed.model or default_model
        seen_any = True
        lead.tokens_used += parsed.tokens_in + parsed.tokens_out
        lead.api_calls   += parsed.api_calls

    acc[LEAD] = lead


# ── Pass 2: run registry ──────────────────────────────────────────────────────

def run_status(run: dict) -> str:
    outcome = run.get("outcome")
    if outcome is None or outcome == "":
        return "running"
    if isinstance(outcome, dict) and outcome.get("status") == "ok":
        return "completed"
    return "error"


def run_progress(status: str) -> float:
    return {"running": 0.5, "completed": 1.0}.get(status, 0.0)


def _duration_ms(start: Optional[datetime], end: Optional[datetime],
                 running: bool, now: datetime) -> Optional[int]:
    if running:
        return int(((now - start).total_seconds() if start else 0) * 1000)
    if start and end:
        return int((end - start).total_seconds() * 1000)
    return None


def merge_run_registry(acc: Accumulator, runs_doc: Any,
                       now: datetime) -> list[SubagentRun]:
    """Attribute runs to their owning agent and list every run."""
    runs = runs_doc.get("runs") if isinstance(runs_doc, dict) else None
    if not isinstance(runs, dict):
        return []

    out: list[SubagentRun] = []
    for run_id, run in runs.items():
        if not isinstance(run, dict):
            continue
        run_id = str(run_id)
        label = run.get("label") or ""
        if not isinstance(label, str):
            label = str(label)
        child_key = str(run.get("childSessionKey") or "")
        status = run_status(run)
        running = status == "running"
        task = str(run.get("task") or "")[:120]

        owner = resolve_label(label)
        start = parse_ts(run.get("createdAt"))
        end = parse_ts(run.get("endedAt"))
        last_seen = end or (now if running else start)

        if owner is not None and owner is not LEAD and label:
            existing = acc.get(owner)
            if existing is None or running or _newer(last_seen, existing.last_seen):
                if running:
                    agent_status = "active"
                elif status == "completed":
                    agent_status = "idle"
                else:
                    agent_status = infer_status(last_seen, now)
                acc[owner] = blank_record(
                    owner,
                    status             = agent_status,
                    current_task       = label if running else f"Completed: {label}",
                    last_seen          = last_seen,
                    last_seen_relative = relative_time(last_seen, now),
                    session_id         = child_key,
                    model              = SUBAGENT_MODEL,
                    tokens_used        = existing.tokens_used if existing else 0,
                    api_calls          = existing.api_calls if existing else 0,
                    label              = label,
                )

        short = run_id[:8]
        out.append(SubagentRun(
            id           = f"sa-{short}",
            name         = label or f"run-{short}",
            parent_agent = (owner or LEAD).value,
            task         = label or task[:80],
            status       = status,
            progress     = run_progress(status),
            start_time   = start,
            end_time     = end,
            session_id   = child_key,
            label        = label,
            duration_ms  = _duration_ms(start, end, running, now),
        ))
    return out


# ── Pass 3: per-agent directories ─────────────────────────────────────────────

def merge_dir_activity(acc: Accumulator, agent: AgentId, dir_name: str,
                       parsed: ActivitySummary, now: datetime) -> None:
    """
    Merge one transcript summary into `agent`'s record.

    Counters are always added to what is already there.  Status, task,
    last-seen and model are replaced only when the record is new or the
    summary's timestamp is strictly newer.
    """
    existing = acc.get(agent)
    record = existing or blank_record(agent, current_task="Standby",
                                      session_id=f"agent:{dir_name}")

    if existing is None or _newer(parsed.last_timestamp, existing.last_seen):
        last_seen = parsed.last_timestamp or record.last_seen
        record.status             = infer_status(parsed.last_timestamp, now)
        record.current_task       = parsed.last_task or record.current_task or "Standby"
        record.last_seen          = last_seen
        record.last_seen_relative = relative_time(last_seen, now) if last_seen else "never"
        record.session_id         = record.session_id or f"agent:{dir_name}"
        record.model              = parsed.model or record.model

    record.tokens_used += parsed.tokens_in + parsed.tokens_out
    record.api_calls   += parsed.api_calls
    acc[agent] = record


def merge_agent_dirs(acc: Accumulator, agents_base: Optional[Path],
                     now: datetime) -> None:
    if agents_base is None or not agents_base.is_dir():
        return
    for dir_name, agent in AGENT_DIRS.items():
        files = list_session_files(agents_base / dir_name / "sessions")
        if not files:
            continue
        merge_dir_activity(acc, agent, dir_name, parse_session_tail(files[0], TAIL_LINES), now)


# ── Assembly ──────────────────────────────────────────────────────────────────

def assemble_agents(acc: Accumulator) -> list[AgentRecord]:
    return [acc.get(agent) or blank_record(agent) for agent in DISPLAY_ORDER]


def derive_events(agents: list[AgentRecord], subagents: list[SubagentRun],
                  now: datetime) -> list[FleetEvent]:
    stamp = int(now.timestamp() * 1000)
    events: list[FleetEvent] = []
    for a in agents:
        if a.status == "active":
            events.append(FleetEvent(
                id        = f"evt-{a.id}-{stamp}",
                type      = "agent:status",
                timestamp = a.last_seen,
                data      = {"agentId": a.id, "oldStatus": "idle",
                             "newStatus": a.status, "task": a.current_task},
            ))
    for sa in subagents:
        if sa.status == "running":
            events.append(FleetEvent(
                id        = f"evt-sa-{sa.id}-{stamp}",
                type      = "subagent:spawn",
                timestamp = sa.start_time,
                data      = {"subagentId": sa.id, "parentAgent": sa.parent_agent,
                             "task": sa.task},
            ))
    return events[:MAX_EVENTS]


def fetch_sessions(root: Optional[Path], now: Optional[datetime] = None,
                   default_model: str = "") -> SessionsSnapshot:
    """Run all three passes and assemble the fleet."""
    if root is None:
        return SessionsSnapshot()
    now = now or utc_now()

    acc: Accumulator = {}
    merge_main_sessions(acc, main_sessions_dir(root), now, default_model)
    subagents = merge_run_registry(acc, load_json(root / "subagents" / "runs.json"), now)
    merge_agent_dirs(acc, root / "agents", now)

    agents = assemble_agents(acc)
    logger.debug("sessions: %d agent records merged, %d runs", len(acc), len(subagents))
    return SessionsSnapshot(
        agents    = agents,
        subagents = subagents[:MAX_SUBAGENTS],
        events    = derive_events(agents, subagents, now),
    )
