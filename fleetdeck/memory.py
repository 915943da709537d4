"""
Workspace memory files.

  MEMORY.md                       → long-term note (excerpt + true size)
  memory/YYYY-MM-DD*.md           → newest 7 daily notes
  memory/heartbeat-state.json     → free-form heartbeat blob
  fleet/agents/<dir>/SOUL.md      → per-agent identity, see fetch_agent_info()
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .fileio import load_json, read_text
from .models import AgentInfo, DailyNote, LongTermNote, MemorySnapshot
from .roster import AGENT_META, FLEET_DIRS, LEAD, lookup

LONG_TERM_CHARS = 5_000
DAILY_CHARS = 2_000
DAILY_LIMIT = 7
AGENT_MEMORY_CHARS = 3_000

_DAILY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}.*\.md$")


def _read_capped(path: Path, cap: int) -> Optional[tuple[str, int, float]]:
    """(excerpt, byte size, mtime) or None."""
    try:
        raw = path.read_bytes()
        mtime = path.stat().st_mtime
    except OSError:
        return None
    return raw.decode("utf-8", errors="replace")[:cap], len(raw), mtime


def read_long_term(workspace: Path) -> Optional[LongTermNote]:
    got = _read_capped(workspace / "MEMORY.md", LONG_TERM_CHARS)
    if not got or not got[1]:
        return None
    content, size, mtime = got
    return LongTermNote(
        content       = content,
        size          = size,
        last_modified = datetime.fromtimestamp(mtime, tz=timezone.utc),
    )


def read_daily(memory_dir: Path, limit: int = DAILY_LIMIT) -> list[DailyNote]:
    if not memory_dir.is_dir():
        return []
    try:
        names = sorted((p.name for p in memory_dir.iterdir() if _DAILY_RE.match(p.name)),
                       reverse=True)
    except OSError:
        return []

    notes: list[DailyNote] = []
    for name in names[:limit]:
        got = _read_capped(memory_dir / name, DAILY_CHARS)
        if not got or not got[1]:
            continue
        content, size, _ = got
        notes.append(DailyNote(date=name[:-len(".md")], content=content, size=size))
    return notes


def fetch_memory(workspace: Optional[Path]) -> MemorySnapshot:
    if workspace is None:
        return MemorySnapshot()
    memory_dir = workspace / "memory"
    return MemorySnapshot(
        long_term = read_long_term(workspace),
        daily     = read_daily(memory_dir),
        heartbeat = load_json(memory_dir / "heartbeat-state.json"),
    )


def fetch_agent_info(workspace: Optional[Path], agent_id: str) -> Optional[AgentInfo]:
    """SOUL.md and a MEMORY.md excerpt for one fleet member."""
    agent = lookup(agent_id)
    if workspace is None or agent is None:
        return None

    if agent is LEAD:
        base = workspace
    else:
        base = workspace / "fleet" / "agents" / FLEET_DIRS[agent]

    memory = read_text(base / "MEMORY.md")
    meta = AGENT_META[agent]
    return AgentInfo(
        id     = agent.value,
        name   = meta.name,
        role   = meta.role,
        emoji  = meta.emoji,
        soul   = read_text(base / "SOUL.md"),
        memory = memory[:AGENT_MEMORY_CHARS] if memory is not None else None,
    )
