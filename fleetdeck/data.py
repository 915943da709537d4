"""
fleetdeck data layer — reads OpenClaw state files directly.

All data is sourced from the filesystem:
  agents    → <root>/agents/main/sessions/*.jsonl, <root>/agents/<dir>/sessions/
  subagents → <root>/subagents/runs.json
  crons     → <root>/cron/jobs.json
  memory    → <workspace>/MEMORY.md, <workspace>/memory/
  metrics   → derived from the above, plus psutil for host load

Every source is served from a short TTL cache.  get_all() drops the cache and
reads the four sources in parallel; a failure in one degrades to that
source's empty value and never reaches the caller.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from .crons import fetch_crons
from .memory import fetch_agent_info, fetch_memory
from .metrics import compute_metrics
from .models import (
    AgentInfo,
    CronJob,
    FleetMeta,
    FleetMetrics,
    FleetSnapshot,
    MemorySnapshot,
    SessionsSnapshot,
)
from .paths import default_model, main_sessions_dir, resolve_root, resolve_workspace
from .sessions import fetch_sessions
from .timefmt import to_iso, utc_now

logger = logging.getLogger("fleetdeck")

CACHE_TTL_SECS = 5.0

T = TypeVar("T")


# ── TTL cache ─────────────────────────────────────────────────────────────────

class TTLCache:
    """(value, stored_at) per key; an entry is live while now - stored_at < ttl."""

    def __init__(self, ttl: float = CACHE_TTL_SECS,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._values: dict[str, Any] = {}
        self._stamps: dict[str, float] = {}
        self._lock = threading.Lock()

    def is_fresh(self, key: str) -> bool:
        with self._lock:
            return self._fresh(key)

    def _fresh(self, key: str) -> bool:
        ts = self._stamps.get(key)
        return ts is not None and (self._clock() - ts) < self.ttl

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values[key] if self._fresh(key) else default

    def set(self, key: str, value: T) -> T:
        with self._lock:
            self._values[key] = value
            self._stamps[key] = self._clock()
        return value

    def invalidate(self) -> None:
        with self._lock:
            self._values.clear()
            self._stamps.clear()


_MISS = object()


# ── Provider ──────────────────────────────────────────────────────────────────

class DataProvider:
    """Single entry point for the dashboard: cached per-source reads plus a full refresh."""

    def __init__(self, root: Optional[Path] = None, workspace: Optional[Path] = None,
                 ttl: float = CACHE_TTL_SECS,
                 clock: Callable[[], float] = time.monotonic,
                 now: Callable[[], datetime] = utc_now) -> None:
        if root is None:
            self.openclaw_root = resolve_root()
        else:
            root = Path(root).expanduser()
            self.openclaw_root = root if root.exists() else None

        if workspace is not None and Path(workspace).expanduser().exists():
            self.workspace: Optional[Path] = Path(workspace).expanduser()
        else:
            self.workspace = resolve_workspace(self.openclaw_root)

        self._cache = TTLCache(ttl, clock)
        self._now = now

        if self.is_available:
            logger.info("connected to OpenClaw at %s (workspace: %s)",
                        self.openclaw_root, self.workspace)
        else:
            logger.warning("OpenClaw not found; serving empty data")

    @property
    def is_available(self) -> bool:
        return self.openclaw_root is not None

    @property
    def sessions_dir(self) -> Optional[Path]:
        return main_sessions_dir(self.openclaw_root)

    def _cached(self, key: str, loader: Callable[[], T], empty: Callable[[], T]) -> T:
        hit = self._cache.get(key, _MISS)
        if hit is not _MISS:
            return hit
        try:
            value = loader()
        except Exception:
            logger.warning("error reading %s", key, exc_info=True)
            value = empty()
        return self._cache.set(key, value)

    # ── Per-source accessors ──────────────────────────────────────────────────

    def get_sessions(self) -> SessionsSnapshot:
        return self._cached(
            "sessions",
            lambda: fetch_sessions(self.openclaw_root, self._now(),
                                   default_model(self.openclaw_root)),
            SessionsSnapshot,
        )

    def get_crons(self) -> list[CronJob]:
        return self._cached("crons", lambda: fetch_crons(self.openclaw_root, self._now()), list)

    def get_memory(self) -> MemorySnapshot:
        return self._cached("memory", lambda: fetch_memory(self.workspace), MemorySnapshot)

    def get_metrics(self) -> FleetMetrics:
        def _load() -> FleetMetrics:
            sessions = self.get_sessions()
            crons = self.get_crons()
            return compute_metrics(sessions, crons, self.sessions_dir, self._now())
        return self._cached("metrics", _load, FleetMetrics)

    def get_agent_info(self, agent_id: str) -> Optional[AgentInfo]:
        try:
            return fetch_agent_info(self.workspace, agent_id)
        except Exception:
            logger.warning("error reading agent info for %s", agent_id, exc_info=True)
            return None

    def invalidate_cache(self) -> None:
        self._cache.invalidate()

    # ── Full refresh ──────────────────────────────────────────────────────────

    def get_all(self) -> FleetSnapshot:
        """Drop the cache and read every source in parallel."""
        self.invalidate_cache()

        tasks: dict[str, Callable[[], Any]] = {
            "sessions": self.get_sessions,
            "crons"   : self.get_crons,
            "memory"  : self.get_memory,
            "metrics" : self.get_metrics,
        }
        results: dict[str, Any] = {}
        with ThreadPoolExecutor(max_workers=len(tasks)) as pool:
            futures = {pool.submit(fn): key for key, fn in tasks.items()}
            for future in as_completed(futures):
                key = futures[future]
                try:
                    results[key] = future.result()
                except Exception:
                    logger.warning("refresh of %s failed", key, exc_info=True)
                    results[key] = None

        sessions = results.get("sessions") or SessionsSnapshot()
        return FleetSnapshot(
            agents    = sessions.agents,
            subagents = sessions.subagents,
            events    = sessions.events,
            crons     = results.get("crons")   or [],
            memory    = results.get("memory")  or MemorySnapshot(),
            metrics   = results.get("metrics") or FleetMetrics(),
            meta      = FleetMeta(
                mode          = "live" if self.is_available else "fallback",
                available     = self.is_available,
                openclaw_root = str(self.openclaw_root) if self.openclaw_root else None,
                workspace     = str(self.workspace) if self.workspace else None,
                timestamp     = self._now(),
            ),
        )


# ── Serialisation ─────────────────────────────────────────────────────────────

def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def snapshot_to_dict(obj: Any) -> Any:
    """Plain JSON-ready data for any record produced by this package."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return _jsonable(dataclasses.asdict(obj))
    return _jsonable(obj)


# ── Diagnostics ───────────────────────────────────────────────────────────────

def _require(value: Optional[T], message: str) -> T:
    if not value:
        raise FileNotFoundError(message)
    return value


def _on_disk(base: Optional[Path], *parts: str) -> Optional[Path]:
    if base is None:
        return None
    p = base.joinpath(*parts)
    return p if p.exists() else None


def run_diagnostics(provider: Optional[DataProvider] = None) -> list[dict]:
    """
    Check each data source individually and report what was found.
    Used by --debug flag in tui.py.
    """
    provider = provider or DataProvider()
    root = provider.openclaw_root
    report = []

    def _check(label: str, fn, detail_fn=None):
        t0 = time.monotonic()
        try:
            result = fn()
            elapsed = int((time.monotonic() - t0) * 1000)
            detail = detail_fn(result) if detail_fn else str(result)
            report.append({"label": label, "ok": True,
                           "elapsed_ms": elapsed, "detail": detail[:120], "error": ""})
        except Exception as e:
            elapsed = int((time.monotonic() - t0) * 1000)
            report.append({"label": label, "ok": False,
                           "elapsed_ms": elapsed, "detail": "", "error": str(e)[:120]})

    _check("openclaw root",
           lambda: _require(root, "not found (~/.openclaw, $OPENCLAW_HOME, setup config)"),
           str)
    _check("workspace dir",
           lambda: _require(provider.workspace, "not found"),
           str)
    _check("main sessions",
           lambda: _require(_on_disk(provider.sessions_dir), "no agents/main/sessions directory"),
           str)
    _check("run registry",
           lambda: _require(_on_disk(root, "subagents", "runs.json"), "no subagents/runs.json"),
           str)
    _check("cron jobs",
           lambda: _require(_on_disk(root, "cron", "jobs.json"), "no cron/jobs.json"),
           str)

    provider.invalidate_cache()
    _check("sessions",
           provider.get_sessions,
           lambda r: (f"{sum(1 for a in r.agents if a.status != 'offline')} of "
                      f"{len(r.agents)} agents seen  {len(r.subagents)} run(s)"))
    _check("crons",
           provider.get_crons,
           lambda r: f"{len(r)} job(s)  {sum(1 for c in r if c.enabled)} enabled")
    _check("memory",
           provider.get_memory,
           lambda r: (f"MEMORY.md {'✓' if r.long_term else '✗'}  "
                      f"{len(r.daily)} daily  heartbeat {'✓' if r.heartbeat is not None else '✗'}"))
    _check("metrics",
           provider.get_metrics,
           lambda r: f"tokens={r.tokens_today:,}  calls={r.api_calls_today:,}  uptime={r.uptime}")

    return report
