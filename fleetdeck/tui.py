"""
fleetdeck — OpenClaw fleet dashboard
A read-only terminal view of the agent fleet, sub-agent runs, cron jobs and memory.

Usage:
    fleetdeck
    fleetdeck --refresh 5
    fleetdeck --once
    fleetdeck --json
    fleetdeck --debug
"""

from __future__ import annotations

import argparse
import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import data as D
from .models import (
    AgentRecord,
    CronJob,
    FleetMeta,
    FleetMetrics,
    MemorySnapshot,
    SubagentRun,
)

# ── Palette ───────────────────────────────────────────────────────────────────

C_ACCENT   = "cyan"
C_TITLE    = "bold cyan"
C_OK       = "bright_green"
C_WARN     = "yellow"
C_ERR      = "bright_red"
C_MUTED    = "grey58"
C_DIM      = "grey42"
C_BORDER   = "grey35"

STATUS_COLORS = {
    "active":    C_OK,
    "running":   C_OK,
    "idle":      C_WARN,
    "completed": C_ACCENT,
    "error":     C_ERR,
    "offline":   C_MUTED,
    "disabled":  C_DIM,
}


# ── Shared widgets ────────────────────────────────────────────────────────────

def _bar(pct: float, width: int = 18) -> Text:
    """Render a Unicode block progress bar, colour-coded by percentage."""
    clamped = max(0.0, min(100.0, pct))
    filled  = round(clamped / 100 * width)
    empty   = width - filled
    color   = C_OK if clamped < 60 else C_WARN if clamped < 80 else C_ERR
    t = Text()
    t.append("█" * filled, style=color)
    t.append("░" * empty,  style=C_DIM)
    return t


def _k(n: int) -> str:
    """Format large token counts as compact strings."""
    if n >= 1_000_000:
        return f"{n/1_000_000:.1f}M"
    if n >= 10_000:
        return f"{n/1000:.0f}k"
    if n >= 1_000:
        return f"{n/1000:.1f}k"
    return str(n)


def _status(value: str) -> Text:
    return Text(f"● {value}", style=STATUS_COLORS.get(value, "white"))


def _panel(body, title: str, padding=(0, 1)) -> Panel:
    return Panel(body, title=f"[{C_TITLE}]{title}[/{C_TITLE}]",
                 border_style=C_BORDER, box=box.ROUNDED, padding=padding)


def _empty(title: str, message: str) -> Panel:
    return _panel(Text(f"\n  {message}", style=C_MUTED), title)


# ── Panel renderers ───────────────────────────────────────────────────────────

def render_header(meta: FleetMeta, now_str: str) -> Panel:
    row = Text()
    row.append("🏢  fleetdeck", style=C_TITLE)
    row.append("   │   openclaw: ", style=C_MUTED)
    if meta.available:
        row.append("● ", style=C_OK)
        row.append(str(meta.openclaw_root), style=C_DIM)
    else:
        row.append("● not found", style=C_ERR)
    if meta.workspace:
        row.append("   │   workspace: ", style=C_MUTED)
        row.append(meta.workspace, style=C_DIM)
    row.append(f"   │   {now_str}", style=C_MUTED)
    return Panel(row, style=C_BORDER, box=box.HORIZONTALS, padding=(0, 1))


def render_agents(agents: list[AgentRecord]) -> Panel:
    if not agents:
        return _empty("AGENTS", "No agent data")

    tbl = Table(box=None, show_header=True, pad_edge=False,
                header_style=C_DIM, expand=True)
    tbl.add_column("AGENT",  style=C_ACCENT, no_wrap=True, max_width=16)
    tbl.add_column("ROLE",   style=C_MUTED,  no_wrap=True, width=4)
    tbl.add_column("STATUS", no_wrap=True,   width=10)
    tbl.add_column("TASK",   style="white",  ratio=3, no_wrap=True)
    tbl.add_column("MODEL",  style=C_DIM,    no_wrap=True, max_width=22)
    tbl.add_column("TOKENS", style="white",  no_wrap=True, justify="right", width=7)
    tbl.add_column("SEEN",   style=C_MUTED,  no_wrap=True, width=8)

    for a in agents:
        tbl.add_row(
            f"{a.emoji} {a.name}",
            a.role,
            _status(a.status),
            a.current_task,
            a.model or "—",
            _k(a.tokens_used),
            a.last_seen_relative,
        )

    active = sum(1 for a in agents if a.status == "active")
    return _panel(tbl, f"AGENTS  [{C_MUTED}]{active}/{len(agents)} active[/{C_MUTED}]")


def render_subagents(runs: list[SubagentRun]) -> Panel:
    if not runs:
        return _empty("RUNS", "No sub-agent runs")

    tbl = Table(box=None, show_header=True, pad_edge=False,
                header_style=C_DIM, expand=True)
    tbl.add_column("RUN",    style=C_ACCENT, no_wrap=True, max_width=24)
    tbl.add_column("OWNER",  style=C_MUTED,  no_wrap=True, width=8)
    tbl.add_column("STATUS", no_wrap=True,   width=11)
    tbl.add_column("",       no_wrap=True,   width=8)

    for r in runs[:8]:
        tbl.add_row(r.name, r.parent_agent, _status(r.status), _bar(r.progress * 100, width=8))

    running = sum(1 for r in runs if r.status == "running")
    return _panel(tbl, f"RUNS  [{C_MUTED}]{running} running[/{C_MUTED}]")


def render_crons(crons: list[CronJob]) -> Panel:
    if not crons:
        return _empty("CRON", "No cron jobs")

    tbl = Table(box=None, show_header=True, pad_edge=False,
                header_style=C_DIM, expand=True)
    tbl.add_column("JOB",   style="white",  no_wrap=True, ratio=2)
    tbl.add_column("OWNER", style=C_ACCENT, no_wrap=True, width=8)
    tbl.add_column("NEXT",  style=C_MUTED,  no_wrap=True, width=8)
    tbl.add_column("LAST",  no_wrap=True,   width=9)

    for c in crons[:10]:
        last = Text(c.last_status, style=C_ERR if c.last_status == "error" else C_OK
                    if c.last_status == "ok" else C_MUTED)
        if c.consecutive_errors:
            last.append(f" ×{c.consecutive_errors}", style=C_ERR)
        name = Text(c.name, style="white" if c.enabled else C_DIM)
        tbl.add_row(name, c.owner, c.next_run_relative if c.enabled else "off", last)

    enabled = sum(1 for c in crons if c.enabled)
    return _panel(tbl, f"CRON  [{C_MUTED}]{enabled}/{len(crons)} enabled[/{C_MUTED}]")


def render_memory(mem: MemorySnapshot) -> Panel:
    """Panel showing long-term memory + recent daily notes."""
    if not mem.long_term and not mem.daily and mem.heartbeat is None:
        return _empty("MEMORY", "No memory files found")

    lines: list[Text] = []
    if mem.long_term:
        row = Text()
        row.append("  MEMORY.md  ", style=C_ACCENT)
        row.append(f"{mem.long_term.size / 1024:.1f} KB", style="white")
        lines.append(row)

    if mem.daily:
        dir_row = Text()
        dir_row.append("  memory/    ", style=C_ACCENT)
        dir_row.append(f"{len(mem.daily)} daily notes", style="white")
        lines.append(dir_row)
        shown = mem.daily[:4]
        for i, note in enumerate(shown):
            sub = Text()
            marker = "└" if i == len(shown) - 1 else "├"
            sub.append(f"    {marker} {note.date:<22}", style=C_DIM)
            sub.append(f"{note.size / 1024:.1f} KB", style=C_MUTED)
            if i == 0:
                sub.append("  ← newest", style=C_DIM)
            lines.append(sub)

    hb = Text()
    hb.append("  heartbeat  ", style=C_MUTED)
    hb.append("✓" if mem.heartbeat is not None else "none",
              style=C_OK if mem.heartbeat is not None else C_MUTED)
    lines.append(hb)

    body = Text("\n").join([Text(""), *lines, Text("")])
    return _panel(body, "MEMORY", padding=(0, 0))


def render_metrics(m: FleetMetrics) -> Panel:
    lines: list[Text] = []

    def metric_row(label: str, ratio: Optional[float]) -> None:
        row = Text()
        row.append(f"  {label:<5}", style=C_MUTED)
        if ratio is None:
            row.append("—", style=C_MUTED)
        else:
            pct = ratio * 100
            row.append_text(_bar(pct))
            color = C_OK if pct < 60 else C_WARN if pct < 80 else C_ERR
            row.append(f"  {pct:5.1f}%", style=color)
        lines.append(row)

    metric_row("CPU",  m.cpu_usage)
    metric_row("MEM",  m.memory_usage)
    metric_row("DISK", m.disk_usage)
    lines.append(Text(""))

    stat = Text()
    stat.append("  tokens ", style=C_MUTED)
    stat.append(_k(m.tokens_today), style="white")
    stat.append("   calls ", style=C_MUTED)
    stat.append(_k(m.api_calls_today), style="white")
    stat.append("   uptime ", style=C_MUTED)
    stat.append(m.uptime, style=C_ACCENT if m.uptime != "unknown" else C_MUTED)
    lines.append(stat)

    crons = Text()
    crons.append("  cron ", style=C_MUTED)
    crons.append(f"{m.active_crons}/{m.total_crons}", style="white")
    if m.failed_crons:
        crons.append(f"  ✗ {m.failed_crons} failing", style=C_ERR)
    crons.append(f"   success {m.success_rate:.0%}", style=C_DIM)
    lines.append(crons)

    body = Text("\n").join([Text(""), *lines, Text("")])
    return _panel(body, "SYSTEM", padding=(0, 0))


def render_footer(refresh: float, last_ms: int) -> Panel:
    t = Text()
    t.append("  Ctrl+C", style=C_ACCENT)
    t.append(" to quit   ", style=C_MUTED)
    t.append("↻", style=C_DIM)
    t.append(f" refreshing every {refresh:.0f}s", style=C_MUTED)
    t.append(f"   last fetch: {last_ms}ms", style=C_DIM)
    return Panel(t, style=C_BORDER, box=box.HORIZONTALS, padding=(0, 0))


# ── Layout assembly ───────────────────────────────────────────────────────────

def build_layout() -> Layout:
    root = Layout(name="root")
    root.split_column(
        Layout(name="header", size=3),
        Layout(name="agents", size=10),
        Layout(name="mid_row"),
        Layout(name="bottom_row"),
        Layout(name="footer", size=3),
    )
    root["mid_row"].split_row(
        Layout(name="crons",  ratio=3),
        Layout(name="runs",   ratio=2),
    )
    root["bottom_row"].split_row(
        Layout(name="memory", ratio=3),
        Layout(name="system", ratio=2),
    )
    return root


def update_layout(layout: Layout, snap, refresh: float, last_ms: int) -> None:
    now_str = datetime.now().strftime("%H:%M:%S")
    layout["header"].update(render_header(snap.meta, now_str))
    layout["agents"].update(render_agents(snap.agents))
    layout["mid_row"]["crons"].update(render_crons(snap.crons))
    layout["mid_row"]["runs"].update(render_subagents(snap.subagents))
    layout["bottom_row"]["memory"].update(render_memory(snap.memory))
    layout["bottom_row"]["system"].update(render_metrics(snap.metrics))
    layout["footer"].update(render_footer(refresh, last_ms))


# ── Entry point ───────────────────────────────────────────────────────────────

def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="fleetdeck",
        description="fleetdeck — OpenClaw fleet dashboard",
    )
    p.add_argument("--root",      type=Path, default=None,
                   metavar="DIR", help="OpenClaw root (default: auto-detect)")
    p.add_argument("--refresh",   type=float, default=10.0,
                   metavar="SECS", help="Refresh interval in seconds (default: 10)")
    p.add_argument("--ttl",       type=float, default=D.CACHE_TTL_SECS,
                   metavar="SECS", help="Per-source cache lifetime (default: 5)")
    p.add_argument("--once",      action="store_true",
                   help="Render a single snapshot and exit")
    p.add_argument("--json",      action="store_true",
                   help="Print a single snapshot as JSON and exit")
    p.add_argument("--debug",     action="store_true",
                   help="Run diagnostics: show per-source timing and errors, then exit")
    p.add_argument("--verbose",   action="store_true",
                   help="Log data-source activity to stderr")
    return p.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    logger = logging.getLogger("fleetdeck")
    if not verbose:
        logger.addHandler(logging.NullHandler())
        return
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


def run_debug(provider: D.DataProvider) -> None:
    """Print a diagnostic table: checks each data source, shows path/timing/errors."""
    console = Console()

    console.print()
    console.print(Text("🏢  fleetdeck — diagnostics", style=C_TITLE))
    console.print(Text("Checking each data source…\n", style=C_MUTED))

    tbl = Table(box=box.ROUNDED, border_style=C_BORDER, show_header=True,
                header_style=C_DIM, expand=True)
    tbl.add_column("SOURCE",  style="white",  no_wrap=True, min_width=16)
    tbl.add_column("STATUS",  no_wrap=True,   width=10)
    tbl.add_column("TIME",    style=C_MUTED,  width=8, justify="right")
    tbl.add_column("DETAIL",  style=C_DIM,    ratio=3)
    tbl.add_column("ERROR",   style=C_ERR,    ratio=2)

    for r in D.run_diagnostics(provider):
        status = Text("✓  ok", style=C_OK) if r["ok"] else Text("✗  fail", style=C_ERR)
        tbl.add_row(r["label"], status, f"{r['elapsed_ms']}ms",
                    r["detail"] or "—", r["error"] or "")

    console.print(tbl)
    console.print()
    console.print(Text("All data is read from local files — no openclaw process is spawned.", style=C_MUTED))
    console.print()


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    provider = D.DataProvider(root=args.root, ttl=args.ttl)

    if args.debug:
        run_debug(provider)
        return

    if args.json:
        print(json.dumps(D.snapshot_to_dict(provider.get_all()), indent=2, ensure_ascii=False))
        return

    console = Console()
    layout = build_layout()

    t0 = time.monotonic()
    snap = provider.get_all()
    last_ms = int((time.monotonic() - t0) * 1000)
    update_layout(layout, snap, args.refresh, last_ms)

    if args.once:
        console.print(layout)
        return

    try:
        with Live(layout, console=console, refresh_per_second=2,
                  screen=True, vertical_overflow="visible") as live:
            while True:
                time.sleep(args.refresh)
                t0 = time.monotonic()
                snap = provider.get_all()
                last_ms = int((time.monotonic() - t0) * 1000)
                update_layout(layout, snap, args.refresh, last_ms)
                live.refresh()
    except KeyboardInterrupt:
        pass  # clean exit on Ctrl+C


if __name__ == "__main__":
    main()
