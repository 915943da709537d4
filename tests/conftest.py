import json
import os
from datetime import datetime, timedelta, timezone

import pytest

NOW = datetime(2026, 2, 18, 20, 0, 0, tzinfo=timezone.utc)


def iso(dt):
    return dt.isoformat().replace("+00:00", "Z")


def ms(dt):
    return int(dt.timestamp() * 1000)


def write_jsonl(path, entries, header=True, mtime=None):
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = []
    if header:
        lines.append(json.dumps({"type": "session", "id": path.stem}))
    lines.extend(json.dumps(e) if not isinstance(e, str) else e for e in entries)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def assistant(ts, text="Working on it.", usage=None, model=None):
    msg = {"role": "assistant", "content": [{"type": "text", "text": text}]}
    if usage is not None:
        msg["usage"] = usage
    if model:
        msg["model"] = model
    return {"type": "message", "timestamp": iso(ts), "message": msg}


def user(ts, text):
    return {"type": "message", "timestamp": iso(ts),
            "message": {"role": "user", "content": text}}


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def root(tmp_path):
    """An OpenClaw root with a populated workspace."""
    r = tmp_path / ".openclaw"
    (r / "workspace" / "memory").mkdir(parents=True)
    return r


@pytest.fixture
def fleet_root(root):
    """A root with main, hunter and forge transcripts, runs, crons and memory."""
    base = NOW.timestamp()

    write_jsonl(root / "agents" / "main" / "sessions" / "boot-2026-02-18_18-00-00-040-abc.jsonl", [
        user(NOW - timedelta(minutes=2), "Please review the quarterly plan"),
        assistant(NOW - timedelta(minutes=1), usage={"input": 100, "cacheRead": 50, "output": 25},
                  model="claude-opus-4"),
    ], mtime=base - 60)
    write_jsonl(root / "agents" / "main" / "sessions" / "older.jsonl", [
        assistant(NOW - timedelta(hours=3), usage={"input": 10, "output": 5}),
    ], mtime=base - 3 * 3600)

    write_jsonl(root / "agents" / "hunter" / "sessions" / "h1.jsonl", [
        user(NOW - timedelta(minutes=10), "Compile the revenue pipeline"),
        assistant(NOW - timedelta(minutes=10), usage={"input": 40, "output": 10}),
    ], mtime=base - 600)

    write_jsonl(root / "agents" / "cto-forge" / "sessions" / "f1.jsonl", [
        assistant(NOW - timedelta(hours=2), usage={"input": 5, "output": 5}),
    ], mtime=base - 7200)

    (root / "subagents").mkdir()
    (root / "subagents" / "runs.json").write_text(json.dumps({"runs": {
        "aaaaaaaa-1111": {"label": "forge-refactor-auth", "task": "Refactor the auth module",
                          "childSessionKey": "agent:main:subagent:aaaaaaaa-1111",
                          "createdAt": ms(NOW - timedelta(minutes=20))},
        "bbbbbbbb-2222": {"label": "echo-blog-post", "task": "Write launch post",
                          "createdAt": ms(NOW - timedelta(hours=1)),
                          "endedAt": ms(NOW - timedelta(minutes=40)),
                          "outcome": {"status": "ok"}},
        "cccccccc-3333": {"label": "", "task": "Unlabelled helper",
                          "createdAt": ms(NOW - timedelta(minutes=5)),
                          "endedAt": ms(NOW - timedelta(minutes=4)),
                          "outcome": {"status": "error"}},
    }}), encoding="utf-8")

    (root / "cron").mkdir()
    (root / "cron" / "jobs.json").write_text(json.dumps({"jobs": [
        {"id": "j1", "name": "Nightly backup", "enabled": True,
         "schedule": {"expr": "0 3 * * *", "tz": "Europe/Rome"},
         "payload": {"message": "Back up the workspace"},
         "state": {"nextRunAtMs": ms(NOW + timedelta(hours=7)),
                   "lastRunAtMs": ms(NOW - timedelta(hours=17)),
                   "lastStatus": "ok", "lastDurationMs": 1200}},
        {"id": "j2", "name": "Security audit", "enabled": False,
         "state": {"lastStatus": "error", "consecutiveErrors": 3, "lastError": "timeout"}},
    ]}), encoding="utf-8")

    ws = root / "workspace"
    (ws / "MEMORY.md").write_text("# Long-term\nRemember the launch date.\n", encoding="utf-8")
    (ws / "memory" / "2026-02-17.md").write_text("yesterday", encoding="utf-8")
    (ws / "memory" / "2026-02-18.md").write_text("today", encoding="utf-8")
    (ws / "memory" / "heartbeat-state.json").write_text('{"lastCheck": 1}', encoding="utf-8")
    return root
