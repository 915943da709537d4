"""
Session transcript parsing.

A transcript is an append-only JSONL file written by the agent runtime: one
`{"type": "session"}` header line followed by message, model_change and
custom events.  Only the tail is inspected.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .fileio import read_first_line, tail_lines
from .models import ActivitySummary
from .timefmt import parse_ts

TASK_MIN_CHARS = 10
TASK_MAX_CHARS = 200
FALLBACK_TASK_CHARS = 100

_FIRST_SENTENCE_RE = re.compile(r"[.\n]")


def _n(v: Any) -> int:
    return int(v) if isinstance(v, (int, float)) and not isinstance(v, bool) and v == v else 0


def _content_text(content: Any, first_block_only: bool) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    blocks = [b for b in content if isinstance(b, dict)]
    if first_block_only:
        for b in blocks:
            if b.get("type") == "text" and isinstance(b.get("text"), str):
                return b["text"]
        return ""
    return "".join(b.get("text") or "" for b in blocks if isinstance(b.get("text"), str))


def parse_session_tail(path: Path, line_count: int = 50) -> ActivitySummary:
    """Summarise the last `line_count` events of a transcript."""
    last_ts: Optional[datetime] = None
    last_task = ""
    model = ""
    tokens_in = tokens_out = api_calls = 0
    last_assistant = ""

    for line in tail_lines(path, line_count):
        try:
            entry = json.loads(line)
        except ValueError:
            continue
        if not isinstance(entry, dict):
            continue

        ts = parse_ts(entry.get("timestamp"))
        if ts and (last_ts is None or ts > last_ts):
            last_ts = ts

        etype = entry.get("type")
        msg = entry.get("message")
        if etype == "message" and isinstance(msg, dict):
            role = msg.get("role")
            content = msg.get("content")

            if role == "assistant" and content:
                api_calls += 1
                text = _content_text(content, first_block_only=True)
                if text:
                    last_assistant = text
                usage = msg.get("usage")
                if isinstance(usage, dict):
                    tokens_in  += _n(usage.get("input")) + _n(usage.get("cacheRead"))
                    tokens_out += _n(usage.get("output"))
                if isinstance(msg.get("model"), str) and msg["model"]:
                    model = msg["model"]

            if role == "user" and content:
                text = _content_text(content, first_block_only=False)
                if TASK_MIN_CHARS < len(text) < TASK_MAX_CHARS:
                    last_task = text

        if etype == "model_change" and isinstance(entry.get("modelId"), str) and entry["modelId"]:
            model = entry["modelId"]
        if etype == "custom" and entry.get("customType") == "model-snapshot":
            data = entry.get("data")
            if isinstance(data, dict) and isinstance(data.get("modelId"), str) and data["modelId"]:
                model = data["modelId"]

    if not last_task and last_assistant:
        first = _FIRST_SENTENCE_RE.split(last_assistant, 1)[0]
        if len(first) > TASK_MIN_CHARS:
            last_task = first[:FALLBACK_TASK_CHARS]

    return ActivitySummary(
        last_timestamp = last_ts,
        last_task      = last_task,
        model          = model,
        tokens_in      = tokens_in,
        tokens_out     = tokens_out,
        api_calls      = api_calls,
    )


def list_session_files(sessions_dir: Optional[Path]) -> list[Path]:
    """Live transcripts in a sessions directory, most recently modified first."""
    if sessions_dir is None or not sessions_dir.is_dir():
        return []
    stamped: list[tuple[float, Path]] = []
    for p in sessions_dir.glob("*.jsonl"):
        if ".deleted." in p.name:
            continue
        try:
            stamped.append((p.stat().st_mtime, p))
        except OSError:
            continue
    stamped.sort(key=lambda t: t[0], reverse=True)
    return [p for _, p in stamped]


def is_session_header(path: Path) -> bool:
    """True when the transcript opens with a `{"type": "session"}` record."""
    first = read_first_line(path)
    if not first:
        return False
    try:
        header = json.loads(first)
    except ValueError:
        return False
    return isinstance(header, dict) and header.get("type") == "session"
