"""Timestamp coercion and human-relative rendering."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional


# fromisoformat before 3.11 only accepts 3 or 6 fractional digits.
_FRACTION_RE = re.compile(r"\.(\d+)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_ts(value: Any) -> Optional[datetime]:
    """Coerce an ISO string, epoch-milliseconds number or datetime to aware UTC."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        if value != value or value <= 0:
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            return None
        return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
    return None


def to_iso(ts: Optional[datetime]) -> Optional[str]:
    if ts is None:
        return None
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def relative_time(ts: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Render a past instant as '42s ago' / '5m ago' / '3h ago' / '2d ago'."""
    if ts is None:
        return "unknown"
    now = now or utc_now()
    diff = (now - ts).total_seconds()
    if diff < 0:
        return "just now"

    seconds = int(diff)
    if seconds < 60:
        return f"{seconds}s ago"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def until_time(ts: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Render a future instant as 'in 5m'; past instants read as 'overdue'."""
    if ts is None:
        return "unknown"
    now = now or utc_now()
    diff = (ts - now).total_seconds()
    if diff < 0:
        return "overdue"

    seconds = int(diff)
    if seconds < 60:
        return f"in {seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"in {minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"in {hours}h"
    return f"in {hours // 24}d"
