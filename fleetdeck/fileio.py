"""
Best-effort file readers.

None of these raise on I/O or parse errors; callers get an empty value and
treat it as "source unavailable".
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger("fleetdeck")

# Files below this size are read whole.
SMALL_FILE_BYTES = 512_000
# Average bytes per JSONL line assumed when sizing the tail window.
BYTES_PER_LINE = 2_000


def load_json(path: Path) -> Optional[Any]:
    """Parse a JSON file, return None on any failure."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("unreadable json %s: %s", path, exc)
        return None


def read_text(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def read_first_line(path: Path) -> Optional[str]:
    """Return the first line of a file without reading the rest of it."""
    try:
        with open(path, "rb") as fh:
            raw = fh.readline()
    except OSError:
        return None
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


def tail_window(size: int, desired_lines: int) -> int:
    """Number of trailing bytes read for a large file."""
    return min(size, desired_lines * BYTES_PER_LINE)


def _last_nonblank(raw: str, desired_lines: int) -> list[str]:
    lines = [l for l in raw.splitlines() if l.strip()]
    if desired_lines <= 0:
        return []
    return lines[-desired_lines:]


def tail_lines(path: Path, desired_lines: int = 100) -> list[str]:
    """
    Return the last `desired_lines` non-blank lines, oldest first.

    Small files are read whole.  Larger ones are read from the end in a
    single window of tail_window() bytes, so the first returned fragment
    may be a partial line.
    """
    try:
        size = path.stat().st_size
        if size == 0:
            return []

        if size < SMALL_FILE_BYTES:
            raw = path.read_text(encoding="utf-8", errors="replace")
            return _last_nonblank(raw, desired_lines)

        chunk = tail_window(size, desired_lines)
        with open(path, "rb") as fh:
            fh.seek(size - chunk)
            raw = fh.read(chunk).decode("utf-8", errors="replace")
        return _last_nonblank(raw, desired_lines)
    except OSError as exc:
        logger.debug("tail failed for %s: %s", path, exc)
        return []
