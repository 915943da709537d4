"""
Locate the OpenClaw runtime on disk.

  root       → ~/.openclaw, then $OPENCLAW_HOME, then the saved setup config
  workspace  → <root>/workspace, then openclaw.json, then $OPENCLAW_WORKSPACE

A candidate is accepted only if it exists.  None means "not installed here",
which every reader treats as an empty source rather than an error.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from .fileio import load_json

SETUP_DIR_NAME = ".fleetdeck"


def setup_config_path(home: Optional[Path] = None) -> Path:
    """Config file written by a previous `fleetdeck` setup run."""
    return (home or Path.home()) / SETUP_DIR_NAME / "config.json"


def _existing(raw: Any) -> Optional[Path]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    p = Path(raw.strip()).expanduser()
    return p if p.exists() else None


def resolve_root(home: Optional[Path] = None) -> Optional[Path]:
    home = home or Path.home()

    standard = home / ".openclaw"
    if standard.exists():
        return standard

    override = _existing(os.environ.get("OPENCLAW_HOME"))
    if override:
        return override

    saved = load_json(setup_config_path(home))
    if isinstance(saved, dict):
        return _existing(saved.get("openclawPath"))
    return None


def load_runtime_config(root: Optional[Path]) -> dict:
    """Parsed <root>/openclaw.json, or {}."""
    if root is None:
        return {}
    cfg = load_json(root / "openclaw.json")
    return cfg if isinstance(cfg, dict) else {}


def resolve_workspace(root: Optional[Path]) -> Optional[Path]:
    if root is None:
        return None

    ws = root / "workspace"
    if ws.exists():
        return ws

    defaults = (load_runtime_config(root).get("agents") or {}).get("defaults") or {}
    configured = _existing(defaults.get("workspace"))
    if configured:
        return configured

    return _existing(os.environ.get("OPENCLAW_WORKSPACE"))


def resolve_model_str(model: Any) -> str:
    """Safely coerce any model value (str, dict, None) to a plain string."""
    if model is None:
        return ""
    if isinstance(model, str):
        return model
    if isinstance(model, dict):
        # e.g. {'primary': 'anthropic/claude-sonnet-4'}: take the first string value
        for v in model.values():
            if isinstance(v, str) and v:
                return v
        return ""
    return str(model)


def default_model(root: Optional[Path]) -> str:
    cfg = load_runtime_config(root)
    return resolve_model_str(((cfg.get("agents") or {}).get("defaults") or {}).get("model"))


def main_sessions_dir(root: Optional[Path]) -> Optional[Path]:
    return root / "agents" / "main" / "sessions" if root else None
