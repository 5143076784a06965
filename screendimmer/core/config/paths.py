"""Where ScreenDimmer keeps config.json and the tray's instance lock.

Both environment overrides exist for tests and for running a second,
isolated copy next to an installed one.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


CONFIG_DIR_ENV = "SCREENDIMMER_CONFIG_DIR"
CONFIG_PATH_ENV = "SCREENDIMMER_CONFIG_PATH"
CONFIG_FILE_NAME = "config.json"
LOCK_FILE_NAME = "screendimmer.lock"


def _from_env(name: str) -> Optional[Path]:
    raw = os.environ.get(name, "").strip()
    return Path(raw).expanduser() if raw else None


def config_dir() -> Path:
    """$SCREENDIMMER_CONFIG_DIR, else the XDG config home (~/.config) plus "screendimmer"."""

    override = _from_env(CONFIG_DIR_ENV)
    if override is not None:
        return override

    base = _from_env("XDG_CONFIG_HOME") or Path.home() / ".config"
    return base / "screendimmer"


def config_file_path() -> Path:
    # An explicit file wins even when it lives outside config_dir().
    return _from_env(CONFIG_PATH_ENV) or config_dir() / CONFIG_FILE_NAME


def lock_file_path() -> Path:
    return config_dir() / LOCK_FILE_NAME
