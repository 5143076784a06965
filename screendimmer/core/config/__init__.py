#!/usr/bin/env python3
"""ScreenDimmer Configuration Manager.

This package groups the JSON-backed config store and the validated settings
dataclasses the engine consumes.
"""

from __future__ import annotations

from .config import Config
from .file_storage import load_config_settings, save_config_settings_atomic
from .paths import config_dir, config_file_path, lock_file_path
from .settings import DimmerSettings, DisplayConfig, clamp_level


__all__ = [
    "Config",
    "DimmerSettings",
    "DisplayConfig",
    "clamp_level",
    "config_dir",
    "config_file_path",
    "lock_file_path",
    "load_config_settings",
    "save_config_settings_atomic",
]
