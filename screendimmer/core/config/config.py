#!/usr/bin/env python3
"""ScreenDimmer Config implementation."""

from __future__ import annotations

import logging

from .defaults import DEFAULTS as _DEFAULTS
from .file_storage import load_config_settings, save_config_settings_atomic
from .paths import config_dir, config_file_path
from .settings import DimmerSettings
from ._props import bool_prop, float_prop, int_prop, mapping_prop, str_prop

logger = logging.getLogger(__name__)


class Config:
    """Configuration manager for ScreenDimmer.

    Backed by a JSON file; every setter persists immediately. The engine never
    reads this object directly: it consumes the immutable `DimmerSettings`
    returned by `settings()`.
    """

    DEFAULTS = _DEFAULTS

    def __init__(self):
        # Recompute at runtime so test harnesses can set env vars in conftest.
        self.CONFIG_DIR = config_dir()
        self.CONFIG_FILE = config_file_path()
        self.CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        loaded = self._load()
        self._settings = loaded if loaded is not None else self.DEFAULTS.copy()

    def _load(self, *, retries: int = 3, retry_delay: float = 0.02):
        """Load settings from file.

        Returns None if loading fails after retries.
        """

        return load_config_settings(
            config_file=self.CONFIG_FILE,
            defaults=self.DEFAULTS,
            retries=retries,
            retry_delay=retry_delay,
            logger=logger,
        )

    def reload(self):
        loaded = self._load()
        # If the file was transiently unreadable, keep the previous in-memory settings.
        if loaded is not None:
            self._settings = loaded

    def _save(self):
        save_config_settings_atomic(
            config_dir=self.CONFIG_DIR,
            config_file=self.CONFIG_FILE,
            settings=self._settings,
            logger=logger,
        )

    def settings(self) -> DimmerSettings:
        """Validated snapshot of the current settings.

        Raises ConfigurationError when a value cannot be used.
        """

        return DimmerSettings.from_mapping(self._settings)

    # ---- launch command (list of argv tokens)

    @property
    def lunar_launch_command(self) -> list[str]:
        raw = self._settings.get("lunar_launch_command", None)
        if isinstance(raw, str):
            return raw.split()
        if isinstance(raw, list):
            return [str(a) for a in raw]
        return list(self.DEFAULTS["lunar_launch_command"])

    @lunar_launch_command.setter
    def lunar_launch_command(self, value: list[str] | str):
        if isinstance(value, str):
            value = value.split()
        self._settings["lunar_launch_command"] = [str(a) for a in value]
        self._save()

    @property
    def lunar_process_name(self) -> str | None:
        v = self._settings.get("lunar_process_name", None)
        if v is None:
            return None
        s = str(v).strip()
        return s or None

    @lunar_process_name.setter
    def lunar_process_name(self, value: str | None):
        self._settings["lunar_process_name"] = (str(value).strip() or None) if value is not None else None
        self._save()

    # ---- common settings

    autostart = bool_prop("autostart", default=True)
    logging = bool_prop("logging", default=False)

    idle_timeout = int_prop("idle_timeout", default=300, min_v=1)
    dim_level = int_prop("dim_level", default=10, min_v=-100, max_v=100)
    internal_display_gain = int_prop("internal_display_gain", default=0, min_v=-200, max_v=200)
    default_display_priority = int_prop("default_display_priority", default=999)

    lunar_path = str_prop("lunar_path", default="~/.local/bin/lunar")

    check_interval = float_prop("check_interval", default=5.0, min_v=0.1)
    unlock_debounce_interval = float_prop("unlock_debounce_interval", default=0.5, min_v=0.0)
    display_change_debounce_interval = float_prop("display_change_debounce_interval", default=1.0, min_v=0.0)
    display_change_settle_delay = float_prop("display_change_settle_delay", default=2.0, min_v=0.0)
    unlock_grace_period = float_prop("unlock_grace_period", default=3.0, min_v=0.0)
    screensaver_grace_period = float_prop("screensaver_grace_period", default=3.0, min_v=0.0)
    wake_grace_period = float_prop("wake_grace_period", default=10.0, min_v=0.0)

    # ---- per-display overrides

    display_priorities = mapping_prop("display_priorities")
    display_dim_levels = mapping_prop("display_dim_levels")
