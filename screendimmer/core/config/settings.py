"""Validated, immutable settings consumed by the dimming engine.

`Config` (the JSON store) is forgiving and coerces whatever is on disk. This
module is the strict side: `DimmerSettings.from_mapping()` validates eagerly
and raises `ConfigurationError` for values the engine cannot work with.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

from screendimmer.core.utils.exceptions import ConfigurationError

from .defaults import DEFAULTS


MIN_LEVEL = -100
MAX_LEVEL = 100


def clamp_level(value: int) -> int:
    return max(MIN_LEVEL, min(MAX_LEVEL, int(value)))


@dataclass(frozen=True)
class DisplayConfig:
    """Per-display override.

    `key` is matched against the display's stable identifier first and its
    reported name second, so users can write either in config.json.
    """

    key: str
    priority: Optional[int] = None
    dim_level: Optional[int] = None


@dataclass(frozen=True)
class DimmerSettings:
    idle_timeout_s: float = 300.0
    dim_level: int = 10
    internal_display_gain: int = 0
    lunar_path: str = "~/.local/bin/lunar"
    lunar_process_name: Optional[str] = None
    lunar_launch_command: tuple[str, ...] = ()
    logging: bool = False
    check_interval_s: float = 5.0
    unlock_debounce_s: float = 0.5
    display_change_debounce_s: float = 1.0
    display_change_settle_s: float = 2.0
    unlock_grace_s: float = 3.0
    screensaver_grace_s: float = 3.0
    wake_grace_s: float = 10.0
    default_display_priority: int = 999
    displays: tuple[DisplayConfig, ...] = ()

    def __post_init__(self) -> None:
        if not str(self.lunar_path or "").strip():
            raise ConfigurationError("Lunar CLI path not configured; set lunar_path")

        for name in ("idle_timeout_s", "check_interval_s"):
            if float(getattr(self, name)) <= 0:
                raise ConfigurationError(f"{name} must be positive")

        for name in (
            "unlock_debounce_s",
            "display_change_debounce_s",
            "display_change_settle_s",
            "unlock_grace_s",
            "screensaver_grace_s",
            "wake_grace_s",
        ):
            if float(getattr(self, name)) < 0:
                raise ConfigurationError(f"{name} must not be negative")

        if not MIN_LEVEL <= int(self.dim_level) <= MAX_LEVEL:
            raise ConfigurationError(f"dim_level must be within {MIN_LEVEL}..{MAX_LEVEL}, got {self.dim_level}")

        seen: set[str] = set()
        for dc in self.displays:
            if dc.key in seen:
                raise ConfigurationError(f"Duplicate display configuration for {dc.key!r}")
            seen.add(dc.key)
            if dc.dim_level is not None and not MIN_LEVEL <= int(dc.dim_level) <= MAX_LEVEL:
                raise ConfigurationError(f"dim level for {dc.key!r} must be within {MIN_LEVEL}..{MAX_LEVEL}")

    # ---- lookups

    def display_config(self, stable_id: str, name: str = "") -> Optional[DisplayConfig]:
        by_key = {dc.key: dc for dc in self.displays}
        if stable_id in by_key:
            return by_key[stable_id]
        if name and name in by_key:
            return by_key[name]
        return None

    def priority_for(self, stable_id: str, name: str = "") -> int:
        dc = self.display_config(stable_id, name)
        if dc is None or dc.priority is None:
            return int(self.default_display_priority)
        return int(dc.priority)

    def dim_level_override(self, stable_id: str, name: str = "") -> Optional[int]:
        dc = self.display_config(stable_id, name)
        return None if dc is None else dc.dim_level

    def with_overrides(self, **overrides: Any) -> "DimmerSettings":
        return dataclasses.replace(self, **overrides)

    # ---- construction

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DimmerSettings":
        """Build settings from a config.json-style mapping (missing keys use DEFAULTS)."""

        merged = {**DEFAULTS, **dict(data or {})}

        try:
            priorities = {str(k): int(v) for k, v in dict(merged.get("display_priorities") or {}).items()}
            dim_levels = {str(k): int(v) for k, v in dict(merged.get("display_dim_levels") or {}).items()}
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid per-display configuration: {exc}") from exc

        displays = tuple(
            DisplayConfig(key=key, priority=priorities.get(key), dim_level=dim_levels.get(key))
            for key in sorted(set(priorities) | set(dim_levels))
        )

        process_name = merged.get("lunar_process_name")
        launch = merged.get("lunar_launch_command") or ()
        if isinstance(launch, str):
            launch = launch.split()

        try:
            return cls(
                idle_timeout_s=float(merged["idle_timeout"]),
                dim_level=int(merged["dim_level"]),
                internal_display_gain=int(merged.get("internal_display_gain") or 0),
                lunar_path=str(merged.get("lunar_path") or ""),
                lunar_process_name=str(process_name) if process_name else None,
                lunar_launch_command=tuple(str(a) for a in launch),
                logging=bool(merged.get("logging", False)),
                check_interval_s=float(merged["check_interval"]),
                unlock_debounce_s=float(merged["unlock_debounce_interval"]),
                display_change_debounce_s=float(merged["display_change_debounce_interval"]),
                display_change_settle_s=float(merged["display_change_settle_delay"]),
                unlock_grace_s=float(merged["unlock_grace_period"]),
                screensaver_grace_s=float(merged["screensaver_grace_period"]),
                wake_grace_s=float(merged["wake_grace_period"]),
                default_display_priority=int(merged["default_display_priority"]),
                displays=displays,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid configuration value: {exc}") from exc
