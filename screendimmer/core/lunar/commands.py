"""Lunar CLI argv builders and output parsers.

Levels use one signed scale: -100..-1 is subzero (gamma) dimming, 0..100 is
hardware brightness. Subzero level L maps to `subzeroDimming` (100 + L) / 100.
"""

from __future__ import annotations

import os
import re
from typing import Optional


_BRIGHTNESS_RE = re.compile(r"brightness:\s*(\d+)")
_SUBZERO_DIMMING_RE = re.compile(r"subzeroDimming:\s*([\d.]+)")


def expand_tool_path(tool: str) -> str:
    return os.path.expanduser(str(tool or "").strip())


def _display(tool: str, display_id: str) -> list[str]:
    return [expand_tool_path(tool), "displays", str(display_id)]


def help_argv(tool: str) -> list[str]:
    return [expand_tool_path(tool), "--help"]


def list_displays_argv(tool: str) -> list[str]:
    return [expand_tool_path(tool), "displays"]


def read_brightness_argv(tool: str, display_id: str) -> list[str]:
    return _display(tool, display_id) + ["brightness", "--read"]


def set_brightness_argv(tool: str, display_id: str, value: int) -> list[str]:
    value = max(0, min(100, int(value)))
    return _display(tool, display_id) + ["brightness", str(value)]


def set_subzero_argv(tool: str, display_id: str, enabled: bool) -> list[str]:
    return _display(tool, display_id) + ["subzero", "true" if enabled else "false"]


def read_subzero_dimming_argv(tool: str, display_id: str) -> list[str]:
    return _display(tool, display_id) + ["subzeroDimming"]


def set_subzero_dimming_argv(tool: str, display_id: str, level: int) -> list[str]:
    return _display(tool, display_id) + ["subzeroDimming", format_subzero_dimming(level)]


def reset_gamma_argv(tool: str, display_id: str) -> list[str]:
    return _display(tool, display_id) + ["gamma", "reset"]


def level_to_subzero_dimming(level: int) -> float:
    level = max(-100, min(0, int(level)))
    return (100 + level) / 100.0


def format_subzero_dimming(level: int) -> str:
    return f"{level_to_subzero_dimming(level):.2f}"


def subzero_dimming_to_level(value: float) -> int:
    # round, not floor: 0.25 reads back as -75 even when the float is 0.2499999.
    return max(-100, min(0, int(round(float(value) * 100 - 100))))


def parse_brightness(output: str) -> Optional[int]:
    m = _BRIGHTNESS_RE.search(output or "")
    if not m:
        return None
    return int(m.group(1))


def parse_subzero_level(output: str) -> Optional[int]:
    """Signed subzero level from `subzeroDimming: X.XX` output (0 when inactive)."""

    m = _SUBZERO_DIMMING_RE.search(output or "")
    if not m:
        return None
    try:
        return subzero_dimming_to_level(float(m.group(1)))
    except ValueError:
        return None
