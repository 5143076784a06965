from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


# Enumeration methods that only ever drive a laptop panel.
_INTERNAL_METHODS = frozenset({"sysfiles", "wmi", "light"})
_INTERNAL_NAME_HINTS = ("built-in", "builtin", "internal", "edp", "lvds")


def looks_internal(name: str, method: str = "") -> bool:
    if str(method or "").strip().lower() in _INTERNAL_METHODS:
        return True
    lowered = str(name or "").lower()
    return any(hint in lowered for hint in _INTERNAL_NAME_HINTS)


@dataclass(frozen=True)
class DisplayHandle:
    """A display as reported by the host's enumeration."""

    index: int
    name: str
    edid_name: str = ""
    serial: str = ""
    uuid: str = ""
    method: str = ""
    is_internal: bool = False


@dataclass(frozen=True)
class Display:
    """An enumerated display with its resolved identities."""

    stable_id: str
    handle: DisplayHandle
    lunar_id: Optional[str] = None

    @property
    def name(self) -> str:
        return self.handle.name

    @property
    def index(self) -> int:
        return self.handle.index

    @property
    def is_internal(self) -> bool:
        return bool(self.handle.is_internal)


@dataclass(frozen=True)
class BrightnessSnapshot:
    """Pre-dim state of one display.

    `subzero` is the signed gamma level (-100..-1) or 0 when gamma dimming is off.
    """

    brightness: int
    subzero: int = 0

    @property
    def gamma_active(self) -> bool:
        return self.subzero < 0

    @property
    def level(self) -> int:
        return self.subzero if self.gamma_active else self.brightness
