from __future__ import annotations

from typing import Any


def bool_prop(key: str, *, default: bool) -> property:
    def _get(self) -> bool:
        try:
            return bool(self._settings.get(key, default))
        except Exception:
            return bool(default)

    def _set(self, value: bool) -> None:
        self._settings[key] = bool(value)
        self._save()

    return property(_get, _set)


def int_prop(key: str, *, default: int, min_v: int | None = None, max_v: int | None = None) -> property:
    def _clamp(v: int) -> int:
        if min_v is not None:
            v = max(int(min_v), v)
        if max_v is not None:
            v = min(int(max_v), v)
        return v

    def _get(self) -> int:
        raw = self._settings.get(key, default)
        try:
            v = int(raw if raw is not None else default)
        except Exception:
            v = int(default)
        return _clamp(v)

    def _set(self, value: int) -> None:
        try:
            v = int(value)
        except Exception:
            v = int(default)
        self._settings[key] = _clamp(v)
        self._save()

    return property(_get, _set)


def float_prop(key: str, *, default: float, min_v: float | None = None) -> property:
    def _get(self) -> float:
        raw = self._settings.get(key, default)
        try:
            v = float(raw if raw is not None else default)
        except Exception:
            v = float(default)
        if min_v is not None:
            v = max(float(min_v), v)
        return v

    def _set(self, value: float) -> None:
        try:
            v = float(value)
        except Exception:
            v = float(default)
        if min_v is not None:
            v = max(float(min_v), v)
        self._settings[key] = v
        self._save()

    return property(_get, _set)


def str_prop(key: str, *, default: str) -> property:
    def _get(self) -> str:
        v = self._settings.get(key, default)
        if v is None:
            return default
        return str(v).strip()

    def _set(self, value: str) -> None:
        self._settings[key] = str(value or "").strip()
        self._save()

    return property(_get, _set)


def mapping_prop(key: str) -> property:
    """A ``{name: int}`` mapping setting (per-display priorities / dim levels)."""

    def _get(self) -> dict[str, int]:
        raw: Any = self._settings.get(key, None)
        if not isinstance(raw, dict):
            return {}
        out: dict[str, int] = {}
        for name, value in raw.items():
            try:
                out[str(name)] = int(value)
            except (TypeError, ValueError):
                continue
        return out

    def _set(self, value: dict[str, int] | None) -> None:
        self._settings[key] = {str(k): int(v) for k, v in (value or {}).items()}
        self._save()

    return property(_get, _set)
