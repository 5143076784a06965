from __future__ import annotations

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any


# Keys written by early releases that used camelCase names.
_LEGACY_KEYS = {
    "idleTimeout": "idle_timeout",
    "dimLevel": "dim_level",
    "internalDisplayGainLevel": "internal_display_gain",
    "lunarPath": "lunar_path",
    "checkInterval": "check_interval",
    "unlockDebounceInterval": "unlock_debounce_interval",
    "displayPriorities": "display_priorities",
    "defaultDisplayPriority": "default_display_priority",
}


def _migrate_legacy_keys(loaded: dict[str, Any]) -> dict[str, Any]:
    out = dict(loaded)
    for old, new in _LEGACY_KEYS.items():
        if old in out:
            value = out.pop(old)
            out.setdefault(new, value)
    return out


def load_config_settings(
    *,
    config_file: Path,
    defaults: dict[str, Any],
    retries: int = 3,
    retry_delay: float = 0.02,
    logger,
) -> dict[str, Any] | None:
    """Load config JSON with retries for transient partial writes.

    Returns a merged dict of `{**defaults, **loaded}` when successful.
    Returns a copy of `defaults` when the file does not exist.
    Returns None when loading fails after retries.
    """

    if not config_file.exists():
        return dict(defaults)

    last_error: Exception | None = None
    for _ in range(max(1, retries)):
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if not isinstance(loaded, dict):
                loaded = {}

            return {**defaults, **_migrate_legacy_keys(loaded)}
        except json.JSONDecodeError as e:
            last_error = e
            time.sleep(retry_delay)
        except Exception as e:
            last_error = e
            break

    logger.warning("Failed to load config: %s", last_error)
    return None


def save_config_settings_atomic(*, config_dir: Path, config_file: Path, settings: dict[str, Any], logger) -> None:
    """Save config JSON atomically (write temp file then replace)."""

    try:
        config_dir.mkdir(parents=True, exist_ok=True)

        tmp_fd, tmp_path = tempfile.mkstemp(prefix="config.", suffix=".tmp", dir=str(config_dir))
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
                json.dump(settings, f, indent=2, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, config_file)
        finally:
            try:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
            except OSError as exc:
                logger.debug("Failed to remove temp config file %s: %s", tmp_path, exc)

    except Exception as e:
        logger.warning("Failed to save config: %s", e)
