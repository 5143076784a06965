"""Pick up config.json edits while the tray is running."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from screendimmer.core.logging_utils import log_throttled
from screendimmer.core.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


CONFIG_POLL_TAG = "config-poll"
CONFIG_POLL_INTERVAL_S = 2.0


def _mtime(path: Path) -> Optional[float]:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


class ConfigPoller:
    """Re-applies settings when the config file's mtime changes.

    Runs on the loop thread (scheduled through the service's timer registry).
    """

    def __init__(self, tray: Any):
        self.tray = tray
        self._last_mtime = _mtime(tray.config.CONFIG_FILE)

    def start(self) -> None:
        timers = self.tray.service.timers
        timers.cancel(CONFIG_POLL_TAG)
        timers.call_every(CONFIG_POLL_INTERVAL_S, self.poll_once, tag=CONFIG_POLL_TAG)

    def poll_once(self) -> bool:
        """Returns True when new settings were applied."""

        mtime = _mtime(self.tray.config.CONFIG_FILE)
        if mtime is None or mtime == self._last_mtime:
            return False
        self._last_mtime = mtime

        config = self.tray.config
        config.reload()
        try:
            settings = config.settings()
            self.tray.service.configure(settings)
        except ConfigurationError as exc:
            log_throttled(
                logger,
                "tray.config_invalid",
                interval_s=30,
                level=logging.ERROR,
                msg=f"Ignoring config change: {exc}",
            )
            return False

        logger.info("Configuration reloaded")
        self.tray.apply_logging_level(settings.logging)
        self.tray.refresh_ui()
        return True
