from __future__ import annotations

import logging
import os
import sys

from ..integrations import runtime


logger = logging.getLogger(__name__)


def debug_requested() -> bool:
    return bool(os.environ.get("SCREENDIMMER_DEBUG"))


def configure_logging(*, debug: bool = False) -> None:
    """Configure root logging for the tray app.

    If callers already configured logging handlers, only the level is adjusted.
    """

    level = logging.DEBUG if (debug or debug_requested()) else logging.INFO
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        return

    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def log_startup_diagnostics_if_debug() -> None:
    """Log the enumerated displays on startup when SCREENDIMMER_DEBUG is set.

    Best-effort only; must never fail app startup.
    """

    if not debug_requested():
        return

    try:
        from screendimmer.core.runtime.host import AsyncioHostRuntime

        for handle in AsyncioHostRuntime().list_displays():
            logger.debug(
                "Display %d: %s (serial %s, method %s, internal %s)",
                handle.index,
                handle.name,
                handle.serial or "-",
                handle.method or "-",
                handle.is_internal,
            )
    except Exception as exc:
        logger.debug("Startup diagnostics failed: %s", exc)


def acquire_single_instance_or_exit() -> None:
    """Acquire the tray single-instance lock or exit with code 0."""

    if runtime.acquire_single_instance_lock():
        return

    logger.error("ScreenDimmer is already running (lock held). Not starting a second instance.")
    sys.exit(0)
