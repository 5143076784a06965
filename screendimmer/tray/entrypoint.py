"""`screendimmer` console script.

Sets up logging and the per-user instance lock, then hands control to the
tray icon. Ctrl-C stops the engine's event-loop thread before exiting so no
dim or restore step fires after the icon is gone.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from .application import ScreenDimmerTray
from .startup import acquire_single_instance_or_exit, configure_logging, log_startup_diagnostics_if_debug

logger = logging.getLogger(__name__)


def main() -> None:
    app: Optional[ScreenDimmerTray] = None
    try:
        configure_logging()
        log_startup_diagnostics_if_debug()
        acquire_single_instance_or_exit()

        app = ScreenDimmerTray()
        app.run()

    except KeyboardInterrupt:
        logger.info("Interrupted; stopping ScreenDimmer")
        if app is not None:
            app.runtime.shutdown()
        sys.exit(0)
    except Exception as exc:
        logger.exception("ScreenDimmer tray crashed: %s", exc)
        sys.exit(1)
