"""Tray application class.

pystray owns the main thread; the dimming service runs on the asyncio loop
thread owned by `AsyncioHostRuntime`. Menu callbacks therefore never touch the
service directly, they post to the loop.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from screendimmer.core.config import Config
from screendimmer.core.runtime.host import AsyncioHostRuntime
from screendimmer.core.service import ScreenDimmer
from screendimmer.core.utils.exceptions import ConfigurationError

from .config_polling import ConfigPoller
from .integrations import runtime
from .startup import configure_logging
from .ui import icon as icon_mod
from .ui import menu as menu_mod

logger = logging.getLogger(__name__)


UI_REFRESH_TAG = "ui-refresh"
UI_REFRESH_INTERVAL_S = 1.0


class ScreenDimmerTray:
    """System tray application for ScreenDimmer."""

    def __init__(self):
        self.config = Config()
        self.apply_logging_level(self.config.logging)

        self.runtime = AsyncioHostRuntime(alert_fn=self._notify)
        try:
            settings = self.config.settings()
        except ConfigurationError as exc:
            logger.error("Invalid configuration, using defaults: %s", exc)
            settings = None
        self.service = ScreenDimmer(self.runtime, settings)
        self.config_poller = ConfigPoller(self)
        self.icon = None
        self._last_visual = None

    # ---- logging

    @staticmethod
    def apply_logging_level(debug: bool) -> None:
        configure_logging(debug=bool(debug))

    # ---- alerts

    def _notify(self, message: str) -> bool:
        icon = self.icon
        if icon is None or not getattr(icon, "HAS_NOTIFICATION", False):
            return False
        icon.notify(message, "ScreenDimmer")
        return True

    # ---- ui

    def refresh_ui(self) -> None:
        icon = self.icon
        if icon is None:
            return
        state = self.service.state
        visual = (state.enabled, self.service.phase)
        if visual != self._last_visual:
            self._last_visual = visual
            icon.icon = icon_mod.icon_for(enabled=state.enabled, phase=self.service.phase)
            icon.title = f"ScreenDimmer: {self.service.status_text()}"
        icon.update_menu()

    def _post(self, fn: Callable[[], object]) -> None:
        def _run() -> None:
            fn()
            self.refresh_ui()

        self.runtime.post(_run)

    # ---- startup (loop thread)

    def _boot(self) -> None:
        service = self.service
        service.init()
        try:
            service.configure(service.settings)
        except ConfigurationError as exc:
            self.runtime.alert(str(exc))
            self.refresh_ui()
            return

        self.config_poller.start()
        service.timers.call_every(UI_REFRESH_INTERVAL_S, self.refresh_ui, tag=UI_REFRESH_TAG)
        if self.config.autostart:
            service.start()
        self.refresh_ui()

    # ---- menu callbacks (pystray thread)

    def _on_toggle_enabled_clicked(self, _icon, _item):
        self._post(self.service.toggle)

    def _on_toggle_dim_clicked(self, _icon, _item):
        self._post(self.service.toggle_dim)

    def _on_reset_clicked(self, _icon, _item):
        self._post(self.service.reset_all_displays)

    def _on_quit_clicked(self, icon, _item):
        self.runtime.post(lambda: self.service.stop(restore=False))
        self.runtime.shutdown()
        icon.stop()

    # ---- run

    def run(self):
        pystray, item = runtime.get_pystray()

        self.runtime.start()

        logger.info("Creating tray icon...")
        self.icon = pystray.Icon(
            "screendimmer",
            icon_mod.icon_for(enabled=False, phase=self.service.phase),
            "ScreenDimmer",
            menu=menu_mod.build_menu(self, pystray=pystray, item=item),
        )

        self.runtime.post(self._boot)
        logger.info("ScreenDimmer tray app started")
        self.icon.run()
