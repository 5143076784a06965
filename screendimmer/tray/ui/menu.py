from __future__ import annotations

from typing import Any


def build_menu_items(tray: Any, *, pystray: Any, item: Any) -> list[Any]:
    service = tray.service
    state = service.state

    return [
        item(
            lambda _item: f"ScreenDimmer: {service.status_text()}",
            lambda _icon, _item: None,
            enabled=False,
        ),
        pystray.Menu.SEPARATOR,
        item(
            "Enabled",
            tray._on_toggle_enabled_clicked,
            checked=lambda _i: state.enabled,
            enabled=lambda _i: state.initialized,
        ),
        item(
            lambda _item: "Restore" if state.restore_pending else "Dim now",
            tray._on_toggle_dim_clicked,
            enabled=lambda _i: state.enabled,
        ),
        item(
            "Reset all displays",
            tray._on_reset_clicked,
            enabled=lambda _i: state.initialized and not state.reset_in_progress,
        ),
        pystray.Menu.SEPARATOR,
        item("Quit", tray._on_quit_clicked),
    ]


def build_menu(tray: Any, *, pystray: Any, item: Any) -> Any:
    """Build a pystray.Menu object."""

    return pystray.Menu(*build_menu_items(tray, pystray=pystray, item=item))
