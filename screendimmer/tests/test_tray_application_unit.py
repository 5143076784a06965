from __future__ import annotations

import json

import pytest
from PIL import Image

import screendimmer.tray.application as application

LUNAR = "/usr/local/bin/lunar"


class _Icon:
    HAS_NOTIFICATION = True

    def __init__(self):
        self.icon = None
        self.title = None
        self.menu_updates = 0
        self.notifications = []
        self.stopped = False

    def update_menu(self):
        self.menu_updates += 1

    def notify(self, message, title=None):
        self.notifications.append((message, title))

    def stop(self):
        self.stopped = True


@pytest.fixture
def make_tray(monkeypatch, tmp_path, make_runtime):
    monkeypatch.setenv("SCREENDIMMER_CONFIG_DIR", str(tmp_path))
    monkeypatch.delenv("SCREENDIMMER_CONFIG_PATH", raising=False)
    monkeypatch.setattr(application, "configure_logging", lambda **_kwargs: None)

    def _make(config=None, **lunar_kwargs):
        data = {"lunar_path": LUNAR, "lunar_process_name": None, "lunar_launch_command": []}
        data.update(config or {})
        (tmp_path / "config.json").write_text(json.dumps(data), encoding="utf-8")

        rt = make_runtime(**lunar_kwargs)
        rt.shutdown = lambda: None
        monkeypatch.setattr(application, "AsyncioHostRuntime", lambda alert_fn=None: rt)
        return application.ScreenDimmerTray()

    return _make


def test_boot_configures_and_starts_service(make_tray) -> None:
    tray = make_tray()
    tray.icon = _Icon()

    tray._boot()

    assert tray.service.state.initialized is True
    assert tray.service.state.enabled is True
    assert tray.service.timers.pending(application.UI_REFRESH_TAG) == 1
    assert tray.icon.title == "ScreenDimmer: Active"
    assert isinstance(tray.icon.icon, Image.Image)


def test_boot_without_autostart_stays_disabled(make_tray) -> None:
    tray = make_tray({"autostart": False})

    tray._boot()

    assert tray.service.state.initialized is True
    assert tray.service.state.enabled is False


def test_boot_alerts_when_lunar_unusable(make_tray) -> None:
    tray = make_tray(help_ok=False)

    tray._boot()

    assert tray.service.state.initialized is False
    assert tray.service.state.enabled is False
    assert any("Lunar CLI not usable" in a for a in tray.runtime.alerts)


def test_refresh_ui_only_redraws_on_visual_change(make_tray) -> None:
    tray = make_tray()
    tray.icon = _Icon()
    tray._boot()

    first = tray.icon.icon
    tray.icon.icon = None
    tray.refresh_ui()

    assert tray.icon.icon is None
    assert tray.icon.menu_updates >= 2

    tray._on_toggle_enabled_clicked(tray.icon, None)
    assert tray.service.state.enabled is False
    assert tray.icon.title == "ScreenDimmer: Disabled"
    assert tray.icon.icon is not None
    assert tray.icon.icon is not first


def test_notify_uses_icon_notifications(make_tray) -> None:
    tray = make_tray()

    assert tray._notify("hello") is False

    tray.icon = _Icon()
    assert tray._notify("hello") is True
    assert tray.icon.notifications == [("hello", "ScreenDimmer")]


def test_quit_stops_service_and_icon(make_tray) -> None:
    tray = make_tray()
    tray.icon = _Icon()
    tray._boot()

    tray._on_quit_clicked(tray.icon, None)

    assert tray.service.state.enabled is False
    assert tray.icon.stopped is True
