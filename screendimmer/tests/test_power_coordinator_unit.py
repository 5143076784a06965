from __future__ import annotations

from screendimmer.core.displays.models import DisplayHandle
from screendimmer.core.engine.state import Operation, Phase
from screendimmer.core.idle.monitor import CHECK_TAG
from screendimmer.core.power.coordinator import DISPLAY_CHANGE_REDIM_ATTEMPTS, DISPLAY_CHANGE_TAG
from screendimmer.core.power.events import PowerEvent


def _started(runtime, make_service, **overrides):
    service = make_service(runtime, **overrides)
    assert service.start() is True
    return service


def _dim_now(service, runtime) -> None:
    assert service.machine.dim(reason="test") is True
    runtime.advance(2.0)
    assert service.state.dimmed is True


def _count_restores(service, monkeypatch) -> list:
    calls = []
    orig = service.machine.restore

    def _restore(**kwargs):
        calls.append(kwargs.get("reason"))
        return orig(**kwargs)

    monkeypatch.setattr(service.machine, "restore", _restore)
    return calls


def test_events_ignored_while_disabled(runtime, make_service) -> None:
    service = make_service(runtime)

    service.handle_power_event(PowerEvent.SCREENS_LOCKED)

    assert service.state.locked is False


def test_lock_pauses_idle_and_remembers_dim_state(runtime, make_service) -> None:
    service = _started(runtime, make_service, dim_level=-75)
    _dim_now(service, runtime)

    service.handle_power_event(PowerEvent.SCREENS_LOCKED)

    assert service.state.locked is True
    assert service.state.dimmed_before_lock is True
    assert service.timers.pending(CHECK_TAG) == 0


def test_locked_screen_suppresses_dim_and_restore(runtime, make_service) -> None:
    service = _started(runtime, make_service, dim_level=-75, idle_timeout_s=10.0)
    service.handle_power_event(PowerEvent.SCREENS_LOCKED)

    service.idle.tick()
    runtime.advance(60.0)
    assert service.state.dimmed is False

    service.state.dimmed = True
    assert service.on_user_input("key").value == "ignore"
    assert service.machine.restore(reason="key") is False


def test_duplicate_unlock_events_restore_once(runtime, make_service, monkeypatch) -> None:
    service = _started(runtime, make_service, dim_level=-75)
    _dim_now(service, runtime)
    restores = _count_restores(service, monkeypatch)

    service.handle_power_event(PowerEvent.SCREENS_LOCKED)
    runtime.advance(60.0)
    service.handle_power_event(PowerEvent.SCREENS_UNLOCKED)
    runtime.advance(0.1)
    service.handle_power_event(PowerEvent.SCREENS_UNLOCKED)

    assert restores == ["unlock"]
    assert service.state.locked is False
    assert service.state.unlocking is True

    runtime.advance(5.0)
    assert service.state.dimmed is False
    assert service.state.snapshots == {}
    assert service.state.unlocking is False
    assert service.timers.pending(CHECK_TAG) == 1


def test_unlock_grace_suppresses_input_and_idle(runtime, make_service) -> None:
    service = _started(runtime, make_service, idle_timeout_s=1.0, check_interval_s=0.5)
    service.handle_power_event(PowerEvent.SCREENS_LOCKED)
    service.handle_power_event(PowerEvent.SCREENS_UNLOCKED)

    assert service.on_user_input("key").value == "ignore"
    runtime.advance(2.9)
    assert service.state.dimmed is False
    assert service.phase is Phase.IDLE


def test_screensaver_pauses_idle_and_restores_on_stop(runtime, make_service, monkeypatch) -> None:
    service = _started(runtime, make_service, dim_level=-75)
    _dim_now(service, runtime)
    restores = _count_restores(service, monkeypatch)

    service.handle_power_event(PowerEvent.SCREENSAVER_STARTED)
    assert service.state.screensaver_active is True
    assert service.timers.pending(CHECK_TAG) == 0

    runtime.advance(30.0)
    service.handle_power_event(PowerEvent.SCREENSAVER_STOPPED)

    assert restores == ["screensaver"]
    assert service.state.screensaver_active is False

    # Input right after the transition is not user activity.
    runtime.advance(1.0)
    assert service.on_user_input("mouse").value == "ignore"

    runtime.advance(5.0)
    assert service.state.dimmed is False
    assert service.timers.pending(CHECK_TAG) == 1


def test_hot_plug_redims_new_display_and_keeps_ids(runtime, make_service) -> None:
    service = _started(runtime, make_service, dim_level=-75)
    _dim_now(service, runtime)
    original = dict(service.state.snapshots)

    lg = DisplayHandle(index=2, name="LG HDR 4K", serial="LG001", method="ddcci")
    runtime.displays.append(lg)
    from_lunar = type(runtime.lunar.displays[0])(name="LG HDR 4K", serial="LG001", brightness=80)
    runtime.lunar.displays.append(from_lunar)

    # One reconnect produces a burst of change notifications.
    for _ in range(3):
        service.handle_power_event(PowerEvent.DISPLAYS_CHANGED)
        runtime.advance(0.1)
    assert service.timers.pending(DISPLAY_CHANGE_TAG) == 1

    runtime.advance(5.0)

    assert from_lunar.subzero is True
    assert from_lunar.dimming == 0.25
    assert service.state.dimmed is True
    assert set(service.state.snapshots) == {"4251", "5A3B9C", "LG001"}
    for stable_id, snapshot in original.items():
        assert service.state.snapshots[stable_id] == snapshot
    # Displays that were already dimmed are left alone.
    assert len(runtime.lunar_commands("4251", "subzeroDimming", "0.25")) == 1


def test_hot_plug_while_not_dimmed_does_not_dim(runtime, make_service) -> None:
    service = _started(runtime, make_service, dim_level=-75)

    service.handle_power_event(PowerEvent.DISPLAYS_CHANGED)
    runtime.advance(5.0)

    assert service.state.dimmed is False
    assert runtime.lunar_commands("subzero", "true") == []


def test_hot_plug_resets_dark_internal_panel(runtime, make_service) -> None:
    service = _started(runtime, make_service)
    runtime.lunar.display("4251").brightness = 1

    service.handle_power_event(PowerEvent.DISPLAYS_CHANGED)
    runtime.advance(1.0)

    assert runtime.lunar.display("4251").brightness == 50


def test_sleep_and_wake_restore_pre_sleep_brightness(runtime, make_service) -> None:
    service = _started(runtime, make_service, dim_level=10)
    _dim_now(service, runtime)
    assert runtime.lunar.display("4251").brightness == 10

    service.handle_power_event(PowerEvent.WILL_SLEEP)
    assert service.state.sleep_snapshots == {"4251": 70, "5A3B9C": 70}
    assert service.timers.pending(CHECK_TAG) == 0

    runtime.advance(3600.0)
    service.handle_power_event(PowerEvent.DID_WAKE)
    assert service.state.waking is True

    runtime.advance(5.0)
    assert runtime.lunar.display("4251").brightness == 70
    assert runtime.lunar.display("5A3B9C").brightness == 70
    assert service.state.dimmed is False
    assert service.state.sleep_snapshots == {}
    assert service.state.waking is True

    runtime.advance(service.settings.wake_grace_s)
    assert service.state.waking is False
    assert service.timers.pending(CHECK_TAG) == 1


def test_sleep_during_dim_keeps_pre_dim_brightness(runtime, make_service) -> None:
    service = _started(runtime, make_service, dim_level=10)
    assert service.machine.dim(reason="idle") is True
    runtime.advance(0.1)
    assert service.phase is Phase.DIMMING
    assert runtime.lunar.display("4251").brightness == 10

    service.handle_power_event(PowerEvent.WILL_SLEEP)
    assert service.state.sleep_snapshots == {"4251": 70, "5A3B9C": 70}

    runtime.advance(3600.0)
    service.handle_power_event(PowerEvent.DID_WAKE)
    runtime.advance(5.0)

    assert runtime.lunar.display("4251").brightness == 70
    assert runtime.lunar.display("5A3B9C").brightness == 70


def test_hot_plug_during_restore_redims_once_it_settles(runtime, make_service) -> None:
    service = _started(runtime, make_service, dim_level=-75)
    _dim_now(service, runtime)
    # A restore that never finishes keeps the operation lock busy.
    service.machine.restore(reason="key")
    service.machine.timers.cancel("job:restore")

    lg = DisplayHandle(index=2, name="LG HDR 4K", serial="LG001", method="ddcci")
    runtime.displays.append(lg)
    from_lunar = type(runtime.lunar.displays[0])(name="LG HDR 4K", serial="LG001", brightness=80)
    runtime.lunar.displays.append(from_lunar)

    service.handle_power_event(PowerEvent.DISPLAYS_CHANGED)
    runtime.advance(2.5)
    assert service.state.operation_in_progress is True
    assert service.timers.pending(DISPLAY_CHANGE_TAG) == 1
    assert from_lunar.subzero is False

    # The watchdog clears the stuck restore; the pending re-dim then runs.
    runtime.advance(40.0)

    assert service.state.dimmed is True
    assert from_lunar.subzero is True
    assert from_lunar.dimming == 0.25
    assert "LG001" in service.state.snapshots


def test_hot_plug_redim_gives_up_after_bounded_retries(runtime, make_service) -> None:
    service = _started(runtime, make_service, dim_level=-75)
    _dim_now(service, runtime)
    service.state.current_operation = Operation.RESTORE

    service.handle_power_event(PowerEvent.DISPLAYS_CHANGED)
    runtime.advance(service.settings.display_change_settle_s * (DISPLAY_CHANGE_REDIM_ATTEMPTS + 1))

    assert service.timers.pending(DISPLAY_CHANGE_TAG) == 0
    assert service.machine.current_job is None


def test_unlock_restores_dim_recorded_at_lock(runtime, make_service, monkeypatch) -> None:
    service = _started(runtime, make_service, dim_level=-75)
    restores = _count_restores(service, monkeypatch)

    # Locked while the dim was still being applied.
    service.machine.dim(reason="idle")
    service.handle_power_event(PowerEvent.SCREENS_LOCKED)
    assert service.state.dimmed_before_lock is True

    runtime.advance(60.0)
    assert service.state.dimmed is True

    service.handle_power_event(PowerEvent.SCREENS_UNLOCKED)
    assert restores == ["unlock"]
    assert service.state.dimmed_before_lock is False

    runtime.advance(5.0)
    assert service.state.dimmed is False
    assert runtime.lunar.display("4251").subzero is False


def test_unlock_without_dim_does_not_restore(runtime, make_service, monkeypatch) -> None:
    service = _started(runtime, make_service, dim_level=-75)
    restores = _count_restores(service, monkeypatch)

    service.handle_power_event(PowerEvent.SCREENS_LOCKED)
    assert service.state.dimmed_before_lock is False
    runtime.advance(60.0)
    service.handle_power_event(PowerEvent.SCREENS_UNLOCKED)

    assert restores == []


def test_wake_cancels_in_flight_operation(runtime, make_service) -> None:
    service = _started(runtime, make_service, dim_level=-75)
    service.machine.dim(reason="idle")
    assert service.phase is Phase.DIMMING

    service.handle_power_event(PowerEvent.DID_WAKE)

    assert service.machine.current_job is None
    assert service.state.current_operation is None

    runtime.advance(3.0)
    assert service.phase is not Phase.DIMMING


def test_wake_input_does_not_dim_during_grace(runtime, make_service) -> None:
    service = _started(runtime, make_service, idle_timeout_s=1.0, check_interval_s=0.5)
    service.handle_power_event(PowerEvent.DID_WAKE)

    runtime.advance(service.settings.wake_grace_s)
    assert service.state.dimmed is False
