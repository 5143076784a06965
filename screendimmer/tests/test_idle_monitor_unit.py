from __future__ import annotations

from screendimmer.core.idle.monitor import CHECK_TAG, RESUME_TAG, IdleMonitor
from screendimmer.core.idle.policy import InputAction


def _monitor(runtime, make_machine, **overrides) -> IdleMonitor:
    machine = make_machine(runtime, **overrides)
    return IdleMonitor(machine, machine.timers)


def test_idle_timeout_triggers_dim(runtime, make_machine) -> None:
    idle = _monitor(runtime, make_machine, dim_level=-75, idle_timeout_s=300.0, check_interval_s=5.0)
    idle.start()

    runtime.advance(295.0)
    assert idle.machine.current_job is None
    assert idle.state.dimmed is False

    runtime.advance(5.0)
    assert idle.machine.state.current_operation is not None

    runtime.advance(2.0)
    assert idle.state.dimmed is True
    assert runtime.lunar.display("4251").dimming == 0.25


def test_recorded_input_postpones_dimming(runtime, make_machine) -> None:
    idle = _monitor(runtime, make_machine, idle_timeout_s=10.0, check_interval_s=1.0)
    idle.start()

    runtime.advance(8.0)
    assert idle.on_user_input("key") is InputAction.RECORD
    runtime.advance(8.0)
    assert idle.state.dimmed is False

    runtime.advance(5.0)
    assert idle.state.dimmed is True


def test_input_while_dimmed_restores(runtime, make_machine) -> None:
    idle = _monitor(runtime, make_machine, dim_level=-75, idle_timeout_s=10.0, check_interval_s=1.0)
    idle.start()
    runtime.advance(13.0)
    assert idle.state.dimmed is True

    assert idle.on_user_input("key") is InputAction.RESTORE
    runtime.advance(5.0)

    assert idle.state.dimmed is False
    assert runtime.lunar.display("4251").subzero is False
    assert runtime.lunar.display("4251").brightness == 70


def test_input_restores_displays_left_by_a_dim_that_missed_the_panel(runtime, make_machine) -> None:
    idle = _monitor(runtime, make_machine, dim_level=-75)
    assert idle.machine.dim(reason="idle") is True
    runtime.lunar.display("4251").failing = True
    runtime.advance(10.0)
    assert idle.state.dimmed is False
    assert runtime.lunar.display("5A3B9C").subzero is True

    runtime.lunar.display("4251").failing = False
    assert idle.on_user_input("mouse") is InputAction.RESTORE
    runtime.advance(5.0)

    assert runtime.lunar.display("5A3B9C").subzero is False
    assert idle.state.snapshots == {}


def test_pause_and_resume_after(runtime, make_machine) -> None:
    idle = _monitor(runtime, make_machine, idle_timeout_s=10.0, check_interval_s=1.0)
    idle.start()
    assert idle.running is True

    idle.pause()
    assert idle.running is False
    runtime.advance(60.0)
    assert idle.state.dimmed is False

    idle.state.unlocking = True
    idle.resume_after(3.0, clear_unlocking=True)
    assert idle.machine.timers.pending(RESUME_TAG) == 1

    runtime.advance(3.0)
    assert idle.running is True
    assert idle.state.unlocking is False
    # The idle clock restarts when checks resume.
    assert idle.state.last_user_action == 63.0


def test_resume_after_does_not_restart_when_disabled(runtime, make_machine) -> None:
    idle = _monitor(runtime, make_machine)
    idle.state.enabled = False

    idle.resume_after(1.0)
    runtime.advance(2.0)

    assert idle.machine.timers.pending(CHECK_TAG) == 0


def test_input_is_throttled(runtime, make_machine) -> None:
    idle = _monitor(runtime, make_machine)

    runtime.advance(10.0)
    assert idle.on_user_input("mouse") is InputAction.RECORD
    runtime.advance(0.05)
    assert idle.on_user_input("mouse") is InputAction.IGNORE
    assert idle.state.last_user_action == 10.0
