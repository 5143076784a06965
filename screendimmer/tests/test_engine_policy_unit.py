from __future__ import annotations

import pytest

from screendimmer.core.displays.models import BrightnessSnapshot
from screendimmer.core.engine import policy
from screendimmer.core.engine.state import NEVER, Operation, OperationState, Phase


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"base_level": -75}, -75),
        ({"base_level": 10}, 10),
        ({"base_level": 0}, -1),
        ({"base_level": 10, "override": -90}, -90),
        ({"base_level": 10, "override": 0}, -1),
        ({"base_level": -20, "is_internal": True, "internal_gain": 20}, -1),
        ({"base_level": -20, "is_internal": False, "internal_gain": 20}, -20),
        ({"base_level": -90, "is_internal": True, "internal_gain": -30}, -100),
        ({"base_level": 90, "is_internal": True, "internal_gain": 30}, 100),
    ],
)
def test_dim_target(kwargs, expected) -> None:
    assert policy.dim_target(**kwargs) == expected


def test_should_dim_never_brightens() -> None:
    assert policy.should_dim(-75, 70) is True
    assert policy.should_dim(10, 70) is True
    assert policy.should_dim(10, 10) is False
    assert policy.should_dim(10, 5) is False
    assert policy.should_dim(-75, -80) is False


def test_tolerances_and_retry_budgets() -> None:
    assert policy.dim_tolerance(-75) == 1
    assert policy.dim_tolerance(1) == 1
    assert policy.dim_tolerance(10) == 5

    assert policy.restore_tolerance(is_internal=True) == 5
    assert policy.restore_tolerance(is_internal=False) == 10
    assert policy.restore_retries(is_internal=True) == 1
    assert policy.restore_retries(is_internal=False) == 3

    assert policy.dim_verify_delay(waking=False) == 0.5
    assert policy.dim_verify_delay(waking=True) == 1.5


def test_within() -> None:
    assert policy.within(74, 70, 5) is True
    assert policy.within(76, 70, 5) is False
    assert policy.within(None, 70, 100) is False


def test_is_abnormally_low() -> None:
    assert policy.is_abnormally_low(None) is False
    assert policy.is_abnormally_low(BrightnessSnapshot(brightness=70)) is False
    assert policy.is_abnormally_low(BrightnessSnapshot(brightness=4)) is True
    assert policy.is_abnormally_low(BrightnessSnapshot(brightness=70, subzero=-40)) is True


def test_snapshot_level_uses_gamma_when_active() -> None:
    assert BrightnessSnapshot(brightness=70).level == 70
    assert BrightnessSnapshot(brightness=70, subzero=-75).level == -75
    assert BrightnessSnapshot(brightness=70, subzero=-75).gamma_active is True


def test_operation_lock_is_exclusive() -> None:
    state = OperationState()

    assert state.try_acquire(Operation.DIM) is True
    assert state.try_acquire(Operation.RESTORE) is False
    assert state.operation_in_progress is True

    state.release(Operation.RESTORE)
    assert state.current_operation is Operation.DIM

    state.release(Operation.DIM)
    assert state.try_acquire(Operation.RESTORE) is True


def test_reset_returns_to_baseline() -> None:
    state = OperationState(dimmed=True, failed_restore_attempts=2, waking=True)
    state.snapshots["a"] = BrightnessSnapshot(brightness=70)
    state.sleep_snapshots["a"] = 70
    state.try_acquire(Operation.RESTORE)

    state.reset(now=42.0)

    assert state.dimmed is False
    assert state.failed_restore_attempts == 0
    assert state.snapshots == {}
    assert state.sleep_snapshots == {}
    assert state.current_operation is None
    assert state.last_user_action == 42.0
    assert state.last_emergency_reset == NEVER


def test_phase_reflects_flags() -> None:
    state = OperationState()
    assert state.phase is Phase.IDLE

    state.try_acquire(Operation.DIM)
    assert state.phase is Phase.DIMMING

    state.release()
    state.dimmed = True
    assert state.phase is Phase.DIMMED

    state.restore_in_progress = True
    assert state.phase is Phase.RESTORING

    state.emergency_in_progress = True
    assert state.phase is Phase.EMERGENCY_RESET
