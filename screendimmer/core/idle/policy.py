"""Pure idle / user-input decisions.

IO-free so the cooldown and suppression rules can be unit tested directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


HOTKEY_COOLDOWN_S = 2.0
INPUT_THROTTLE_S = 0.1


class InputAction(str, Enum):
    IGNORE = "ignore"
    RECORD = "record"
    RESTORE = "restore"


@dataclass(frozen=True)
class IdleInputs:
    enabled: bool
    locked: bool
    unlocking: bool
    waking: bool
    screensaver_active: bool
    dimmed: bool
    operation_in_progress: bool
    idle_s: float
    idle_timeout_s: float


def should_dim_for_idle(inputs: IdleInputs) -> bool:
    if not inputs.enabled:
        return False
    if inputs.locked or inputs.unlocking or inputs.waking or inputs.screensaver_active:
        return False
    if inputs.dimmed or inputs.operation_in_progress:
        return False
    return inputs.idle_s >= inputs.idle_timeout_s


@dataclass(frozen=True)
class UserInputInputs:
    now: float
    locked: bool
    unlocking: bool
    restore_in_progress: bool
    dimmed: bool
    hotkey_dimming: bool
    last_user_action: float
    last_hotkey: float
    last_screensaver_event: float
    screensaver_cooldown_s: float


def classify_user_input(inputs: UserInputInputs) -> InputAction:
    """What a key/mouse/scroll event should do.

    Input caused by our own hotkey or a screensaver transition arrives right
    after those events and is not user activity.
    """

    if inputs.locked or inputs.unlocking or inputs.restore_in_progress:
        return InputAction.IGNORE
    if inputs.now - inputs.last_hotkey < HOTKEY_COOLDOWN_S:
        return InputAction.IGNORE
    if inputs.now - inputs.last_screensaver_event < inputs.screensaver_cooldown_s:
        return InputAction.IGNORE
    if inputs.now - inputs.last_user_action < INPUT_THROTTLE_S:
        return InputAction.IGNORE
    if inputs.dimmed and not inputs.hotkey_dimming:
        return InputAction.RESTORE
    return InputAction.RECORD
