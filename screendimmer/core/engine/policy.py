"""Pure dim/restore decisions.

Kept IO-free so targets, tolerances and retry budgets can be unit tested
without a runtime.
"""

from __future__ import annotations

from typing import Optional

from screendimmer.core.config.settings import clamp_level
from screendimmer.core.displays.models import BrightnessSnapshot


DIM_VERIFY_DELAY_S = 0.5
DIM_VERIFY_DELAY_WAKING_S = 1.5
DIM_LOW_TARGET_RETRIES = 1

RESTORE_GAMMA_SETTLE_S = 0.3
RESTORE_VERIFY_DELAY_S = 1.0
RESTORE_RETRY_VERIFY_DELAY_S = 1.5
RESTORE_WATCHDOG_S = 30.0
MAX_FAILED_RESTORES = 2

COMMAND_GAP_S = 0.2

EMERGENCY_COOLDOWN_S = 30.0

WAKE_INTERNAL_WAIT_ATTEMPTS = 5
WAKE_INTERNAL_WAIT_DELAY_S = 0.5
WAKE_DEFAULT_BRIGHTNESS = 50

FAILSAFE_BRIGHTNESS = 50
ABNORMALLY_LOW_BRIGHTNESS = 5


def dim_target(
    *,
    base_level: int,
    override: Optional[int] = None,
    is_internal: bool = False,
    internal_gain: int = 0,
) -> int:
    """Final dim level for one display.

    A final target of exactly 0 becomes -1: hardware brightness 0 turns some
    panels fully off, a gamma level of -1 does not.
    """

    level = base_level if override is None else override
    if is_internal:
        level += int(internal_gain)
    level = clamp_level(level)
    return -1 if level == 0 else level


def should_dim(target: int, current: int) -> bool:
    """Dimming never brightens: displays already at or below target are skipped."""

    return target < current


def dim_tolerance(target: int) -> int:
    return 1 if target <= 1 else 5


def restore_tolerance(is_internal: bool) -> int:
    return 5 if is_internal else 10


def restore_retries(is_internal: bool) -> int:
    return 1 if is_internal else 3


def dim_verify_delay(waking: bool) -> float:
    return DIM_VERIFY_DELAY_WAKING_S if waking else DIM_VERIFY_DELAY_S


def within(actual: Optional[int], target: int, tolerance: int) -> bool:
    if actual is None:
        return False
    return abs(int(actual) - int(target)) <= int(tolerance)


def is_abnormally_low(snapshot: Optional[BrightnessSnapshot]) -> bool:
    """An undimmed display stuck in gamma dimming or near-black brightness."""

    if snapshot is None:
        return False
    return snapshot.gamma_active or snapshot.brightness < ABNORMALLY_LOW_BRIGHTNESS
