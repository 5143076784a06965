"""Mutable engine state, owned by the loop thread."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from screendimmer.core.displays.models import BrightnessSnapshot


NEVER = float("-inf")


class Operation(str, Enum):
    DIM = "dim"
    RESTORE = "restore"
    WAKE_RESET = "wake_reset"


class Phase(str, Enum):
    """Coarse view of the dim/restore state machine (status display and tests)."""

    IDLE = "idle"
    DIMMING = "dimming"
    DIMMED = "dimmed"
    RESTORING = "restoring"
    WAKE_RESET = "wake_reset"
    EMERGENCY_RESET = "emergency_reset"


@dataclass
class OperationState:
    enabled: bool = False
    initialized: bool = False

    dimmed: bool = False
    restore_in_progress: bool = False
    reset_in_progress: bool = False
    emergency_in_progress: bool = False
    current_operation: Optional[Operation] = None

    locked: bool = False
    unlocking: bool = False
    waking: bool = False
    screensaver_active: bool = False
    hotkey_dimming: bool = False

    failed_restore_attempts: int = 0
    dimmed_before_lock: bool = False

    last_user_action: float = 0.0
    last_unlock_event: float = NEVER
    last_hotkey: float = NEVER
    last_screensaver_event: float = NEVER
    last_emergency_reset: float = NEVER
    last_display_change: float = NEVER

    # Pre-dim state per stable display id. First capture wins until a verified restore.
    snapshots: dict[str, BrightnessSnapshot] = field(default_factory=dict)
    # Hardware brightness per stable display id captured when the system went to sleep.
    sleep_snapshots: dict[str, int] = field(default_factory=dict)

    @property
    def operation_in_progress(self) -> bool:
        return self.current_operation is not None

    @property
    def restore_pending(self) -> bool:
        """Dimmed, or a finished dim left snapshots behind without reaching the primary display."""

        return self.dimmed or (bool(self.snapshots) and self.current_operation is None)

    def try_acquire(self, operation: Operation) -> bool:
        """Take the global operation lock; False when another operation holds it."""

        if self.current_operation is not None:
            return False
        self.current_operation = operation
        return True

    def release(self, operation: Optional[Operation] = None) -> None:
        if operation is None or self.current_operation == operation:
            self.current_operation = None

    def reset(self, *, now: float = 0.0) -> None:
        """Return to a clean baseline (start, stop, emergency reset)."""

        self.dimmed = False
        self.restore_in_progress = False
        self.reset_in_progress = False
        self.current_operation = None
        self.unlocking = False
        self.waking = False
        self.hotkey_dimming = False
        self.failed_restore_attempts = 0
        self.dimmed_before_lock = False
        self.snapshots.clear()
        self.sleep_snapshots.clear()
        self.last_user_action = now

    @property
    def phase(self) -> Phase:
        if self.emergency_in_progress:
            return Phase.EMERGENCY_RESET
        if self.current_operation == Operation.WAKE_RESET:
            return Phase.WAKE_RESET
        if self.current_operation == Operation.RESTORE or self.restore_in_progress:
            return Phase.RESTORING
        if self.current_operation == Operation.DIM:
            return Phase.DIMMING
        if self.dimmed:
            return Phase.DIMMED
        return Phase.IDLE
