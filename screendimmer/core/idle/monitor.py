"""Idle monitor: periodic idle check plus user-input handling."""

from __future__ import annotations

import logging

from screendimmer.core.engine.machine import BrightnessStateMachine
from screendimmer.core.runtime.timers import TimerRegistry

from .policy import IdleInputs, InputAction, UserInputInputs, classify_user_input, should_dim_for_idle

logger = logging.getLogger(__name__)


CHECK_TAG = "idle-check"
RESUME_TAG = "idle-resume"


class IdleMonitor:
    def __init__(self, machine: BrightnessStateMachine, timers: TimerRegistry):
        self.machine = machine
        self.state = machine.state
        self.timers = timers

    @property
    def running(self) -> bool:
        return self.timers.pending(CHECK_TAG) > 0

    def start(self) -> None:
        self.timers.cancel(CHECK_TAG)
        self.timers.cancel(RESUME_TAG)
        interval = self.machine.settings.check_interval_s
        self.timers.call_every(interval, self.tick, tag=CHECK_TAG)
        logger.debug("Idle checks every %.1fs", interval)

    def pause(self) -> None:
        self.timers.cancel(CHECK_TAG)
        self.timers.cancel(RESUME_TAG)

    def resume_after(self, delay_s: float, *, clear_unlocking: bool = False) -> None:
        """Restart idle checks after `delay_s`, unless disabled by then."""

        def _resume() -> None:
            if clear_unlocking:
                self.state.unlocking = False
            if self.state.enabled:
                self.state.last_user_action = self.machine.runtime.monotonic()
                self.start()

        self.timers.cancel(RESUME_TAG)
        self.timers.call_later(delay_s, _resume, tag=RESUME_TAG)

    def tick(self) -> None:
        state = self.state
        now = self.machine.runtime.monotonic()
        inputs = IdleInputs(
            enabled=state.enabled,
            locked=state.locked,
            unlocking=state.unlocking,
            waking=state.waking,
            screensaver_active=state.screensaver_active,
            dimmed=state.dimmed,
            operation_in_progress=state.operation_in_progress,
            idle_s=now - state.last_user_action,
            idle_timeout_s=self.machine.settings.idle_timeout_s,
        )
        if should_dim_for_idle(inputs):
            logger.info("Idle for %.0fs", inputs.idle_s)
            self.machine.dim(reason="idle")

    def on_user_input(self, kind: str = "input") -> InputAction:
        state = self.state
        now = self.machine.runtime.monotonic()
        action = classify_user_input(
            UserInputInputs(
                now=now,
                locked=state.locked,
                unlocking=state.unlocking,
                restore_in_progress=state.restore_in_progress,
                dimmed=state.restore_pending,
                hotkey_dimming=state.hotkey_dimming,
                last_user_action=state.last_user_action,
                last_hotkey=state.last_hotkey,
                last_screensaver_event=state.last_screensaver_event,
                screensaver_cooldown_s=self.machine.settings.screensaver_grace_s,
            )
        )
        if action is InputAction.IGNORE:
            return action

        state.last_user_action = now
        if action is InputAction.RESTORE:
            logger.debug("User %s while dimmed", kind)
            self.machine.restore(reason=kind)
        return action
