"""Reconciles dim state with sleep, lock, screensaver, wake and hot-plug events."""

from __future__ import annotations

import logging

from screendimmer.core.engine.machine import BrightnessStateMachine
from screendimmer.core.engine.state import Operation
from screendimmer.core.idle.monitor import IdleMonitor
from screendimmer.core.runtime.timers import TimerRegistry

from .events import PowerEvent

logger = logging.getLogger(__name__)


DISPLAY_CHANGE_TAG = "display-change"
WAKE_TAG = "wake"
# Outlasts the operation watchdog at the default settle delay.
DISPLAY_CHANGE_REDIM_ATTEMPTS = 20


class PowerEventCoordinator:
    def __init__(self, machine: BrightnessStateMachine, idle: IdleMonitor, timers: TimerRegistry):
        self.machine = machine
        self.idle = idle
        self.timers = timers
        self.state = machine.state

    @property
    def settings(self):
        return self.machine.settings

    def _now(self) -> float:
        return self.machine.runtime.monotonic()

    def handle(self, event: PowerEvent) -> None:
        if not self.state.enabled:
            logger.debug("Ignoring %s: disabled", event.value)
            return

        handler = {
            PowerEvent.WILL_SLEEP: self.on_will_sleep,
            PowerEvent.DID_WAKE: self.on_did_wake,
            PowerEvent.SCREENS_LOCKED: self.on_screens_locked,
            PowerEvent.SCREENS_UNLOCKED: self.on_screens_unlocked,
            PowerEvent.SCREENSAVER_STARTED: self.on_screensaver_started,
            PowerEvent.SCREENSAVER_STOPPED: self.on_screensaver_stopped,
            PowerEvent.DISPLAYS_CHANGED: self.on_displays_changed,
        }[event]
        handler()

    # ---- sleep / wake

    def on_will_sleep(self) -> None:
        logger.info("System going to sleep")
        self.machine.capture_sleep_snapshots()
        self.machine.cancel_operations()
        self.timers.cancel(DISPLAY_CHANGE_TAG)
        self.timers.cancel(WAKE_TAG)
        self.state.unlocking = False
        self.state.hotkey_dimming = False
        self.idle.pause()

    def on_did_wake(self) -> None:
        logger.info("System woke up")
        state = self.state
        now = self._now()
        state.last_user_action = now
        state.waking = True

        self.idle.pause()
        self.machine.cancel_operations()
        self.machine.invalidate_caches()
        self.timers.cancel(WAKE_TAG)
        self.machine.gateway.restart(self._start_wake_reset)

    def _start_wake_reset(self) -> None:
        if not self.state.enabled:
            self.state.waking = False
            return

        def _after_reset() -> None:
            self.idle.resume_after(self.settings.wake_grace_s)

        if not self.machine.wake_reset(on_done=_after_reset):
            # Nothing will clear the waking flag for us.
            self.timers.call_later(self.settings.wake_grace_s, self._end_waking, tag=WAKE_TAG)

    def _end_waking(self) -> None:
        self.state.waking = False
        if self.state.enabled and not self.state.locked:
            self.idle.start()

    # ---- lock / unlock

    def on_screens_locked(self) -> None:
        state = self.state
        state.locked = True
        state.unlocking = False
        state.dimmed_before_lock = state.restore_pending or state.current_operation is Operation.DIM
        logger.info("Screen locked (dimmed: %s)", state.dimmed_before_lock)
        self.idle.pause()

    def on_screens_unlocked(self) -> None:
        state = self.state
        now = self._now()
        if now - state.last_unlock_event < self.settings.unlock_debounce_s:
            logger.debug("Duplicate unlock ignored")
            return

        state.last_unlock_event = now
        state.locked = False
        state.unlocking = True
        state.last_user_action = now
        logger.info("Screen unlocked (dimmed before lock: %s)", state.dimmed_before_lock)

        # A dim that finished while locked still counts.
        if state.dimmed_before_lock or state.restore_pending:
            self.machine.restore(reason="unlock")
        state.dimmed_before_lock = False

        self.idle.resume_after(self.settings.unlock_grace_s, clear_unlocking=True)

    # ---- screensaver

    def on_screensaver_started(self) -> None:
        state = self.state
        state.screensaver_active = True
        state.last_screensaver_event = self._now()
        logger.info("Screensaver started")
        self.idle.pause()

    def on_screensaver_stopped(self) -> None:
        state = self.state
        now = self._now()
        state.screensaver_active = False
        state.last_screensaver_event = now
        state.last_user_action = now
        logger.info("Screensaver stopped")

        if state.restore_pending:
            self.machine.restore(reason="screensaver")

        self.idle.resume_after(self.settings.screensaver_grace_s)

    # ---- hot-plug

    def on_displays_changed(self) -> None:
        state = self.state
        now = self._now()
        if now - state.last_display_change < self.settings.display_change_debounce_s:
            logger.debug("Display change burst; ignored")
            return

        state.last_display_change = now
        logger.info("Display configuration changed")
        self.machine.invalidate_caches()
        self.machine.revalidate_internal_display()

        self.timers.cancel(DISPLAY_CHANGE_TAG)
        self.timers.call_later(self.settings.display_change_settle_s, self._after_display_change, tag=DISPLAY_CHANGE_TAG)

    def _after_display_change(self, attempt: int = 1) -> None:
        state = self.state
        if attempt == 1:
            self.machine.invalidate_caches()
        if state.locked or not (state.dimmed or state.current_operation is Operation.DIM):
            return

        if state.operation_in_progress:
            if attempt >= DISPLAY_CHANGE_REDIM_ATTEMPTS:
                logger.warning("Re-dim after display change dropped: %s still in progress", state.current_operation.value)
                return
            logger.debug("Re-dim after display change waits for %s", state.current_operation.value)
            self.timers.call_later(
                self.settings.display_change_settle_s,
                lambda: self._after_display_change(attempt + 1),
                tag=DISPLAY_CHANGE_TAG,
            )
            return

        self.machine.reapply_dim()
