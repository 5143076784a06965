"""Dim/restore state machine.

Public operations (`dim`, `restore`, `wake_reset`, ...) check their guards
synchronously and either start a job or drop the request. Requests are never
queued: while one of dim/restore/wake-reset holds the global operation lock, a
second request is rejected.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Optional

from screendimmer.core.config.settings import DimmerSettings
from screendimmer.core.displays.identity import DisplayIdentityResolver
from screendimmer.core.displays.models import BrightnessSnapshot, Display
from screendimmer.core.displays.priority import DisplayPrioritySorter
from screendimmer.core.logging_utils import log_throttled
from screendimmer.core.lunar import commands
from screendimmer.core.lunar.gateway import CommandGateway, CommandResult
from screendimmer.core.runtime.host import HostRuntime
from screendimmer.core.runtime.timers import TimerRegistry

from . import policy
from .jobs import DimJob, Job, RestoreJob, WakeResetJob
from .state import Operation, OperationState, Phase

logger = logging.getLogger(__name__)


WATCHDOG_TAG = "watchdog"
FAILSAFE_TAG = "failsafe"
WAKE_GRACE_TAG = "wake-grace"


class BrightnessStateMachine:
    def __init__(
        self,
        *,
        runtime: HostRuntime,
        timers: TimerRegistry,
        gateway: CommandGateway,
        settings: DimmerSettings,
        state: Optional[OperationState] = None,
        identity: Optional[DisplayIdentityResolver] = None,
        sorter: Optional[DisplayPrioritySorter] = None,
    ):
        self.runtime = runtime
        self.timers = timers
        self.gateway = gateway
        self.settings = settings
        self.state = state or OperationState()
        self.identity = identity or DisplayIdentityResolver(gateway)
        self.sorter = sorter or DisplayPrioritySorter()
        self.current_job: Optional[Job] = None

    @property
    def tool(self) -> str:
        return self.gateway.tool_path

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def configure(self, settings: DimmerSettings) -> None:
        self.settings = settings
        self.gateway.configure(
            tool_path=settings.lunar_path,
            process_name=settings.lunar_process_name,
            launch_command=settings.lunar_launch_command,
        )
        self.invalidate_caches()

    def invalidate_caches(self) -> None:
        self.identity.invalidate()
        self.sorter.invalidate()

    # ---- display set

    def displays(self) -> list[Display]:
        """Current displays, resolved and in priority order."""

        resolved = self.identity.resolve_all(self.runtime.list_displays())
        return self.sorter.sort(resolved, self.settings)

    @staticmethod
    def addressable(displays: Sequence[Display]) -> list[Display]:
        return [d for d in displays if d.lunar_id is not None]

    @staticmethod
    def primary_display(displays: Sequence[Display]) -> Optional[Display]:
        """The internal panel, else the first enumerated display."""

        if not displays:
            return None
        for d in displays:
            if d.is_internal:
                return d
        return min(displays, key=lambda d: d.index)

    # ---- reads

    def _read(self, argv: list[str], parse: Callable[[str], Optional[int]]) -> Optional[int]:
        result = self.gateway.read(argv)
        if not result.ok:
            return None
        return parse(result.output)

    def read_brightness(self, display: Display) -> Optional[int]:
        return self._read(commands.read_brightness_argv(self.tool, display.lunar_id), commands.parse_brightness)

    def read_subzero(self, display: Display) -> Optional[int]:
        return self._read(commands.read_subzero_dimming_argv(self.tool, display.lunar_id), commands.parse_subzero_level)

    def read_snapshot(self, display: Display) -> Optional[BrightnessSnapshot]:
        brightness = self.read_brightness(display)
        if brightness is None:
            return None
        subzero = self.read_subzero(display)
        return BrightnessSnapshot(brightness=brightness, subzero=subzero or 0)

    def read_level(self, display: Display, target: int) -> Optional[int]:
        """Read the level on the same scale as `target` (gamma for negative targets)."""

        if target < 0:
            return self.read_subzero(display)
        return self.read_brightness(display)

    # ---- job plumbing

    def _start(self, job: Job, on_done: Optional[Callable[[], None]] = None) -> bool:
        if not self.state.try_acquire(job.operation):
            logger.debug(
                "Dropping %s: %s in progress", job.operation.value, self.state.current_operation.value
            )
            return False

        self.current_job = job
        job.on_done = on_done
        if job.operation is Operation.RESTORE:
            self.state.restore_in_progress = True
        self.timers.cancel(WATCHDOG_TAG)
        self.timers.call_later(policy.RESTORE_WATCHDOG_S, lambda: self._watchdog(job), tag=WATCHDOG_TAG)

        job.start()
        return True

    def job_finished(self, job: Job) -> None:
        if self.current_job is not job:
            return

        self.current_job = None
        self.state.release(job.operation)
        self.timers.cancel(WATCHDOG_TAG)
        if job.operation is Operation.RESTORE:
            self.state.restore_in_progress = False
        if job.operation is Operation.WAKE_RESET:
            self._end_waking_after_grace()

        if job.on_done is not None:
            job.on_done()

    def _watchdog(self, job: Job) -> None:
        if self.current_job is job:
            logger.warning(
                "%s did not finish within %.0fs; clearing it", job.operation.value, policy.RESTORE_WATCHDOG_S
            )
            job.cancel()
            self.job_finished(job)
        elif self.state.restore_in_progress:
            logger.warning("Clearing stale restore-in-progress flag")
            self.state.restore_in_progress = False

    def _end_waking_after_grace(self) -> None:
        def _clear() -> None:
            self.state.waking = False
            logger.debug("Wake grace period over")

        self.timers.cancel(WAKE_GRACE_TAG)
        self.timers.call_later(self.settings.wake_grace_s, _clear, tag=WAKE_GRACE_TAG)

    def cancel_operations(self) -> None:
        """Preempt the in-flight job and anything it scheduled."""

        job = self.current_job
        if job is not None:
            logger.info("Cancelling in-flight %s", job.operation.value)
            job.cancel()
        self.current_job = None

        for operation in Operation:
            self.timers.cancel(f"job:{operation.value}")
        self.timers.cancel(WATCHDOG_TAG)
        self.timers.cancel(FAILSAFE_TAG)

        self.state.release()
        self.state.restore_in_progress = False
        self.state.reset_in_progress = False

    # ---- operations

    def dim(self, *, reason: str = "idle", on_done: Optional[Callable[[], None]] = None) -> bool:
        state = self.state
        if not state.enabled or not state.initialized:
            logger.debug("Not dimming (%s): disabled", reason)
            return False
        if state.dimmed:
            logger.debug("Not dimming (%s): already dimmed", reason)
            return False
        if state.operation_in_progress:
            logger.debug("Not dimming (%s): %s in progress", reason, state.current_operation.value)
            return False

        logger.info("Dimming displays (%s)", reason)
        return self._start(DimJob(self), on_done)

    def reapply_dim(self) -> bool:
        """Dim the current display set again while staying dimmed (after hot-plug)."""

        if not self.state.dimmed:
            return False
        if self.state.operation_in_progress:
            logger.debug("Not re-dimming: %s in progress", self.state.current_operation.value)
            return False
        logger.info("Re-applying dim to the current display set")
        return self._start(DimJob(self, reapply=True))

    def restore(self, *, reason: str = "user", on_done: Optional[Callable[[], None]] = None) -> bool:
        state = self.state

        if state.failed_restore_attempts >= policy.MAX_FAILED_RESTORES:
            logger.warning("%d failed restore attempts; escalating to emergency reset", state.failed_restore_attempts)
            state.failed_restore_attempts = 0
            self.emergency_reset()
            return False
        if state.locked:
            logger.debug("Not restoring (%s): screen locked", reason)
            return False
        if not state.restore_pending:
            logger.debug("Not restoring (%s): not dimmed", reason)
            return False
        if state.operation_in_progress or state.restore_in_progress:
            logger.debug("Not restoring (%s): operation in progress", reason)
            return False

        logger.info("Restoring displays (%s)", reason)
        return self._start(RestoreJob(self), on_done)

    def wake_reset(self, on_done: Optional[Callable[[], None]] = None) -> bool:
        if self.state.operation_in_progress:
            logger.info("Wake reset skipped: %s in progress", self.state.current_operation.value)
            return False
        logger.info("Running wake reset")
        return self._start(WakeResetJob(self), on_done)

    def emergency_reset(self) -> bool:
        now = self.runtime.monotonic()
        state = self.state
        if now - state.last_emergency_reset < policy.EMERGENCY_COOLDOWN_S:
            if log_throttled(
                logger,
                "machine.emergency_cooldown",
                interval_s=policy.EMERGENCY_COOLDOWN_S,
                level=logging.WARNING,
                msg="Emergency reset skipped: cooling down",
            ):
                self.runtime.alert("Brightness reset skipped (cooling down)")
            return False

        logger.warning("Emergency reset: restarting the brightness control utility")
        self.runtime.alert("Brightness control is not responding; restarting Lunar")

        self.cancel_operations()
        state.reset(now=now)
        state.last_emergency_reset = now
        state.emergency_in_progress = True

        def _relaunched() -> None:
            state.emergency_in_progress = False
            self.invalidate_caches()
            logger.info("Brightness control utility restarted")

        self.gateway.restart(_relaunched)
        return True

    def failsafe_reset(
        self,
        lunar_id: str,
        *,
        on_done: Optional[Callable[[CommandResult], None]] = None,
    ) -> None:
        """Known-safe state for one display: gamma off, gamma table reset, brightness 50."""

        logger.info("Failsafe reset of %s", lunar_id)
        tool = self.tool
        self.gateway.execute_all(
            [
                commands.set_subzero_argv(tool, lunar_id, False),
                commands.reset_gamma_argv(tool, lunar_id),
                commands.set_brightness_argv(tool, lunar_id, policy.FAILSAFE_BRIGHTNESS),
            ],
            gap_s=policy.COMMAND_GAP_S,
            tag=FAILSAFE_TAG,
            on_done=on_done,
        )

    def reset_all_displays(self, on_done: Optional[Callable[[], None]] = None) -> bool:
        """Failsafe-reset every display the utility knows about, one after another."""

        if self.state.reset_in_progress:
            logger.info("Reset already in progress")
            return False

        records = self.identity.lunar_records()
        if not records:
            logger.warning("Reset all displays: no displays reported by Lunar")
            return False

        self.state.reset_in_progress = True
        ids = [r.control_id for r in records]
        logger.info("Resetting %d display(s)", len(ids))

        def _next(i: int) -> None:
            if i >= len(ids):
                self.state.reset_in_progress = False
                logger.info("Reset all displays complete")
                if on_done is not None:
                    on_done()
                return
            self.failsafe_reset(ids[i], on_done=lambda _result: _next(i + 1))

        _next(0)
        return True

    def revalidate_internal_display(self) -> bool:
        """Failsafe the internal panel when it is left dark while not dimmed."""

        if self.state.dimmed or self.state.operation_in_progress:
            return False

        internal = next((d for d in self.addressable(self.displays()) if d.is_internal), None)
        if internal is None:
            return False

        snapshot = self.read_snapshot(internal)
        if not policy.is_abnormally_low(snapshot):
            return False

        logger.warning(
            "%s is abnormally dark (brightness %s, gamma %s) while not dimmed",
            internal.name,
            snapshot.brightness,
            snapshot.subzero,
        )
        self.failsafe_reset(internal.lunar_id)
        return True

    def capture_sleep_snapshots(self) -> None:
        """Record the brightness each display should return to after wake."""

        state = self.state
        for display in self.addressable(self.displays()):
            if display.stable_id in state.sleep_snapshots:
                continue
            snapshot = state.snapshots.get(display.stable_id)
            value = snapshot.brightness if snapshot is not None else self.read_brightness(display)
            if value is None:
                logger.debug("No pre-sleep brightness for %s", display.name)
                continue
            state.sleep_snapshots[display.stable_id] = value
        logger.debug("Pre-sleep brightness: %s", state.sleep_snapshots)

    def shutdown(self) -> None:
        self.cancel_operations()
        self.timers.cancel()
