"""Multi-step brightness jobs.

Each job is a small state machine: a step enum plus `resume(step)`, which
dispatches to `_step_<name>()`. Every asynchronous hop (command chains, settle
delays, verification delays) comes back through `resume()`, which drops the
step if the job was cancelled or replaced in the meantime. Timers are
scheduled under the job's tag so cancelling a job cancels everything it queued,
gateway retries included.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from screendimmer.core.displays.models import BrightnessSnapshot, Display
from screendimmer.core.logging_utils import log_throttled
from screendimmer.core.lunar import commands
from screendimmer.core.lunar.gateway import CommandResult

from . import policy
from .state import Operation

if TYPE_CHECKING:
    from .machine import BrightnessStateMachine

logger = logging.getLogger(__name__)


class Job:
    operation: Operation
    first_step: Enum

    def __init__(self, machine: "BrightnessStateMachine"):
        self.machine = machine
        self.state = machine.state
        self.settings = machine.settings
        self.tag = f"job:{self.operation.value}"
        self.cancelled = False
        self.step: Optional[Enum] = None
        self.on_done: Optional[Callable[[], None]] = None

    @property
    def active(self) -> bool:
        return not self.cancelled and self.machine.current_job is self

    def start(self) -> None:
        self.resume(self.first_step)

    def resume(self, step: Enum, **kwargs: Any) -> None:
        if not self.active:
            logger.debug("%s job inactive; dropping step %s", self.operation.value, step.value)
            return
        self.step = step
        getattr(self, f"_step_{step.value}")(**kwargs)

    def after(self, delay_s: float, step: Enum, **kwargs: Any) -> None:
        self.machine.timers.call_later(delay_s, lambda: self.resume(step, **kwargs), tag=self.tag)

    def run(self, argvs: Sequence[Sequence[str]], step: Enum, **kwargs: Any) -> None:
        """Run commands in order, then resume at `step` with `result=`."""

        self.machine.gateway.execute_all(
            argvs,
            gap_s=policy.COMMAND_GAP_S,
            tag=self.tag,
            on_done=lambda result: self.resume(step, result=result, **kwargs),
        )

    def cancel(self) -> None:
        self.cancelled = True
        self.machine.timers.cancel(self.tag)

    def done(self) -> None:
        self.machine.job_finished(self)


# ---- dim


class DimStep(str, Enum):
    CAPTURE = "capture"
    APPLY = "apply"
    VERIFY = "verify"
    FINISH = "finish"


@dataclass
class DisplayDim:
    display: Display
    target: int
    gamma_was_active: bool
    attempts: int = 0
    verified: bool = False


class DimJob(Job):
    operation = Operation.DIM
    first_step = DimStep.CAPTURE

    def __init__(self, machine: "BrightnessStateMachine", *, reapply: bool = False):
        super().__init__(machine)
        self.reapply = reapply
        self.displays: list[Display] = []
        self.plans: list[DisplayDim] = []
        self.already_dark: list[Display] = []
        self._round: list[DisplayDim] = []

    def _target_for(self, display: Display) -> int:
        return policy.dim_target(
            base_level=self.settings.dim_level,
            override=self.settings.dim_level_override(display.stable_id, display.name),
            is_internal=display.is_internal,
            internal_gain=self.settings.internal_display_gain,
        )

    def _step_capture(self) -> None:
        self.displays = self.machine.addressable(self.machine.displays())

        for display in self.displays:
            live = self.machine.read_snapshot(display)
            if live is None:
                log_throttled(
                    logger,
                    f"dim.unreadable.{display.stable_id}",
                    interval_s=60,
                    level=logging.WARNING,
                    msg=f"Could not read brightness of {display.name}; skipping",
                )
                continue

            target = self._target_for(display)
            if not policy.should_dim(target, live.level):
                logger.debug("%s already at %d (target %d); not dimming", display.name, live.level, target)
                self.already_dark.append(display)
                continue

            # First capture wins: a re-dim must not overwrite the original values.
            self.state.snapshots.setdefault(display.stable_id, live)
            self.plans.append(DisplayDim(display=display, target=target, gamma_was_active=live.gamma_active))

        if not self.plans:
            self.resume(DimStep.FINISH)
            return

        self._round = list(self.plans)
        self.resume(DimStep.APPLY)

    def _commands(self, plan: DisplayDim) -> list[list[str]]:
        tool = self.machine.tool
        lunar_id = plan.display.lunar_id
        if plan.target < 0:
            return [
                commands.set_subzero_argv(tool, lunar_id, True),
                commands.set_subzero_dimming_argv(tool, lunar_id, plan.target),
            ]
        argvs = []
        if plan.gamma_was_active:
            argvs.append(commands.set_subzero_argv(tool, lunar_id, False))
        argvs.append(commands.set_brightness_argv(tool, lunar_id, plan.target))
        return argvs

    def _step_apply(self, index: int = 0, result: Optional[CommandResult] = None) -> None:
        if result is not None and not result.ok:
            logger.debug("Dim commands for %s failed: %s", self._round[index - 1].display.name, result.error)

        if index >= len(self._round):
            self.after(policy.dim_verify_delay(self.state.waking), DimStep.VERIFY)
            return

        plan = self._round[index]
        plan.attempts += 1
        logger.debug("Dimming %s to %d", plan.display.name, plan.target)
        self.run(self._commands(plan), DimStep.APPLY, index=index + 1)

    def _step_verify(self) -> None:
        retry: list[DisplayDim] = []
        for plan in self._round:
            level = self.machine.read_level(plan.display, plan.target)
            if policy.within(level, plan.target, policy.dim_tolerance(plan.target)):
                plan.verified = True
                logger.debug("%s verified at %s", plan.display.name, level)
            elif plan.target <= 1 and plan.attempts <= policy.DIM_LOW_TARGET_RETRIES:
                logger.info("%s at %s, wanted %d; retrying", plan.display.name, level, plan.target)
                retry.append(plan)
            else:
                logger.warning("Dim did not verify on %s: level %s, target %d", plan.display.name, level, plan.target)

        if retry:
            self._round = retry
            self.resume(DimStep.APPLY)
            return

        self.resume(DimStep.FINISH)

    def _step_finish(self) -> None:
        if not self.plans and not self.already_dark:
            log_throttled(logger, "dim.nothing", interval_s=60, level=logging.WARNING, msg="No display could be dimmed")
            self.done()
            return

        primary = self.machine.primary_display(self.displays)
        ok_ids = {p.display.stable_id for p in self.plans if p.verified}
        ok_ids.update(d.stable_id for d in self.already_dark)
        failed = [p.display.name for p in self.plans if not p.verified]

        if primary is None or primary.stable_id not in ok_ids:
            # Snapshots stay: the displays that did change are brought back on the next input.
            name = primary.name if primary is not None else "(none)"
            logger.warning("Dim did not verify on primary display %s; not marking dimmed", name)
            self.done()
            return

        self.state.dimmed = True
        self.state.failed_restore_attempts = 0
        if failed:
            logger.info("Dimmed with unverified display(s): %s", ", ".join(failed))
        else:
            logger.info("%s %d display(s)", "Re-dimmed" if self.reapply else "Dimmed", len(self.plans))

        self.done()


# ---- restore


class RestoreStep(str, Enum):
    NEXT = "next"
    GAMMA = "gamma"
    BRIGHTNESS = "brightness"
    SETTLE = "settle"
    VERIFY = "verify"
    FINISH = "finish"


class RestoreJob(Job):
    operation = Operation.RESTORE
    first_step = RestoreStep.NEXT

    def __init__(self, machine: "BrightnessStateMachine"):
        super().__init__(machine)
        self.targets: list[tuple[Display, BrightnessSnapshot]] = []
        self.retries: dict[str, int] = {}
        self.verified: list[Display] = []
        self.failed: list[Display] = []

    def start(self) -> None:
        for display in self.machine.addressable(self.machine.displays()):
            snapshot = self.state.snapshots.get(display.stable_id)
            if snapshot is not None:
                self.targets.append((display, snapshot))
        super().start()

    def _step_next(self, index: int = 0, retry: bool = False) -> None:
        if index >= len(self.targets):
            self.resume(RestoreStep.FINISH)
            return

        display, snapshot = self.targets[index]
        tool = self.machine.tool
        if snapshot.gamma_active:
            argvs = [
                commands.set_subzero_argv(tool, display.lunar_id, True),
                commands.set_subzero_dimming_argv(tool, display.lunar_id, snapshot.subzero),
            ]
        else:
            argvs = [commands.set_subzero_argv(tool, display.lunar_id, False)]
        self.run(argvs, RestoreStep.GAMMA, index=index, retry=retry)

    def _step_gamma(self, index: int, retry: bool, result: CommandResult) -> None:
        if not result.ok:
            self._retry_or_give_up(index, f"gamma command failed ({result.error})")
            return
        self.after(policy.RESTORE_GAMMA_SETTLE_S, RestoreStep.BRIGHTNESS, index=index, retry=retry)

    def _step_brightness(self, index: int, retry: bool = False) -> None:
        display, snapshot = self.targets[index]
        argv = commands.set_brightness_argv(self.machine.tool, display.lunar_id, snapshot.brightness)
        self.run([argv], RestoreStep.SETTLE, index=index, retry=retry)

    def _step_settle(self, index: int, retry: bool, result: CommandResult) -> None:
        delay = policy.RESTORE_RETRY_VERIFY_DELAY_S if retry else policy.RESTORE_VERIFY_DELAY_S
        self.after(delay, RestoreStep.VERIFY, index=index)

    def _step_verify(self, index: int) -> None:
        display, snapshot = self.targets[index]
        level = self.machine.read_brightness(display)
        gamma = self.machine.read_subzero(display)

        if not policy.within(level, snapshot.brightness, policy.restore_tolerance(display.is_internal)):
            self._retry_or_give_up(index, f"brightness {level}, wanted {snapshot.brightness}")
            return
        if not policy.within(gamma, snapshot.subzero, policy.dim_tolerance(snapshot.subzero)):
            self._retry_or_give_up(index, f"gamma level {gamma}, wanted {snapshot.subzero}")
            return

        logger.debug("%s restored to %s (gamma %s)", display.name, level, gamma)
        self.verified.append(display)
        self.resume(RestoreStep.NEXT, index=index + 1)

    def _retry_or_give_up(self, index: int, detail: str) -> None:
        """Retry the whole display sequence, or failsafe it once retries are spent."""

        display, _snapshot = self.targets[index]
        used = self.retries.get(display.stable_id, 0)
        if used < policy.restore_retries(display.is_internal):
            self.retries[display.stable_id] = used + 1
            logger.info("%s: %s; retry %d", display.name, detail, used + 1)
            self.resume(RestoreStep.NEXT, index=index, retry=True)
            return

        logger.warning("Restore failed on %s after %d retries (%s); resetting it", display.name, used, detail)
        self.failed.append(display)
        self.machine.failsafe_reset(display.lunar_id)
        self.resume(RestoreStep.NEXT, index=index + 1)

    def _step_finish(self) -> None:
        state = self.state
        if not self.failed:
            state.snapshots.clear()
            state.failed_restore_attempts = 0
            state.dimmed = False
            state.dimmed_before_lock = False
            logger.info("Restored %d display(s)", len(self.verified))
        else:
            # Snapshots stay so the next attempt still has the original values.
            state.failed_restore_attempts += 1
            logger.warning(
                "Restore incomplete (%s); failed attempts: %d",
                ", ".join(d.name for d in self.failed),
                state.failed_restore_attempts,
            )
        self.done()


# ---- wake reset


class WakeStep(str, Enum):
    WAIT_INTERNAL = "wait_internal"
    DISABLE_GAMMA = "disable_gamma"
    RESTORE = "restore"
    FINISH = "finish"


class WakeResetJob(Job):
    operation = Operation.WAKE_RESET
    first_step = WakeStep.WAIT_INTERNAL

    def __init__(self, machine: "BrightnessStateMachine"):
        super().__init__(machine)
        self.displays: list[Display] = []

    def _step_wait_internal(self, attempt: int = 1) -> None:
        if attempt > 1:
            self.machine.invalidate_caches()
        displays = self.machine.addressable(self.machine.displays())

        if not any(d.is_internal for d in displays) and attempt < policy.WAKE_INTERNAL_WAIT_ATTEMPTS:
            logger.debug("Internal display not back yet (attempt %d)", attempt)
            self.after(policy.WAKE_INTERNAL_WAIT_DELAY_S, WakeStep.WAIT_INTERNAL, attempt=attempt + 1)
            return

        if not any(d.is_internal for d in displays):
            logger.info("No internal display after wake; resetting %d display(s)", len(displays))
        self.displays = displays
        self.resume(WakeStep.DISABLE_GAMMA)

    def _step_disable_gamma(self) -> None:
        tool = self.machine.tool
        self.run([commands.set_subzero_argv(tool, d.lunar_id, False) for d in self.displays], WakeStep.RESTORE)

    def brightness_after_wake(self, display: Display) -> int:
        if display.stable_id in self.state.sleep_snapshots:
            return self.state.sleep_snapshots[display.stable_id]
        snapshot = self.state.snapshots.get(display.stable_id)
        if snapshot is not None:
            return snapshot.brightness
        return policy.WAKE_DEFAULT_BRIGHTNESS

    def _step_restore(self, result: Optional[CommandResult] = None) -> None:
        tool = self.machine.tool
        argvs = [
            commands.set_brightness_argv(tool, d.lunar_id, self.brightness_after_wake(d)) for d in self.displays
        ]
        self.run(argvs, WakeStep.FINISH)

    def _step_finish(self, result: Optional[CommandResult] = None) -> None:
        state = self.state
        state.dimmed = False
        state.failed_restore_attempts = 0
        state.snapshots.clear()
        state.sleep_snapshots.clear()
        if result is not None and not result.ok:
            logger.warning("Wake reset finished with errors: %s", result.error)
        else:
            logger.info("Wake reset complete for %d display(s)", len(self.displays))
        self.done()
