"""The only path to the Lunar CLI.

Every write goes through `CommandGateway.execute()`, which enforces an absolute
time ceiling across all retry attempts and schedules retries on the timer
registry (never by sleeping). Reads are single synchronous attempts.

If the Lunar process is required and not running, the gateway relaunches it in
the background and fails the current call; callers retry on their own schedule.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from screendimmer.core.logging_utils import log_throttled

from . import commands

if TYPE_CHECKING:
    from screendimmer.core.runtime.host import HostRuntime
    from screendimmer.core.runtime.timers import TimerRegistry

logger = logging.getLogger(__name__)


TIMEOUT_CEILING_S = 5.0
RELAUNCH_SETTLE_S = 2.0
RESTART_DELAY_S = 2.0

RELAUNCH_TAG = "gateway-relaunch"


@dataclass(frozen=True)
class CommandResult:
    ok: bool
    output: str = ""
    error: str = ""
    attempts: int = 0


DoneCallback = Callable[[CommandResult], None]


class CommandGateway:
    def __init__(
        self,
        runtime: "HostRuntime",
        timers: "TimerRegistry",
        *,
        tool_path: str,
        process_name: Optional[str] = None,
        launch_command: Sequence[str] = (),
        timeout_ceiling_s: float = TIMEOUT_CEILING_S,
        relaunch_settle_s: float = RELAUNCH_SETTLE_S,
    ):
        self._runtime = runtime
        self._timers = timers
        self.tool_path = tool_path
        self.process_name = process_name
        self.launch_command = tuple(launch_command)
        self.timeout_ceiling_s = float(timeout_ceiling_s)
        self.relaunch_settle_s = float(relaunch_settle_s)
        self._relaunching = False

    @property
    def tool(self) -> str:
        return commands.expand_tool_path(self.tool_path)

    @property
    def relaunching(self) -> bool:
        return self._relaunching

    def configure(
        self,
        *,
        tool_path: str,
        process_name: Optional[str],
        launch_command: Sequence[str],
    ) -> None:
        self.tool_path = tool_path
        self.process_name = process_name
        self.launch_command = tuple(launch_command)

    def verify_tool(self) -> bool:
        """True when the configured CLI answers `--help`."""

        out = self._runtime.run_command(commands.help_argv(self.tool_path), timeout_s=self.timeout_ceiling_s)
        return out.ok

    # ---- process supervision

    def _ensure_running(self) -> bool:
        if not self.process_name:
            return True
        if self._relaunching:
            return False
        if self._runtime.is_process_running(self.process_name):
            return True

        log_throttled(
            logger,
            "gateway.not_running",
            interval_s=10,
            level=logging.WARNING,
            msg=f"{self.process_name} is not running; relaunching",
        )
        self.relaunch()
        return False

    def relaunch(self, on_ready: Optional[Callable[[], None]] = None) -> None:
        """Launch the Lunar app without waiting; calls fail until it settles."""

        if self._relaunching:
            return
        if self.launch_command:
            self._runtime.spawn(self.launch_command)
        self._relaunching = True

        def _settled() -> None:
            self._relaunching = False
            logger.debug("Relaunch settle period over")
            if on_ready is not None:
                on_ready()

        self._timers.call_later(self.relaunch_settle_s, _settled, tag=RELAUNCH_TAG)

    def restart(self, on_ready: Optional[Callable[[], None]] = None, *, delay_s: float = RESTART_DELAY_S) -> None:
        """Kill the Lunar app, relaunch it after `delay_s`, then call `on_ready`."""

        self._timers.cancel(RELAUNCH_TAG)
        self._relaunching = False

        if self.process_name:
            logger.info("Restarting %s", self.process_name)
            self._runtime.run_command(["killall", self.process_name], timeout_s=self.timeout_ceiling_s)

        def _launch() -> None:
            if self.process_name:
                self.relaunch(on_ready)
            elif on_ready is not None:
                on_ready()

        self._timers.call_later(delay_s, _launch, tag=RELAUNCH_TAG)

    # ---- reads

    def read(self, argv: Sequence[str]) -> CommandResult:
        if not self._ensure_running():
            return CommandResult(ok=False, error="lunar not running", attempts=0)

        out = self._runtime.run_command(argv, timeout_s=self.timeout_ceiling_s)
        if not out.ok:
            logger.debug("Read failed (%s): %s", out.returncode, " ".join(argv[1:]))
            return CommandResult(ok=False, output=out.stdout, error=out.stderr or "failed", attempts=1)
        return CommandResult(ok=True, output=out.stdout, attempts=1)

    # ---- writes

    def execute(
        self,
        argv: Sequence[str],
        *,
        max_retries: int = 2,
        retry_delay_s: float = 0.2,
        on_done: Optional[DoneCallback] = None,
        tag: str = "gateway",
    ) -> None:
        """Run `argv`, retrying on failure until `max_retries` or the time ceiling.

        `on_done` is called exactly once, possibly synchronously.
        """

        argv = list(argv)
        deadline = self._runtime.monotonic() + self.timeout_ceiling_s

        def _finish(result: CommandResult) -> None:
            if not result.ok:
                logger.debug(
                    "Command failed after %d attempt(s): %s (%s)",
                    result.attempts,
                    " ".join(argv[1:]),
                    result.error,
                )
            if on_done is not None:
                on_done(result)

        if not self._ensure_running():
            _finish(CommandResult(ok=False, error="lunar not running", attempts=0))
            return

        def _attempt(n: int) -> None:
            remaining = deadline - self._runtime.monotonic()
            if remaining <= 0:
                _finish(CommandResult(ok=False, error="timeout ceiling reached", attempts=n - 1))
                return

            out = self._runtime.run_command(argv, timeout_s=remaining)
            if out.ok:
                _finish(CommandResult(ok=True, output=out.stdout, attempts=n))
                return

            error = out.stderr or ("timeout" if out.returncode is None else f"exit {out.returncode}")
            if n > max_retries or deadline - self._runtime.monotonic() <= retry_delay_s:
                _finish(CommandResult(ok=False, output=out.stdout, error=error, attempts=n))
                return

            self._timers.call_later(retry_delay_s, lambda: _attempt(n + 1), tag=tag)

        _attempt(1)

    def execute_all(
        self,
        argvs: Sequence[Sequence[str]],
        *,
        gap_s: float = 0.2,
        max_retries: int = 2,
        stop_on_failure: bool = False,
        on_done: Optional[DoneCallback] = None,
        tag: str = "gateway",
    ) -> None:
        """Run commands in order with `gap_s` between them.

        The aggregate result is ok only when every command succeeded.
        """

        queue = [list(a) for a in argvs]
        failures: list[str] = []
        attempts = 0

        def _done() -> None:
            if on_done is not None:
                on_done(CommandResult(ok=not failures, error="; ".join(failures), attempts=attempts))

        def _run(i: int) -> None:
            if i >= len(queue):
                _done()
                return

            def _after(result: CommandResult) -> None:
                nonlocal attempts
                attempts += result.attempts
                if not result.ok:
                    failures.append(f"{' '.join(queue[i][1:])}: {result.error}")
                    if stop_on_failure:
                        _done()
                        return
                if i + 1 >= len(queue):
                    _done()
                elif gap_s > 0:
                    self._timers.call_later(gap_s, lambda: _run(i + 1), tag=tag)
                else:
                    _run(i + 1)

            self.execute(queue[i], max_retries=max_retries, on_done=_after, tag=tag)

        _run(0)
