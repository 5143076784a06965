"""ScreenDimmer service facade.

Wires the command gateway, state machine, idle monitor and power coordinator
together and exposes the user-facing operations (start/stop, toggles, reset).
All methods must be called on the runtime's loop thread.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from screendimmer.core.config.settings import DimmerSettings
from screendimmer.core.engine.machine import BrightnessStateMachine
from screendimmer.core.engine.state import OperationState, Phase
from screendimmer.core.idle.monitor import IdleMonitor
from screendimmer.core.idle.policy import HOTKEY_COOLDOWN_S, InputAction
from screendimmer.core.lunar.gateway import CommandGateway
from screendimmer.core.power.coordinator import PowerEventCoordinator
from screendimmer.core.power.events import PowerEvent
from screendimmer.core.runtime.host import HostRuntime
from screendimmer.core.runtime.timers import TimerRegistry
from screendimmer.core.utils.exceptions import ConfigurationError, is_permission_denied

logger = logging.getLogger(__name__)


PERMISSION_TAG = "permission"
HOTKEY_TAG = "hotkey"
PERMISSION_RECHECK_S = 5.0


class ScreenDimmer:
    def __init__(self, runtime: HostRuntime, settings: Optional[DimmerSettings] = None):
        settings = settings or DimmerSettings()
        self.runtime = runtime
        self.timers = TimerRegistry(runtime)
        self.gateway = CommandGateway(
            runtime,
            self.timers,
            tool_path=settings.lunar_path,
            process_name=settings.lunar_process_name,
            launch_command=settings.lunar_launch_command,
        )
        self.machine = BrightnessStateMachine(
            runtime=runtime,
            timers=self.timers,
            gateway=self.gateway,
            settings=settings,
        )
        self.idle = IdleMonitor(self.machine, self.timers)
        self.coordinator = PowerEventCoordinator(self.machine, self.idle, self.timers)

        self._permitted = False
        self._configured = False
        self._start_requested = False
        self._subscriptions: list[Any] = []

    @property
    def state(self) -> OperationState:
        return self.machine.state

    @property
    def settings(self) -> DimmerSettings:
        return self.machine.settings

    def _update_initialized(self) -> None:
        self.state.initialized = self._permitted and self._configured

    # ---- initialization

    def _input_permitted(self) -> bool:
        try:
            return bool(self.runtime.input_monitoring_permitted())
        except Exception as exc:
            if is_permission_denied(exc):
                return False
            raise

    def init(self) -> bool:
        """Check that user input can be observed.

        Without it the service cannot tell when the user is active; it alerts
        once and re-checks periodically until access is granted.
        """

        if self._input_permitted():
            self._permitted = True
            self._update_initialized()
            return True

        self._permitted = False
        self._update_initialized()
        logger.error("Input monitoring is not permitted; waiting for access to /dev/input")
        self.runtime.alert("ScreenDimmer needs access to input devices (add your user to the 'input' group)")
        self.timers.cancel(PERMISSION_TAG)
        self.timers.call_every(PERMISSION_RECHECK_S, self._recheck_permission, tag=PERMISSION_TAG)
        return False

    def _recheck_permission(self) -> None:
        if not self._input_permitted():
            return

        self.timers.cancel(PERMISSION_TAG)
        self._permitted = True
        self._update_initialized()
        logger.info("Input monitoring permitted")
        if self._start_requested and self.state.initialized:
            self.start()

    def configure(self, settings: DimmerSettings) -> "ScreenDimmer":
        """Apply settings and verify the Lunar CLI.

        Raises ConfigurationError when the CLI cannot be run; the service then
        stays uninitialized and `start()` refuses to run.
        """

        self.machine.configure(settings)

        if not self.gateway.verify_tool():
            self._configured = False
            self._update_initialized()
            logger.error("Lunar CLI not usable at %s; check lunar_path", settings.lunar_path)
            raise ConfigurationError(f"Lunar CLI not usable at {settings.lunar_path}")

        self._configured = True
        self._update_initialized()
        logger.info(
            "Configured: idle timeout %.0fs, dim level %d, %d display override(s)",
            settings.idle_timeout_s,
            settings.dim_level,
            len(settings.displays),
        )

        # Pick up a changed check interval.
        if self.state.enabled and self.idle.running:
            self.idle.start()
        return self

    # ---- lifecycle

    def start(self) -> bool:
        self._start_requested = True
        state = self.state
        if not state.initialized:
            logger.error("Cannot start: not initialized")
            return False
        if state.enabled:
            return True

        now = self.runtime.monotonic()
        state.reset(now=now)
        state.locked = False
        state.screensaver_active = False
        state.enabled = True

        self._subscriptions = [
            self.runtime.subscribe_input(self.on_user_input),
            self.runtime.subscribe_power(self.handle_power_event),
        ]
        self.idle.start()
        logger.info("ScreenDimmer started")
        return True

    def stop(self, *, restore: bool = True) -> None:
        """Stop dimming; brings displays back first when they are dimmed."""

        self._start_requested = False
        state = self.state
        if not state.enabled:
            return

        state.enabled = False
        self.idle.pause()
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions = []

        if restore and state.restore_pending and self.machine.restore(reason="stop", on_done=self._teardown):
            return
        self._teardown()

    def _teardown(self) -> None:
        if self.state.enabled:
            return
        self.machine.shutdown()
        self.state.reset(now=self.runtime.monotonic())
        logger.info("ScreenDimmer stopped")

    def toggle(self) -> bool:
        if self.state.enabled:
            self.stop()
        else:
            self.start()
        return self.state.enabled

    # ---- user commands

    def toggle_dim(self) -> bool:
        """Dim now, or restore when dimmed. Returns whether an operation started."""

        state = self.state
        state.last_hotkey = self.runtime.monotonic()

        if state.restore_pending:
            return self.machine.restore(reason="hotkey")

        def _clear() -> None:
            state.hotkey_dimming = False

        state.hotkey_dimming = True
        self.timers.cancel(HOTKEY_TAG)
        self.timers.call_later(HOTKEY_COOLDOWN_S, _clear, tag=HOTKEY_TAG)
        return self.machine.dim(reason="hotkey")

    def reset_all_displays(self) -> bool:
        return self.machine.reset_all_displays()

    # ---- event entry points

    def on_user_input(self, kind: str = "input") -> InputAction:
        if not self.state.enabled:
            return InputAction.IGNORE
        return self.idle.on_user_input(kind)

    def handle_power_event(self, event: PowerEvent) -> None:
        self.coordinator.handle(event)

    # ---- status

    @property
    def phase(self) -> Phase:
        return self.machine.phase

    def status_text(self) -> str:
        state = self.state
        if not state.initialized:
            return "Not initialized"
        if not state.enabled:
            return "Disabled"
        return {
            Phase.IDLE: "Active",
            Phase.DIMMING: "Dimming...",
            Phase.DIMMED: "Dimmed",
            Phase.RESTORING: "Restoring...",
            Phase.WAKE_RESET: "Resetting after wake...",
            Phase.EMERGENCY_RESET: "Restarting Lunar...",
        }[self.phase]
