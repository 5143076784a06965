"""Host runtime: clock, timers, process execution and OS event sources.

The engine only talks to the host through `HostRuntime`. Production uses
`AsyncioHostRuntime`, which owns an asyncio loop running on a daemon thread.
Background event sources (dbus-monitor, udevadm, evdev) run on their own
threads and hand events to the loop with `post()`, so engine state is only
ever touched from the loop thread.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import screen_brightness_control as sbc

from screendimmer.core.displays.models import DisplayHandle, looks_internal
from screendimmer.core.logging_utils import log_throttled
from screendimmer.core.power.events import PowerEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutput:
    """Result of one external command. `returncode` is None when it never completed."""

    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Cancellable(Protocol):
    def cancel(self) -> Any: ...


class HostRuntime(Protocol):
    def monotonic(self) -> float: ...

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> Cancellable: ...

    def call_every(self, interval_s: float, fn: Callable[[], None]) -> Cancellable: ...

    def post(self, fn: Callable[[], None]) -> None: ...

    def list_displays(self) -> list[DisplayHandle]: ...

    def run_command(self, argv: Sequence[str], *, timeout_s: float) -> CommandOutput: ...

    def spawn(self, argv: Sequence[str]) -> bool: ...

    def is_process_running(self, name: str) -> bool: ...

    def alert(self, message: str, *, duration_s: float = 3.0) -> None: ...

    def input_monitoring_permitted(self) -> bool: ...

    def subscribe_input(self, on_input: Callable[[str], None]) -> Cancellable: ...

    def subscribe_power(self, on_event: Callable[[PowerEvent], None]) -> Cancellable: ...


class _RepeatingHandle:
    def __init__(self, loop: asyncio.AbstractEventLoop, interval_s: float, fn: Callable[[], None]):
        self._loop = loop
        self._interval_s = max(0.01, float(interval_s))
        self._fn = fn
        self._cancelled = False
        self._handle = loop.call_later(self._interval_s, self._tick)

    def _tick(self) -> None:
        if self._cancelled:
            return
        try:
            self._fn()
        finally:
            if not self._cancelled:
                self._handle = self._loop.call_later(self._interval_s, self._tick)

    def cancel(self) -> None:
        self._cancelled = True
        self._handle.cancel()


class _Subscription:
    """Stops a set of monitor threads by flipping their shared running flag."""

    def __init__(self, name: str):
        self.name = name
        self._running = True
        self._stoppers: list[Callable[[], None]] = []

    def is_running(self) -> bool:
        return self._running

    def add_stopper(self, fn: Callable[[], None]) -> None:
        self._stoppers.append(fn)

    def cancel(self) -> None:
        self._running = False
        for stop in self._stoppers:
            try:
                stop()
            except Exception as exc:
                logger.debug("Stopping %s monitor failed: %s", self.name, exc)


def _method_name(raw_method: Any) -> str:
    if raw_method is None:
        return ""
    return str(getattr(raw_method, "__name__", raw_method))


def handles_from_monitor_info(infos: Sequence[dict]) -> list[DisplayHandle]:
    """Convert `screen_brightness_control.list_monitors_info()` dicts to handles.

    `index` is the position in the enumeration; the library's own `index` is
    only unique per method.
    """

    handles: list[DisplayHandle] = []
    for i, info in enumerate(infos or ()):
        name = str(info.get("name") or info.get("model") or f"Display {i}").strip()
        method = _method_name(info.get("method"))
        handles.append(
            DisplayHandle(
                index=i,
                name=name,
                edid_name=str(info.get("model") or "").strip(),
                serial=str(info.get("serial") or "").strip(),
                uuid=str(info.get("uuid") or "").strip(),
                method=method,
                is_internal=looks_internal(name, method),
            )
        )
    return handles


class AsyncioHostRuntime:
    def __init__(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        *,
        alert_fn: Optional[Callable[[str], bool]] = None,
    ):
        self.loop = loop or asyncio.new_event_loop()
        self._alert_fn = alert_fn
        self._thread: Optional[threading.Thread] = None

    # ---- loop lifecycle

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        def _run() -> None:
            asyncio.set_event_loop(self.loop)
            self.loop.run_forever()

        self._thread = threading.Thread(target=_run, name="screendimmer-loop", daemon=True)
        self._thread.start()

    def shutdown(self, timeout_s: float = 2.0) -> None:
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        if self._thread is not None:
            self._thread.join(timeout=timeout_s)
        self._thread = None

    def set_alert_handler(self, fn: Optional[Callable[[str], bool]]) -> None:
        self._alert_fn = fn

    # ---- clock and timers

    def monotonic(self) -> float:
        return time.monotonic()

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> Cancellable:
        return self.loop.call_later(max(0.0, float(delay_s)), fn)

    def call_every(self, interval_s: float, fn: Callable[[], None]) -> Cancellable:
        return _RepeatingHandle(self.loop, interval_s, fn)

    def post(self, fn: Callable[[], None]) -> None:
        self.loop.call_soon_threadsafe(fn)

    # ---- displays

    def list_displays(self) -> list[DisplayHandle]:
        try:
            infos = sbc.list_monitors_info(allow_duplicates=True)
        except Exception as exc:
            log_throttled(
                logger,
                "runtime.list_displays",
                interval_s=60,
                level=logging.WARNING,
                msg="Display enumeration failed",
                exc=exc,
            )
            return []
        return handles_from_monitor_info(infos)

    # ---- processes

    def run_command(self, argv: Sequence[str], *, timeout_s: float) -> CommandOutput:
        try:
            proc = subprocess.run(
                list(argv),
                capture_output=True,
                text=True,
                timeout=max(0.01, float(timeout_s)),
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.debug("Command timed out after %.2fs: %s", timeout_s, " ".join(argv))
            return CommandOutput(returncode=None, stderr="timeout")
        except OSError as exc:
            logger.debug("Command failed to start: %s (%s)", " ".join(argv), exc)
            return CommandOutput(returncode=None, stderr=str(exc))
        return CommandOutput(returncode=proc.returncode, stdout=proc.stdout or "", stderr=proc.stderr or "")

    def spawn(self, argv: Sequence[str]) -> bool:
        if not argv:
            return False
        try:
            subprocess.Popen(
                list(argv),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
            return True
        except OSError as exc:
            logger.warning("Failed to launch %s: %s", argv[0], exc)
            return False

    def is_process_running(self, name: str) -> bool:
        out = self.run_command(["pgrep", "-x", str(name)], timeout_s=2.0)
        return out.ok

    # ---- user feedback

    def alert(self, message: str, *, duration_s: float = 3.0) -> None:
        logger.info("Alert: %s", message)
        if self._alert_fn is not None:
            try:
                if self._alert_fn(message):
                    return
            except Exception as exc:
                logger.debug("Alert handler failed, falling back to notify-send: %s", exc)

        if shutil.which("notify-send"):
            self.spawn(["notify-send", "-t", str(int(duration_s * 1000)), "ScreenDimmer", message])

    # ---- event sources

    def input_monitoring_permitted(self) -> bool:
        from screendimmer.core.monitoring.input_monitoring import input_devices_accessible

        return input_devices_accessible()

    def subscribe_input(self, on_input: Callable[[str], None]) -> Cancellable:
        from screendimmer.core.monitoring.input_monitoring import start_input_monitoring

        sub = _Subscription("input")
        stopper = start_input_monitoring(
            is_running=sub.is_running,
            on_input=lambda kind: self.post(lambda: on_input(kind)),
            logger=logger,
        )
        if stopper is not None:
            sub.add_stopper(stopper)
        return sub

    def subscribe_power(self, on_event: Callable[[PowerEvent], None]) -> Cancellable:
        from screendimmer.core.monitoring.drm_monitoring import start_drm_hotplug_monitoring
        from screendimmer.core.monitoring.login1_monitoring import start_login1_monitoring
        from screendimmer.core.monitoring.screensaver_monitoring import start_screensaver_monitoring

        sub = _Subscription("power")

        def _deliver(event: PowerEvent) -> None:
            self.post(lambda: on_event(event))

        for start in (start_login1_monitoring, start_screensaver_monitoring, start_drm_hotplug_monitoring):
            stopper = start(is_running=sub.is_running, on_event=_deliver, logger=logger)
            if stopper is not None:
                sub.add_stopper(stopper)
        return sub
