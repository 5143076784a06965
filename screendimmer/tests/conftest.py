from __future__ import annotations

import heapq
import itertools
import os
import tempfile
from dataclasses import dataclass
from typing import Optional

import pytest


# Safety default: during pytest, avoid touching the user's real config and lock file.
os.environ.setdefault(
    "SCREENDIMMER_CONFIG_DIR",
    tempfile.mkdtemp(prefix="screendimmer-test-config-"),
)


from screendimmer.core.config.settings import DimmerSettings  # noqa: E402
from screendimmer.core.displays.models import DisplayHandle  # noqa: E402
from screendimmer.core.engine.machine import BrightnessStateMachine  # noqa: E402
from screendimmer.core.logging_utils import reset_throttle_state  # noqa: E402
from screendimmer.core.lunar.gateway import CommandGateway  # noqa: E402
from screendimmer.core.runtime.host import CommandOutput  # noqa: E402
from screendimmer.core.runtime.timers import TimerRegistry  # noqa: E402
from screendimmer.core.service import ScreenDimmer  # noqa: E402


LUNAR = "/usr/local/bin/lunar"


@dataclass
class FakeLunarDisplay:
    name: str
    serial: str = ""
    edid_name: str = ""
    brightness: int = 70
    subzero: bool = False
    dimming: float = 1.0
    # When set, brightness writes are ignored and reads return this value.
    stuck_at: Optional[int] = None
    failing: bool = False

    def ids(self) -> set[str]:
        return {v for v in (self.name, self.serial) if v}


class FakeLunar:
    """In-memory stand-in for the Lunar CLI (answers argv like the real tool)."""

    def __init__(self, displays: Optional[list[FakeLunarDisplay]] = None, *, help_ok: bool = True):
        self.displays = list(displays or [])
        self.help_ok = help_ok
        self.fail_next = 0

    def display(self, display_id: str) -> FakeLunarDisplay:
        for d in self.displays:
            if display_id in d.ids():
                return d
        raise KeyError(display_id)

    def listing(self) -> str:
        lines = []
        for i, d in enumerate(self.displays):
            lines.append(f"{i}: {d.name}")
            lines.append(f"  EDID Name: {d.edid_name or d.name}")
            if d.serial:
                lines.append(f"  Serial: {d.serial}")
            lines.append("  Has DDC: true")
        return "\n".join(lines) + "\n"

    def handle(self, args: list[str]) -> CommandOutput:
        if self.fail_next > 0:
            self.fail_next -= 1
            return CommandOutput(returncode=1, stderr="transient failure")

        if args == ["--help"]:
            return CommandOutput(returncode=0 if self.help_ok else 127, stdout="USAGE: lunar <subcommand>")
        if args == ["displays"]:
            return CommandOutput(returncode=0, stdout=self.listing())

        if len(args) < 3 or args[0] != "displays":
            return CommandOutput(returncode=64, stderr="unknown command")

        try:
            d = self.display(args[1])
        except KeyError:
            return CommandOutput(returncode=1, stderr="display not found")
        if d.failing:
            return CommandOutput(returncode=1, stderr="DDC failure")

        rest = args[2:]
        if rest == ["brightness", "--read"]:
            value = d.brightness if d.stuck_at is None else d.stuck_at
            return CommandOutput(returncode=0, stdout=f"brightness: {value}\n")
        if rest[0] == "brightness" and len(rest) == 2:
            if d.stuck_at is None:
                d.brightness = int(rest[1])
            return CommandOutput(returncode=0)
        if rest[0] == "subzero" and len(rest) == 2:
            d.subzero = rest[1] == "true"
            if not d.subzero:
                d.dimming = 1.0
            return CommandOutput(returncode=0)
        if rest == ["subzeroDimming"]:
            value = d.dimming if d.subzero else 1.0
            return CommandOutput(returncode=0, stdout=f"subzeroDimming: {value:.2f}\n")
        if rest[0] == "subzeroDimming" and len(rest) == 2:
            d.dimming = float(rest[1])
            return CommandOutput(returncode=0)
        if rest == ["gamma", "reset"]:
            return CommandOutput(returncode=0)
        return CommandOutput(returncode=64, stderr="unknown command")


class _FakeHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeRuntime:
    """Manual-clock HostRuntime. Nothing fires until `advance()` is called."""

    def __init__(self, lunar: FakeLunar, displays: Optional[list[DisplayHandle]] = None):
        self.lunar = lunar
        self.displays = list(displays or [])
        self.now = 0.0
        self.commands: list[list[str]] = []
        self.command_times: list[float] = []
        self.alerts: list[str] = []
        self.spawned: list[list[str]] = []
        self.process_running = True
        self.permitted = True
        self.input_subscribers: list = []
        self.power_subscribers: list = []
        self._seq = itertools.count()
        self._queue: list = []

    # ---- clock and timers

    def monotonic(self) -> float:
        return self.now

    def _push(self, when: float, fn, interval: Optional[float]) -> _FakeHandle:
        handle = _FakeHandle()
        heapq.heappush(self._queue, (when, next(self._seq), handle, fn, interval))
        return handle

    def call_later(self, delay_s: float, fn) -> _FakeHandle:
        return self._push(self.now + max(0.0, float(delay_s)), fn, None)

    def call_every(self, interval_s: float, fn) -> _FakeHandle:
        return self._push(self.now + float(interval_s), fn, float(interval_s))

    def post(self, fn) -> None:
        fn()

    def advance(self, seconds: float) -> None:
        end = self.now + seconds
        while self._queue and self._queue[0][0] <= end:
            when, _, handle, fn, interval = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = when
            if interval is not None:
                heapq.heappush(self._queue, (when + interval, next(self._seq), handle, fn, interval))
            fn()
        self.now = end

    # ---- host services

    def list_displays(self) -> list[DisplayHandle]:
        return list(self.displays)

    def run_command(self, argv, *, timeout_s: float) -> CommandOutput:
        argv = list(argv)
        self.commands.append(argv)
        self.command_times.append(self.now)
        if argv and argv[0] == LUNAR:
            return self.lunar.handle(argv[1:])
        return CommandOutput(returncode=0)

    def lunar_commands(self, *suffix: str) -> list[list[str]]:
        """Lunar argvs (without the tool path) ending with `suffix`."""

        out = [c[1:] for c in self.commands if c and c[0] == LUNAR]
        if suffix:
            out = [c for c in out if tuple(c[-len(suffix):]) == suffix]
        return out

    def spawn(self, argv) -> bool:
        self.spawned.append(list(argv))
        return True

    def is_process_running(self, name: str) -> bool:
        return self.process_running

    def alert(self, message: str, *, duration_s: float = 3.0) -> None:
        self.alerts.append(message)

    def input_monitoring_permitted(self) -> bool:
        return self.permitted

    def subscribe_input(self, on_input) -> _FakeHandle:
        self.input_subscribers.append(on_input)
        return _FakeHandle()

    def subscribe_power(self, on_event) -> _FakeHandle:
        self.power_subscribers.append(on_event)
        return _FakeHandle()


def _default_lunar_displays() -> list[FakeLunarDisplay]:
    return [
        FakeLunarDisplay(name="Built-in", edid_name="Color LCD", serial="4251"),
        FakeLunarDisplay(name="DELL U2720Q", serial="5A3B9C"),
    ]


def _default_handles() -> list[DisplayHandle]:
    return [
        DisplayHandle(index=0, name="Built-in", serial="4251", method="sysfiles", is_internal=True),
        DisplayHandle(index=1, name="DELL U2720Q", serial="5A3B9C", method="ddcci"),
    ]


@pytest.fixture(autouse=True)
def _reset_log_throttle():
    reset_throttle_state()
    yield
    reset_throttle_state()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("SCREENDIMMER_DEBUG", raising=False)


@pytest.fixture
def settings() -> DimmerSettings:
    return DimmerSettings(lunar_path=LUNAR, lunar_process_name=None, lunar_launch_command=())


@pytest.fixture
def make_runtime():
    """Factory: FakeRuntime with a built-in panel and one external monitor by default."""

    def _make(lunar_displays=None, handles=None, **lunar_kwargs) -> FakeRuntime:
        lunar = FakeLunar(_default_lunar_displays() if lunar_displays is None else lunar_displays, **lunar_kwargs)
        return FakeRuntime(lunar, _default_handles() if handles is None else handles)

    return _make


@pytest.fixture
def runtime(make_runtime) -> FakeRuntime:
    return make_runtime()


@pytest.fixture
def make_machine(settings):
    """Factory: an enabled, initialized state machine on a FakeRuntime."""

    def _make(runtime: FakeRuntime, **overrides) -> BrightnessStateMachine:
        s = settings.with_overrides(**overrides) if overrides else settings
        timers = TimerRegistry(runtime)
        gateway = CommandGateway(
            runtime,
            timers,
            tool_path=s.lunar_path,
            process_name=s.lunar_process_name,
            launch_command=s.lunar_launch_command,
        )
        machine = BrightnessStateMachine(runtime=runtime, timers=timers, gateway=gateway, settings=s)
        machine.state.enabled = True
        machine.state.initialized = True
        return machine

    return _make


@pytest.fixture
def make_service(settings):
    """Factory: a configured, initialized (not started) ScreenDimmer."""

    def _make(runtime: FakeRuntime, **overrides) -> ScreenDimmer:
        s = settings.with_overrides(**overrides) if overrides else settings
        service = ScreenDimmer(runtime, s)
        service.init()
        service.configure(s)
        return service

    return _make
