from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Optional

from screendimmer.core.power.events import PowerEvent

from ._dbus_monitor import start_line_monitor


LOGIN1_MONITOR_CMD = [
    "dbus-monitor",
    "--system",
    "type='signal',interface='org.freedesktop.login1.Manager',member='PrepareForSleep'",
    "type='signal',interface='org.freedesktop.login1.Session',member='Lock'",
    "type='signal',interface='org.freedesktop.login1.Session',member='Unlock'",
]


def iter_login1_events(lines: Iterable[str]) -> Iterator[PowerEvent]:
    """Sleep/wake and session lock/unlock events from `dbus-monitor --system` output."""

    it = iter(lines)
    for line in it:
        if "member=PrepareForSleep" in line:
            try:
                next_line = next(it)
            except StopIteration:
                return
            if "boolean true" in next_line:
                yield PowerEvent.WILL_SLEEP
            elif "boolean false" in next_line:
                yield PowerEvent.DID_WAKE
        elif "member=Unlock" in line:
            yield PowerEvent.SCREENS_UNLOCKED
        elif "member=Lock" in line:
            yield PowerEvent.SCREENS_LOCKED


def start_login1_monitoring(
    *,
    is_running: Callable[[], bool],
    on_event: Callable[[PowerEvent], None],
    logger,
) -> Optional[Callable[[], None]]:
    """Run `dbus-monitor` for logind sleep and session lock signals."""

    return start_line_monitor(
        name="login1",
        cmd=LOGIN1_MONITOR_CMD,
        parse=iter_login1_events,
        is_running=is_running,
        on_event=on_event,
        logger=logger,
    )
