from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Optional

from screendimmer.core.power.events import PowerEvent

from ._dbus_monitor import start_line_monitor


SCREENSAVER_MONITOR_CMD = [
    "dbus-monitor",
    "--session",
    "type='signal',interface='org.freedesktop.ScreenSaver',member='ActiveChanged'",
]


def iter_screensaver_events(lines: Iterable[str]) -> Iterator[PowerEvent]:
    it = iter(lines)
    for line in it:
        if "member=ActiveChanged" not in line:
            continue

        try:
            next_line = next(it)
        except StopIteration:
            return

        if "boolean true" in next_line:
            yield PowerEvent.SCREENSAVER_STARTED
        elif "boolean false" in next_line:
            yield PowerEvent.SCREENSAVER_STOPPED


def start_screensaver_monitoring(
    *,
    is_running: Callable[[], bool],
    on_event: Callable[[PowerEvent], None],
    logger,
) -> Optional[Callable[[], None]]:
    return start_line_monitor(
        name="screensaver",
        cmd=SCREENSAVER_MONITOR_CMD,
        parse=iter_screensaver_events,
        is_running=is_running,
        on_event=on_event,
        logger=logger,
    )
