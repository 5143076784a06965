from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator
from typing import Optional

from screendimmer.core.power.events import PowerEvent

from ._dbus_monitor import start_line_monitor


DRM_MONITOR_CMD = ["udevadm", "monitor", "--udev", "--subsystem-match=drm"]

# UDEV  [12345.678901] change   /devices/pci0000:00/0000:00:02.0/drm/card0 (drm)
_UDEV_EVENT_RE = re.compile(r"^\s*UDEV\s+\[[\d.]+\]\s+(add|remove|change)\s+\S+\s+\(drm\)")


def iter_drm_events(lines: Iterable[str]) -> Iterator[PowerEvent]:
    """Display hot-plug notifications from `udevadm monitor` output.

    A single reconnect produces a burst of events; debouncing is the consumer's job.
    """

    for line in lines:
        if _UDEV_EVENT_RE.match(line):
            yield PowerEvent.DISPLAYS_CHANGED


def start_drm_hotplug_monitoring(
    *,
    is_running: Callable[[], bool],
    on_event: Callable[[PowerEvent], None],
    logger,
) -> Optional[Callable[[], None]]:
    return start_line_monitor(
        name="drm",
        cmd=DRM_MONITOR_CMD,
        parse=iter_drm_events,
        is_running=is_running,
        on_event=on_event,
        logger=logger,
    )
