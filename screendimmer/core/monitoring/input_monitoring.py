"""User activity from evdev input devices.

Reading /dev/input requires membership in the `input` group (or an equivalent
udev rule). Without it no device can be opened, which is the permission
failure the service reports to the user.
"""

from __future__ import annotations

import glob
import os
import select
import threading
import time
from collections.abc import Callable
from typing import Optional

from screendimmer.core.utils.exceptions import PermissionDeniedError, is_device_disconnected


INPUT_NODE_GLOB = "/dev/input/event*"

# Mouse motion floods events; the loop only needs to hear about activity.
POST_INTERVAL_S = 0.1


def classify_event(event_type: int, code: int, value: int, ecodes) -> Optional[str]:
    """'key', 'mouse', 'scroll' or None for events that are not user activity."""

    if event_type == ecodes.EV_KEY:
        return "key" if value == 1 else None
    if event_type == ecodes.EV_REL:
        if code in (ecodes.REL_WHEEL, ecodes.REL_HWHEEL):
            return "scroll"
        return "mouse"
    if event_type == ecodes.EV_ABS:
        return "mouse"
    return None


def open_input_devices() -> list:
    """Open every readable device that reports keys or relative motion.

    Raises PermissionDeniedError when input nodes exist but none can be read.
    """

    import evdev  # type: ignore

    nodes = glob.glob(INPUT_NODE_GLOB)
    readable = evdev.list_devices()
    if nodes and not readable and not any(os.access(n, os.R_OK) for n in nodes):
        raise PermissionDeniedError("No readable input devices; add the user to the 'input' group")

    out = []
    for path in readable:
        try:
            dev = evdev.InputDevice(path)
        except OSError:
            continue
        try:
            caps = dev.capabilities(verbose=False)
        except OSError:
            dev.close()
            continue
        if evdev.ecodes.EV_KEY in caps or evdev.ecodes.EV_REL in caps:
            out.append(dev)
        else:
            dev.close()
    return out


def input_devices_accessible() -> bool:
    try:
        devices = open_input_devices()
    except (ImportError, PermissionDeniedError):
        return False
    for dev in devices:
        dev.close()
    return bool(devices)


def start_input_monitoring(
    *,
    is_running: Callable[[], bool],
    on_input: Callable[[str], None],
    logger,
) -> Optional[Callable[[], None]]:
    """Start a background thread reporting user activity kinds to `on_input`."""

    try:
        import evdev  # type: ignore

        devices = open_input_devices()
    except ImportError:
        logger.warning("evdev is not installed; user activity cannot be observed")
        return None
    except PermissionDeniedError as exc:
        logger.warning("%s", exc)
        return None

    if not devices:
        logger.warning("No input devices found")
        return None

    logger.info("Watching %d input device(s)", len(devices))
    stop = threading.Event()

    def _loop() -> None:
        live = list(devices)
        last_post = 0.0
        try:
            while is_running() and not stop.is_set() and live:
                r, _, _ = select.select(live, [], [], 0.5)
                for dev in r:
                    try:
                        events = list(dev.read())
                    except OSError as exc:
                        if is_device_disconnected(exc):
                            logger.info("Input device removed: %s", getattr(dev, "name", dev))
                            live.remove(dev)
                            continue
                        raise
                    kinds = [classify_event(e.type, e.code, e.value, evdev.ecodes) for e in events]
                    kind = next((k for k in kinds if k), None)
                    now = time.monotonic()
                    if kind is not None and now - last_post >= POST_INTERVAL_S:
                        last_post = now
                        on_input(kind)
        except Exception as exc:
            logger.exception("Input monitoring failed: %s", exc)
        finally:
            for dev in live:
                try:
                    dev.close()
                except OSError:
                    pass

    threading.Thread(target=_loop, name="input-monitor", daemon=True).start()
    return stop.set
