from __future__ import annotations

import importlib
import importlib.util
import logging
import os
import sys
from contextlib import suppress

from screendimmer.core.config.paths import lock_file_path


BACKEND_ENV = "PYSTRAY_BACKEND"

_pystray_mod = None
_pystray_item = None
_instance_lock_fh = None


logger = logging.getLogger(__name__)


def _appindicator_usable() -> bool:
    """True when PyGObject imports and exposes `require_version`.

    A stub or half-installed `gi` package breaks pystray's AppIndicator backend
    at import time.
    """

    try:
        if importlib.util.find_spec("gi") is None:
            return False
        return hasattr(importlib.import_module("gi"), "require_version")
    except Exception:
        return False


def _backend_candidates() -> list[str | None]:
    """Backends to try in order; None keeps whatever PYSTRAY_BACKEND already says."""

    if BACKEND_ENV in os.environ:
        return [None]
    if _appindicator_usable():
        return ["appindicator", "xorg"]
    return [None]


def get_pystray():
    """Return `(pystray, pystray.MenuItem)`, importing on first use.

    pystray talks to the display server at import time, so tray modules must
    stay importable on headless machines (tests, SSH sessions).
    """

    global _pystray_mod, _pystray_item

    if _pystray_mod is not None and _pystray_item is not None:
        return _pystray_mod, _pystray_item

    last_exc: Exception | None = None
    for backend in _backend_candidates():
        if backend is not None:
            os.environ[BACKEND_ENV] = backend
        logger.info("pystray backend: %s", os.environ.get(BACKEND_ENV, "default"))
        try:
            _pystray_mod = importlib.import_module("pystray")
            break
        except Exception as exc:
            # Drop the half-initialized module so the next backend imports cleanly.
            sys.modules.pop("pystray", None)
            last_exc = exc
    else:
        raise RuntimeError("pystray could not be initialized; the tray needs a desktop session") from last_exc

    _pystray_item = getattr(_pystray_mod, "MenuItem")
    return _pystray_mod, _pystray_item


def acquire_single_instance_lock() -> bool:
    """Ensure only one ScreenDimmer drives the displays.

    The lock is an flock on `<config dir>/screendimmer.lock`, held for the
    process lifetime. Platforms without fcntl are not guarded.
    """

    global _instance_lock_fh

    try:
        import fcntl
    except ImportError:
        return True

    lock_path = lock_file_path()
    with suppress(OSError):
        lock_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        fh = open(lock_path, "a+")
    except OSError as exc:
        logger.warning("Cannot open instance lock: %s", exc)
        return False

    try:
        fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        fh.close()
        return False

    fh.seek(0)
    fh.truncate()
    fh.write(f"pid={os.getpid()}\n")
    fh.flush()
    _instance_lock_fh = fh
    return True
