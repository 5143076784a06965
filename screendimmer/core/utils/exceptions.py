from __future__ import annotations


class ScreenDimmerError(Exception):
    """Base class for ScreenDimmer errors."""


class ConfigurationError(ScreenDimmerError):
    """Raised when the configuration cannot be used (e.g. bad Lunar CLI path)."""


class PermissionDeniedError(ScreenDimmerError):
    """Raised when input monitoring is not permitted for the current user."""


def is_permission_denied(exc: Exception) -> bool:
    """Best-effort check for permission/authorization failures.

    Opening /dev/input nodes without the right group membership surfaces as
    PermissionError, OSError with errno, or a wrapped message depending on the
    evdev version.
    """

    if isinstance(exc, (PermissionError, PermissionDeniedError)):
        return True

    errno = getattr(exc, "errno", None)
    if errno in (1, 13):
        # EPERM=1, EACCES=13
        return True

    try:
        msg = str(exc).lower()
    except Exception:
        return False

    return "permission denied" in msg or "access denied" in msg or "not permitted" in msg


def is_device_disconnected(exc: Exception) -> bool:
    """Best-effort check for an input device that disappeared (unplugged keyboard)."""

    errno = getattr(exc, "errno", None)
    if errno == 19:
        return True

    try:
        msg = str(exc)
    except Exception:
        return False

    return "No such device" in msg
