from .exceptions import (
    ConfigurationError,
    PermissionDeniedError,
    ScreenDimmerError,
    is_device_disconnected,
    is_permission_denied,
)

__all__ = [
    "ConfigurationError",
    "PermissionDeniedError",
    "ScreenDimmerError",
    "is_device_disconnected",
    "is_permission_denied",
]
