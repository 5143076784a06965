from .monitor import IdleMonitor
from .policy import InputAction


__all__ = ["IdleMonitor", "InputAction"]
