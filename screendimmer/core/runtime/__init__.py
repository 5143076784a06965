from .host import AsyncioHostRuntime, CommandOutput, HostRuntime
from .timers import TimerRegistry


__all__ = ["AsyncioHostRuntime", "CommandOutput", "HostRuntime", "TimerRegistry"]
