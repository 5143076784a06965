"""Tagged registry of deferred callbacks.

Every delayed or repeating callback the engine schedules goes through here so a
job (and everything it scheduled, retries included) can be cancelled by tag.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .host import HostRuntime

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    tag: str
    handle: Any
    repeating: bool


class TimerRegistry:
    def __init__(self, runtime: "HostRuntime"):
        self._runtime = runtime
        self._entries: dict[int, _Entry] = {}
        self._ids = itertools.count(1)

    def call_later(self, delay_s: float, fn: Callable[[], None], *, tag: str) -> int:
        token = next(self._ids)

        def _fire() -> None:
            if self._entries.pop(token, None) is None:
                return
            fn()

        handle = self._runtime.call_later(max(0.0, float(delay_s)), _fire)
        self._entries[token] = _Entry(tag=tag, handle=handle, repeating=False)
        return token

    def call_every(self, interval_s: float, fn: Callable[[], None], *, tag: str) -> int:
        token = next(self._ids)

        def _tick() -> None:
            if token not in self._entries:
                return
            fn()

        handle = self._runtime.call_every(float(interval_s), _tick)
        self._entries[token] = _Entry(tag=tag, handle=handle, repeating=True)
        return token

    def cancel(self, tag: Optional[str] = None) -> int:
        """Cancel every entry with `tag` (all entries when tag is None)."""

        tokens = [t for t, e in self._entries.items() if tag is None or e.tag == tag]
        for token in tokens:
            self.cancel_token(token)
        if tokens:
            logger.debug("Cancelled %d timer(s) tagged %s", len(tokens), tag or "*")
        return len(tokens)

    def cancel_token(self, token: int) -> bool:
        entry = self._entries.pop(token, None)
        if entry is None:
            return False
        try:
            entry.handle.cancel()
        except Exception as exc:
            logger.debug("Timer cancel failed: %s", exc)
        return True

    def pending(self, tag: Optional[str] = None) -> int:
        return sum(1 for e in self._entries.values() if tag is None or e.tag == tag)

    def tags(self) -> set[str]:
        return {e.tag for e in self._entries.values()}

    def __len__(self) -> int:
        return len(self._entries)
