"""Display identity: stable ids for enumerated displays and their Lunar ids."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from typing import TYPE_CHECKING, Optional

from screendimmer.core.logging_utils import log_throttled
from screendimmer.core.lunar import commands
from screendimmer.core.lunar.listing import LunarDisplayRecord, match_record, parse_displays_listing

from .models import Display, DisplayHandle

if TYPE_CHECKING:
    from screendimmer.core.lunar.gateway import CommandGateway

logger = logging.getLogger(__name__)


def _base_identifier(handle: DisplayHandle) -> str:
    return handle.uuid or handle.serial or handle.name or f"Display {handle.index}"


def stable_identifier(handle: DisplayHandle, handles: Sequence[DisplayHandle] = ()) -> str:
    """uuid, else serial, else name; duplicates get an ordinal suffix (`Name#2`).

    Ordinals count same-named displays in enumeration order starting at 1.
    """

    base = _base_identifier(handle)
    same = sorted((h for h in handles if _base_identifier(h) == base), key=lambda h: h.index)
    if len(same) <= 1:
        return base
    for ordinal, h in enumerate(same, start=1):
        if h == handle:
            return f"{base}#{ordinal}"
    return base


class DisplayIdentityResolver:
    """Resolves handles to `Display`s and caches the result until invalidated."""

    def __init__(self, gateway: "CommandGateway"):
        self._gateway = gateway
        self._resolved_key: Optional[tuple[DisplayHandle, ...]] = None
        self._resolved: list[Display] = []
        self._records: Optional[list[LunarDisplayRecord]] = None
        self._lunar_ids: dict[tuple[str, str], Optional[str]] = {}

    def invalidate(self) -> None:
        self._resolved_key = None
        self._resolved = []
        self._records = None
        self._lunar_ids.clear()

    def lunar_records(self) -> list[LunarDisplayRecord]:
        if self._records is not None:
            return list(self._records)

        result = self._gateway.read(commands.list_displays_argv(self._gateway.tool_path))
        if not result.ok:
            log_throttled(
                logger,
                "identity.listing_failed",
                interval_s=30,
                level=logging.WARNING,
                msg=f"Could not list Lunar displays: {result.error}",
            )
            return []

        records = parse_displays_listing(result.output)
        # An empty listing is not cached; the utility may still be starting.
        if records:
            self._records = records
            logger.debug("Lunar knows %d display(s): %s", len(records), ", ".join(r.name for r in records))
        return list(records)

    def lunar_identifier_for(self, stable_id: str, *, name: str = "") -> Optional[str]:
        key = (stable_id, name)
        if key in self._lunar_ids:
            return self._lunar_ids[key]

        records = self.lunar_records()
        if not records:
            return None

        record = match_record(records, stable_id=stable_id, name=name)
        lunar_id = record.control_id if record is not None else None
        self._lunar_ids[key] = lunar_id

        if lunar_id is None:
            log_throttled(
                logger,
                f"identity.unresolved.{stable_id}",
                interval_s=300,
                level=logging.WARNING,
                msg=f"No Lunar display matches {name or stable_id!r}; it will be skipped",
            )
        return lunar_id

    def resolve_all(self, handles: Sequence[DisplayHandle]) -> list[Display]:
        key = tuple(handles)
        if self._resolved_key == key:
            return list(self._resolved)

        counts = Counter(_base_identifier(h) for h in handles)
        displays = []
        for handle in handles:
            stable_id = stable_identifier(handle, handles) if counts[_base_identifier(handle)] > 1 else _base_identifier(handle)
            displays.append(
                Display(
                    stable_id=stable_id,
                    handle=handle,
                    lunar_id=self.lunar_identifier_for(stable_id, name=handle.name),
                )
            )

        # Keep unresolved results out of the cache so a late listing gets picked up.
        if all(d.lunar_id is not None for d in displays):
            self._resolved_key = key
            self._resolved = displays
        return list(displays)
