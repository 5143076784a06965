from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Optional

from .models import Display

if TYPE_CHECKING:
    from screendimmer.core.config.settings import DimmerSettings

logger = logging.getLogger(__name__)


def _ordering_fingerprint(displays: Sequence[Display], settings: "DimmerSettings") -> int:
    return hash(
        tuple(
            sorted(
                (
                    d.stable_id,
                    settings.priority_for(d.stable_id, d.name),
                    settings.dim_level_override(d.stable_id, d.name),
                )
                for d in displays
            )
        )
    )


class DisplayPrioritySorter:
    """Orders displays by configured priority, lower first.

    Ties (and displays without a priority) keep enumeration order. The order is
    cached and reused while the set of displays and their configuration is unchanged.
    """

    def __init__(self) -> None:
        self._fingerprint: Optional[int] = None
        self._count = 0
        self._order: list[str] = []

    def invalidate(self) -> None:
        self._fingerprint = None
        self._count = 0
        self._order = []

    def sort(self, displays: Sequence[Display], settings: "DimmerSettings") -> list[Display]:
        fingerprint = _ordering_fingerprint(displays, settings)
        by_id = {d.stable_id: d for d in displays}

        if fingerprint == self._fingerprint and self._count == len(displays) and set(self._order) == set(by_id):
            return [by_id[sid] for sid in self._order]

        ordered = [
            d
            for _, d in sorted(
                enumerate(displays),
                key=lambda pair: (settings.priority_for(pair[1].stable_id, pair[1].name), pair[0]),
            )
        ]
        self._fingerprint = fingerprint
        self._count = len(displays)
        self._order = [d.stable_id for d in ordered]
        logger.debug("Display order: %s", ", ".join(d.name for d in ordered))
        return ordered
