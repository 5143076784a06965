"""Parsing and matching for `lunar displays` output.

The listing is a sequence of blocks, one per display:

    0: Built-in
      EDID Name: Color LCD
      Serial: 4251
      ...
    1: DELL U2720Q
      EDID Name: DELL U2720Q
      Serial: 5A3B9C

Only the header, `EDID Name:` and `Serial:` lines are used; everything else is ignored.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Optional


_HEADER_RE = re.compile(r"^(\d+):\s+(.+?)\s*$")
_EDID_RE = re.compile(r"^\s*EDID Name:\s*(.+?)\s*$")
_SERIAL_RE = re.compile(r"^\s*Serial:\s*(.+?)\s*$")

# "DELL U2720Q#2" / "5A3B9C-2": ordinal suffixes added to disambiguate duplicates.
_SEQUENCE_SUFFIX_RE = re.compile(r"^(.*?)(?:#|-)(\d+)$")


@dataclass(frozen=True)
class LunarDisplayRecord:
    index: int
    name: str
    edid_name: str = ""
    serial: str = ""

    @property
    def control_id(self) -> str:
        """Identifier passed to `lunar displays <id> ...` (serial wins over name)."""

        return self.serial or self.name

    def identifiers(self) -> tuple[str, ...]:
        return tuple(v for v in (self.name, self.edid_name, self.serial) if v)


def parse_displays_listing(output: str) -> list[LunarDisplayRecord]:
    records: list[LunarDisplayRecord] = []
    current: Optional[dict] = None

    def _flush() -> None:
        if current is not None:
            records.append(LunarDisplayRecord(**current))

    for line in (output or "").splitlines():
        m = _HEADER_RE.match(line)
        if m:
            _flush()
            current = {"index": int(m.group(1)), "name": m.group(2)}
            continue

        if current is None:
            continue

        m = _EDID_RE.match(line)
        if m:
            current["edid_name"] = m.group(1)
            continue

        m = _SERIAL_RE.match(line)
        if m:
            current["serial"] = m.group(1)

    _flush()
    return records


def split_sequence_suffix(value: str) -> tuple[str, Optional[int]]:
    """Split `Name#2` into (`Name`, 2). Values without a suffix return (value, None)."""

    m = _SEQUENCE_SUFFIX_RE.match(value or "")
    if not m or not m.group(1):
        return value, None
    return m.group(1), int(m.group(2))


def _pick(candidates: Sequence[LunarDisplayRecord], ordinal: Optional[int]) -> Optional[LunarDisplayRecord]:
    if not candidates:
        return None
    if ordinal is not None and len(candidates) > 1:
        pos = ordinal - 1
        if 0 <= pos < len(candidates):
            return candidates[pos]
    return candidates[0]


def match_record(
    records: Iterable[LunarDisplayRecord],
    *,
    stable_id: str,
    name: str = "",
) -> Optional[LunarDisplayRecord]:
    """Find the listing record for a display.

    Order: exact identifier match, then the stable id with its sequence suffix
    stripped, then a case-insensitive substring match on the name.
    """

    recs = sorted(records, key=lambda r: r.index)
    if not recs:
        return None

    wanted = {v for v in (stable_id, name) if v}
    base, ordinal = split_sequence_suffix(stable_id)

    exact = [r for r in recs if wanted & set(r.identifiers())]
    if exact:
        return _pick(exact, ordinal)

    if ordinal is not None:
        stripped: list[LunarDisplayRecord] = []
        for r in recs:
            serial_base, _ = split_sequence_suffix(r.serial) if r.serial else ("", None)
            if base in r.identifiers() or (serial_base and serial_base == base):
                stripped.append(r)
        if stripped:
            return _pick(stripped, ordinal)

    needle = (name or base or "").strip().lower()
    if not needle:
        return None

    fuzzy = [
        r
        for r in recs
        if any(ident.lower() in needle or needle in ident.lower() for ident in r.identifiers())
    ]
    return _pick(fuzzy, ordinal)
