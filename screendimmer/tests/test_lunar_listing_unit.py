from __future__ import annotations

from screendimmer.core.lunar.listing import (
    LunarDisplayRecord,
    match_record,
    parse_displays_listing,
    split_sequence_suffix,
)


LISTING = """\
0: Built-in
  EDID Name: Color LCD
  Serial: 4251
  Has DDC: false
1: DELL U2720Q
  EDID Name: DELL U2720Q
  Serial: 5A3B9C
2: DELL U2720Q
  EDID Name: DELL U2720Q
  Serial: 5A3B9D
"""


def test_parse_displays_listing_reads_header_edid_and_serial() -> None:
    records = parse_displays_listing(LISTING)

    assert records == [
        LunarDisplayRecord(index=0, name="Built-in", edid_name="Color LCD", serial="4251"),
        LunarDisplayRecord(index=1, name="DELL U2720Q", edid_name="DELL U2720Q", serial="5A3B9C"),
        LunarDisplayRecord(index=2, name="DELL U2720Q", edid_name="DELL U2720Q", serial="5A3B9D"),
    ]


def test_parse_displays_listing_ignores_noise_and_empty_output() -> None:
    assert parse_displays_listing("") == []
    assert parse_displays_listing("Lunar is starting...\n") == []


def test_control_id_prefers_serial() -> None:
    assert LunarDisplayRecord(index=0, name="Sidecar").control_id == "Sidecar"
    assert LunarDisplayRecord(index=0, name="DELL", serial="5A3B9C").control_id == "5A3B9C"


def test_split_sequence_suffix() -> None:
    assert split_sequence_suffix("DELL U2720Q#2") == ("DELL U2720Q", 2)
    assert split_sequence_suffix("5A3B9C-3") == ("5A3B9C", 3)
    assert split_sequence_suffix("Built-in") == ("Built-in", None)
    assert split_sequence_suffix("#2") == ("#2", None)


def test_match_record_exact_serial() -> None:
    records = parse_displays_listing(LISTING)

    assert match_record(records, stable_id="4251", name="Built-in").control_id == "4251"


def test_match_record_duplicates_pick_by_ordinal() -> None:
    records = parse_displays_listing(LISTING)

    first = match_record(records, stable_id="DELL U2720Q#1", name="DELL U2720Q")
    second = match_record(records, stable_id="DELL U2720Q#2", name="DELL U2720Q")

    assert first.control_id == "5A3B9C"
    assert second.control_id == "5A3B9D"


def test_match_record_strips_suffix_when_no_exact_match() -> None:
    records = parse_displays_listing(LISTING)

    assert match_record(records, stable_id="DELL U2720Q#2").control_id == "5A3B9D"


def test_match_record_falls_back_to_case_insensitive_substring() -> None:
    records = parse_displays_listing(LISTING)

    assert match_record(records, stable_id="uuid-1234", name="color lcd").control_id == "4251"


def test_match_record_returns_none_without_a_candidate() -> None:
    records = parse_displays_listing(LISTING)

    assert match_record(records, stable_id="LG HDR 4K", name="LG HDR 4K") is None
    assert match_record([], stable_id="4251") is None
