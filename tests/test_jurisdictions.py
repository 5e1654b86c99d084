"""Tests for the jurisdiction directory and free-text parsing."""

import pytest

from ifta_engine.jurisdictions import default_directory, parse_jurisdiction


# ── Directory ────────────────────────────────────────────────────────


def test_directory_covers_us_and_canada():
    directory = default_directory()
    codes = {j.code for j in directory.all_jurisdictions()}
    assert len(codes) == 64
    assert {"CA", "NV", "TX", "DC", "ON", "QC", "YT"} <= codes


def test_lookup_is_case_insensitive():
    directory = default_directory()
    assert directory.get(" nv ").name == "Nevada"
    assert directory.find_by_name("british columbia").code == "BC"
    assert directory.get("") is None


def test_non_members_are_flagged():
    directory = default_directory()
    assert directory.get("TX").ifta_member
    assert not directory.get("AK").ifta_member
    assert directory.get("ON").country == "CA"


def test_unknown_codes_keep_their_text():
    directory = default_directory()
    assert not directory.is_known("ZZ")
    assert directory.name_for("ZZ") == "ZZ"
    assert directory.name_for("WA") == "Washington"


# ── Parsing ──────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "text,code",
    [
        ("Dallas, TX", "TX"),
        ("dallas, tx", "TX"),
        ("Reno, NV 89501", "NV"),
        ("Toronto, ON", "ON"),
        ("Austin, Texas", "TX"),
        ("Austin, Texas 78701", "TX"),
        ("123 Main St, Portland, OR, USA", "OR"),
        ("Bay 4, Fresno, CA", "CA"),
        ("Toronto, ON, CA", "ON"),
        ("Vancouver, BC, CA V6B 1A1", "BC"),
        ("Buffalo, NY, US", "NY"),
        ("Sacramento, CA, US", "CA"),
    ],
)
def test_parses_known_locations(text, code):
    parsed = parse_jurisdiction(text)
    assert parsed.ok
    assert parsed.code == code
    assert parsed.unparseable is None


@pytest.mark.parametrize(
    "text",
    ["Somewhere", "Springfield, ZZ", "Warehouse 9", "   "],
)
def test_unparseable_locations_keep_raw_text(text):
    parsed = parse_jurisdiction(text)
    assert not parsed.ok
    assert parsed.code is None
    assert parsed.unparseable == text.strip()


def test_missing_location_is_unparseable():
    parsed = parse_jurisdiction(None)
    assert not parsed.ok
    assert parsed.unparseable == ""
