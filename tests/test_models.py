"""Tests for record types and the in-memory repository."""

from datetime import date
from decimal import Decimal

import pytest

from ifta_engine.exceptions import DuplicateTripRecord
from ifta_engine.models import (
    ForeignLoad,
    FuelPurchaseRecord,
    SourceKind,
    TripRecord,
)
from ifta_engine.repository import InMemoryTripRepository

USER = "carrier-1"
QUARTER = "2024-Q1"


def _imported(ref, user=USER, quarter=QUARTER, kind=SourceKind.LOAD_IMPORT):
    return TripRecord(
        user_id=user,
        quarter=quarter,
        vehicle_id="T1",
        start_jurisdiction="CA",
        end_jurisdiction="NV",
        total_miles=Decimal("100"),
        source_kind=kind,
        source_ref=ref,
    )


# ── TripRecord ───────────────────────────────────────────────────────


def test_codes_are_normalized():
    trip = TripRecord(USER, QUARTER, "T1", " ca ", "nv", Decimal("10"))
    assert (trip.start_jurisdiction, trip.end_jurisdiction) == ("CA", "NV")


def test_negative_quantities_rejected():
    with pytest.raises(ValueError):
        TripRecord(USER, QUARTER, "T1", "CA", "CA", Decimal("-1"))
    with pytest.raises(ValueError):
        TripRecord(
            USER, QUARTER, "T1", "CA", "CA", Decimal("1"), gallons_consumed=Decimal("-2")
        )


def test_source_ref_rules():
    with pytest.raises(ValueError):
        TripRecord(USER, QUARTER, "T1", "CA", "CA", Decimal("1"), source_ref="L1")
    with pytest.raises(ValueError):
        _imported(None)
    assert _imported("L1").dedup_key == (USER, QUARTER, SourceKind.LOAD_IMPORT, "L1")
    assert TripRecord(USER, QUARTER, "T1", "CA", "CA", Decimal("1")).dedup_key is None


def test_manual_trip_uses_odometer_delta():
    trip = TripRecord.manual(
        USER, QUARTER, "T1", "CA", "NV",
        total_miles=Decimal("999"),
        starting_odometer=Decimal("120000"),
        ending_odometer=Decimal("120250.5"),
    )
    assert trip.total_miles == Decimal("250.5")
    assert not trip.is_imported


def test_manual_trip_ignores_inconsistent_odometer():
    trip = TripRecord.manual(
        USER, QUARTER, "T1", "CA", "NV",
        total_miles=Decimal("80"),
        starting_odometer=Decimal("500"),
        ending_odometer=Decimal("400"),
    )
    assert trip.total_miles == Decimal("80")


def test_manual_trip_needs_some_mileage():
    with pytest.raises(ValueError):
        TripRecord.manual(USER, QUARTER, "T1", "CA", "NV", starting_odometer=Decimal("5"))


def test_trip_dict_round_trip():
    trip = _imported("L9")
    restored = TripRecord.from_dict(trip.to_dict())
    assert restored == trip
    assert trip.to_dict()["source_kind"] == "load"


# ── Foreign and fuel records ─────────────────────────────────────────


def test_load_from_dict_accepts_short_keys():
    load = ForeignLoad.from_dict({
        "id": 42,
        "origin": "Fresno, CA",
        "destination": "Reno, NV",
        "delivery_date": "2024-02-01",
        "distance": 260,
    })
    assert load.id == "42"
    assert load.origin_text == "Fresno, CA"
    assert load.recorded_distance == Decimal("260")
    assert load.delivery_date == date(2024, 2, 1)


def test_fuel_from_dict_accepts_state():
    purchase = FuelPurchaseRecord.from_dict(
        {"user_id": USER, "date": "2024-01-20", "state": "tx", "gallons": "80.5"}
    )
    assert purchase.jurisdiction == "TX"
    assert purchase.gallons == Decimal("80.5")
    assert purchase.total_amount == Decimal("0")


# ── Repository ───────────────────────────────────────────────────────


def test_insert_assigns_ids_and_timestamps():
    repo = InMemoryTripRepository()
    [stored] = repo.insert_trip_records([_imported("L1")])
    assert stored.id
    assert stored.created_at is not None
    assert repo.find_trip_records(USER, QUARTER) == [stored]


def test_duplicate_insert_stores_nothing():
    repo = InMemoryTripRepository(trips=[_imported("L1")])
    with pytest.raises(DuplicateTripRecord) as exc_info:
        repo.insert_trip_records([_imported("L2"), _imported("L1")])
    assert exc_info.value.record_count == 2
    assert [t.source_ref for t in repo.all_trip_records()] == ["L1"]


def test_duplicate_within_one_batch():
    with pytest.raises(DuplicateTripRecord):
        InMemoryTripRepository().insert_trip_records([_imported("L1"), _imported("L1")])


def test_same_ref_in_other_scope_is_not_a_duplicate():
    repo = InMemoryTripRepository(trips=[_imported("L1")])
    repo.insert_trip_records([
        _imported("L1", quarter="2024-Q2"),
        _imported("L1", user="carrier-2"),
        _imported("L1", kind=SourceKind.ELD_IMPORT),
    ])
    assert len(repo.all_trip_records()) == 4


def test_find_by_source_refs_returns_subset():
    repo = InMemoryTripRepository(trips=[_imported("L1"), _imported("L3")])
    found = repo.find_trip_records_by_source_refs(
        USER, QUARTER, SourceKind.LOAD_IMPORT, ["L1", "L2", "L3"]
    )
    assert found == {"L1", "L3"}
    assert repo.find_trip_records_by_source_refs(
        USER, QUARTER, SourceKind.ELD_IMPORT, ["L1"]
    ) == set()


def test_fuel_purchases_filtered_by_quarter_window():
    repo = InMemoryTripRepository(fuel_purchases=[
        FuelPurchaseRecord(USER, date(2024, 1, 1), "CA", Decimal("10")),
        FuelPurchaseRecord(USER, date(2024, 3, 31), "CA", Decimal("20")),
        FuelPurchaseRecord(USER, date(2024, 4, 1), "CA", Decimal("30")),
        FuelPurchaseRecord("carrier-2", date(2024, 2, 1), "CA", Decimal("40")),
    ])
    gallons = [f.gallons for f in repo.find_fuel_purchases(USER, QUARTER)]
    assert gallons == [Decimal("10"), Decimal("20")]
