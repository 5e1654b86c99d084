"""Tests for the IftaCalculator aggregation engine."""

from datetime import date
from decimal import Decimal
from typing import Optional

import pytest
from hypothesis import given
from hypothesis import strategies as st

from ifta_engine.calculator import IftaCalculator, SortKey, SortSpec
from ifta_engine.config import EngineConfig
from ifta_engine.exceptions import (
    CollaboratorError,
    InvalidQuarterLabel,
    InvalidQuery,
)
from ifta_engine.models import FuelPurchaseRecord, TripRecord
from ifta_engine.repository import InMemoryTripRepository


def _trip(
    start: str,
    end: str,
    miles: str,
    gallons: Optional[str] = None,
    quarter: str = "2024-Q1",
    user_id: str = "u1",
) -> TripRecord:
    return TripRecord(
        user_id=user_id,
        quarter=quarter,
        vehicle_id="T1",
        start_jurisdiction=start,
        end_jurisdiction=end,
        total_miles=Decimal(miles),
        gallons_consumed=Decimal(gallons) if gallons is not None else None,
    )


def _fuel(
    jurisdiction: str,
    gallons: str,
    day: date = date(2024, 2, 1),
    fuel_type: Optional[str] = None,
    user_id: str = "u1",
) -> FuelPurchaseRecord:
    return FuelPurchaseRecord(
        user_id=user_id,
        date=day,
        jurisdiction=jurisdiction,
        gallons=Decimal(gallons),
        fuel_type=fuel_type,
    )


@pytest.fixture
def calc() -> IftaCalculator:
    return IftaCalculator()


def _q3(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.001"))


# ── Reference scenarios ──────────────────────────────────────────────


def test_single_jurisdiction_trip_with_fallback_mpg(calc: IftaCalculator):
    result = calc.aggregate_records([_trip("CA", "CA", "500")], [])
    assert len(result.rows) == 1
    row = result.rows[0]
    assert row.jurisdiction == "CA"
    assert row.total_miles == Decimal("500")
    assert row.taxable_miles == Decimal("500")
    assert row.tax_paid_gallons == Decimal("0")
    assert _q3(row.net_taxable_gallons) == Decimal("83.333")
    assert result.totals.fleet_mpg == Decimal("6.0")


def test_two_jurisdiction_trip_splits_miles(calc: IftaCalculator):
    result = calc.aggregate_records([_trip("CA", "NV", "200")], [])
    assert [(r.jurisdiction, r.total_miles) for r in result.rows] == [
        ("CA", Decimal("100")),
        ("NV", Decimal("100")),
    ]


def test_fuel_only_jurisdiction_is_a_credit(calc: IftaCalculator):
    result = calc.aggregate_records([_trip("CA", "CA", "600")], [_fuel("TX", "40")])
    tx = result.row("TX")
    assert tx is not None
    assert tx.total_miles == Decimal("0")
    assert tx.tax_paid_gallons == Decimal("40")
    assert tx.net_taxable_gallons == Decimal("-40")
    assert tx.is_credit


# ── Net taxable gallons ──────────────────────────────────────────────


def test_fleet_mpg_from_trip_gallons(calc: IftaCalculator):
    trips = [_trip("CA", "NV", "200", gallons="40")]
    result = calc.aggregate_records(trips, [_fuel("CA", "30")])
    assert result.totals.fleet_mpg == Decimal("5")
    ca = result.row("CA")
    nv = result.row("NV")
    assert ca.taxable_gallons == Decimal("20")
    assert ca.net_taxable_gallons == Decimal("-10")
    assert nv.net_taxable_gallons == Decimal("20")
    assert result.totals.total_net_taxable_gallons == Decimal("10")
    assert result.totals.total_tax_paid_gallons == Decimal("30")


def test_negative_net_is_never_clamped(calc: IftaCalculator):
    result = calc.aggregate_records(
        [_trip("OR", "OR", "60", gallons="10")], [_fuel("OR", "100")]
    )
    assert result.row("OR").net_taxable_gallons == Decimal("-90")


def test_configured_fallback_mpg():
    calc = IftaCalculator(config=EngineConfig(default_fleet_mpg=Decimal("5")))
    result = calc.aggregate_records([_trip("AZ", "AZ", "500")], [])
    assert result.row("AZ").net_taxable_gallons == Decimal("100")


def test_non_ifta_fuel_types_are_ignored(calc: IftaCalculator):
    fuel = [
        _fuel("CA", "10", fuel_type="Diesel"),
        _fuel("CA", "5", fuel_type="DEF"),
        _fuel("NV", "7", fuel_type="Reefer"),
        _fuel("CA", "3"),
    ]
    result = calc.aggregate_records([], fuel)
    assert result.row("CA").tax_paid_gallons == Decimal("13")
    assert result.row("NV") is None
    assert result.totals.fuel_purchase_count == 2


# ── Row set ──────────────────────────────────────────────────────────


def test_zero_mile_rows_are_kept(calc: IftaCalculator):
    result = calc.aggregate_records(
        [_trip("CA", "CA", "0")], [_fuel("WA", "0")]
    )
    assert {r.jurisdiction for r in result.rows} == {"CA", "WA"}
    assert all(r.is_empty for r in result.rows)


def test_missing_endpoint_counts_in_totals_only(calc: IftaCalculator):
    result = calc.aggregate_records(
        [_trip("", "NV", "80"), _trip("NV", "NV", "20")], []
    )
    assert result.row("NV").total_miles == Decimal("20")
    assert result.totals.total_miles == Decimal("100")
    assert result.totals.unapportioned_miles == Decimal("80")
    assert any("missing jurisdiction" in w for w in result.warnings)


def test_unknown_codes_warn_but_stay(calc: IftaCalculator):
    result = calc.aggregate_records([_trip("ZZ", "ZZ", "10")], [])
    assert result.row("ZZ").total_miles == Decimal("10")
    assert result.row("ZZ").jurisdiction_name == "ZZ"
    assert any("ZZ" in w for w in result.warnings)


def test_jurisdiction_names_are_filled(calc: IftaCalculator):
    result = calc.aggregate_records([_trip("ON", "QC", "100")], [])
    assert result.row("ON").jurisdiction_name == "Ontario"
    assert result.row("QC").jurisdiction_name == "Quebec"


@given(
    st.lists(
        st.tuples(
            st.sampled_from(["CA", "NV", "AZ", "UT"]),
            st.sampled_from(["CA", "NV", "AZ", "UT"]),
            st.integers(min_value=0, max_value=5000),
        ),
        max_size=8,
    ),
    st.lists(
        st.tuples(st.sampled_from(["TX", "NM", "CA"]), st.integers(min_value=0, max_value=300)),
        max_size=5,
    ),
)
def test_every_endpoint_and_fuel_location_has_a_row(trip_specs, fuel_specs):
    trips = [_trip(s, e, str(m)) for s, e, m in trip_specs]
    fuel = [_fuel(j, str(g)) for j, g in fuel_specs]
    result = IftaCalculator().aggregate_records(trips, fuel)

    expected = {t.start_jurisdiction for t in trips} | {t.end_jurisdiction for t in trips}
    expected |= {f.jurisdiction for f in fuel}
    assert {r.jurisdiction for r in result.rows} == expected
    assert sum(r.total_miles for r in result.rows) == result.totals.total_miles


# ── Sorting ──────────────────────────────────────────────────────────


def test_default_order_is_by_code(calc: IftaCalculator):
    result = calc.aggregate_records(
        [_trip("UT", "UT", "1"), _trip("AZ", "AZ", "1"), _trip("NV", "NV", "1")], []
    )
    assert [r.jurisdiction for r in result.rows] == ["AZ", "NV", "UT"]


def test_sort_descending_with_stable_ties(calc: IftaCalculator):
    trips = [
        _trip("UT", "UT", "50"),
        _trip("AZ", "AZ", "300"),
        _trip("NV", "NV", "50"),
        _trip("CA", "CA", "50"),
    ]
    result = calc.aggregate_records(trips, [], sort=SortSpec.parse("total_miles:desc"))
    assert [r.jurisdiction for r in result.rows] == ["AZ", "CA", "NV", "UT"]


def test_sort_ascending_by_net(calc: IftaCalculator):
    result = calc.aggregate_records(
        [_trip("CA", "CA", "60")],
        [_fuel("TX", "40"), _fuel("NM", "5")],
        sort=SortSpec(SortKey.NET_TAXABLE_GALLONS),
    )
    assert [r.jurisdiction for r in result.rows] == ["TX", "NM", "CA"]


@pytest.mark.parametrize("text", ["miles", "total_miles:sideways", ""])
def test_bad_sort_spec(text: str):
    with pytest.raises(InvalidQuery) as exc_info:
        SortSpec.parse(text)
    assert exc_info.value.field == "sort"


# ── Repository-backed aggregation ────────────────────────────────────


def test_aggregate_reads_only_the_requested_scope():
    repo = InMemoryTripRepository(
        trips=[
            _trip("CA", "CA", "100"),
            _trip("CA", "CA", "999", quarter="2024-Q2"),
            _trip("CA", "CA", "777", user_id="u2"),
        ],
        fuel_purchases=[
            _fuel("CA", "10"),
            _fuel("CA", "50", day=date(2024, 4, 2)),
        ],
    )
    result = IftaCalculator(repo).aggregate("u1", "2024-Q1")
    assert result.row("CA").total_miles == Decimal("100")
    assert result.row("CA").tax_paid_gallons == Decimal("10")
    assert result.quarter == "2024-Q1"
    assert result.user_id == "u1"


def test_aggregate_validates_before_io():
    calc = IftaCalculator(InMemoryTripRepository())
    with pytest.raises(InvalidQuery):
        calc.aggregate("", "2024-Q1")
    with pytest.raises(InvalidQuery):
        calc.aggregate("u1", "")
    with pytest.raises(InvalidQuarterLabel):
        calc.aggregate("u1", "2024-Q9")


def test_repository_failure_is_wrapped():
    class BrokenRepository(InMemoryTripRepository):
        def find_trip_records(self, user_id, quarter):
            raise ConnectionError("database unavailable")

    with pytest.raises(CollaboratorError) as exc_info:
        IftaCalculator(BrokenRepository()).aggregate("u1", "2024-Q1")
    assert exc_info.value.collaborator == "repository"
    assert isinstance(exc_info.value.cause, ConnectionError)
