"""Tests for trip mileage apportionment."""

from decimal import Decimal

from hypothesis import given
from hypothesis import strategies as st

from ifta_engine.apportion import apportion_amount, apportion_trip
from ifta_engine.models import TripRecord

CODES = ["CA", "NV", "AZ", "TX", "ON", "QC", ""]


def _trip(start: str, end: str, miles: str) -> TripRecord:
    return TripRecord(
        user_id="u1",
        quarter="2024-Q1",
        vehicle_id="T1",
        start_jurisdiction=start,
        end_jurisdiction=end,
        total_miles=Decimal(miles),
    )


def test_single_jurisdiction_gets_all_miles():
    assert apportion_trip(_trip("CA", "CA", "500")) == [("CA", Decimal("500"))]


def test_two_jurisdictions_split_evenly():
    pairs = apportion_trip(_trip("CA", "NV", "200"))
    assert pairs == [("CA", Decimal("100")), ("NV", Decimal("100"))]


def test_odd_mileage_split_keeps_halves():
    pairs = apportion_trip(_trip("TX", "OK", "101"))
    assert pairs == [("TX", Decimal("50.5")), ("OK", Decimal("50.5"))]


def test_missing_endpoint_is_unapportioned():
    assert apportion_trip(_trip("", "NV", "80")) == []
    assert apportion_trip(_trip("CA", "", "80")) == []


def test_lowercase_codes_are_normalized_before_split():
    pairs = apportion_trip(_trip("ca", "CA", "42"))
    assert pairs == [("CA", Decimal("42"))]


def test_apportion_amount_for_gallons():
    assert apportion_amount("CA", "NV", Decimal("40")) == [
        ("CA", Decimal("20")),
        ("NV", Decimal("20")),
    ]


@given(
    start=st.sampled_from(CODES),
    end=st.sampled_from(CODES),
    miles=st.decimals(
        min_value=0, max_value=1_000_000, places=3, allow_nan=False, allow_infinity=False
    ),
)
def test_apportioned_miles_sum_to_trip_miles(start: str, end: str, miles: Decimal):
    trip = _trip(start, end, str(miles))
    pairs = apportion_trip(trip)
    if not start or not end:
        assert pairs == []
        return
    assert abs(sum(m for _, m in pairs) - trip.total_miles) <= Decimal("0.000001")
    assert {code for code, _ in pairs} == {start, end}
    assert all(m >= 0 for _, m in pairs)
