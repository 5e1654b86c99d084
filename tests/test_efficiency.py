"""Tests for the fleet MPG estimate."""

from datetime import date
from decimal import Decimal
from typing import Optional

from ifta_engine.config import DEFAULT_FLEET_MPG
from ifta_engine.efficiency import estimate_fleet_mpg, fleet_totals
from ifta_engine.models import FuelPurchaseRecord, TripRecord


def _trip(miles: str, gallons: Optional[str] = None) -> TripRecord:
    return TripRecord(
        user_id="u1",
        quarter="2024-Q1",
        vehicle_id="T1",
        start_jurisdiction="CA",
        end_jurisdiction="CA",
        total_miles=Decimal(miles),
        gallons_consumed=Decimal(gallons) if gallons is not None else None,
    )


def test_no_trips_uses_fallback():
    assert estimate_fleet_mpg([]) == DEFAULT_FLEET_MPG == Decimal("6.0")


def test_ratio_of_total_miles_to_total_gallons():
    trips = [_trip("400", "80"), _trip("200", "20")]
    assert estimate_fleet_mpg(trips) == Decimal("6")


def test_trips_without_gallons_still_add_miles():
    trips = [_trip("300", "50"), _trip("200")]
    assert fleet_totals(trips) == (Decimal("500"), Decimal("50"))
    assert estimate_fleet_mpg(trips) == Decimal("10")


def test_zero_gallons_uses_fallback():
    assert estimate_fleet_mpg([_trip("500", "0")]) == DEFAULT_FLEET_MPG
    assert estimate_fleet_mpg([_trip("500")]) == DEFAULT_FLEET_MPG


def test_zero_miles_uses_fallback():
    assert estimate_fleet_mpg([_trip("0", "30")]) == DEFAULT_FLEET_MPG


def test_custom_fallback():
    assert estimate_fleet_mpg([], fallback=Decimal("7.25")) == Decimal("7.25")


def test_fuel_purchases_do_not_enter_the_ratio():
    purchases = [
        FuelPurchaseRecord(
            user_id="u1", date=date(2024, 1, 5), jurisdiction="CA", gallons=Decimal("900")
        )
    ]
    assert estimate_fleet_mpg([_trip("600", "100")], purchases) == Decimal("6")
