"""Fleet-wide fuel efficiency estimate."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from ifta_engine.config import DEFAULT_FLEET_MPG
from ifta_engine.models import FuelPurchaseRecord, TripRecord


def fleet_totals(trips: Iterable[TripRecord]) -> tuple[Decimal, Decimal]:
    """Total miles and total gallons consumed across all trips."""
    miles = Decimal("0")
    gallons = Decimal("0")
    for trip in trips:
        miles += trip.total_miles
        if trip.gallons_consumed is not None:
            gallons += trip.gallons_consumed
    return miles, gallons


def estimate_fleet_mpg(
    trips: Iterable[TripRecord],
    fuel_purchases: Optional[Iterable[FuelPurchaseRecord]] = None,
    fallback: Decimal = DEFAULT_FLEET_MPG,
) -> Decimal:
    """
    Average miles per gallon across every trip in the quarter.

    Uses trip-recorded consumption only; fuel purchases are accepted for
    call-site symmetry but do not enter the ratio. Falls back to
    ``fallback`` when miles or gallons are zero or the ratio is not a
    positive finite number.
    """
    miles, gallons = fleet_totals(trips)
    if miles > 0 and gallons > 0:
        mpg = miles / gallons
        if mpg.is_finite() and mpg > 0:
            return mpg
    return fallback
