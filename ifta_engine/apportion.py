"""
Mileage apportionment across jurisdictions.

A trip that stays in one jurisdiction is credited to it in full. A trip
between two jurisdictions is split evenly between them. This 50/50 split
is a fixed filing policy, not a routing estimate; changing it changes
every filed return, so it stays as is until real crossing data replaces
it (see the state-mileage tracker import).
"""

from __future__ import annotations

from decimal import Decimal

from ifta_engine.models import TripRecord

_HALF = Decimal("2")


def apportion_trip(trip: TripRecord) -> list[tuple[str, Decimal]]:
    """
    Distribute a trip's miles over its jurisdictions.

    Returns ``(jurisdiction, miles)`` pairs that sum exactly to
    ``trip.total_miles``, or an empty list when either endpoint is
    unknown. Unapportioned miles still count toward fleet totals.
    """
    return apportion_amount(
        trip.start_jurisdiction, trip.end_jurisdiction, trip.total_miles
    )


def apportion_amount(start: str, end: str, amount: Decimal) -> list[tuple[str, Decimal]]:
    """Split ``amount`` between two endpoints with the same 50/50 rule."""
    if not start or not end:
        return []
    if start == end:
        return [(start, amount)]
    first = amount / _HALF
    # Remainder keeps the pair summing to amount even if the division
    # ever had to round.
    return [(start, first), (end, amount - first)]
