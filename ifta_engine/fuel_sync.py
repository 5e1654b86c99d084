"""
Fuel purchase vs. trip consumption check.

Compares, per jurisdiction, the gallons bought there with the gallons
trips report burning there (split 50/50 like miles). A mismatch is not an
error in the return itself; it flags purchases with no matching trip or
trips with no matching receipt before filing.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from ifta_engine.apportion import apportion_amount
from ifta_engine.config import EngineConfig
from ifta_engine.models import FuelPurchaseRecord, TripRecord

# Differences at or below this many gallons are rounding noise.
SYNC_TOLERANCE = Decimal("0.001")


@dataclass(frozen=True)
class FuelDiscrepancy:
    jurisdiction: str
    purchased_gallons: Decimal
    trip_gallons: Decimal

    @property
    def difference(self) -> Decimal:
        """Positive when more fuel was bought than trips account for."""
        return self.purchased_gallons - self.trip_gallons

    @property
    def missing_trip_fuel(self) -> bool:
        return self.difference > 0


def check_fuel_sync(
    trips: Iterable[TripRecord],
    fuel_purchases: Iterable[FuelPurchaseRecord],
    config: Optional[EngineConfig] = None,
    tolerance: Decimal = SYNC_TOLERANCE,
) -> list[FuelDiscrepancy]:
    """Jurisdictions whose purchased and trip gallons disagree, by code."""
    config = config or EngineConfig()
    purchased: dict[str, Decimal] = defaultdict(Decimal)
    consumed: dict[str, Decimal] = defaultdict(Decimal)

    for purchase in fuel_purchases:
        if purchase.jurisdiction and config.is_ifta_fuel(purchase.fuel_type):
            purchased[purchase.jurisdiction] += purchase.gallons

    for trip in trips:
        if not trip.gallons_consumed:
            continue
        for code, gallons in apportion_amount(
            trip.start_jurisdiction, trip.end_jurisdiction, trip.gallons_consumed
        ):
            consumed[code] += gallons

    discrepancies = []
    for code in sorted(set(purchased) | set(consumed)):
        item = FuelDiscrepancy(
            jurisdiction=code,
            purchased_gallons=purchased.get(code, Decimal("0")),
            trip_gallons=consumed.get(code, Decimal("0")),
        )
        if abs(item.difference) > tolerance:
            discrepancies.append(item)
    return discrepancies
