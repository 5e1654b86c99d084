"""
IFTA jurisdiction aggregation.

Turns a quarter's trip records and fuel purchases into one row per
jurisdiction:

- jurisdiction closure from trip endpoints and purchase locations
- apportioned miles per jurisdiction
- tax-paid gallons per jurisdiction
- fleet MPG and net taxable gallons (negative = credit)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from ifta_engine.apportion import apportion_trip
from ifta_engine.config import EngineConfig
from ifta_engine.efficiency import estimate_fleet_mpg, fleet_totals
from ifta_engine.exceptions import CollaboratorError, IftaEngineError, InvalidQuery
from ifta_engine.jurisdictions import JurisdictionDirectory, default_directory
from ifta_engine.ledger import JurisdictionLedger, JurisdictionRow
from ifta_engine.logging_config import get_logger
from ifta_engine.models import FuelPurchaseRecord, TripRecord
from ifta_engine.quarters import resolve_quarter
from ifta_engine.repository import TripRepository

logger = get_logger("calculator")


class SortKey(Enum):
    JURISDICTION = "jurisdiction"
    TOTAL_MILES = "total_miles"
    TAXABLE_MILES = "taxable_miles"
    TAX_PAID_GALLONS = "tax_paid_gallons"
    NET_TAXABLE_GALLONS = "net_taxable_gallons"


@dataclass(frozen=True)
class SortSpec:
    """Row ordering requested by a caller."""

    key: SortKey = SortKey.JURISDICTION
    descending: bool = False

    @classmethod
    def parse(cls, text: str) -> "SortSpec":
        """Parse ``"total_miles"`` or ``"total_miles:desc"``."""
        name, _, direction = text.partition(":")
        try:
            key = SortKey(name.strip().lower())
        except ValueError:
            valid = [k.value for k in SortKey]
            raise InvalidQuery("sort", f"sort key must be one of: {valid}")
        direction = direction.strip().lower() or "asc"
        if direction not in ("asc", "desc"):
            raise InvalidQuery("sort", "sort direction must be 'asc' or 'desc'")
        return cls(key=key, descending=direction == "desc")


@dataclass
class AggregateTotals:
    """Grand totals for the quarter."""

    total_miles: Decimal
    total_gallons: Decimal
    fleet_mpg: Decimal
    total_tax_paid_gallons: Decimal
    total_net_taxable_gallons: Decimal
    trip_count: int
    fuel_purchase_count: int
    # Miles on trips with an unknown endpoint: in fleet totals, in no row.
    unapportioned_miles: Decimal = Decimal("0")


@dataclass
class AggregateResult:
    """Aggregated jurisdiction rows plus totals for one quarter."""

    quarter: str
    rows: list[JurisdictionRow]
    totals: AggregateTotals
    user_id: str = ""
    warnings: list[str] = field(default_factory=list)

    def row(self, jurisdiction: str) -> Optional[JurisdictionRow]:
        for r in self.rows:
            if r.jurisdiction == jurisdiction:
                return r
        return None


def _sort_rows(rows: list[JurisdictionRow], sort: Optional[SortSpec]) -> list[JurisdictionRow]:
    # Rows arrive ordered by code, so ties keep code order (sorted is stable).
    if sort is None or (sort.key is SortKey.JURISDICTION and not sort.descending):
        return rows
    attr = sort.key.value
    return sorted(rows, key=lambda r: getattr(r, attr), reverse=sort.descending)


class IftaCalculator:
    """
    Quarterly IFTA aggregation engine.

    Stateless apart from its collaborators; safe to call concurrently for
    different user/quarter scopes.
    """

    def __init__(
        self,
        repository: Optional[TripRepository] = None,
        config: Optional[EngineConfig] = None,
        directory: Optional[JurisdictionDirectory] = None,
    ) -> None:
        self.repository = repository
        self.config = config or EngineConfig()
        self.directory = directory or default_directory()

    def aggregate(
        self,
        user_id: str,
        quarter: str,
        sort: Optional[SortSpec] = None,
    ) -> AggregateResult:
        """
        Aggregate every trip record and fuel purchase of a user's quarter.

        Raises:
            InvalidQuery: If user_id or quarter is missing
            InvalidQuarterLabel: If quarter is malformed
            CollaboratorError: If the repository fails
        """
        trips, fuel = self.load_inputs(user_id, quarter)
        return self.aggregate_records(
            trips, fuel, sort=sort, quarter=quarter, user_id=user_id
        )

    def load_inputs(
        self, user_id: str, quarter: str
    ) -> tuple[list[TripRecord], list[FuelPurchaseRecord]]:
        if not user_id:
            raise InvalidQuery("user_id")
        if not quarter:
            raise InvalidQuery("quarter")
        resolve_quarter(quarter)
        if self.repository is None:
            raise InvalidQuery("repository", "no repository configured")

        try:
            trips = self.repository.find_trip_records(user_id, quarter)
            fuel = self.repository.find_fuel_purchases(user_id, quarter)
        except IftaEngineError:
            raise
        except Exception as e:
            raise CollaboratorError("repository", e) from e
        return trips, fuel

    def aggregate_records(
        self,
        trips: Iterable[TripRecord],
        fuel_purchases: Iterable[FuelPurchaseRecord],
        sort: Optional[SortSpec] = None,
        quarter: str = "",
        user_id: str = "",
    ) -> AggregateResult:
        """Pure aggregation over an explicit input set."""
        trips = list(trips)
        fuel = [
            f for f in fuel_purchases if self.config.is_ifta_fuel(f.fuel_type)
        ]

        closure: set[str] = set()
        for trip in trips:
            closure.update(j for j in (trip.start_jurisdiction, trip.end_jurisdiction) if j)
        closure.update(f.jurisdiction for f in fuel if f.jurisdiction)

        ledger = JurisdictionLedger(closure)
        unapportioned = Decimal("0")
        for trip in trips:
            pairs = apportion_trip(trip)
            if not pairs:
                unapportioned += trip.total_miles
            for code, miles in pairs:
                ledger.add_miles(code, miles)

        for purchase in fuel:
            if purchase.jurisdiction:
                ledger.add_tax_paid_gallons(purchase.jurisdiction, purchase.gallons)

        fleet_mpg = estimate_fleet_mpg(
            trips, fuel, fallback=self.config.default_fleet_mpg
        )
        ledger.settle(fleet_mpg)

        rows = ledger.rows()
        for row in rows:
            row.jurisdiction_name = self.directory.name_for(row.jurisdiction)

        warnings: list[str] = []
        unknown = [r.jurisdiction for r in rows if not self.directory.is_known(r.jurisdiction)]
        if unknown:
            warnings.append(f"Unrecognized jurisdiction codes: {', '.join(unknown)}")
        if unapportioned > 0:
            warnings.append(
                f"{unapportioned} miles on trips with a missing jurisdiction "
                f"are excluded from jurisdiction totals"
            )

        total_miles, total_gallons = fleet_totals(trips)
        totals = AggregateTotals(
            total_miles=total_miles,
            total_gallons=total_gallons,
            fleet_mpg=fleet_mpg,
            total_tax_paid_gallons=sum((r.tax_paid_gallons for r in rows), Decimal("0")),
            total_net_taxable_gallons=sum(
                (r.net_taxable_gallons for r in rows), Decimal("0")
            ),
            trip_count=len(trips),
            fuel_purchase_count=len(fuel),
            unapportioned_miles=unapportioned,
        )

        logger.info(
            "aggregation_completed",
            extra={
                "user_id": user_id,
                "quarter": quarter,
                "jurisdictions": len(rows),
                "trip_count": len(trips),
                "fleet_mpg": str(fleet_mpg),
            },
        )

        return AggregateResult(
            quarter=quarter,
            rows=_sort_rows(rows, sort),
            totals=totals,
            user_id=user_id,
            warnings=warnings,
        )
