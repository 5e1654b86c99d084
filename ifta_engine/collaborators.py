"""
Interfaces to the foreign systems imports read from, plus in-memory
implementations used by the CLI dataset and the tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from ifta_engine.models import (
    Crossing,
    EldJurisdictionMiles,
    EldMileageSummary,
    ForeignLoad,
    ForeignMileageTrip,
)
from ifta_engine.quarters import QuarterWindow


class LoadManagementSource(ABC):
    @abstractmethod
    def list_completed_loads(
        self, user_id: str, window: QuarterWindow
    ) -> list[ForeignLoad]:
        """Completed loads whose delivery date falls in the window."""


class MileageTrackerSource(ABC):
    @abstractmethod
    def list_completed_trips(
        self, user_id: str, window: QuarterWindow
    ) -> list[ForeignMileageTrip]:
        """Completed tracker trips whose end date falls in the window."""

    @abstractmethod
    def list_crossings(self, trip_id: str) -> list[Crossing]:
        """Crossings for a trip ordered by timestamp."""


class EldSource(ABC):
    @abstractmethod
    def get_mileage_summary(
        self, user_id: str, window: QuarterWindow
    ) -> EldMileageSummary:
        ...


class VehicleDirectory(ABC):
    """Resolves a foreign vehicle reference to the account's vehicle id."""

    @abstractmethod
    def resolve(self, user_id: str, vehicle_ref: str) -> Optional[str]:
        ...


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------


class InMemoryLoadSource(LoadManagementSource):
    def __init__(self, loads: Optional[Mapping[str, Iterable[ForeignLoad]]] = None):
        self._loads = {user: list(items) for user, items in (loads or {}).items()}

    def list_completed_loads(
        self, user_id: str, window: QuarterWindow
    ) -> list[ForeignLoad]:
        loads = [
            load for load in self._loads.get(user_id, [])
            if window.contains(load.delivery_date)
        ]
        return sorted(loads, key=lambda load: load.delivery_date, reverse=True)


class InMemoryMileageTrackerSource(MileageTrackerSource):
    def __init__(
        self,
        trips: Optional[Mapping[str, Iterable[ForeignMileageTrip]]] = None,
        crossings: Optional[Mapping[str, Iterable[Crossing]]] = None,
    ):
        self._trips = {user: list(items) for user, items in (trips or {}).items()}
        self._crossings = {
            trip_id: list(items) for trip_id, items in (crossings or {}).items()
        }

    def list_completed_trips(
        self, user_id: str, window: QuarterWindow
    ) -> list[ForeignMileageTrip]:
        return [
            trip for trip in self._trips.get(user_id, [])
            if window.contains(trip.end_date)
        ]

    def list_crossings(self, trip_id: str) -> list[Crossing]:
        return sorted(self._crossings.get(trip_id, []), key=lambda c: c.timestamp)


@dataclass(frozen=True)
class EldMonthlyMiles:
    """One provider row: miles driven in a jurisdiction during a month."""

    month: date  # first day of the month
    jurisdiction: str
    miles: Decimal


class InMemoryEldSource(EldSource):
    """Aggregates monthly provider rows into a quarter summary."""

    def __init__(
        self,
        monthly: Optional[Mapping[str, Iterable[EldMonthlyMiles]]] = None,
        last_sync_at: Optional[datetime] = None,
    ):
        self._monthly = {user: list(items) for user, items in (monthly or {}).items()}
        self._last_sync_at = last_sync_at

    def get_mileage_summary(
        self, user_id: str, window: QuarterWindow
    ) -> EldMileageSummary:
        by_jurisdiction: dict[str, Decimal] = defaultdict(Decimal)
        for row in self._monthly.get(user_id, []):
            if window.contains(row.month):
                by_jurisdiction[row.jurisdiction.strip().upper()] += row.miles
        per_jurisdiction = [
            EldJurisdictionMiles(jurisdiction=code, miles=miles)
            for code, miles in sorted(by_jurisdiction.items())
        ]
        return EldMileageSummary(
            per_jurisdiction=per_jurisdiction,
            total_miles=sum((j.miles for j in per_jurisdiction), Decimal("0")),
            connection_id=f"eld-{user_id}" if user_id in self._monthly else None,
            last_sync_at=self._last_sync_at,
        )


class InMemoryVehicleDirectory(VehicleDirectory):
    """Maps unit numbers, VINs and other aliases to vehicle ids."""

    def __init__(self, aliases: Optional[Mapping[str, Mapping[str, str]]] = None):
        self._aliases = {
            user: {k.strip().lower(): v for k, v in mapping.items()}
            for user, mapping in (aliases or {}).items()
        }

    def resolve(self, user_id: str, vehicle_ref: str) -> Optional[str]:
        if not vehicle_ref:
            return None
        return self._aliases.get(user_id, {}).get(vehicle_ref.strip().lower())
