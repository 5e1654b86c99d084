"""
Record types consumed and produced by the engine.

Trip records are the engine's ledger entries. Fuel purchases and the
foreign records (loads, mileage-tracker trips, ELD summaries) are
read-only inputs owned by other systems.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class SourceKind(Enum):
    MANUAL = "manual"
    LOAD_IMPORT = "load"
    MILEAGE_TRACKER_IMPORT = "mileage_tracker"
    ELD_IMPORT = "eld"


def _dec(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _code(value: Optional[str]) -> str:
    return (value or "").strip().upper()


@dataclass(frozen=True)
class TripRecord:
    """One vehicle movement counted toward a reporting quarter."""

    user_id: str
    quarter: str
    vehicle_id: str
    start_jurisdiction: str
    end_jurisdiction: str
    total_miles: Decimal
    gallons_consumed: Optional[Decimal] = None
    source_kind: SourceKind = SourceKind.MANUAL
    source_ref: Optional[str] = None
    id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    driver_id: Optional[str] = None
    fuel_cost: Decimal = Decimal("0")
    starting_odometer: Optional[Decimal] = None
    ending_odometer: Optional[Decimal] = None
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "start_jurisdiction", _code(self.start_jurisdiction))
        object.__setattr__(self, "end_jurisdiction", _code(self.end_jurisdiction))
        if self.total_miles < 0:
            raise ValueError("total_miles must be >= 0")
        if self.gallons_consumed is not None and self.gallons_consumed < 0:
            raise ValueError("gallons_consumed must be >= 0")
        if self.source_kind is SourceKind.MANUAL:
            if self.source_ref is not None:
                raise ValueError("manual trip records carry no source_ref")
        elif not self.source_ref:
            raise ValueError(f"{self.source_kind.value} trip records need a source_ref")

    @classmethod
    def manual(
        cls,
        user_id: str,
        quarter: str,
        vehicle_id: str,
        start_jurisdiction: str,
        end_jurisdiction: str,
        total_miles: Optional[Decimal] = None,
        starting_odometer: Optional[Decimal] = None,
        ending_odometer: Optional[Decimal] = None,
        **kwargs: Any,
    ) -> "TripRecord":
        """
        Build a manually entered trip.

        Miles come from the odometer delta when both readings are present
        and consistent (ending > starting); otherwise the explicit miles.
        """
        if (
            starting_odometer is not None
            and ending_odometer is not None
            and ending_odometer > starting_odometer
        ):
            total_miles = ending_odometer - starting_odometer
        if total_miles is None:
            raise ValueError(
                "total_miles is required unless consistent odometer readings are given"
            )
        return cls(
            user_id=user_id,
            quarter=quarter,
            vehicle_id=vehicle_id,
            start_jurisdiction=start_jurisdiction,
            end_jurisdiction=end_jurisdiction,
            total_miles=total_miles,
            starting_odometer=starting_odometer,
            ending_odometer=ending_odometer,
            **kwargs,
        )

    @property
    def dedup_key(self) -> Optional[tuple[str, str, SourceKind, str]]:
        if self.source_ref is None:
            return None
        return (self.user_id, self.quarter, self.source_kind, self.source_ref)

    @property
    def is_imported(self) -> bool:
        return self.source_kind is not SourceKind.MANUAL

    @classmethod
    def from_dict(cls, data: dict) -> "TripRecord":
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            user_id=str(data["user_id"]),
            quarter=str(data["quarter"]),
            vehicle_id=str(data.get("vehicle_id") or "unknown"),
            start_jurisdiction=data.get("start_jurisdiction") or "",
            end_jurisdiction=data.get("end_jurisdiction") or "",
            total_miles=_dec(data.get("total_miles"), Decimal("0")),
            gallons_consumed=_dec(data.get("gallons_consumed")),
            source_kind=SourceKind(data.get("source_kind", "manual")),
            source_ref=(
                str(data["source_ref"]) if data.get("source_ref") is not None else None
            ),
            start_date=_date(data.get("start_date")),
            end_date=_date(data.get("end_date")),
            driver_id=data.get("driver_id"),
            fuel_cost=_dec(data.get("fuel_cost"), Decimal("0")),
            starting_odometer=_dec(data.get("starting_odometer")),
            ending_odometer=_dec(data.get("ending_odometer")),
            notes=data.get("notes") or "",
            created_at=_datetime(data.get("created_at")),
            updated_at=_datetime(data.get("updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        def _plain(v: Any) -> Any:
            if isinstance(v, Decimal):
                return str(v)
            if isinstance(v, (date, datetime)):
                return v.isoformat()
            if isinstance(v, SourceKind):
                return v.value
            return v

        return {
            "id": self.id,
            "user_id": self.user_id,
            "quarter": self.quarter,
            "vehicle_id": self.vehicle_id,
            "start_jurisdiction": self.start_jurisdiction,
            "end_jurisdiction": self.end_jurisdiction,
            "total_miles": _plain(self.total_miles),
            "gallons_consumed": _plain(self.gallons_consumed),
            "source_kind": _plain(self.source_kind),
            "source_ref": self.source_ref,
            "start_date": _plain(self.start_date),
            "end_date": _plain(self.end_date),
            "driver_id": self.driver_id,
            "fuel_cost": _plain(self.fuel_cost),
            "starting_odometer": _plain(self.starting_odometer),
            "ending_odometer": _plain(self.ending_odometer),
            "notes": self.notes,
            "created_at": _plain(self.created_at),
            "updated_at": _plain(self.updated_at),
        }


@dataclass(frozen=True)
class FuelPurchaseRecord:
    """A fuel purchase; contributes tax-paid gallons to its jurisdiction."""

    user_id: str
    date: date
    jurisdiction: str
    gallons: Decimal
    total_amount: Decimal = Decimal("0")
    vehicle_id: Optional[str] = None
    fuel_type: Optional[str] = None
    location: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "jurisdiction", _code(self.jurisdiction))
        if self.gallons < 0:
            raise ValueError("gallons must be >= 0")

    @classmethod
    def from_dict(cls, data: dict) -> "FuelPurchaseRecord":
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            user_id=str(data["user_id"]),
            date=_date(data["date"]),
            jurisdiction=data.get("jurisdiction") or data.get("state") or "",
            gallons=_dec(data.get("gallons"), Decimal("0")),
            total_amount=_dec(data.get("total_amount"), Decimal("0")),
            vehicle_id=data.get("vehicle_id"),
            fuel_type=data.get("fuel_type"),
            location=data.get("location"),
        )


# ---------------------------------------------------------------------------
# Foreign records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ForeignLoad:
    """A completed load from the load-management system."""

    id: str
    origin_text: str
    destination_text: str
    delivery_date: date
    recorded_distance: Optional[Decimal] = None
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    load_number: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "ForeignLoad":
        return cls(
            id=str(data["id"]),
            origin_text=data.get("origin_text") or data.get("origin") or "",
            destination_text=data.get("destination_text") or data.get("destination") or "",
            delivery_date=_date(data["delivery_date"]),
            recorded_distance=_dec(data.get("recorded_distance", data.get("distance"))),
            vehicle_id=data.get("vehicle_id"),
            driver_id=data.get("driver_id"),
            load_number=data.get("load_number"),
        )


@dataclass(frozen=True)
class ForeignMileageTrip:
    """A completed trip recorded by the state-mileage tracker."""

    id: str
    vehicle_id: str
    start_date: date
    end_date: date


@dataclass(frozen=True)
class Crossing:
    """Odometer reading when a vehicle entered a jurisdiction."""

    jurisdiction: str
    odometer: Decimal
    timestamp: datetime


@dataclass(frozen=True)
class EldJurisdictionMiles:
    jurisdiction: str
    miles: Decimal


@dataclass(frozen=True)
class EldMileageSummary:
    """Pre-aggregated per-jurisdiction mileage from an ELD provider."""

    per_jurisdiction: list[EldJurisdictionMiles] = field(default_factory=list)
    # Provider-reported total; None when the provider does not report one.
    total_miles: Optional[Decimal] = None
    connection_id: Optional[str] = None
    last_sync_at: Optional[datetime] = None
