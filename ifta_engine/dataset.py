"""
YAML dataset files for the command-line interface.

A dataset holds one carrier's records and the foreign data the import
commands read::

    user_id: carrier-1
    config:                 # optional, same keys as the engine config file
      default_fleet_mpg: 6.5
    trips:
      - {quarter: 2024-Q1, vehicle_id: T1, start_jurisdiction: CA,
         end_jurisdiction: NV, total_miles: 200, start_date: 2024-01-10}
    fuel_purchases:
      - {date: 2024-01-10, jurisdiction: CA, gallons: 40, total_amount: 180}
    loads:
      - {id: L1, origin: "Fresno, CA", destination: "Reno, NV",
         delivery_date: 2024-02-01, distance: 260}
    mileage_trips:
      - id: M1
        vehicle_id: T1
        start_date: 2024-03-01
        end_date: 2024-03-02
        crossings:
          - {jurisdiction: CA, odometer: 1000, timestamp: 2024-03-01T08:00:00}
          - {jurisdiction: NV, odometer: 1120, timestamp: 2024-03-01T11:00:00}
          - {jurisdiction: NV, odometer: 1300, timestamp: 2024-03-02T09:00:00}
    eld:
      last_sync_at: 2024-03-31T23:00:00
      monthly:
        - {month: 2024-01-01, jurisdiction: CA, miles: 820}
    vehicles:
      unit-7: T1

Only the ``trips`` section is ever written back.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from ifta_engine.collaborators import (
    EldMonthlyMiles,
    InMemoryEldSource,
    InMemoryLoadSource,
    InMemoryMileageTrackerSource,
    InMemoryVehicleDirectory,
)
from ifta_engine.config import EngineConfig, parse_engine_config
from ifta_engine.exceptions import DatasetError, IftaEngineError
from ifta_engine.models import (
    Crossing,
    ForeignLoad,
    ForeignMileageTrip,
    FuelPurchaseRecord,
    TripRecord,
    _date,
    _datetime,
    _dec,
)
from ifta_engine.quarters import quarter_for_date
from ifta_engine.repository import InMemoryTripRepository
from ifta_engine.service import IftaService

_SECTIONS = {
    "user_id",
    "config",
    "trips",
    "fuel_purchases",
    "loads",
    "mileage_trips",
    "eld",
    "vehicles",
}


@dataclass
class Dataset:
    """Parsed dataset with in-memory sources ready for an IftaService."""

    user_id: str
    repository: InMemoryTripRepository
    loads: InMemoryLoadSource
    mileage_tracker: InMemoryMileageTrackerSource
    eld: InMemoryEldSource
    vehicles: InMemoryVehicleDirectory
    config: EngineConfig = field(default_factory=EngineConfig)
    path: Optional[Path] = None
    raw: dict[str, Any] = field(default_factory=dict)

    def service(self) -> IftaService:
        return IftaService(
            self.repository,
            loads=self.loads,
            mileage_tracker=self.mileage_tracker,
            eld=self.eld,
            vehicles=self.vehicles,
            config=self.config,
        )

    def quarters(self) -> list[str]:
        """Quarters that have trip records, oldest first."""
        return sorted({t.quarter for t in self.repository.all_trip_records()})


def _section(raw: dict, name: str, kind: type, where: object) -> Any:
    value = raw.get(name)
    if value is None:
        return kind()
    if not isinstance(value, kind):
        raise DatasetError(where, f"'{name}' must be a {kind.__name__}")
    return value


def _trip_from_dict(data: dict, user_id: str) -> TripRecord:
    data = dict(data)
    data.setdefault("user_id", user_id)
    if not data.get("quarter"):
        started = _date(data.get("start_date"))
        if started is None:
            raise ValueError("trip needs a quarter or a start_date")
        data["quarter"] = quarter_for_date(started)
    if data.get("source_kind", "manual") == "manual" and data.get("total_miles") in (None, ""):
        return TripRecord.manual(
            user_id=str(data["user_id"]),
            quarter=str(data["quarter"]),
            vehicle_id=str(data.get("vehicle_id") or "unknown"),
            start_jurisdiction=data.get("start_jurisdiction") or "",
            end_jurisdiction=data.get("end_jurisdiction") or "",
            starting_odometer=_dec(data.get("starting_odometer")),
            ending_odometer=_dec(data.get("ending_odometer")),
            gallons_consumed=_dec(data.get("gallons_consumed")),
            start_date=_date(data.get("start_date")),
            end_date=_date(data.get("end_date")),
            notes=data.get("notes") or "",
        )
    return TripRecord.from_dict(data)


def parse_dataset(raw: Any, path: Optional[Path] = None) -> Dataset:
    """Build a Dataset from already-parsed YAML.

    Raises:
        DatasetError: If a section or record is malformed
        ConfigError: If the embedded config is invalid
    """
    where = path or "<dataset>"
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise DatasetError(where, "root must be a mapping")
    unknown = set(raw) - _SECTIONS
    if unknown:
        raise DatasetError(where, f"unknown sections: {sorted(unknown)}")

    user_id = str(raw.get("user_id") or "")
    if not user_id:
        raise DatasetError(where, "'user_id' is required")

    config_raw = _section(raw, "config", dict, where)
    config = parse_engine_config(config_raw) if config_raw else EngineConfig()

    try:
        trips = [_trip_from_dict(t, user_id) for t in _section(raw, "trips", list, where)]
        fuel = []
        for item in _section(raw, "fuel_purchases", list, where):
            item = dict(item)
            item.setdefault("user_id", user_id)
            fuel.append(FuelPurchaseRecord.from_dict(item))

        loads = [ForeignLoad.from_dict(item) for item in _section(raw, "loads", list, where)]

        mileage_trips = []
        crossings: dict[str, list[Crossing]] = {}
        for item in _section(raw, "mileage_trips", list, where):
            trip = ForeignMileageTrip(
                id=str(item["id"]),
                vehicle_id=str(item.get("vehicle_id") or "unknown"),
                start_date=_date(item["start_date"]),
                end_date=_date(item.get("end_date") or item["start_date"]),
            )
            mileage_trips.append(trip)
            crossings[trip.id] = [
                Crossing(
                    jurisdiction=str(c.get("jurisdiction") or ""),
                    odometer=_dec(c["odometer"]),
                    timestamp=_datetime(c["timestamp"]),
                )
                for c in item.get("crossings") or []
            ]

        eld_raw = _section(raw, "eld", dict, where)
        monthly = [
            EldMonthlyMiles(
                month=_date(m["month"]),
                jurisdiction=str(m["jurisdiction"]),
                miles=_dec(m["miles"]),
            )
            for m in eld_raw.get("monthly") or []
        ]
    except IftaEngineError:
        raise
    except (KeyError, TypeError, ValueError, ArithmeticError) as e:
        raise DatasetError(where, f"bad record: {e}") from e

    vehicles = {str(k): str(v) for k, v in _section(raw, "vehicles", dict, where).items()}

    return Dataset(
        user_id=user_id,
        repository=InMemoryTripRepository(trips=trips, fuel_purchases=fuel),
        loads=InMemoryLoadSource({user_id: loads}),
        mileage_tracker=InMemoryMileageTrackerSource({user_id: mileage_trips}, crossings),
        eld=InMemoryEldSource(
            {user_id: monthly} if monthly else {},
            last_sync_at=_datetime(eld_raw.get("last_sync_at")),
        ),
        vehicles=InMemoryVehicleDirectory({user_id: vehicles}),
        config=config,
        path=path,
        raw=raw,
    )


def load_dataset(path: str) -> Dataset:
    """Load a dataset file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        DatasetError: If the YAML or any record is invalid
    """
    dataset_path = Path(path)
    if not dataset_path.exists():
        raise FileNotFoundError(f"Dataset file not found: {path}")

    with open(dataset_path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise DatasetError(path, f"invalid YAML: {e}")
    return parse_dataset(raw, dataset_path)


def save_trips(dataset: Dataset, path: Optional[str] = None) -> Path:
    """
    Write the repository's trip records back into the dataset file.

    The file is written to a sibling temporary file and swapped in with
    ``os.replace``, so a failed dump leaves the previous contents intact.
    """
    target = Path(path) if path else dataset.path
    if target is None:
        raise DatasetError("<dataset>", "no path to save to")

    raw = dict(dataset.raw)
    raw["trips"] = [
        {k: v for k, v in t.to_dict().items() if v not in (None, "")}
        for t in dataset.repository.all_trip_records()
    ]
    with tempfile.NamedTemporaryFile(
        "w", dir=target.parent, prefix=f".{target.name}.", suffix=".tmp",
        delete=False, encoding="utf-8",
    ) as f:
        tmp_path = Path(f.name)
        try:
            yaml.safe_dump(raw, f, sort_keys=False)
        except Exception:
            f.close()
            tmp_path.unlink()
            raise
    os.replace(tmp_path, target)
    return target
