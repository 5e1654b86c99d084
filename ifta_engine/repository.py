"""
Repository boundary for trip records and fuel purchases.

The engine only depends on ``TripRepository``. ``InMemoryTripRepository``
is the reference implementation; it enforces the dedup key and makes
batch inserts all-or-nothing, which is what any storage-backed
implementation must also guarantee.
"""

from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, Optional

from ifta_engine.exceptions import DuplicateTripRecord, PersistenceError
from ifta_engine.models import FuelPurchaseRecord, SourceKind, TripRecord
from ifta_engine.quarters import resolve_quarter


class TripRepository(ABC):
    """Storage interface consumed by the aggregator and reconcilers."""

    @abstractmethod
    def find_trip_records(self, user_id: str, quarter: str) -> list[TripRecord]:
        ...

    @abstractmethod
    def find_trip_records_by_source_refs(
        self,
        user_id: str,
        quarter: str,
        source_kind: SourceKind,
        refs: Iterable[str],
    ) -> set[str]:
        """Return the subset of ``refs`` that already has a trip record."""

    @abstractmethod
    def insert_trip_records(self, records: list[TripRecord]) -> list[TripRecord]:
        """Insert all records or none. Returns the stored records with ids.

        Raises:
            PersistenceError: If the batch could not be stored
        """

    @abstractmethod
    def find_fuel_purchases(
        self, user_id: str, quarter: str
    ) -> list[FuelPurchaseRecord]:
        ...


class InMemoryTripRepository(TripRepository):
    """Thread-safe in-memory repository."""

    def __init__(
        self,
        trips: Optional[Iterable[TripRecord]] = None,
        fuel_purchases: Optional[Iterable[FuelPurchaseRecord]] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._trips: list[TripRecord] = []
        self._keys: set[tuple] = set()
        self._fuel: list[FuelPurchaseRecord] = list(fuel_purchases or [])
        if trips:
            self.insert_trip_records(list(trips))

    def find_trip_records(self, user_id: str, quarter: str) -> list[TripRecord]:
        with self._lock:
            return [
                t for t in self._trips
                if t.user_id == user_id and t.quarter == quarter
            ]

    def find_trip_records_by_source_refs(
        self,
        user_id: str,
        quarter: str,
        source_kind: SourceKind,
        refs: Iterable[str],
    ) -> set[str]:
        with self._lock:
            return {
                ref for ref in refs
                if (user_id, quarter, source_kind, ref) in self._keys
            }

    def insert_trip_records(self, records: list[TripRecord]) -> list[TripRecord]:
        if not records:
            return []
        now = datetime.now(timezone.utc)
        with self._lock:
            batch_keys: set[tuple] = set()
            for record in records:
                key = record.dedup_key
                if key is None:
                    continue
                if key in self._keys or key in batch_keys:
                    raise DuplicateTripRecord(key, record_count=len(records))
                batch_keys.add(key)

            try:
                stored = [
                    replace(
                        r,
                        id=r.id or uuid.uuid4().hex,
                        created_at=r.created_at or now,
                        updated_at=r.updated_at or now,
                    )
                    for r in records
                ]
            except (TypeError, ValueError) as e:
                raise PersistenceError(
                    f"Could not store trip records: {e}", record_count=len(records)
                ) from e

            self._trips.extend(stored)
            self._keys.update(batch_keys)
            return stored

    def find_fuel_purchases(
        self, user_id: str, quarter: str
    ) -> list[FuelPurchaseRecord]:
        window = resolve_quarter(quarter)
        with self._lock:
            return [
                f for f in self._fuel
                if f.user_id == user_id and window.contains(f.date)
            ]

    def add_fuel_purchases(self, purchases: Iterable[FuelPurchaseRecord]) -> None:
        with self._lock:
            self._fuel.extend(purchases)

    def all_trip_records(self) -> list[TripRecord]:
        with self._lock:
            return list(self._trips)

    def all_fuel_purchases(self) -> list[FuelPurchaseRecord]:
        with self._lock:
            return list(self._fuel)
