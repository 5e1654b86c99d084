"""
Import reconcilers: bring foreign mileage into the trip ledger.

Each reconciler runs the same four steps for one source kind:

1. enumerate eligible foreign records inside the quarter window
2. look up which of them already have trip records (dedup key is
   user, quarter, source kind, source ref)
3. select the not-yet-imported candidates to import
4. translate them to trip records and insert the batch atomically

Steps 2-4 hold a lock per (user, quarter, source kind), so two concurrent
imports of the same scope cannot both pass the dedup check. A record that
fails translation is reported and skipped; it never aborts the batch.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Iterator, Optional

from ifta_engine.apportion import apportion_trip
from ifta_engine.collaborators import (
    EldSource,
    LoadManagementSource,
    MileageTrackerSource,
    VehicleDirectory,
)
from ifta_engine.config import EngineConfig
from ifta_engine.exceptions import (
    CollaboratorError,
    DiscrepancyWarning,
    IftaEngineError,
    InvalidQuery,
    PersistenceError,
    TranslationError,
)
from ifta_engine.jurisdictions import parse_jurisdiction
from ifta_engine.logging_config import get_logger
from ifta_engine.models import (
    Crossing,
    ForeignLoad,
    ForeignMileageTrip,
    SourceKind,
    TripRecord,
)
from ifta_engine.quarters import QuarterWindow, quarter_for_date, resolve_quarter
from ifta_engine.repository import TripRepository

logger = get_logger("reconcilers")

_ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Concurrency primitives
# ---------------------------------------------------------------------------


class ScopeLocks:
    """One lock per (user, quarter, source kind) import scope."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, str, SourceKind], threading.Lock] = {}

    def lock_for(self, scope: tuple[str, str, SourceKind]) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(scope)
            if lock is None:
                lock = threading.Lock()
                self._locks[scope] = lock
            return lock

    @contextmanager
    def hold(self, scope: tuple[str, str, SourceKind]) -> Iterator[None]:
        with self.lock_for(scope):
            yield


class CancelToken:
    """Cooperative cancellation, checked between import steps."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class ImportCandidate:
    """A foreign record eligible for import, with its dedup status."""

    foreign_id: str
    description: str
    refs: tuple[str, ...]
    payload: Any = None
    imported_refs: frozenset[str] = frozenset()
    miles: Decimal = _ZERO
    error: Optional[TranslationError] = None

    @property
    def already_imported(self) -> bool:
        return bool(self.refs) and set(self.refs) <= self.imported_refs

    @property
    def partially_imported(self) -> bool:
        return bool(self.imported_refs) and not self.already_imported

    @property
    def pending_refs(self) -> tuple[str, ...]:
        return tuple(r for r in self.refs if r not in self.imported_refs)


@dataclass
class ImportStats:
    total: int
    imported: int
    available: int


_STATUS_RANK = {"success": 0, "warning": 1, "error": 2}


def _worst(statuses: Iterable[str]) -> str:
    return max(statuses, key=_STATUS_RANK.__getitem__, default="success")


@dataclass(frozen=True)
class JurisdictionComparison:
    """ELD vs. recorded miles for one jurisdiction.

    ``difference_percent`` is relative to the whole recorded baseline, so
    two jurisdictions that offset each other are each still flagged.
    """

    jurisdiction: str
    eld_miles: Decimal
    existing_miles: Decimal
    difference_percent: float
    status: str

    @property
    def difference_miles(self) -> Decimal:
        return self.eld_miles - self.existing_miles

    @property
    def sources(self) -> str:
        if self.eld_miles and self.existing_miles:
            return "both"
        if self.eld_miles:
            return "eld_only"
        return "recorded_only"


@dataclass
class DiscrepancyCheck:
    """ELD mileage vs. mileage already in the ledger from other sources.

    ``status`` classifies the quarter totals. ``jurisdictions`` repeats the
    comparison per jurisdiction; ``jurisdiction_status`` is the worst of
    those rows.
    """

    status: str  # success, warning, error
    eld_miles: Decimal
    existing_miles: Decimal
    difference_miles: Decimal
    difference_percent: float
    has_baseline: bool = True
    jurisdictions: list[JurisdictionComparison] = field(default_factory=list)

    @property
    def jurisdiction_status(self) -> str:
        return _worst(j.status for j in self.jurisdictions)

    @property
    def overall_status(self) -> str:
        return _worst((self.status, self.jurisdiction_status))

    @property
    def flagged_jurisdictions(self) -> list[str]:
        return [j.jurisdiction for j in self.jurisdictions if j.status != "success"]

    @property
    def recommendation(self) -> str:
        if self.eld_miles > 0 and not self.has_baseline:
            return "ELD data available and recommended for accuracy."
        if self.eld_miles > 0:
            return (
                "ELD data recommended for GPS-verified accuracy; review "
                "recorded trips before importing to avoid double counting."
            )
        if self.has_baseline:
            return "No ELD data for this quarter; recorded trip mileage stands."
        return (
            "No mileage data available. Connect an ELD provider or use the "
            "state mileage tracker."
        )

    def warning(self) -> Optional[DiscrepancyWarning]:
        status = self.overall_status
        if status == "success":
            return None
        return DiscrepancyWarning(
            status=status,
            eld_miles=self.eld_miles,
            existing_miles=self.existing_miles,
            difference_percent=self.difference_percent,
            jurisdictions=tuple(self.flagged_jurisdictions),
        )


@dataclass
class ImportPreview:
    """Steps 1-2: candidates in the window, marked if already imported."""

    source_kind: SourceKind
    user_id: str
    quarter: str
    window: QuarterWindow
    candidates: list[ImportCandidate]
    discrepancy: Optional[DiscrepancyCheck] = None

    @property
    def available(self) -> list[ImportCandidate]:
        return [c for c in self.candidates if not c.already_imported]

    @property
    def stats(self) -> ImportStats:
        imported = sum(1 for c in self.candidates if c.already_imported)
        return ImportStats(
            total=len(self.candidates),
            imported=imported,
            available=len(self.candidates) - imported,
        )


@dataclass
class ImportResult:
    """Outcome of one reconcile run."""

    source_kind: SourceKind
    user_id: str
    quarter: str
    imported: int = 0
    total_miles: Decimal = _ZERO
    jurisdictions: set[str] = field(default_factory=set)
    skipped_already_imported: int = 0
    per_record_errors: list[TranslationError] = field(default_factory=list)
    cancelled: bool = False
    discrepancy: Optional[DiscrepancyCheck] = None
    warnings: list[DiscrepancyWarning] = field(default_factory=list)
    records: list[TripRecord] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.per_record_errors)


# ---------------------------------------------------------------------------
# Base reconciler
# ---------------------------------------------------------------------------


class ImportReconciler(ABC):
    """Shared four-step import flow; subclasses enumerate and translate."""

    source_kind: SourceKind
    collaborator_name: str = "source"
    supports_selection: bool = True

    def __init__(
        self,
        repository: TripRepository,
        config: Optional[EngineConfig] = None,
        locks: Optional[ScopeLocks] = None,
    ) -> None:
        self.repository = repository
        self.config = config or EngineConfig()
        self.locks = locks or ScopeLocks()

    # -- subclass hooks -------------------------------------------------

    @abstractmethod
    def _enumerate(
        self, user_id: str, quarter: str, window: QuarterWindow
    ) -> list[ImportCandidate]:
        """Step 1. Collaborator exceptions may propagate; they are wrapped."""

    @abstractmethod
    def _translate(
        self, user_id: str, quarter: str, candidate: ImportCandidate
    ) -> list[TripRecord]:
        """Step 4 mapping for one candidate's pending refs.

        Raises:
            TranslationError: If the candidate cannot be mapped
        """

    def _check_discrepancy(
        self, user_id: str, quarter: str, candidates: list[ImportCandidate]
    ) -> Optional[DiscrepancyCheck]:
        return None

    # -- steps ------------------------------------------------------------

    def _validate(self, user_id: str, quarter: str) -> QuarterWindow:
        if not user_id:
            raise InvalidQuery("user_id")
        if not quarter:
            raise InvalidQuery("quarter")
        return resolve_quarter(quarter)

    def _fetch_candidates(
        self, user_id: str, quarter: str, window: QuarterWindow
    ) -> list[ImportCandidate]:
        try:
            return self._enumerate(user_id, quarter, window)
        except IftaEngineError:
            raise
        except Exception as e:
            raise CollaboratorError(self.collaborator_name, e) from e

    def _mark_imported(
        self, user_id: str, quarter: str, candidates: list[ImportCandidate]
    ) -> None:
        refs = [r for c in candidates for r in c.refs]
        if not refs:
            return
        try:
            existing = self.repository.find_trip_records_by_source_refs(
                user_id, quarter, self.source_kind, refs
            )
        except IftaEngineError:
            raise
        except Exception as e:
            raise CollaboratorError("repository", e) from e
        for candidate in candidates:
            candidate.imported_refs = frozenset(r for r in candidate.refs if r in existing)

    def _build_preview(
        self,
        user_id: str,
        quarter: str,
        window: QuarterWindow,
        candidates: list[ImportCandidate],
    ) -> ImportPreview:
        self._mark_imported(user_id, quarter, candidates)
        return ImportPreview(
            source_kind=self.source_kind,
            user_id=user_id,
            quarter=quarter,
            window=window,
            candidates=candidates,
            discrepancy=self._check_discrepancy(user_id, quarter, candidates),
        )

    def preview(self, user_id: str, quarter: str) -> ImportPreview:
        """Steps 1-2 without importing anything."""
        window = self._validate(user_id, quarter)
        candidates = self._fetch_candidates(user_id, quarter, window)
        return self._build_preview(user_id, quarter, window, candidates)

    def _select(
        self,
        preview: ImportPreview,
        selection: Optional[Iterable[str]],
        result: ImportResult,
    ) -> list[ImportCandidate]:
        if selection is None:
            chosen = preview.candidates
        else:
            by_id = {c.foreign_id: c for c in preview.candidates}
            chosen = []
            for foreign_id in dict.fromkeys(str(s) for s in selection):
                candidate = by_id.get(foreign_id)
                if candidate is None:
                    result.per_record_errors.append(
                        TranslationError(
                            self.source_kind.value,
                            foreign_id,
                            f"not an eligible record for {preview.quarter}",
                        )
                    )
                else:
                    chosen.append(candidate)

        result.skipped_already_imported = sum(len(c.imported_refs) for c in chosen)
        return [c for c in chosen if not c.already_imported]

    def reconcile(
        self,
        user_id: str,
        quarter: str,
        selection: Optional[Iterable[str]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> ImportResult:
        """
        Run steps 1-4 and import the selected, not-yet-imported records.

        ``selection`` holds foreign record ids; None imports every
        available candidate. Cancellation is honoured between steps and
        leaves committed records in place.

        Raises:
            InvalidQuery: If user_id or quarter is missing
            InvalidQuarterLabel: If quarter is malformed
            CollaboratorError: If a foreign source or the dedup lookup fails
            PersistenceError: If the batch insert fails (nothing stored)
        """
        window = self._validate(user_id, quarter)
        if selection is not None:
            if not self.supports_selection:
                raise InvalidQuery(
                    "selection",
                    f"{self.source_kind.value} imports take no selection",
                )
            selection = list(selection)
        result = ImportResult(
            source_kind=self.source_kind, user_id=user_id, quarter=quarter
        )

        def _cancelled(step: str) -> bool:
            if cancel is not None and cancel.cancelled:
                result.cancelled = True
                logger.info(
                    "import_cancelled",
                    extra={
                        "source_kind": self.source_kind.value,
                        "user_id": user_id,
                        "quarter": quarter,
                        "step": step,
                        "committed": result.imported,
                    },
                )
                return True
            return False

        logger.info(
            "import_started",
            extra={
                "source_kind": self.source_kind.value,
                "user_id": user_id,
                "quarter": quarter,
            },
        )

        if _cancelled("enumerate"):
            return result
        candidates = self._fetch_candidates(user_id, quarter, window)
        if _cancelled("dedup"):
            return result

        with self.locks.hold((user_id, quarter, self.source_kind)):
            preview = self._build_preview(user_id, quarter, window, candidates)
            result.discrepancy = preview.discrepancy
            if preview.discrepancy is not None:
                warning = preview.discrepancy.warning()
                if warning is not None:
                    result.warnings.append(warning)
                    logger.warning(
                        "eld_discrepancy",
                        extra={
                            "user_id": user_id,
                            "quarter": quarter,
                            "status": preview.discrepancy.status,
                            "jurisdiction_status": preview.discrepancy.jurisdiction_status,
                            "difference_percent": preview.discrepancy.difference_percent,
                        },
                    )

            selected = self._select(preview, selection, result)

            records: list[TripRecord] = []
            for candidate in selected:
                if candidate.error is not None:
                    result.per_record_errors.append(candidate.error)
                    logger.warning(
                        "translation_failed",
                        extra={"source_ref": candidate.foreign_id, "reason": candidate.error.reason},
                    )
                    continue
                try:
                    records.extend(self._translate(user_id, quarter, candidate))
                except TranslationError as e:
                    result.per_record_errors.append(e)
                    logger.warning(
                        "translation_failed",
                        extra={"source_ref": e.source_ref, "reason": e.reason},
                    )

            if _cancelled("persist"):
                return result

            if records:
                try:
                    stored = self.repository.insert_trip_records(records)
                except PersistenceError:
                    logger.error(
                        "import_persist_failed",
                        extra={"source_kind": self.source_kind.value, "records": len(records)},
                    )
                    raise
                except Exception as e:
                    raise PersistenceError(
                        f"Could not store {len(records)} imported trip records: {e}",
                        record_count=len(records),
                    ) from e
                result.records = stored
                result.imported = len(stored)
                result.total_miles = sum((r.total_miles for r in stored), _ZERO)
                for r in stored:
                    result.jurisdictions.update(
                        j for j in (r.start_jurisdiction, r.end_jurisdiction) if j
                    )

        logger.info(
            "import_committed",
            extra={
                "source_kind": self.source_kind.value,
                "user_id": user_id,
                "quarter": quarter,
                "imported": result.imported,
                "skipped": result.skipped_already_imported,
                "failed": result.failed,
            },
        )
        return result


# ---------------------------------------------------------------------------
# Load management
# ---------------------------------------------------------------------------


class LoadImportReconciler(ImportReconciler):
    """One trip record per completed load."""

    source_kind = SourceKind.LOAD_IMPORT
    collaborator_name = "load_management"

    def __init__(
        self,
        repository: TripRepository,
        source: LoadManagementSource,
        config: Optional[EngineConfig] = None,
        locks: Optional[ScopeLocks] = None,
        vehicles: Optional[VehicleDirectory] = None,
    ) -> None:
        super().__init__(repository, config, locks)
        self.source = source
        self.vehicles = vehicles

    def _enumerate(
        self, user_id: str, quarter: str, window: QuarterWindow
    ) -> list[ImportCandidate]:
        return [
            ImportCandidate(
                foreign_id=load.id,
                description=(
                    f"Load #{load.load_number or load.id}: "
                    f"{load.origin_text} to {load.destination_text}"
                ),
                refs=(load.id,),
                payload=load,
                miles=load.recorded_distance or _ZERO,
            )
            for load in self.source.list_completed_loads(user_id, window)
        ]

    def _resolve_vehicle(self, user_id: str, load: ForeignLoad) -> str:
        if not load.vehicle_id:
            return "unknown"
        if self.vehicles is not None:
            try:
                resolved = self.vehicles.resolve(user_id, load.vehicle_id)
            except Exception as e:
                raise CollaboratorError("vehicle_directory", e) from e
            if resolved:
                return resolved
        return load.vehicle_id

    def _translate(
        self, user_id: str, quarter: str, candidate: ImportCandidate
    ) -> list[TripRecord]:
        load: ForeignLoad = candidate.payload
        kind = self.source_kind.value

        origin = parse_jurisdiction(load.origin_text)
        if not origin.ok:
            raise TranslationError(
                kind, load.id, f"unparseable origin {origin.unparseable!r}"
            )
        destination = parse_jurisdiction(load.destination_text)
        if not destination.ok:
            raise TranslationError(
                kind, load.id, f"unparseable destination {destination.unparseable!r}"
            )

        if load.recorded_distance is not None:
            if load.recorded_distance < 0:
                raise TranslationError(kind, load.id, "recorded distance is negative")
            miles = load.recorded_distance
        else:
            miles = self.config.estimated_distance(origin.code, destination.code)
            if miles is None:
                raise TranslationError(
                    kind,
                    load.id,
                    f"no recorded distance and no estimate for route "
                    f"{origin.code}-{destination.code}",
                )

        delivered_in = quarter_for_date(load.delivery_date)
        if delivered_in != quarter:
            logger.warning(
                "load_outside_quarter",
                extra={"load_id": load.id, "delivered_in": delivered_in, "quarter": quarter},
            )

        return [
            TripRecord(
                user_id=user_id,
                quarter=quarter,
                vehicle_id=self._resolve_vehicle(user_id, load),
                start_jurisdiction=origin.code,
                end_jurisdiction=destination.code,
                total_miles=miles,
                source_kind=self.source_kind,
                source_ref=load.id,
                start_date=load.delivery_date,
                end_date=load.delivery_date,
                driver_id=load.driver_id,
                notes=(
                    f"Imported from load #{load.load_number or load.id}: "
                    f"{load.origin_text} to {load.destination_text}"
                ),
            )
        ]


# ---------------------------------------------------------------------------
# State mileage tracker
# ---------------------------------------------------------------------------


def state_mileage(trip_id: str, crossings: list[Crossing]) -> dict[str, Decimal]:
    """
    Miles per jurisdiction from ordered odometer crossings.

    Each segment runs from one crossing to the next and is credited to the
    jurisdiction entered at its start. Insertion order follows the route.

    Raises:
        TranslationError: On fewer than two crossings, a missing
            jurisdiction, or an odometer that runs backwards
    """
    kind = SourceKind.MILEAGE_TRACKER_IMPORT.value
    if len(crossings) < 2:
        raise TranslationError(kind, trip_id, "needs at least two state crossings")
    miles: dict[str, Decimal] = {}
    for current, following in zip(crossings, crossings[1:]):
        code = current.jurisdiction.strip().upper()
        if not code:
            raise TranslationError(kind, trip_id, "crossing without a jurisdiction")
        driven = following.odometer - current.odometer
        if driven < 0:
            raise TranslationError(
                kind,
                trip_id,
                f"odometer went backwards ({current.odometer} -> {following.odometer})",
            )
        miles[code] = miles.get(code, _ZERO) + driven
    return miles


def _tracker_ref(trip_id: str, jurisdiction: str) -> str:
    return f"{trip_id}:{jurisdiction}"


class MileageTrackerReconciler(ImportReconciler):
    """One trip record per jurisdiction driven on a tracked trip."""

    source_kind = SourceKind.MILEAGE_TRACKER_IMPORT
    collaborator_name = "mileage_tracker"

    def __init__(
        self,
        repository: TripRepository,
        source: MileageTrackerSource,
        config: Optional[EngineConfig] = None,
        locks: Optional[ScopeLocks] = None,
    ) -> None:
        super().__init__(repository, config, locks)
        self.source = source

    def _enumerate(
        self, user_id: str, quarter: str, window: QuarterWindow
    ) -> list[ImportCandidate]:
        candidates = []
        for trip in self.source.list_completed_trips(user_id, window):
            description = f"Trip {trip.id} ({trip.start_date} to {trip.end_date})"
            try:
                by_state = state_mileage(trip.id, self.source.list_crossings(trip.id))
            except TranslationError as e:
                candidates.append(
                    ImportCandidate(
                        foreign_id=trip.id,
                        description=description,
                        refs=(),
                        payload=(trip, {}),
                        error=e,
                    )
                )
                continue
            driven = {code: m for code, m in by_state.items() if m > 0}
            error = None
            if not driven:
                error = TranslationError(
                    self.source_kind.value, trip.id, "no miles recorded between crossings"
                )
            candidates.append(
                ImportCandidate(
                    foreign_id=trip.id,
                    description=description,
                    refs=tuple(_tracker_ref(trip.id, code) for code in driven),
                    payload=(trip, driven),
                    miles=sum(driven.values(), _ZERO),
                    error=error,
                )
            )
        return candidates

    def _translate(
        self, user_id: str, quarter: str, candidate: ImportCandidate
    ) -> list[TripRecord]:
        trip: ForeignMileageTrip
        trip, driven = candidate.payload
        pending = set(candidate.pending_refs)
        records = []
        for code, miles in driven.items():
            ref = _tracker_ref(trip.id, code)
            if ref not in pending:
                continue
            records.append(
                TripRecord(
                    user_id=user_id,
                    quarter=quarter,
                    vehicle_id=trip.vehicle_id,
                    start_jurisdiction=code,
                    end_jurisdiction=code,
                    total_miles=miles,
                    source_kind=self.source_kind,
                    source_ref=ref,
                    start_date=trip.start_date,
                    end_date=trip.end_date or trip.start_date,
                    notes=f"Imported from state mileage tracker: {code} ({miles:.1f} miles)",
                )
            )
        return records


# ---------------------------------------------------------------------------
# ELD
# ---------------------------------------------------------------------------


def _mid_quarter(window: QuarterWindow) -> date:
    return date(window.start.year, window.start.month + 1, 15)


class EldImportReconciler(ImportReconciler):
    """
    One trip record per jurisdiction of the provider's quarter summary.

    The summary is already aggregated, so there is nothing to select:
    every jurisdiction with positive miles is imported.
    """

    source_kind = SourceKind.ELD_IMPORT
    collaborator_name = "eld"
    supports_selection = False

    def __init__(
        self,
        repository: TripRepository,
        source: EldSource,
        config: Optional[EngineConfig] = None,
        locks: Optional[ScopeLocks] = None,
    ) -> None:
        super().__init__(repository, config, locks)
        self.source = source

    def _enumerate(
        self, user_id: str, quarter: str, window: QuarterWindow
    ) -> list[ImportCandidate]:
        """
        One candidate per jurisdiction code of the summary.

        Rows whose codes normalise to the same jurisdiction are summed, so
        the source_ref stays unique within the quarter. A provider total
        that disagrees with its rows is reported as a failed candidate and
        does not block the rows themselves.
        """
        summary = self.source.get_mileage_summary(user_id, window)
        merged: dict[str, list[Decimal]] = {}
        for item in summary.per_jurisdiction:
            merged.setdefault(item.jurisdiction.strip().upper(), []).append(item.miles)

        candidates = []
        for code in sorted(merged):
            rows = merged[code]
            miles = sum(rows, _ZERO)
            error = None
            if not code:
                error = TranslationError(
                    self.source_kind.value, "?", "summary row without a jurisdiction"
                )
            elif any(m < 0 for m in rows):
                negative = min(rows)
                error = TranslationError(
                    self.source_kind.value, code, f"negative miles {negative}"
                )
            elif miles == 0:
                continue
            candidates.append(
                ImportCandidate(
                    foreign_id=code or "?",
                    description=f"ELD mileage for {code or '?'}",
                    refs=(code,) if error is None else (),
                    payload=(code, miles, window, summary),
                    miles=miles,
                    error=error,
                )
            )

        row_total = sum((item.miles for item in summary.per_jurisdiction), _ZERO)
        if summary.total_miles is not None and summary.total_miles != row_total:
            candidates.append(
                ImportCandidate(
                    foreign_id="total",
                    description="ELD provider total",
                    refs=(),
                    payload=None,
                    miles=summary.total_miles,
                    error=TranslationError(
                        self.source_kind.value,
                        "total",
                        f"provider total {summary.total_miles} does not match "
                        f"the sum of jurisdiction rows {row_total}",
                    ),
                )
            )
        return candidates

    def _check_discrepancy(
        self, user_id: str, quarter: str, candidates: list[ImportCandidate]
    ) -> DiscrepancyCheck:
        try:
            existing_trips = self.repository.find_trip_records(user_id, quarter)
        except IftaEngineError:
            raise
        except Exception as e:
            raise CollaboratorError("repository", e) from e

        recorded = [t for t in existing_trips if t.source_kind is not SourceKind.ELD_IMPORT]
        existing = sum((t.total_miles for t in recorded), _ZERO)
        eld_total = sum((c.miles for c in candidates if c.error is None), _ZERO)
        difference = eld_total - existing
        has_baseline = existing > 0
        percent = float(difference / existing * 100) if has_baseline else 0.0

        eld_by_code: dict[str, Decimal] = {
            c.foreign_id: c.miles for c in candidates if c.error is None
        }
        recorded_by_code: dict[str, Decimal] = {}
        for trip in recorded:
            for code, miles in apportion_trip(trip):
                recorded_by_code[code] = recorded_by_code.get(code, _ZERO) + miles

        rows = []
        for code in sorted(set(eld_by_code) | set(recorded_by_code)):
            eld_miles = eld_by_code.get(code, _ZERO)
            existing_miles = recorded_by_code.get(code, _ZERO)
            row_percent = (
                float((eld_miles - existing_miles) / existing * 100) if has_baseline else 0.0
            )
            rows.append(
                JurisdictionComparison(
                    jurisdiction=code,
                    eld_miles=eld_miles,
                    existing_miles=existing_miles,
                    difference_percent=row_percent,
                    status=self.config.eld_discrepancy.classify(row_percent),
                )
            )

        return DiscrepancyCheck(
            status=self.config.eld_discrepancy.classify(percent),
            eld_miles=eld_total,
            existing_miles=existing,
            difference_miles=difference,
            difference_percent=percent,
            has_baseline=has_baseline,
            jurisdictions=rows,
        )

    def _translate(
        self, user_id: str, quarter: str, candidate: ImportCandidate
    ) -> list[TripRecord]:
        code, miles, window, summary = candidate.payload
        midpoint = _mid_quarter(window)
        sync_note = f" Last sync: {summary.last_sync_at.isoformat()}." if summary.last_sync_at else ""
        return [
            TripRecord(
                user_id=user_id,
                quarter=quarter,
                vehicle_id="fleet",
                start_jurisdiction=code,
                end_jurisdiction=code,
                total_miles=miles,
                source_kind=self.source_kind,
                source_ref=code,
                start_date=midpoint,
                end_date=midpoint,
                notes=f"ELD-synced mileage for {code}.{sync_note}",
            )
        ]
