"""
IftaService: the engine's public surface.

Wires one repository and the optional foreign sources into the
aggregator, the three reconcilers and the report builder. Reconcilers
share one ``ScopeLocks`` registry so every import path for a scope is
serialized.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional, Union

from ifta_engine.calculator import AggregateResult, IftaCalculator, SortSpec
from ifta_engine.collaborators import (
    EldSource,
    LoadManagementSource,
    MileageTrackerSource,
    VehicleDirectory,
)
from ifta_engine.config import EngineConfig
from ifta_engine.exceptions import InvalidQuery
from ifta_engine.fuel_sync import FuelDiscrepancy, check_fuel_sync
from ifta_engine.jurisdictions import JurisdictionDirectory
from ifta_engine.logging_config import get_logger
from ifta_engine.models import SourceKind
from ifta_engine.reconcilers import (
    CancelToken,
    EldImportReconciler,
    ImportPreview,
    ImportReconciler,
    ImportResult,
    LoadImportReconciler,
    MileageTrackerReconciler,
    ScopeLocks,
)
from ifta_engine.report_generator import ReportBuilder, ReportDocument, ReportKind
from ifta_engine.repository import TripRepository

logger = get_logger("service")

# CLI-friendly names for the import sources.
_SOURCE_ALIASES = {
    "load": SourceKind.LOAD_IMPORT,
    "loads": SourceKind.LOAD_IMPORT,
    "mileage": SourceKind.MILEAGE_TRACKER_IMPORT,
    "mileage_tracker": SourceKind.MILEAGE_TRACKER_IMPORT,
    "eld": SourceKind.ELD_IMPORT,
}


def parse_source_kind(value: Union[SourceKind, str]) -> SourceKind:
    if isinstance(value, SourceKind):
        kind = value
    else:
        kind = _SOURCE_ALIASES.get(str(value).strip().lower())
        if kind is None:
            raise InvalidQuery(
                "source_kind", f"unknown import source {value!r}; use load, mileage or eld"
            )
    if kind is SourceKind.MANUAL:
        raise InvalidQuery("source_kind", "manual trips are not imported")
    return kind


class IftaService:
    """Facade over aggregation, imports, reports and the fuel sync check."""

    def __init__(
        self,
        repository: TripRepository,
        loads: Optional[LoadManagementSource] = None,
        mileage_tracker: Optional[MileageTrackerSource] = None,
        eld: Optional[EldSource] = None,
        vehicles: Optional[VehicleDirectory] = None,
        config: Optional[EngineConfig] = None,
        directory: Optional[JurisdictionDirectory] = None,
    ) -> None:
        self.repository = repository
        self.config = config or EngineConfig()
        self.locks = ScopeLocks()
        self.calculator = IftaCalculator(repository, self.config, directory)

        self.reconcilers: dict[SourceKind, ImportReconciler] = {}
        if loads is not None:
            self.reconcilers[SourceKind.LOAD_IMPORT] = LoadImportReconciler(
                repository, loads, self.config, self.locks, vehicles=vehicles
            )
        if mileage_tracker is not None:
            self.reconcilers[SourceKind.MILEAGE_TRACKER_IMPORT] = MileageTrackerReconciler(
                repository, mileage_tracker, self.config, self.locks
            )
        if eld is not None:
            self.reconcilers[SourceKind.ELD_IMPORT] = EldImportReconciler(
                repository, eld, self.config, self.locks
            )

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate(
        self,
        user_id: str,
        quarter: str,
        sort: Optional[Union[SortSpec, str]] = None,
    ) -> AggregateResult:
        if isinstance(sort, str):
            sort = SortSpec.parse(sort)
        return self.calculator.aggregate(user_id, quarter, sort)

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def reconciler_for(self, source_kind: Union[SourceKind, str]) -> ImportReconciler:
        kind = parse_source_kind(source_kind)
        reconciler = self.reconcilers.get(kind)
        if reconciler is None:
            raise InvalidQuery(
                "source_kind", f"no {kind.value} source is configured"
            )
        return reconciler

    def reconcile_imports(
        self,
        user_id: str,
        quarter: str,
        source_kind: Union[SourceKind, str],
        selection: Optional[Iterable[str]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> ImportResult:
        return self.reconciler_for(source_kind).reconcile(
            user_id, quarter, selection=selection, cancel=cancel
        )

    def preview_imports(
        self, user_id: str, quarter: str
    ) -> dict[SourceKind, ImportPreview]:
        """Preview every configured source at once, one thread per source."""
        if not self.reconcilers:
            return {}
        workers = min(self.config.max_import_workers, len(self.reconcilers))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                kind: executor.submit(reconciler.preview, user_id, quarter)
                for kind, reconciler in self.reconcilers.items()
            }
            previews = {kind: future.result() for kind, future in futures.items()}

        logger.info(
            "imports_previewed",
            extra={
                "user_id": user_id,
                "quarter": quarter,
                "available": {k.value: p.stats.available for k, p in previews.items()},
            },
        )
        return previews

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def build_report(
        self,
        user_id: str,
        quarter: str,
        kind: Union[ReportKind, str] = ReportKind.SUMMARY,
        include_zero_rows: bool = True,
        sort: Optional[Union[SortSpec, str]] = None,
    ) -> ReportDocument:
        if isinstance(sort, str):
            sort = SortSpec.parse(sort)
        trips, fuel = self.calculator.load_inputs(user_id, quarter)
        aggregate = self.calculator.aggregate_records(
            trips, fuel, sort=sort, quarter=quarter, user_id=user_id
        )
        builder = ReportBuilder(include_zero_rows=include_zero_rows)
        return builder.build(aggregate, kind, trips=trips, fuel_purchases=fuel)

    def serialize_report(self, report: ReportDocument) -> str:
        return ReportBuilder().serialize(report)

    # ------------------------------------------------------------------
    # Fuel sync
    # ------------------------------------------------------------------

    def check_fuel_sync(self, user_id: str, quarter: str) -> list[FuelDiscrepancy]:
        trips, fuel = self.calculator.load_inputs(user_id, quarter)
        return check_fuel_sync(trips, fuel, self.config)
