"""
IFTA Reconciliation Engine
==========================

Quarterly fuel-tax reconciliation for interstate carriers: merges trip
records from manual entry, load management, the state-mileage tracker
and ELD providers into one ledger, apportions miles by jurisdiction, and
derives net taxable gallons for the IFTA return.

Modules:
    quarters         - Quarter label parsing and date windows
    apportion        - Trip mileage apportionment across jurisdictions
    efficiency       - Fleet MPG estimate
    ledger           - Per-jurisdiction accumulator
    calculator       - Quarterly jurisdiction aggregation
    reconcilers      - Idempotent imports from foreign mileage sources
    report_generator - Summary/detailed reports with CSV/JSON/DataFrame export
    fuel_sync        - Fuel purchase vs. trip fuel check
    service          - Public facade
    cli              - Command-line interface
"""

__version__ = "1.0.0"

from ifta_engine.calculator import IftaCalculator, SortSpec
from ifta_engine.config import EngineConfig, load_engine_config
from ifta_engine.models import FuelPurchaseRecord, SourceKind, TripRecord
from ifta_engine.quarters import resolve_quarter
from ifta_engine.reconcilers import (
    CancelToken,
    EldImportReconciler,
    LoadImportReconciler,
    MileageTrackerReconciler,
)
from ifta_engine.report_generator import ReportBuilder
from ifta_engine.repository import InMemoryTripRepository
from ifta_engine.service import IftaService

__all__ = [
    "IftaCalculator",
    "SortSpec",
    "EngineConfig",
    "load_engine_config",
    "FuelPurchaseRecord",
    "SourceKind",
    "TripRecord",
    "resolve_quarter",
    "CancelToken",
    "EldImportReconciler",
    "LoadImportReconciler",
    "MileageTrackerReconciler",
    "ReportBuilder",
    "InMemoryTripRepository",
    "IftaService",
]
