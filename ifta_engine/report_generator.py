"""
IFTA report builder.

Produces:
- Quarterly summary reports (totals plus one row per jurisdiction)
- Detailed reports (the summary plus trip and fuel purchase listings)
- Delimited text, JSON and pandas DataFrame renderings

Building and serializing are pure; nothing here touches the file system.
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Iterable, Optional

import pandas as pd

from ifta_engine.calculator import AggregateResult, AggregateTotals
from ifta_engine.exceptions import InvalidQuery
from ifta_engine.ledger import JurisdictionRow
from ifta_engine.models import FuelPurchaseRecord, TripRecord

MILES_PLACES = Decimal("0.1")
GALLONS_PLACES = Decimal("0.001")
CURRENCY_PLACES = Decimal("0.01")
MPG_PLACES = Decimal("0.01")

JURISDICTION_COLUMNS = [
    "Jurisdiction",
    "Total Miles",
    "Taxable Miles",
    "Tax Paid Gallons",
    "Taxable Gallons",
    "Net Taxable Gallons",
]
TRIP_COLUMNS = ["Date", "Vehicle", "From", "To", "Miles", "Gallons", "Fuel Cost"]
FUEL_COLUMNS = ["Date", "Vehicle", "Jurisdiction", "Gallons", "Cost"]


class ReportKind(Enum):
    SUMMARY = "summary"
    DETAILED = "detailed"


def _fmt(value: Optional[Decimal], places: Decimal) -> str:
    if value is None:
        value = Decimal("0")
    return str(value.quantize(places, rounding=ROUND_HALF_UP))


class _DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and date objects."""

    def default(self, o: Any) -> Any:
        if isinstance(o, Decimal):
            return float(o)
        if isinstance(o, date):
            return o.isoformat()
        if isinstance(o, Enum):
            return o.value
        return super().default(o)


def _decimal_to_float(obj: Any) -> Any:
    """Recursively convert Decimal values to float for serialization."""
    if isinstance(obj, dict):
        return {k: _decimal_to_float(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_decimal_to_float(i) for i in obj]
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    return obj


@dataclass
class ReportDocument:
    """A built report, ready for serialization."""

    kind: ReportKind
    quarter: str
    user_id: str
    generated_date: date
    totals: AggregateTotals
    rows: list[JurisdictionRow]
    trips: list[TripRecord] = field(default_factory=list)
    fuel_purchases: list[FuelPurchaseRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def title(self) -> str:
        if self.kind is ReportKind.DETAILED:
            return f"IFTA DETAILED QUARTERLY REPORT - {self.quarter}"
        return f"IFTA QUARTERLY SUMMARY REPORT - {self.quarter}"


class ReportBuilder:
    """
    Builds IFTA reports from an aggregation result.

    Zero rows (no miles and no tax-paid fuel) are kept by default so the
    report lists every jurisdiction the quarter touched.
    """

    def __init__(self, include_zero_rows: bool = True) -> None:
        self.include_zero_rows = include_zero_rows

    def build(
        self,
        aggregate: AggregateResult,
        kind: ReportKind | str = ReportKind.SUMMARY,
        trips: Iterable[TripRecord] = (),
        fuel_purchases: Iterable[FuelPurchaseRecord] = (),
        generated_date: Optional[date] = None,
    ) -> ReportDocument:
        """
        Assemble a report document.

        ``trips`` and ``fuel_purchases`` are only kept for detailed reports.

        Raises:
            InvalidQuery: If kind is not summary or detailed
        """
        if not isinstance(kind, ReportKind):
            try:
                kind = ReportKind(str(kind).lower())
            except ValueError:
                raise InvalidQuery("kind", "report kind must be 'summary' or 'detailed'")

        rows = list(aggregate.rows)
        if not self.include_zero_rows:
            rows = [r for r in rows if not r.is_empty]

        report = ReportDocument(
            kind=kind,
            quarter=aggregate.quarter,
            user_id=aggregate.user_id,
            generated_date=generated_date or date.today(),
            totals=aggregate.totals,
            rows=rows,
            warnings=list(aggregate.warnings),
        )
        if kind is ReportKind.DETAILED:
            report.trips = sorted(
                trips, key=lambda t: (t.start_date or date.min, t.vehicle_id)
            )
            report.fuel_purchases = sorted(
                fuel_purchases, key=lambda f: (f.date, f.vehicle_id or "")
            )
        return report

    # ------------------------------------------------------------------
    # Row shapes
    # ------------------------------------------------------------------

    @staticmethod
    def jurisdiction_rows(report: ReportDocument) -> list[list[str]]:
        return [
            [
                r.jurisdiction,
                _fmt(r.total_miles, MILES_PLACES),
                _fmt(r.taxable_miles, MILES_PLACES),
                _fmt(r.tax_paid_gallons, GALLONS_PLACES),
                _fmt(r.taxable_gallons, GALLONS_PLACES),
                _fmt(r.net_taxable_gallons, GALLONS_PLACES),
            ]
            for r in report.rows
        ]

    @staticmethod
    def trip_rows(report: ReportDocument) -> list[list[str]]:
        return [
            [
                t.start_date.isoformat() if t.start_date else "",
                t.vehicle_id,
                t.start_jurisdiction,
                t.end_jurisdiction,
                _fmt(t.total_miles, MILES_PLACES),
                _fmt(t.gallons_consumed, GALLONS_PLACES),
                _fmt(t.fuel_cost, CURRENCY_PLACES),
            ]
            for t in report.trips
        ]

    @staticmethod
    def fuel_rows(report: ReportDocument) -> list[list[str]]:
        return [
            [
                f.date.isoformat(),
                f.vehicle_id or "",
                f.jurisdiction,
                _fmt(f.gallons, GALLONS_PLACES),
                _fmt(f.total_amount, CURRENCY_PLACES),
            ]
            for f in report.fuel_purchases
        ]

    # ------------------------------------------------------------------
    # Export methods
    # ------------------------------------------------------------------

    def serialize(self, report: ReportDocument) -> str:
        """Render the report as delimited text with a stable column order."""
        totals = report.totals
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")

        output.write(f"{report.title}\n")
        output.write(f"Generated: {report.generated_date.isoformat()}\n\n")
        if report.kind is ReportKind.DETAILED:
            output.write("SUMMARY STATISTICS:\n")
        output.write(f"Total Miles: {_fmt(totals.total_miles, MILES_PLACES)}\n")
        output.write(f"Total Gallons: {_fmt(totals.total_gallons, GALLONS_PLACES)}\n")
        output.write(f"Average MPG: {_fmt(totals.fleet_mpg, MPG_PLACES)}\n\n")

        if report.kind is ReportKind.DETAILED:
            output.write("JURISDICTION DETAILS:\n")
        else:
            output.write("JURISDICTION SUMMARY:\n")
        writer.writerow(JURISDICTION_COLUMNS)
        writer.writerows(self.jurisdiction_rows(report))

        if report.kind is ReportKind.DETAILED:
            output.write("\nTRIP DETAILS:\n")
            writer.writerow(TRIP_COLUMNS)
            writer.writerows(self.trip_rows(report))

            output.write("\nFUEL PURCHASE DETAILS:\n")
            writer.writerow(FUEL_COLUMNS)
            writer.writerows(self.fuel_rows(report))

        return output.getvalue()

    def to_dict(self, report: ReportDocument) -> dict[str, Any]:
        totals = report.totals
        data: dict[str, Any] = {
            "report_type": report.kind.value,
            "quarter": report.quarter,
            "user_id": report.user_id,
            "generated_date": report.generated_date.isoformat(),
            "summary": {
                "total_miles": totals.total_miles,
                "total_gallons": totals.total_gallons,
                "fleet_mpg": totals.fleet_mpg,
                "total_tax_paid_gallons": totals.total_tax_paid_gallons,
                "total_net_taxable_gallons": totals.total_net_taxable_gallons,
                "trip_count": totals.trip_count,
                "fuel_purchase_count": totals.fuel_purchase_count,
                "unapportioned_miles": totals.unapportioned_miles,
            },
            "jurisdictions": [
                {
                    "jurisdiction": r.jurisdiction,
                    "jurisdiction_name": r.jurisdiction_name,
                    "total_miles": r.total_miles,
                    "taxable_miles": r.taxable_miles,
                    "tax_paid_gallons": r.tax_paid_gallons,
                    "taxable_gallons": r.taxable_gallons,
                    "net_taxable_gallons": r.net_taxable_gallons,
                }
                for r in report.rows
            ],
            "warnings": list(report.warnings),
        }
        if report.kind is ReportKind.DETAILED:
            data["trips"] = [t.to_dict() for t in report.trips]
            data["fuel_purchases"] = [
                {
                    "date": f.date,
                    "vehicle_id": f.vehicle_id,
                    "jurisdiction": f.jurisdiction,
                    "gallons": f.gallons,
                    "total_amount": f.total_amount,
                    "fuel_type": f.fuel_type,
                }
                for f in report.fuel_purchases
            ]
        return data

    def to_json(self, report: ReportDocument) -> str:
        """Export a report to JSON. Returns the JSON string."""
        serializable = _decimal_to_float(self.to_dict(report))
        return json.dumps(serializable, indent=2, cls=_DecimalEncoder)

    def to_dataframe(
        self, report: ReportDocument, section: str = "jurisdictions"
    ) -> pd.DataFrame:
        """
        One report section as a DataFrame.

        Sections: ``jurisdictions``, ``trips``, ``fuel_purchases``. Values
        keep full precision; rounding is a serialization concern.
        """
        if section == "jurisdictions":
            columns = [
                "jurisdiction",
                "jurisdiction_name",
                "total_miles",
                "taxable_miles",
                "tax_paid_gallons",
                "taxable_gallons",
                "net_taxable_gallons",
            ]
            records = [
                {c: getattr(r, c) for c in columns} for r in report.rows
            ]
        elif section == "trips":
            columns = [
                "start_date",
                "vehicle_id",
                "start_jurisdiction",
                "end_jurisdiction",
                "total_miles",
                "gallons_consumed",
                "fuel_cost",
                "source_kind",
            ]
            records = [
                {c: getattr(t, c) for c in columns} | {"source_kind": t.source_kind.value}
                for t in report.trips
            ]
        elif section == "fuel_purchases":
            columns = ["date", "vehicle_id", "jurisdiction", "gallons", "total_amount"]
            records = [{c: getattr(f, c) for c in columns} for f in report.fuel_purchases]
        else:
            raise InvalidQuery(
                "section", "section must be jurisdictions, trips or fuel_purchases"
            )
        return pd.DataFrame.from_records(records, columns=columns)
