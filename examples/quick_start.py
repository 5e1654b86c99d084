#!/usr/bin/env python3
"""
Quick Start Example
===================

Demonstrates basic usage of the IftaService: record two manual trips and
a fuel purchase, import completed loads, and print the quarter's
jurisdiction summary.

Usage:
    python examples/quick_start.py
"""

from datetime import date
from decimal import Decimal

from ifta_engine import FuelPurchaseRecord, IftaService, InMemoryTripRepository, TripRecord
from ifta_engine.collaborators import InMemoryLoadSource
from ifta_engine.models import ForeignLoad

USER = "carrier-1"
QUARTER = "2024-Q1"


def main() -> None:
    # Seed a repository with manually entered trips and one fuel receipt
    repository = InMemoryTripRepository(
        trips=[
            TripRecord.manual(
                USER, QUARTER, "T1", "CA", "NV",
                starting_odometer=Decimal("120000"),
                ending_odometer=Decimal("120400"),
                gallons_consumed=Decimal("62.5"),
                start_date=date(2024, 1, 8),
            ),
            TripRecord.manual(
                USER, QUARTER, "T1", "NV", "AZ",
                total_miles=Decimal("300"),
                gallons_consumed=Decimal("50"),
                start_date=date(2024, 1, 9),
            ),
        ],
        fuel_purchases=[
            FuelPurchaseRecord(USER, date(2024, 1, 8), "CA", Decimal("80"), Decimal("392.00")),
        ],
    )

    # Completed loads waiting in the load-management system
    loads = InMemoryLoadSource({
        USER: [
            ForeignLoad("L-100", "Phoenix, AZ", "El Paso, TX", date(2024, 2, 14), Decimal("430")),
        ]
    })

    service = IftaService(repository, loads=loads)

    # Import loads; running this twice imports nothing new
    result = service.reconcile_imports(USER, QUARTER, "load")
    print(f"Imported {result.imported} load(s), {result.total_miles} miles")

    # Aggregate the quarter
    aggregate = service.aggregate(USER, QUARTER)
    print(f"Fleet MPG:      {aggregate.totals.fleet_mpg:.2f}")
    print(f"{'Jurisdiction':<14}{'Miles':>10}{'Tax Paid':>12}{'Net Taxable':>14}")
    for row in aggregate.rows:
        print(
            f"{row.jurisdiction:<14}{row.total_miles:>10.1f}"
            f"{row.tax_paid_gallons:>12.3f}{row.net_taxable_gallons:>14.3f}"
        )

    # Delimited report text, ready to attach to the return
    report = service.build_report(USER, QUARTER)
    print()
    print(service.serialize_report(report))


if __name__ == "__main__":
    main()
