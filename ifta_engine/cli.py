"""
Command-line interface for the IFTA reconciliation engine.

Provides subcommands for the quarterly jurisdiction summary, report
export, import previews and imports, and the fuel sync check. All
commands work on a YAML dataset file (see ``ifta_engine.dataset``).
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ifta_engine.config import load_engine_config
from ifta_engine.dataset import Dataset, load_dataset, save_trips
from ifta_engine.exceptions import IftaEngineError
from ifta_engine.logging_config import configure_logging
from ifta_engine.quarters import quarter_for_date
from ifta_engine.report_generator import ReportBuilder

console = Console()

_STATUS_COLORS = {"success": "green", "warning": "yellow", "error": "red"}


def _open_dataset(args: argparse.Namespace) -> Dataset:
    dataset = load_dataset(args.dataset)
    if args.config:
        dataset.config = load_engine_config(args.config)
    return dataset


def _quarter(args: argparse.Namespace) -> str:
    if args.quarter:
        return args.quarter
    return quarter_for_date(date.today())


# -----------------------------------------------------------------------
# Subcommand: summary
# -----------------------------------------------------------------------


def cmd_summary(args: argparse.Namespace) -> None:
    """Show the per-jurisdiction summary for a quarter."""
    dataset = _open_dataset(args)
    service = dataset.service()
    quarter = _quarter(args)
    result = service.aggregate(dataset.user_id, quarter, sort=args.sort)

    rows = result.rows
    if args.hide_zero:
        rows = [r for r in rows if not r.is_empty]

    table = Table(
        title=f"IFTA Jurisdiction Summary - {quarter}",
        box=box.ROUNDED,
        show_lines=False,
    )
    table.add_column("Jurisdiction", style="bold")
    table.add_column("Name")
    table.add_column("Total Miles", justify="right")
    table.add_column("Taxable Miles", justify="right")
    table.add_column("Tax Paid Gal", justify="right")
    table.add_column("Taxable Gal", justify="right")
    table.add_column("Net Taxable Gal", justify="right", style="bold")

    for r in rows:
        table.add_row(
            r.jurisdiction,
            r.jurisdiction_name or "-",
            f"{r.total_miles:,.1f}",
            f"{r.taxable_miles:,.1f}",
            f"{r.tax_paid_gallons:,.3f}",
            f"{r.taxable_gallons:,.3f}",
            f"{r.net_taxable_gallons:,.3f}",
            style="green" if r.is_credit else None,
        )

    console.print(table)
    console.print()
    totals = result.totals
    console.print(
        Panel(
            f"[bold]Total Miles:[/bold] {totals.total_miles:,.1f}\n"
            f"[bold]Total Gallons:[/bold] {totals.total_gallons:,.3f}\n"
            f"[bold]Fleet MPG:[/bold] {totals.fleet_mpg:,.2f}\n"
            f"[bold]Tax Paid Gallons:[/bold] {totals.total_tax_paid_gallons:,.3f}\n"
            f"[bold]Net Taxable Gallons:[/bold] {totals.total_net_taxable_gallons:,.3f}\n"
            f"[bold]Trips / Fuel Purchases:[/bold] "
            f"{totals.trip_count} / {totals.fuel_purchase_count}",
            title="Quarter Totals",
            border_style="green",
        )
    )

    for w in result.warnings:
        console.print(f"[yellow]Warning: {w}[/yellow]")


# -----------------------------------------------------------------------
# Subcommand: report
# -----------------------------------------------------------------------


def cmd_report(args: argparse.Namespace) -> None:
    """Build a summary or detailed report and optionally export it."""
    dataset = _open_dataset(args)
    service = dataset.service()
    quarter = _quarter(args)
    report = service.build_report(
        dataset.user_id,
        quarter,
        kind=args.kind,
        include_zero_rows=not args.hide_zero,
    )
    builder = ReportBuilder()
    text = builder.serialize(report)

    if args.export_csv:
        Path(args.export_csv).write_text(text, encoding="utf-8")
        console.print(f"[green]Report exported to {args.export_csv}[/green]")
    if args.export_json:
        Path(args.export_json).write_text(builder.to_json(report), encoding="utf-8")
        console.print(f"[green]JSON exported to {args.export_json}[/green]")
    if not args.export_csv and not args.export_json:
        console.print(text, markup=False, highlight=False)


# -----------------------------------------------------------------------
# Subcommand: imports
# -----------------------------------------------------------------------


def cmd_imports(args: argparse.Namespace) -> None:
    """Preview import status for every foreign source."""
    dataset = _open_dataset(args)
    service = dataset.service()
    quarter = _quarter(args)
    previews = service.preview_imports(dataset.user_id, quarter)

    overview = Table(title=f"Import Sources - {quarter}", box=box.ROUNDED)
    overview.add_column("Source", style="bold")
    overview.add_column("Total", justify="right")
    overview.add_column("Imported", justify="right")
    overview.add_column("Available", justify="right", style="bold")
    for kind, preview in previews.items():
        stats = preview.stats
        overview.add_row(
            kind.value,
            str(stats.total),
            str(stats.imported),
            str(stats.available),
        )
    console.print(overview)

    for kind, preview in previews.items():
        if not preview.candidates:
            continue
        table = Table(title=f"{kind.value} candidates", box=box.SIMPLE)
        table.add_column("ID", style="dim")
        table.add_column("Description")
        table.add_column("Miles", justify="right")
        table.add_column("Status")
        for c in preview.candidates:
            if c.error is not None:
                status = f"[red]error: {escape(c.error.reason)}[/red]"
            elif c.already_imported:
                status = "[dim]imported[/dim]"
            elif c.partially_imported:
                status = "[yellow]partial[/yellow]"
            else:
                status = "[green]available[/green]"
            table.add_row(c.foreign_id, c.description, f"{c.miles:,.1f}", status)
        console.print(table)

        check = preview.discrepancy
        if check is not None and check.has_baseline:
            color = _STATUS_COLORS.get(check.status, "white")
            console.print(
                Panel(
                    f"[bold]ELD Miles:[/bold] {check.eld_miles:,.1f}\n"
                    f"[bold]Recorded Miles:[/bold] {check.existing_miles:,.1f}\n"
                    f"[bold]Difference:[/bold] {check.difference_miles:,.1f} "
                    f"({check.difference_percent:.1f}%)",
                    title=f"[{color}]ELD comparison: {check.status.upper()}[/{color}]",
                    border_style=color,
                )
            )
            by_jurisdiction = Table(title="ELD comparison by jurisdiction", box=box.SIMPLE)
            by_jurisdiction.add_column("Jurisdiction", style="bold")
            by_jurisdiction.add_column("ELD", justify="right")
            by_jurisdiction.add_column("Recorded", justify="right")
            by_jurisdiction.add_column("Difference", justify="right")
            by_jurisdiction.add_column("Sources")
            by_jurisdiction.add_column("Status")
            for row in check.jurisdictions:
                row_color = _STATUS_COLORS.get(row.status, "white")
                by_jurisdiction.add_row(
                    row.jurisdiction,
                    f"{row.eld_miles:,.1f}",
                    f"{row.existing_miles:,.1f}",
                    f"{row.difference_miles:,.1f} ({row.difference_percent:.1f}%)",
                    row.sources,
                    f"[{row_color}]{row.status}[/{row_color}]",
                )
            console.print(by_jurisdiction)
        if check is not None:
            console.print(f"[bold]Recommendation:[/bold] {check.recommendation}")


# -----------------------------------------------------------------------
# Subcommand: import
# -----------------------------------------------------------------------


def cmd_import(args: argparse.Namespace) -> None:
    """Import foreign mileage into the dataset's trip records."""
    dataset = _open_dataset(args)
    service = dataset.service()
    quarter = _quarter(args)
    result = service.reconcile_imports(
        dataset.user_id, quarter, args.source, selection=args.select
    )

    for w in result.warnings:
        color = _STATUS_COLORS.get(w.status, "yellow")
        console.print(f"[{color}]Warning: {w}[/{color}]")

    if result.per_record_errors:
        table = Table(title="Records Not Imported", box=box.ROUNDED, border_style="red")
        table.add_column("Record", style="dim")
        table.add_column("Reason")
        for e in result.per_record_errors:
            table.add_row(e.source_ref, escape(e.reason))
        console.print(table)

    console.print(
        Panel(
            f"[bold]Imported:[/bold] {result.imported}\n"
            f"[bold]Miles:[/bold] {result.total_miles:,.1f}\n"
            f"[bold]Jurisdictions:[/bold] {', '.join(sorted(result.jurisdictions)) or '-'}\n"
            f"[bold]Already Imported:[/bold] {result.skipped_already_imported}\n"
            f"[bold]Failed:[/bold] {result.failed}",
            title=f"{result.source_kind.value} import - {quarter}",
            border_style="green" if not result.per_record_errors else "yellow",
        )
    )

    if result.imported and not args.dry_run:
        path = save_trips(dataset)
        console.print(f"[green]Trip records saved to {path}[/green]")


# -----------------------------------------------------------------------
# Subcommand: fuel-sync
# -----------------------------------------------------------------------


def cmd_fuel_sync(args: argparse.Namespace) -> None:
    """Compare purchased gallons with trip gallons per jurisdiction."""
    dataset = _open_dataset(args)
    service = dataset.service()
    quarter = _quarter(args)
    discrepancies = service.check_fuel_sync(dataset.user_id, quarter)

    if not discrepancies:
        console.print("[green]Fuel purchases match trip fuel in every jurisdiction.[/green]")
        return

    table = Table(title=f"Fuel Sync Discrepancies - {quarter}", box=box.ROUNDED)
    table.add_column("Jurisdiction", style="bold")
    table.add_column("Purchased Gal", justify="right")
    table.add_column("Trip Gal", justify="right")
    table.add_column("Difference", justify="right", style="bold")
    for d in discrepancies:
        table.add_row(
            d.jurisdiction,
            f"{d.purchased_gallons:,.3f}",
            f"{d.trip_gallons:,.3f}",
            f"{d.difference:+,.3f}",
        )
    console.print(table)


# -----------------------------------------------------------------------
# Argument parser
# -----------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ifta-engine",
        description="IFTA Reconciliation Engine - Quarterly jurisdiction mileage, fuel and import reconciliation",
    )
    parser.add_argument(
        "--dataset", "-d", required=True, help="YAML dataset file"
    )
    parser.add_argument("--config", "-c", help="Engine config YAML (overrides the dataset's)")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log engine events"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # summary
    summary_p = subparsers.add_parser("summary", help="Jurisdiction summary for a quarter")
    summary_p.add_argument("--quarter", "-q", help="Quarter label, e.g. 2024-Q1 (default: current)")
    summary_p.add_argument(
        "--sort", help="Sort key, optionally ':desc' (e.g. net_taxable_gallons:desc)"
    )
    summary_p.add_argument(
        "--hide-zero", action="store_true", help="Hide rows with no miles and no fuel"
    )
    summary_p.set_defaults(func=cmd_summary)

    # report
    report_p = subparsers.add_parser("report", help="Build a quarterly report")
    report_p.add_argument("--quarter", "-q", help="Quarter label")
    report_p.add_argument(
        "--kind", choices=["summary", "detailed"], default="summary", help="Report kind"
    )
    report_p.add_argument("--export-csv", help="Write the delimited report to this file")
    report_p.add_argument("--export-json", help="Write the JSON report to this file")
    report_p.add_argument(
        "--hide-zero", action="store_true", help="Drop rows with no miles and no fuel"
    )
    report_p.set_defaults(func=cmd_report)

    # imports
    imports_p = subparsers.add_parser("imports", help="Preview import status for all sources")
    imports_p.add_argument("--quarter", "-q", help="Quarter label")
    imports_p.set_defaults(func=cmd_imports)

    # import
    import_p = subparsers.add_parser("import", help="Import foreign mileage")
    import_p.add_argument("--quarter", "-q", help="Quarter label")
    import_p.add_argument(
        "--source",
        "-s",
        required=True,
        choices=["load", "mileage", "eld"],
        help="Foreign source to import from",
    )
    import_p.add_argument(
        "--select", nargs="+", help="Foreign record ids to import (default: all available)"
    )
    import_p.add_argument(
        "--dry-run", action="store_true", help="Do not write imported trips to the dataset"
    )
    import_p.set_defaults(func=cmd_import)

    # fuel-sync
    fuel_p = subparsers.add_parser("fuel-sync", help="Check fuel purchases against trip fuel")
    fuel_p.add_argument("--quarter", "-q", help="Quarter label")
    fuel_p.set_defaults(func=cmd_fuel_sync)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    configure_logging(level=logging.INFO if args.verbose else logging.WARNING)

    try:
        args.func(args)
    except IftaEngineError as e:
        console.print(f"[red]{e.code}: {escape(str(e))}[/red]")
        sys.exit(1)
    except FileNotFoundError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(1)
