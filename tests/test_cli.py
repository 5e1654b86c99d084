"""Tests for the command-line interface."""

import json
from pathlib import Path

import pytest
from rich.console import Console

from ifta_engine import cli
from ifta_engine.dataset import load_dataset

DATASET = """
user_id: carrier-1
trips:
  - {quarter: 2024-Q1, vehicle_id: T1, start_jurisdiction: CA, end_jurisdiction: NV,
     total_miles: 200, gallons_consumed: 25, start_date: 2024-01-10}
fuel_purchases:
  - {date: 2024-01-10, jurisdiction: CA, gallons: 40, total_amount: 180}
loads:
  - {id: L1, origin: "Fresno, CA", destination: "Reno, NV",
     delivery_date: 2024-02-01, distance: 260, vehicle_id: unit-7}
  - {id: L2, origin: "Nowhere", destination: "Reno, NV",
     delivery_date: 2024-02-03, distance: 90}
eld:
  monthly:
    - {month: 2024-01-01, jurisdiction: CA, miles: 190}
vehicles:
  unit-7: T1
"""


@pytest.fixture
def dataset_path(tmp_path):
    path = tmp_path / "carrier.yaml"
    path.write_text(DATASET, encoding="utf-8")
    return str(path)


@pytest.fixture
def output(monkeypatch):
    console = Console(record=True, width=200)
    monkeypatch.setattr(cli, "console", console)
    return console


def _run(*argv):
    cli.main(list(argv))


# ── summary / report ─────────────────────────────────────────────────


def test_summary(dataset_path, output):
    _run("-d", dataset_path, "summary", "-q", "2024-Q1")
    text = output.export_text()
    assert "IFTA Jurisdiction Summary - 2024-Q1" in text
    assert "Nevada" in text
    assert "Fleet MPG: 8.00" in text


def test_report_exports(dataset_path, output, tmp_path):
    csv_path = tmp_path / "report.csv"
    json_path = tmp_path / "report.json"
    _run(
        "-d", dataset_path, "report", "-q", "2024-Q1", "--kind", "detailed",
        "--export-csv", str(csv_path), "--export-json", str(json_path),
    )
    lines = csv_path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "IFTA DETAILED QUARTERLY REPORT - 2024-Q1"
    assert "CA,100.0,100.0,40.000,12.500,-27.500" in lines

    data = json.loads(json_path.read_text(encoding="utf-8"))
    assert data["quarter"] == "2024-Q1"
    assert len(data["trips"]) == 1


def test_report_to_stdout(dataset_path, output):
    _run("-d", dataset_path, "report", "-q", "2024-Q1")
    assert "JURISDICTION SUMMARY:" in output.export_text()


# ── imports / import ─────────────────────────────────────────────────


def test_imports_preview(dataset_path, output):
    _run("-d", dataset_path, "imports", "-q", "2024-Q1")
    text = output.export_text()
    assert "Load #L1: Fresno, CA to Reno, NV" in text
    assert "available" in text
    assert "ELD comparison: WARNING" in text


def test_imports_preview_lists_eld_jurisdictions(dataset_path, output):
    _run("-d", dataset_path, "imports", "-q", "2024-Q1")
    text = output.export_text()
    assert "ELD comparison by jurisdiction" in text
    [ca_row] = [line.split() for line in text.splitlines() if " both " in line]
    [nv_row] = [line.split() for line in text.splitlines() if " recorded_only " in line]
    assert ca_row[:3] == ["CA", "190.0", "100.0"]
    assert ca_row[-1] == "error"
    assert nv_row[:3] == ["NV", "0.0", "100.0"]
    assert "Recommendation: ELD data recommended" in text


def test_import_writes_back_and_is_idempotent(dataset_path, output):
    _run("-d", dataset_path, "import", "-q", "2024-Q1", "-s", "load")
    text = output.export_text()
    assert "Imported: 1" in text
    assert "Failed: 1" in text
    assert "unparseable origin 'Nowhere'" in text
    assert "Trip records saved" in text

    trips = load_dataset(dataset_path).repository.all_trip_records()
    assert sorted(t.source_ref or "" for t in trips) == ["", "L1"]

    _run("-d", dataset_path, "import", "-q", "2024-Q1", "-s", "load")
    text = output.export_text()
    assert "Imported: 0" in text
    assert "Already Imported: 1" in text
    assert len(load_dataset(dataset_path).repository.all_trip_records()) == 2


def test_dry_run_leaves_dataset_alone(dataset_path, output):
    before = Path(dataset_path).read_text(encoding="utf-8")
    _run("-d", dataset_path, "import", "-q", "2024-Q1", "-s", "eld", "--dry-run")
    assert "Imported: 1" in output.export_text()
    assert Path(dataset_path).read_text(encoding="utf-8") == before


# ── fuel-sync ────────────────────────────────────────────────────────


def test_fuel_sync(dataset_path, output):
    _run("-d", dataset_path, "fuel-sync", "-q", "2024-Q1")
    text = output.export_text()
    assert "Fuel Sync Discrepancies - 2024-Q1" in text
    assert "+27.500" in text


# ── Errors ───────────────────────────────────────────────────────────


def test_engine_errors_exit_with_code(dataset_path, output):
    with pytest.raises(SystemExit) as exc_info:
        _run("-d", dataset_path, "summary", "-q", "2024-Q5")
    assert exc_info.value.code == 1
    assert "INVALID_QUARTER_LABEL" in output.export_text()


def test_eld_selection_is_rejected(dataset_path, output):
    with pytest.raises(SystemExit):
        _run("-d", dataset_path, "import", "-q", "2024-Q1", "-s", "eld", "--select", "CA")
    assert "INVALID_QUERY" in output.export_text()


def test_missing_dataset(tmp_path, output):
    with pytest.raises(SystemExit) as exc_info:
        _run("-d", str(tmp_path / "absent.yaml"), "summary")
    assert exc_info.value.code == 1
    assert "Dataset file not found" in output.export_text()


def test_no_command_prints_help(dataset_path):
    with pytest.raises(SystemExit) as exc_info:
        _run("-d", dataset_path)
    assert exc_info.value.code == 0
