#!/usr/bin/env python3
"""
IFTA Reconciliation Engine - Entry Point

Quarterly fuel-tax reconciliation for interstate carriers. Aggregates
trip mileage and fuel purchases per jurisdiction, imports mileage from
load management, the state-mileage tracker and ELD providers without
double counting, and builds the quarterly IFTA report.

Usage:
    python main.py -d data/sample_dataset.yaml summary --quarter 2024-Q1
    python main.py -d data/sample_dataset.yaml summary -q 2024-Q1 --sort net_taxable_gallons:desc
    python main.py -d data/sample_dataset.yaml imports -q 2024-Q1
    python main.py -d data/sample_dataset.yaml import -q 2024-Q1 --source load --dry-run
    python main.py -d data/sample_dataset.yaml report -q 2024-Q1 --kind detailed --export-csv q1.csv
    python main.py -d data/sample_dataset.yaml fuel-sync -q 2024-Q1
"""

from ifta_engine.cli import main

if __name__ == "__main__":
    main()
