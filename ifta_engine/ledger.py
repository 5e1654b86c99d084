"""In-memory per-jurisdiction accumulator."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

_ZERO = Decimal("0")


@dataclass
class JurisdictionRow:
    """One line of the jurisdiction report."""

    jurisdiction: str
    jurisdiction_name: str = ""
    total_miles: Decimal = _ZERO
    # Equal to total_miles today; exemptions would reduce it per jurisdiction.
    taxable_miles: Decimal = _ZERO
    tax_paid_gallons: Decimal = _ZERO
    taxable_gallons: Decimal = _ZERO
    net_taxable_gallons: Decimal = _ZERO

    @property
    def is_credit(self) -> bool:
        return self.net_taxable_gallons < 0

    @property
    def is_empty(self) -> bool:
        return self.total_miles == 0 and self.tax_paid_gallons == 0


class JurisdictionLedger:
    """Accumulates miles and tax-paid gallons keyed by jurisdiction code."""

    def __init__(self, jurisdictions: Iterable[str] = ()) -> None:
        self._rows: dict[str, JurisdictionRow] = {}
        for code in jurisdictions:
            self.open(code)

    def __contains__(self, code: str) -> bool:
        return code in self._rows

    def __len__(self) -> int:
        return len(self._rows)

    def open(self, code: str) -> JurisdictionRow:
        """Return the row for ``code``, creating a zeroed one if needed."""
        row = self._rows.get(code)
        if row is None:
            row = JurisdictionRow(jurisdiction=code)
            self._rows[code] = row
        return row

    def add_miles(self, code: str, miles: Decimal) -> None:
        row = self.open(code)
        row.total_miles += miles
        row.taxable_miles += miles

    def add_tax_paid_gallons(self, code: str, gallons: Decimal) -> None:
        self.open(code).tax_paid_gallons += gallons

    def settle(self, fleet_mpg: Decimal) -> None:
        """Compute taxable and net taxable gallons. Negative net is a credit."""
        for row in self._rows.values():
            row.taxable_gallons = row.taxable_miles / fleet_mpg
            row.net_taxable_gallons = row.taxable_gallons - row.tax_paid_gallons

    def rows(self) -> list[JurisdictionRow]:
        """Rows ordered by jurisdiction code."""
        return [self._rows[k] for k in sorted(self._rows)]
