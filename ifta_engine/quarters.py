"""Quarter label parsing and reporting windows."""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date

from ifta_engine.exceptions import InvalidQuarterLabel

_QUARTER_RE = re.compile(r"^([0-9]{4})-Q([0-9])$")


@dataclass(frozen=True)
class QuarterWindow:
    """Inclusive date range of a reporting quarter."""

    start: date
    end: date

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end


def parse_quarter(label: str) -> tuple[int, int]:
    """Split ``"2024-Q1"`` into ``(2024, 1)``."""
    if not isinstance(label, str):
        raise InvalidQuarterLabel(label)
    match = _QUARTER_RE.match(label.strip())
    if match is None:
        raise InvalidQuarterLabel(label)
    year, number = int(match.group(1)), int(match.group(2))
    if year < 1 or not 1 <= number <= 4:
        raise InvalidQuarterLabel(label)
    return year, number


def resolve_quarter(label: str) -> QuarterWindow:
    """
    Resolve a quarter label to its date window.

    The window starts on the first day of the quarter's first month and
    ends on the last calendar day of its third month.
    """
    year, number = parse_quarter(label)
    first_month = (number - 1) * 3 + 1
    last_month = first_month + 2
    last_day = calendar.monthrange(year, last_month)[1]
    return QuarterWindow(
        start=date(year, first_month, 1),
        end=date(year, last_month, last_day),
    )


def quarter_for_date(d: date) -> str:
    return f"{d.year}-Q{(d.month - 1) // 3 + 1}"
