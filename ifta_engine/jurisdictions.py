"""
IFTA jurisdiction directory and free-text jurisdiction parsing.

Covers the 48 contiguous US member states plus AK, HI and DC (which appear
in fuel and trip data even though they are not IFTA members), and the ten
Canadian member provinces plus the territories.

Free-text parsing lives here so that the unreliable string-to-code step
has exactly one implementation and a typed result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Jurisdiction:
    """A taxing authority identified by its postal code."""

    code: str
    name: str
    country: str  # "US" or "CA"
    ifta_member: bool = True


_US_NAMES: dict[str, str] = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas",
    "CA": "California", "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware",
    "FL": "Florida", "GA": "Georgia", "HI": "Hawaii", "ID": "Idaho",
    "IL": "Illinois", "IN": "Indiana", "IA": "Iowa", "KS": "Kansas",
    "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota",
    "MS": "Mississippi", "MO": "Missouri", "MT": "Montana", "NE": "Nebraska",
    "NV": "Nevada", "NH": "New Hampshire", "NJ": "New Jersey",
    "NM": "New Mexico", "NY": "New York", "NC": "North Carolina",
    "ND": "North Dakota", "OH": "Ohio", "OK": "Oklahoma", "OR": "Oregon",
    "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah",
    "VT": "Vermont", "VA": "Virginia", "WA": "Washington",
    "WV": "West Virginia", "WI": "Wisconsin", "WY": "Wyoming",
    "DC": "District of Columbia",
}

_CA_NAMES: dict[str, str] = {
    "AB": "Alberta", "BC": "British Columbia", "MB": "Manitoba",
    "NB": "New Brunswick", "NL": "Newfoundland and Labrador",
    "NS": "Nova Scotia", "NT": "Northwest Territories", "NU": "Nunavut",
    "ON": "Ontario", "PE": "Prince Edward Island", "QC": "Quebec",
    "SK": "Saskatchewan", "YT": "Yukon",
}

# Not IFTA members, but they still show up as trip endpoints.
_NON_MEMBERS = {"AK", "HI", "DC", "NT", "NU", "YT"}


class JurisdictionDirectory:
    """Lookup of jurisdiction codes and names."""

    def __init__(self) -> None:
        self._by_code: dict[str, Jurisdiction] = {}
        for country, names in (("US", _US_NAMES), ("CA", _CA_NAMES)):
            for code, name in names.items():
                self._by_code[code] = Jurisdiction(
                    code=code,
                    name=name,
                    country=country,
                    ifta_member=code not in _NON_MEMBERS,
                )
        self._by_name = {j.name.lower(): j for j in self._by_code.values()}

    def get(self, code: str) -> Optional[Jurisdiction]:
        return self._by_code.get(code.strip().upper()) if code else None

    def find_by_name(self, name: str) -> Optional[Jurisdiction]:
        return self._by_name.get(name.strip().lower()) if name else None

    def is_known(self, code: str) -> bool:
        return self.get(code) is not None

    def name_for(self, code: str) -> str:
        """Display name for a code; unknown codes are returned unchanged."""
        jurisdiction = self.get(code)
        return jurisdiction.name if jurisdiction else code

    def all_jurisdictions(self) -> list[Jurisdiction]:
        return [self._by_code[k] for k in sorted(self._by_code)]


_DEFAULT_DIRECTORY = JurisdictionDirectory()


def default_directory() -> JurisdictionDirectory:
    return _DEFAULT_DIRECTORY


# ---------------------------------------------------------------------------
# Free-text parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedJurisdiction:
    """Result of parsing a location string: a code, or the raw text."""

    code: Optional[str] = None
    unparseable: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.code is not None


_CODE_AFTER_COMMA = re.compile(r",\s*([A-Za-z]{2})\b")


def parse_jurisdiction(
    text: Optional[str],
    directory: Optional[JurisdictionDirectory] = None,
) -> ParsedJurisdiction:
    """
    Extract a jurisdiction code from free text such as ``"Dallas, TX"``.

    The first two-letter token following a comma that is a known code wins
    (``"Reno, NV 89501"`` -> NV). A trailing country code therefore never
    shadows the state or province: ``"Toronto, ON, CA"`` -> ON. Failing
    that, the text after the last comma is matched against full names
    (``"Austin, Texas"`` -> TX).
    Anything else is returned as unparseable.
    """
    directory = directory or _DEFAULT_DIRECTORY
    raw = (text or "").strip()
    if not raw:
        return ParsedJurisdiction(unparseable=raw)

    for token in _CODE_AFTER_COMMA.findall(raw):
        if directory.is_known(token):
            return ParsedJurisdiction(code=token.upper())

    if "," in raw:
        tail = raw.rsplit(",", 1)[1]
        # Drop a trailing postal code: "Austin, Texas 78701"
        tail = re.sub(r"[\d\s-]+$", "", tail)
        by_name = directory.find_by_name(tail)
        if by_name is not None:
            return ParsedJurisdiction(code=by_name.code)

    return ParsedJurisdiction(unparseable=raw)
