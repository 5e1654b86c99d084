"""
Engine configuration.

Holds the tunables that must not be hard-coded at call sites: the fleet
MPG fallback, ELD discrepancy thresholds, the fuel types that count as
IFTA fuel, and the deterministic load distance table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from ifta_engine.exceptions import ConfigError

# Fleet MPG used whenever trip data cannot produce a usable ratio.
DEFAULT_FLEET_MPG = Decimal("6.0")


def _to_decimal(value: Any, path: str) -> Decimal:
    if isinstance(value, bool):
        raise ConfigError(f"'{path}' must be a number")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ConfigError(f"'{path}' must be a number, got {value!r}")
    if not result.is_finite():
        raise ConfigError(f"'{path}' must be finite")
    return result


def _route_key(a: str, b: str) -> str:
    """Order-insensitive key for a pair of jurisdictions."""
    first, second = sorted((a.strip().upper(), b.strip().upper()))
    return f"{first}-{second}"


@dataclass(frozen=True)
class DiscrepancyThresholds:
    """Percent bands for ELD vs. recorded mileage comparison."""

    success_percent: float = 1.0
    warning_percent: float = 10.0

    def __post_init__(self):
        if self.success_percent < 0:
            raise ConfigError("success_percent must be >= 0")
        if self.warning_percent < self.success_percent:
            raise ConfigError("warning_percent must be >= success_percent")

    def classify(self, difference_percent: float) -> str:
        magnitude = abs(difference_percent)
        if magnitude <= self.success_percent:
            return "success"
        if magnitude <= self.warning_percent:
            return "warning"
        return "error"


@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration."""

    default_fleet_mpg: Decimal = DEFAULT_FLEET_MPG
    eld_discrepancy: DiscrepancyThresholds = field(
        default_factory=DiscrepancyThresholds
    )
    ifta_fuel_types: tuple[str, ...] = ("diesel", "gasoline")
    load_distance_estimates: Mapping[str, Decimal] = field(default_factory=dict)
    max_import_workers: int = 3

    def __post_init__(self):
        if not self.default_fleet_mpg.is_finite() or self.default_fleet_mpg <= 0:
            raise ConfigError("default_fleet_mpg must be > 0")
        if self.max_import_workers < 1:
            raise ConfigError("max_import_workers must be >= 1")
        for key, miles in self.load_distance_estimates.items():
            if miles < 0:
                raise ConfigError(f"load_distance_estimates.{key} must be >= 0")

    def is_ifta_fuel(self, fuel_type: Optional[str]) -> bool:
        """Untyped purchases count; typed ones must be a reportable fuel."""
        if not fuel_type:
            return True
        return fuel_type.strip().lower() in self.ifta_fuel_types

    def estimated_distance(self, origin: str, destination: str) -> Optional[Decimal]:
        return self.load_distance_estimates.get(_route_key(origin, destination))


def load_engine_config(path: str) -> EngineConfig:
    """Load and validate engine configuration from a YAML file.

    Unknown keys are rejected so a typo never silently falls back to a
    default that changes filed numbers.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigError: If the YAML or any value is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Engine config file not found: {path}")

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file {path}: {e}")

    if raw is None:
        return EngineConfig()
    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping")
    return parse_engine_config(raw)


def parse_engine_config(raw: Mapping[str, Any]) -> EngineConfig:
    allowed = {
        "default_fleet_mpg",
        "eld_discrepancy",
        "ifta_fuel_types",
        "load_distance_estimates",
        "max_import_workers",
    }
    unknown = set(raw.keys()) - allowed
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {sorted(unknown)}")

    kwargs: dict[str, Any] = {}

    if "default_fleet_mpg" in raw:
        kwargs["default_fleet_mpg"] = _to_decimal(
            raw["default_fleet_mpg"], "default_fleet_mpg"
        )

    if "eld_discrepancy" in raw:
        data = raw["eld_discrepancy"]
        if not isinstance(data, dict):
            raise ConfigError("'eld_discrepancy' must be a mapping")
        unknown = set(data.keys()) - {"success_percent", "warning_percent"}
        if unknown:
            raise ConfigError(f"Unknown eld_discrepancy keys: {sorted(unknown)}")
        kwargs["eld_discrepancy"] = DiscrepancyThresholds(
            success_percent=float(
                _to_decimal(data.get("success_percent", 1.0), "success_percent")
            ),
            warning_percent=float(
                _to_decimal(data.get("warning_percent", 10.0), "warning_percent")
            ),
        )

    if "ifta_fuel_types" in raw:
        types = raw["ifta_fuel_types"]
        if not isinstance(types, list) or not all(isinstance(t, str) for t in types):
            raise ConfigError("'ifta_fuel_types' must be a list of strings")
        kwargs["ifta_fuel_types"] = tuple(t.strip().lower() for t in types)

    if "load_distance_estimates" in raw:
        table = raw["load_distance_estimates"]
        if not isinstance(table, dict):
            raise ConfigError("'load_distance_estimates' must be a mapping")
        estimates: dict[str, Decimal] = {}
        for route, miles in table.items():
            parts = str(route).split("-")
            if len(parts) != 2 or not all(p.strip() for p in parts):
                raise ConfigError(
                    f"load_distance_estimates key {route!r} must look like 'CA-NV'"
                )
            estimates[_route_key(parts[0], parts[1])] = _to_decimal(
                miles, f"load_distance_estimates.{route}"
            )
        kwargs["load_distance_estimates"] = estimates

    if "max_import_workers" in raw:
        workers = raw["max_import_workers"]
        if not isinstance(workers, int) or isinstance(workers, bool):
            raise ConfigError("'max_import_workers' must be an integer")
        kwargs["max_import_workers"] = workers

    return EngineConfig(**kwargs)
