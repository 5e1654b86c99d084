"""
Typed exceptions for the IFTA reconciliation engine.

Every error carries a class-level ``code`` for machine-readable handling
and keeps its context as attributes rather than only in the message.

    IftaEngineError
    +-- InvalidQuarterLabel
    +-- InvalidQuery
    +-- TranslationError        (returned as data by reconcilers)
    +-- PersistenceError
    |   +-- DuplicateTripRecord
    +-- CollaboratorError
    +-- ConfigError
    +-- DatasetError

``DiscrepancyWarning`` is advisory only. It is attached to ELD import
results and never raised.
"""

from __future__ import annotations

from typing import Optional


class IftaEngineError(Exception):
    """Base exception for all engine errors."""

    code: str = "IFTA_ENGINE_ERROR"


class InvalidQuarterLabel(IftaEngineError):
    """Quarter label is not of the form ``YYYY-QN`` with N in 1..4."""

    code: str = "INVALID_QUARTER_LABEL"

    def __init__(self, label: object):
        self.label = label
        super().__init__(
            f"Invalid quarter label {label!r}; expected YYYY-QN (e.g. 2024-Q1)"
        )


class InvalidQuery(IftaEngineError):
    """A required query argument (user id, quarter, source) is missing."""

    code: str = "INVALID_QUERY"

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"'{field}' is required")


class TranslationError(IftaEngineError):
    """A foreign record could not be mapped to a trip record."""

    code: str = "TRANSLATION_ERROR"

    def __init__(self, source_kind: str, source_ref: str, reason: str):
        self.source_kind = source_kind
        self.source_ref = source_ref
        self.reason = reason
        super().__init__(f"{source_kind} record {source_ref}: {reason}")


class PersistenceError(IftaEngineError):
    """A batch insert failed; nothing from the batch was stored."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, message: str, record_count: int = 0):
        self.record_count = record_count
        super().__init__(message)


class DuplicateTripRecord(PersistenceError):
    """Insert would violate the (user, quarter, source kind, ref) key."""

    code: str = "DUPLICATE_TRIP_RECORD"

    def __init__(self, key: tuple, record_count: int = 0):
        self.key = key
        super().__init__(
            f"Trip record already exists for {key}", record_count=record_count
        )


class CollaboratorError(IftaEngineError):
    """A foreign data source or the repository failed during I/O."""

    code: str = "COLLABORATOR_ERROR"

    def __init__(self, collaborator: str, cause: BaseException):
        self.collaborator = collaborator
        self.cause = cause
        super().__init__(f"{collaborator} failed: {cause}")


class ConfigError(IftaEngineError, ValueError):
    """Engine configuration is missing or invalid."""

    code: str = "CONFIG_ERROR"


class DatasetError(IftaEngineError):
    """A CLI dataset file is malformed."""

    code: str = "DATASET_ERROR"

    def __init__(self, path: object, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid dataset {path}: {reason}")


class DiscrepancyWarning(UserWarning):
    """ELD mileage differs from the other sources beyond tolerance."""

    def __init__(
        self,
        status: str,
        eld_miles: object,
        existing_miles: object,
        difference_percent: float,
        jurisdictions: tuple = (),
    ):
        self.status = status
        self.eld_miles = eld_miles
        self.existing_miles = existing_miles
        self.difference_percent = difference_percent
        self.jurisdictions = tuple(jurisdictions)
        message = (
            f"ELD mileage {eld_miles} differs from recorded mileage "
            f"{existing_miles} by {difference_percent:.1f}% ({status})"
        )
        if self.jurisdictions:
            message += f"; check {', '.join(self.jurisdictions)}"
        super().__init__(message)
