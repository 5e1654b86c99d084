"""Tests for logging configuration."""

import logging

from ifta_engine.logging_config import configure_logging, get_logger, reset_logging


class _Collect(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_loggers_share_the_engine_namespace():
    assert get_logger("reconcilers").name == "ifta_engine.reconcilers"


def test_configure_is_idempotent():
    first, second = _Collect(), _Collect()
    configure_logging(level=logging.INFO, handler=first)
    configure_logging(level=logging.DEBUG, handler=second)

    get_logger("calculator").info("aggregation_completed", extra={"quarter": "2024-Q1"})

    [record] = first.records
    assert record.getMessage() == "aggregation_completed"
    assert record.quarter == "2024-Q1"
    assert second.records == []


def test_level_filters_events():
    handler = _Collect()
    configure_logging(level=logging.WARNING, handler=handler)
    log = get_logger("service")
    log.info("imports_previewed")
    log.warning("eld_discrepancy")
    assert [r.getMessage() for r in handler.records] == ["eld_discrepancy"]


def test_reset_restores_propagation():
    configure_logging(handler=_Collect())
    reset_logging()
    root = logging.getLogger("ifta_engine")
    assert root.handlers == []
    assert root.propagate
