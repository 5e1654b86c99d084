import pytest

from ifta_engine.logging_config import reset_logging


@pytest.fixture(autouse=True)
def _fresh_logging():
    yield
    reset_logging()
