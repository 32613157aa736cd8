"""Root conftest: test environment and structlog wiring shared by every test package."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import configure_structlog

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# No handlers are installed here; caplog and pytest's own capture see session events.
configure_structlog()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Keep connection_id bindings from one test out of the next."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
