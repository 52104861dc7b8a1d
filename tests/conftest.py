"""Test configuration and fixtures."""

from typing import Any, Dict

import pytest
import structlog

from learning_loop.db import Database
from learning_loop.ingest import Ingester

NOW_TS = "2026-03-01T12:00:00Z"


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any logging configuration a test (or the CLI) installed."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def database():
    """A fresh in-memory store for each test."""
    db = Database("sqlite:///:memory:")
    db.init_schema()
    yield db
    db.close()


@pytest.fixture
def db_session(database):
    with database.session() as session:
        yield session


@pytest.fixture
def ingester(db_session) -> Ingester:
    return Ingester(db_session)


def make_run(run_id: str, **overrides: Any) -> Dict[str, Any]:
    """Build a minimal valid run record; keyword arguments override fields."""
    record: Dict[str, Any] = {
        "id": run_id,
        "task": "Update the README",
        "outcome": "success",
        "timestamp": NOW_TS,
    }
    record.update(overrides)
    return record


@pytest.fixture
def run_factory():
    return make_run
