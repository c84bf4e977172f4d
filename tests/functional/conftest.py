"""Shared fixtures for functional tests.

Engine-level tests run against the in-memory document store and a controllable
clock. API tests run the FastAPI app through TestClient against a file-backed
SQLite database; migrations are applied once per test session and rows are
cleared between tests.
"""

from __future__ import annotations

import os
import pathlib
import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

# Point the app at the file-backed DB before any fieldwork imports read the env
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
# Migrations are applied explicitly below, not by app startup
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"

from fieldwork.config import AppConfig, DatabaseConfig, SubmissionConfig  # noqa: E402
from fieldwork.db.base import get_engine  # noqa: E402
from fieldwork.db.migrations_runner import apply_migrations  # noqa: E402
from fieldwork.db.tables import metadata  # noqa: E402
from fieldwork.logic.clock import SystemClock  # noqa: E402
from fieldwork.logic.events import get_buffered_events  # noqa: E402
from fieldwork.logic.inmemory_state import InMemoryDocumentStore  # noqa: E402
from fieldwork.logic.repository_documents import SqlDocumentStore  # noqa: E402
from fieldwork.logic.services import build_services  # noqa: E402

T0 = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


class FakeClock(SystemClock):
    """Clock whose time only moves when a test (or a backoff wait) advances it."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start
        self.waits: List[float] = []

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current

    def wait(self, seconds: float, cancel: Optional[threading.Event] = None) -> bool:
        if cancel is not None and cancel.is_set():
            return False
        self.waits.append(seconds)
        self.current = self.current + timedelta(seconds=seconds)
        return True


def _config(dsn: str = "sqlite+pysqlite:///:memory:") -> AppConfig:
    return AppConfig(
        database=DatabaseConfig(dsn=dsn),
        submissions=SubmissionConfig(max_attempts=3, initial_delay_seconds=2.0, multiplier=2.0),
        auto_apply_migrations=False,
    )


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap():
    """Session-level bootstrap: apply migrations once for the shared DB."""
    engine = get_engine(os.environ["TEST_DATABASE_URL"])
    apply_migrations(engine, migrations_dir=str(_ROOT / "migrations"))
    yield


@pytest.fixture(autouse=True)
def clear_event_buffer():
    get_buffered_events(clear=True)
    yield
    get_buffered_events(clear=True)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def config() -> AppConfig:
    return _config()


@pytest.fixture
def services(config, store, clock):
    return build_services(config, store, clock)


@pytest.fixture
def sql_store() -> SqlDocumentStore:
    engine = get_engine(os.environ["TEST_DATABASE_URL"])
    with engine.begin() as conn:
        for table in reversed(metadata.sorted_tables):
            conn.execute(table.delete())
    return SqlDocumentStore(engine)


@pytest.fixture
def client(sql_store, clock):
    from fastapi.testclient import TestClient

    from fieldwork.main import create_app

    app = create_app(_config(os.environ["TEST_DATABASE_URL"]), store=sql_store, clock=clock)
    with TestClient(app) as test_client:
        yield test_client
