"""Behave environment hooks for fieldwork integration scenarios.

Scenarios drive the FastAPI app in-process through TestClient, over the
in-memory document store and a clock the steps advance explicitly, so
timeout behaviour can be exercised without waiting. Optional settings (for
example LOG_LEVEL) are read from `.env.test` at the project root or under
tests/integration/.
"""

from __future__ import annotations

import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi.testclient import TestClient

from fieldwork.config import AppConfig, DatabaseConfig
from fieldwork.logic.clock import SystemClock
from fieldwork.logic.inmemory_state import InMemoryDocumentStore
from fieldwork.main import create_app


class ScenarioClock(SystemClock):
    """Clock frozen at a fixed instant until a step moves it."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, minutes: float) -> None:
        self.current = self.current + timedelta(minutes=minutes)

    def wait(self, seconds: float, cancel: Optional[threading.Event] = None) -> bool:
        if cancel is not None and cancel.is_set():
            return False
        self.current = self.current + timedelta(seconds=seconds)
        return True


def before_all(context: Any) -> None:  # pragma: no cover - executed by Behave
    load_dotenv(dotenv_path=".env.test", override=False)
    load_dotenv(dotenv_path=os.path.join("tests", "integration", ".env.test"), override=False)
    context.api_prefix = os.getenv("TEST_API_PREFIX", "/api/v1")


def before_scenario(context: Any, scenario: Any) -> None:  # pragma: no cover - executed by Behave
    context.clock = ScenarioClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))
    context.store = InMemoryDocumentStore()
    config = AppConfig(
        database=DatabaseConfig(dsn="sqlite+pysqlite:///:memory:"),
        auto_apply_migrations=False,
        log_level=os.getenv("LOG_LEVEL", "WARNING"),
    )
    context.client = TestClient(create_app(config, store=context.store, clock=context.clock))
    context.vars = {}


def after_scenario(context: Any, scenario: Any) -> None:  # pragma: no cover - executed by Behave
    client = getattr(context, "client", None)
    if client is not None:
        client.close()
