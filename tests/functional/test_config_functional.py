"""Functional tests for configuration loading and precedence."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from fieldwork.config import load_config
from fieldwork.logging_setup import build_logging_config

_ENV_KEYS = (
    "DATABASE_URL",
    "SESSION_TIMEOUT_MINUTES",
    "SESSION_WARNING_MINUTES",
    "SUBMISSION_MAX_ATTEMPTS",
    "RESPONDENT_MAX_COUNT",
    "AUTO_APPLY_MIGRATIONS",
    "LOG_LEVEL",
)


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults(workdir):
    cfg = load_config()
    assert cfg.database.dsn == "sqlite+pysqlite:///:memory:"
    assert cfg.sessions.timeout_minutes == 120
    assert cfg.sessions.warning_minutes == 15
    assert cfg.sessions.poll_seconds == 10
    assert cfg.submissions.max_attempts == 3
    assert cfg.submissions.initial_delay_seconds == 2.0
    assert cfg.respondents.max_count == 99999
    assert cfg.auto_apply_migrations is True
    assert cfg.log_level == "INFO"


def test_precedence_env_over_files_over_json(workdir, monkeypatch):
    """Verifies env beats config/ text files, which beat fieldwork_config.json."""
    (workdir / "fieldwork_config.json").write_text(
        json.dumps({"database": {"dsn": "sqlite:///base.db"}, "sessions": {"timeout_minutes": 90, "warning_minutes": 10}}),
        encoding="utf-8",
    )
    (workdir / "config").mkdir()
    (workdir / "config" / "sessions.timeout_minutes").write_text("60\n", encoding="utf-8")

    cfg = load_config()
    assert cfg.database.dsn == "sqlite:///base.db"
    assert cfg.sessions.timeout_minutes == 60
    assert cfg.sessions.warning_minutes == 10

    monkeypatch.setenv("SESSION_TIMEOUT_MINUTES", "45")
    monkeypatch.setenv("AUTO_APPLY_MIGRATIONS", "0")
    cfg = load_config()
    assert cfg.sessions.timeout_minutes == 45
    assert cfg.auto_apply_migrations is False


def test_invalid_values_raise(workdir, monkeypatch):
    monkeypatch.setenv("SESSION_WARNING_MINUTES", "200")
    with pytest.raises(ValidationError):
        load_config()
    monkeypatch.delenv("SESSION_WARNING_MINUTES")
    monkeypatch.setenv("RESPONDENT_MAX_COUNT", "100000")
    with pytest.raises(ValidationError):
        load_config()


def test_logging_config_pins_store_binding():
    cfg = build_logging_config("debug")
    assert cfg["root"]["level"] == "DEBUG"
    assert cfg["loggers"]["fieldwork"]["level"] == "DEBUG"
    assert cfg["loggers"]["fieldwork.logic.repository_documents"]["level"] == "WARNING"
    assert cfg["loggers"]["uvicorn.access"]["propagate"] is False
