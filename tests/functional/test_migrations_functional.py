"""Functional tests for the SQL migrations runner."""

from __future__ import annotations

import pathlib

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import OperationalError

from fieldwork.db.migrations_runner import applied_migrations, apply_migrations

_MIGRATIONS = pathlib.Path(__file__).resolve().parents[2] / "migrations"


def _engine(path: pathlib.Path):
    return create_engine(f"sqlite:///{path}", future=True)


def test_every_fresh_database_gets_the_schema(tmp_path):
    """Verifies a second fresh database is migrated even after the first one was."""
    first = _engine(tmp_path / "a.db")
    second = _engine(tmp_path / "b.db")

    assert apply_migrations(first, _MIGRATIONS) == ["001_fieldwork_schema.sql"]
    assert apply_migrations(second, _MIGRATIONS) == ["001_fieldwork_schema.sql"]

    tables = inspect(second).get_table_names()
    assert "sessions" in tables
    assert "responses" in tables
    assert applied_migrations(second) == ["001_fieldwork_schema.sql"]


def test_reapplying_to_a_migrated_database_is_a_no_op(tmp_path):
    engine = _engine(tmp_path / "app.db")
    apply_migrations(engine, _MIGRATIONS)
    assert apply_migrations(engine, _MIGRATIONS) == []
    assert applied_migrations(engine) == ["001_fieldwork_schema.sql"]


def test_failing_file_is_not_recorded(tmp_path):
    """Verifies files before a failing one stay recorded and the failing one does not."""
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    (migrations / "001_widgets.sql").write_text("CREATE TABLE widgets (id TEXT PRIMARY KEY);\n", encoding="utf-8")
    (migrations / "002_broken.sql").write_text("CREATE TABLE gadgets (id TEXT PRIMARY KEY);\nINSERT INTO nowhere VALUES (1);\n", encoding="utf-8")
    engine = _engine(tmp_path / "app.db")

    with pytest.raises(OperationalError):
        apply_migrations(engine, migrations)

    assert applied_migrations(engine) == ["001_widgets.sql"]
    assert "widgets" in inspect(engine).get_table_names()


def test_missing_directory_applies_nothing(tmp_path):
    assert apply_migrations(_engine(tmp_path / "app.db"), tmp_path / "absent") == []
