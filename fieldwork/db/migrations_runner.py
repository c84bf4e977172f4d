"""Lightweight SQL migrations runner.

Applies .sql files in lexical order from the local `migrations/` directory and
records applied filenames in a `schema_migrations` table inside the target
database, so the journal always describes the database it sits in. Each file
runs in its own transaction and its journal row is written last, so a file
that fails part way is not recorded and runs again next time.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from sqlalchemy import Column, MetaData, Table, Text, insert, select
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

# Kept apart from the document tables' metadata so table-wide test cleanup
# never touches the journal
_journal_metadata = MetaData()

schema_migrations = Table(
    "schema_migrations",
    _journal_metadata,
    Column("filename", Text, primary_key=True),
    Column("applied_at", Text, nullable=False),
)


def _iter_sql_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.glob("*.sql")):
        # Rollback scripts are applied by hand
        if "rollback" in p.name.lower():
            continue
        yield p


def _exec_sql_compat(conn: Connection, sql: str) -> None:
    """Execute SQL text, tolerating multi-statement files on SQLite.

    pysqlite refuses several statements in one execute() call, so SQLite runs
    the file statement by statement. Other dialects receive the full script.
    """
    if (conn.dialect.name or "").lower() != "sqlite":
        conn.exec_driver_sql(sql)
        return
    for stmt in _split_statements(sql):
        conn.exec_driver_sql(stmt)


def _split_statements(sql: str) -> Iterable[str]:
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    for stmt in "\n".join(lines).split(";"):
        s = stmt.strip()
        if not s or s.upper() in {"BEGIN", "COMMIT", "END"}:
            continue
        yield s


def applied_migrations(engine: Engine) -> list[str]:
    """Filenames recorded in the database's journal, in application order."""
    with engine.begin() as conn:
        _journal_metadata.create_all(conn)
        rows = conn.execute(select(schema_migrations.c.filename).order_by(schema_migrations.c.filename))
        return [r.filename for r in rows]


def apply_migrations(engine: Engine, migrations_dir: str | os.PathLike[str] = "migrations") -> list[str]:
    """Apply pending migrations; return the filenames applied by this call."""
    root = Path(migrations_dir)
    if not root.exists():
        logger.warning("migrations.dir_missing path=%s", root)
        return []

    applied = set(applied_migrations(engine))
    newly_applied: list[str] = []
    for sql_path in _iter_sql_files(root):
        fname = sql_path.name
        if fname in applied:
            continue
        sql = sql_path.read_text(encoding="utf-8")
        if not sql.strip():
            continue
        with engine.begin() as conn:
            _exec_sql_compat(conn, sql)
            conn.execute(
                insert(schema_migrations).values(
                    filename=fname,
                    applied_at=datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
                )
            )
        logger.info("migrations.applied file=%s dialect=%s", fname, engine.dialect.name)
        newly_applied.append(fname)
    return newly_applied


__all__ = ["apply_migrations", "applied_migrations", "schema_migrations"]
