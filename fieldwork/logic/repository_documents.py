"""SQLAlchemy binding of the document store gateway.

Translates gateway calls into Core statements over the tables declared in
`fieldwork.db.tables`. Unique violations become `DocumentConflict`; connection
and operational failures become `StoreUnavailable` so callers can tell a
transient fault from a state conflict.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from sqlalchemy import and_, func, or_, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from fieldwork.db.tables import TABLES
from fieldwork.logic.document_store import (
    UNIQUE_INDEXES,
    DocumentConflict,
    DocumentNotFound,
    NewDocument,
    StoreUnavailable,
    parse_order,
    split_filter_key,
)

logger = logging.getLogger(__name__)


def _conflict_index(collection: str, message: str) -> Optional[str]:
    """Best-effort mapping of a driver error message to a declared index name."""
    lowered = message.lower()
    for index in UNIQUE_INDEXES.get(collection, ()):
        if index.name in lowered:
            return index.name
        # SQLite reports the columns rather than the index name
        cols = ", ".join(f"{collection}.{f}" for f in index.fields)
        if cols in lowered:
            return index.name
    return None


class SqlDocumentStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def _table(self, collection: str):
        try:
            return TABLES[collection]
        except KeyError:
            raise DocumentNotFound(collection, "*") from None

    def _where(self, table, filters: Optional[Mapping[str, Any]]):
        clauses = []
        for key, value in (filters or {}).items():
            name, op = split_filter_key(key)
            col = table.c[name]
            if op == "ne":
                clauses.append(or_(col.is_(None), col != value) if value is not None else col.is_not(None))
            elif op == "contains":
                clauses.append(func.lower(col).contains(str(value).lower()))
            elif value is None:
                clauses.append(col.is_(None))
            else:
                clauses.append(col == value)
        return and_(*clauses) if clauses else None

    @contextmanager
    def _connect(self, write: bool = False) -> Iterator[Connection]:
        ctx = self.engine.begin() if write else self.engine.connect()
        try:
            with ctx as conn:
                yield conn
        except (DocumentConflict, DocumentNotFound, IntegrityError):
            raise
        except (OperationalError, DBAPIError) as exc:
            logger.error("store.unavailable error=%s", exc.__class__.__name__, exc_info=True)
            raise StoreUnavailable(str(exc.orig) if getattr(exc, "orig", None) else str(exc)) from exc

    def list(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Sequence[str] = (),
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        table = self._table(collection)
        stmt = select(table)
        where = self._where(table, filters)
        if where is not None:
            stmt = stmt.where(where)
        for name, descending in parse_order(order):
            col = table.c[name]
            stmt = stmt.order_by(col.desc() if descending else col.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        with self._connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings().all()]

    def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        table = self._table(collection)
        stmt = select(func.count()).select_from(table)
        where = self._where(table, filters)
        if where is not None:
            stmt = stmt.where(where)
        with self._connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    def get(self, collection: str, document_id: str) -> Dict[str, Any]:
        table = self._table(collection)
        with self._connect() as conn:
            row = conn.execute(select(table).where(table.c.id == document_id)).mappings().first()
        if row is None:
            raise DocumentNotFound(collection, document_id)
        return dict(row)

    def create(self, collection: str, data: Mapping[str, Any], document_id: Optional[str] = None) -> Dict[str, Any]:
        return self.create_batch([NewDocument(collection, dict(data), document_id)])[0]

    def create_batch(self, documents: Sequence[NewDocument]) -> List[Dict[str, Any]]:
        created: List[Dict[str, Any]] = []
        current = None
        try:
            with self._connect(write=True) as conn:
                for entry in documents:
                    current = entry.collection
                    table = self._table(entry.collection)
                    row = {k: v for k, v in entry.data.items() if k in table.c}
                    row["id"] = entry.id or row.get("id") or uuid.uuid4().hex
                    conn.execute(table.insert().values(**row))
                    created.append(row)
        except IntegrityError as exc:
            message = str(exc.orig) if exc.orig is not None else str(exc)
            index = _conflict_index(current or "", message)
            logger.info("store.conflict collection=%s index=%s", current, index)
            raise DocumentConflict(current or "", message, index=index) from exc
        logger.debug("store.created count=%d", len(created))
        return created

    def update(
        self,
        collection: str,
        document_id: str,
        patch: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        table = self._table(collection)
        values = {k: v for k, v in patch.items() if k in table.c and k != "id"}
        condition = table.c.id == document_id
        extra = self._where(table, expected)
        if extra is not None:
            condition = and_(condition, extra)
        try:
            with self._connect(write=True) as conn:
                result = conn.execute(table.update().where(condition).values(**values))
                if result.rowcount == 0:
                    exists = conn.execute(select(table.c.id).where(table.c.id == document_id)).first()
                    if exists is None:
                        raise DocumentNotFound(collection, document_id)
                    raise DocumentConflict(collection, f"precondition {dict(expected or {})!r} failed for {document_id}")
                row = conn.execute(select(table).where(table.c.id == document_id)).mappings().one()
        except IntegrityError as exc:
            message = str(exc.orig) if exc.orig is not None else str(exc)
            raise DocumentConflict(collection, message, index=_conflict_index(collection, message)) from exc
        return dict(row)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
            return True
        except DBAPIError:
            logger.error("store.ping_failed", exc_info=True)
            return False


__all__ = ["SqlDocumentStore"]
