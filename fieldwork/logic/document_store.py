"""Document store gateway contract.

Every engine component talks to persistence through this narrow surface:
list/count/get/create/update plus an atomic batch create. Two bindings exist,
`SqlDocumentStore` (SQLAlchemy) and `InMemoryDocumentStore` (tests and local
development). Both enforce the unique indexes declared in `UNIQUE_INDEXES`.

Filters are equality matches keyed by field name. A `__contains` or `__ne`
suffix switches the operator. Order keys are field names, prefixed with `-`
for descending.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple


RESPONDENTS = "respondents"
SESSIONS = "sessions"
SURVEYS = "surveys"
QUESTIONS = "questions"
OPTIONS = "options"
RESPONSES = "responses"
ANSWERS = "answers"

COLLECTIONS: Tuple[str, ...] = (RESPONDENTS, SESSIONS, SURVEYS, QUESTIONS, OPTIONS, RESPONSES, ANSWERS)


@dataclass(frozen=True)
class UniqueIndex:
    """Uniqueness over `fields`, optionally restricted to rows matching `where`."""

    name: str
    fields: Tuple[str, ...]
    where: Mapping[str, Any] = field(default_factory=dict)

    def applies_to(self, doc: Mapping[str, Any]) -> bool:
        return all(doc.get(k) == v for k, v in self.where.items())

    def key(self, doc: Mapping[str, Any]) -> Tuple[Any, ...]:
        return tuple(doc.get(f) for f in self.fields)


# Mirrors the indexes created by migrations/001_fieldwork_schema.sql
UNIQUE_INDEXES: Dict[str, Tuple[UniqueIndex, ...]] = {
    RESPONDENTS: (UniqueIndex("uq_respondents_pseudonym", ("pseudonym",)),),
    SESSIONS: (UniqueIndex("uq_sessions_open_enumerator", ("enumerator_id",), {"status": "open"}),),
    RESPONSES: (
        UniqueIndex("uq_responses_submitted_pair", ("session_id", "survey_id"), {"status": "submitted"}),
    ),
}


class StoreError(Exception):
    """Base class for gateway failures."""


class DocumentNotFound(StoreError):
    def __init__(self, collection: str, document_id: str):
        super().__init__(f"{collection}/{document_id} not found")
        self.collection = collection
        self.document_id = document_id


class DocumentConflict(StoreError):
    """A write violated a unique index or a conditional update precondition."""

    def __init__(self, collection: str, detail: str, index: Optional[str] = None):
        super().__init__(f"conflict in {collection}: {detail}")
        self.collection = collection
        self.index = index


class StoreUnavailable(StoreError):
    """Transient failure reaching the backing store."""


@dataclass
class NewDocument:
    collection: str
    data: Dict[str, Any]
    id: Optional[str] = None


class DocumentStore(Protocol):
    def list(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Sequence[str] = (),
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]: ...

    def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int: ...

    def get(self, collection: str, document_id: str) -> Dict[str, Any]: ...

    def create(self, collection: str, data: Mapping[str, Any], document_id: Optional[str] = None) -> Dict[str, Any]: ...

    def create_batch(self, documents: Sequence[NewDocument]) -> List[Dict[str, Any]]: ...

    def update(
        self,
        collection: str,
        document_id: str,
        patch: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]: ...

    def ping(self) -> bool: ...


def split_filter_key(key: str) -> Tuple[str, str]:
    """Return (field, operator) for a filter key such as `title__contains`."""
    if "__" in key:
        name, op = key.rsplit("__", 1)
        if op in {"contains", "ne"}:
            return name, op
    return key, "eq"


def parse_order(order: Iterable[str]) -> List[Tuple[str, bool]]:
    """Return (field, descending) pairs."""
    return [(o[1:], True) if o.startswith("-") else (o, False) for o in order if o]


__all__ = [
    "RESPONDENTS",
    "SESSIONS",
    "SURVEYS",
    "QUESTIONS",
    "OPTIONS",
    "RESPONSES",
    "ANSWERS",
    "COLLECTIONS",
    "UniqueIndex",
    "UNIQUE_INDEXES",
    "StoreError",
    "DocumentNotFound",
    "DocumentConflict",
    "StoreUnavailable",
    "NewDocument",
    "DocumentStore",
    "split_filter_key",
    "parse_order",
]
