"""In-memory document store (test/dev only).

Holds every collection as a plain dict keyed by document id and enforces the
same unique indexes as the SQL schema, so conflict handling in the engine is
exercised identically against both bindings.
"""

from __future__ import annotations

import copy
import threading
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

from fieldwork.logic.document_store import (
    COLLECTIONS,
    UNIQUE_INDEXES,
    DocumentConflict,
    DocumentNotFound,
    NewDocument,
    parse_order,
    split_filter_key,
)


def _matches(doc: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    for key, expected in filters.items():
        name, op = split_filter_key(key)
        actual = doc.get(name)
        if op == "eq" and actual != expected:
            return False
        if op == "ne" and actual == expected:
            return False
        if op == "contains" and (actual is None or str(expected).lower() not in str(actual).lower()):
            return False
    return True


def _sort_key(value: Any) -> tuple:
    # None sorts first ascending, last descending
    return (value is not None, value if value is not None else 0)


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {name: {} for name in COLLECTIONS}
        self._lock = threading.RLock()

    def _bucket(self, collection: str) -> Dict[str, Dict[str, Any]]:
        try:
            return self._collections[collection]
        except KeyError:
            raise DocumentNotFound(collection, "*") from None

    def _check_unique(self, collection: str, candidate: Mapping[str, Any], staged: Sequence[Mapping[str, Any]] = ()) -> None:
        bucket = self._bucket(collection)
        for index in UNIQUE_INDEXES.get(collection, ()):
            if not index.applies_to(candidate):
                continue
            key = index.key(candidate)
            for other in list(bucket.values()) + list(staged):
                if other.get("id") == candidate.get("id"):
                    continue
                if index.applies_to(other) and index.key(other) == key:
                    raise DocumentConflict(collection, f"{index.name} {key!r}", index=index.name)

    def list(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        order: Sequence[str] = (),
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            items = [d for d in self._bucket(collection).values() if _matches(d, filters or {})]
            for name, descending in reversed(parse_order(order)):
                items.sort(key=lambda d, n=name: _sort_key(d.get(n)), reverse=descending)
            end = None if limit is None else offset + limit
            return [copy.deepcopy(d) for d in items[offset:end]]

    def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        with self._lock:
            return sum(1 for d in self._bucket(collection).values() if _matches(d, filters or {}))

    def get(self, collection: str, document_id: str) -> Dict[str, Any]:
        with self._lock:
            doc = self._bucket(collection).get(document_id)
            if doc is None:
                raise DocumentNotFound(collection, document_id)
            return copy.deepcopy(doc)

    def create(self, collection: str, data: Mapping[str, Any], document_id: Optional[str] = None) -> Dict[str, Any]:
        return self.create_batch([NewDocument(collection, dict(data), document_id)])[0]

    def create_batch(self, documents: Sequence[NewDocument]) -> List[Dict[str, Any]]:
        with self._lock:
            staged: List[tuple[str, Dict[str, Any]]] = []
            for entry in documents:
                doc = copy.deepcopy(dict(entry.data))
                doc["id"] = entry.id or doc.get("id") or uuid.uuid4().hex
                if doc["id"] in self._bucket(entry.collection) or any(
                    c == entry.collection and d["id"] == doc["id"] for c, d in staged
                ):
                    raise DocumentConflict(entry.collection, f"id {doc['id']} already exists")
                self._check_unique(entry.collection, doc, [d for c, d in staged if c == entry.collection])
                staged.append((entry.collection, doc))
            for collection, doc in staged:
                self._collections[collection][doc["id"]] = doc
            return [copy.deepcopy(doc) for _, doc in staged]

    def update(
        self,
        collection: str,
        document_id: str,
        patch: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        with self._lock:
            bucket = self._bucket(collection)
            current = bucket.get(document_id)
            if current is None:
                raise DocumentNotFound(collection, document_id)
            if expected and not _matches(current, expected):
                raise DocumentConflict(collection, f"precondition {dict(expected)!r} failed for {document_id}")
            merged = {**current, **copy.deepcopy(dict(patch)), "id": document_id}
            self._check_unique(collection, merged)
            bucket[document_id] = merged
            return copy.deepcopy(merged)

    def ping(self) -> bool:
        return True


__all__ = ["InMemoryDocumentStore"]
