"""Completion index: has survey X been submitted in session Y?

Derived on demand from the responses collection, with no cached state, so
the answer always reflects the latest committed response write.
"""

from __future__ import annotations

from typing import List

from fieldwork.logic.document_store import RESPONSES, DocumentStore
from fieldwork.models.response import ResponseStatus


class CompletionIndex:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def is_completed(self, session_id: str, survey_id: str) -> bool:
        rows = self.store.list(
            RESPONSES,
            {"session_id": session_id, "survey_id": survey_id, "status": ResponseStatus.SUBMITTED},
            limit=1,
        )
        return bool(rows)

    def completed_surveys(self, session_id: str) -> List[str]:
        rows = self.store.list(
            RESPONSES,
            {"session_id": session_id, "status": ResponseStatus.SUBMITTED},
            order=["submitted_at"],
        )
        seen: List[str] = []
        for row in rows:
            if row["survey_id"] not in seen:
                seen.append(row["survey_id"])
        return seen


__all__ = ["CompletionIndex"]
