"""Respondent registration, lookup and demographic statistics.

Registration enforces the anonymity rules (explicit consent, no name-like
administrative areas) before a pseudonym is allocated.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections import Counter
from typing import Any, Dict, Optional

from fieldwork.logic.clock import SystemClock
from fieldwork.logic.document_store import RESPONDENTS, DocumentConflict, DocumentNotFound, DocumentStore
from fieldwork.logic.errors import AllocationContention, ConsentRequired, NameLikeValue, NotFound
from fieldwork.logic.events import RESPONDENT_REGISTERED, publish
from fieldwork.logic.respondent_codes import RespondentCodeAllocator, format_code
from fieldwork.models.respondent import Respondent, RespondentCreate

logger = logging.getLogger(__name__)

NAME_PATTERN = re.compile(r"^[A-Z][a-z]+$")
COMMON_GIVEN_NAMES = frozenset(
    {
        "john", "mary", "jose", "maria", "pedro", "juan", "ana", "carlos", "luis", "david",
        "michael", "sarah", "emma", "olivia", "sophia", "isabella", "mia", "charlotte",
        "amelia", "harper",
    }
)


def looks_like_name(value: str) -> bool:
    """True for a single capitalised word, a common given name, or a run of capitalised words."""
    if not value or not isinstance(value, str):
        return False
    trimmed = value.strip()
    if NAME_PATTERN.match(trimmed):
        return True
    if trimmed.lower() in COMMON_GIVEN_NAMES:
        return True
    words = trimmed.split()
    return len(words) >= 2 and all(NAME_PATTERN.match(w) for w in words)


def validate_registration(payload: RespondentCreate) -> None:
    if not payload.consent_given:
        raise ConsentRequired()
    if looks_like_name(payload.admin_area):
        raise NameLikeValue("admin_area")


class RespondentRegistry:
    def __init__(
        self,
        store: DocumentStore,
        allocator: RespondentCodeAllocator,
        clock: Optional[SystemClock] = None,
        allocation_attempts: int = 5,
    ) -> None:
        self.store = store
        self.allocator = allocator
        self.clock = clock or SystemClock()
        self.allocation_attempts = allocation_attempts

    def register(self, payload: RespondentCreate) -> Respondent:
        validate_registration(payload)
        for attempt in range(1, self.allocation_attempts + 1):
            pseudonym = self.allocator.allocate()
            now = self.clock.now()
            candidate = Respondent(
                id=uuid.uuid4().hex,
                pseudonym=pseudonym,
                age_range=payload.age_range,
                sex=payload.sex,
                admin_area=payload.admin_area.strip(),
                consent_given=True,
                consent_timestamp=now,
                enumerator_id=payload.enumerator_id,
                created_at=now,
            )
            try:
                stored = self.store.create(RESPONDENTS, candidate.to_document(), candidate.id)
            except DocumentConflict as exc:
                # Another writer took this pseudonym between our read and insert
                logger.warning(
                    "respondents.pseudonym_conflict pseudonym=%s attempt=%d index=%s",
                    pseudonym,
                    attempt,
                    exc.index,
                )
                continue
            respondent = Respondent.from_document(stored)
            publish(RESPONDENT_REGISTERED, {"respondent_id": respondent.id, "pseudonym": respondent.pseudonym})
            return respondent
        raise AllocationContention(self.allocation_attempts)

    def get(self, respondent_id: str) -> Respondent:
        try:
            return Respondent.from_document(self.store.get(RESPONDENTS, respondent_id))
        except DocumentNotFound:
            raise NotFound(RESPONDENTS, respondent_id) from None

    def search(
        self,
        enumerator_id: Optional[str] = None,
        pseudonym: Optional[str] = None,
        admin_area: Optional[str] = None,
        age_range: Optional[str] = None,
        sex: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        filters = {
            k: v
            for k, v in {
                "enumerator_id": enumerator_id,
                "pseudonym": pseudonym,
                "admin_area": admin_area,
                "age_range": age_range,
                "sex": sex,
            }.items()
            if v
        }
        rows = self.store.list(RESPONDENTS, filters, order=["-created_at"], limit=limit, offset=offset)
        return {
            "respondents": [Respondent.from_document(r) for r in rows],
            "total": self.store.count(RESPONDENTS, filters),
            "limit": limit,
            "offset": offset,
        }

    def stats(self, enumerator_id: str) -> Dict[str, Any]:
        rows = self.store.list(RESPONDENTS, {"enumerator_id": enumerator_id})
        return {
            "total": len(rows),
            "by_admin_area": dict(Counter(r["admin_area"] for r in rows)),
            "by_sex": dict(Counter(r["sex"] for r in rows)),
            "by_age_range": dict(Counter(r["age_range"] for r in rows)),
        }

    def capacity(self) -> Dict[str, Any]:
        total = self.store.count(RESPONDENTS)
        next_number = self.allocator.next_number()
        return {
            "total_count": total,
            "next_available_code": format_code(next_number, self.allocator.max_count)
            if next_number <= self.allocator.max_count
            else None,
            "remaining_capacity": max(0, self.allocator.max_count - total),
        }


__all__ = ["looks_like_name", "validate_registration", "RespondentRegistry"]
