"""Sequential pseudonymous respondent codes.

Format: ``R-`` followed by a 5-digit zero-padded number, 1..99999.

Allocation reads the greatest stored pseudonym and proposes the next one. The
read and the later insert are not atomic: two writers can propose the same
code, and the unique index on ``respondents.pseudonym`` decides the winner.
The loser sees `DocumentConflict` on create and must allocate again
(`fieldwork.logic.respondents.RespondentRegistry.register` does this).
"""

from __future__ import annotations

import logging
import re
from typing import List

from fieldwork.logic.document_store import RESPONDENTS, DocumentStore, StoreError
from fieldwork.logic.errors import CapacityExceeded, CorruptSequence, MalformedPseudonym

logger = logging.getLogger(__name__)

PREFIX = "R-"
MAX_RESPONDENT_COUNT = 99999
CODE_PATTERN = re.compile(r"^R-(\d{5})$")


def format_code(number: int, max_count: int = MAX_RESPONDENT_COUNT) -> str:
    if number > max_count:
        raise CapacityExceeded(max_count)
    if number < 1:
        raise MalformedPseudonym(number)
    return f"{PREFIX}{number:05d}"


def parse_code(code: str) -> int:
    match = CODE_PATTERN.match(code or "")
    if not match:
        raise MalformedPseudonym(code)
    return int(match.group(1))


def is_valid_code(code: str, max_count: int = MAX_RESPONDENT_COUNT) -> bool:
    try:
        return 1 <= parse_code(code) <= max_count
    except MalformedPseudonym:
        return False


def batch_codes(start: int, count: int, max_count: int = MAX_RESPONDENT_COUNT) -> List[str]:
    """Return up to `count` sequential codes from `start`, stopping at capacity (seeding only)."""
    return [format_code(n, max_count) for n in range(start, min(start + count, max_count + 1))]


class RespondentCodeAllocator:
    def __init__(self, store: DocumentStore, max_count: int = MAX_RESPONDENT_COUNT) -> None:
        self.store = store
        self.max_count = max_count

    def last_code(self) -> str | None:
        try:
            rows = self.store.list(RESPONDENTS, order=["-pseudonym"], limit=1)
        except StoreError as exc:
            # First-time bootstrap: an unreadable collection counts as empty
            logger.warning("respondent_codes.lookup_failed treating_as_empty error=%s", exc)
            return None
        return rows[0]["pseudonym"] if rows else None

    def next_number(self) -> int:
        """Number following the greatest stored code; 1 for an empty collection."""
        last = self.last_code()
        if last is None:
            return 1
        try:
            return parse_code(last) + 1
        except MalformedPseudonym:
            logger.error("respondent_codes.corrupt_sequence last=%r", last)
            raise CorruptSequence(last) from None

    def allocate(self) -> str:
        next_number = self.next_number()
        if next_number > self.max_count:
            raise CapacityExceeded(self.max_count)
        code = format_code(next_number, self.max_count)
        logger.info("respondent_codes.allocated code=%s", code)
        return code


__all__ = [
    "PREFIX",
    "MAX_RESPONDENT_COUNT",
    "CODE_PATTERN",
    "format_code",
    "parse_code",
    "is_valid_code",
    "batch_codes",
    "RespondentCodeAllocator",
]
