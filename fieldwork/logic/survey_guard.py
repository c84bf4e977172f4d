"""Survey lifecycle guard.

Surveys move one way only: draft -> locked -> archived. Once locked, a
survey's version is referenced by submitted responses, so its content fields
freeze; once archived, nothing changes at all.

Rules are checked in order:
1. archived: reject any change (ArchivedImmutable).
2. locked: reject content fields (LockedImmutable); a status change must be
   to archived (InvalidTransition).
3. draft: any field edit; a status change must be to locked.
"""

from __future__ import annotations

from typing import Any, Mapping

from fieldwork.logic.errors import ArchivedImmutable, InvalidTransition, LockedImmutable
from fieldwork.models.survey import CONTENT_FIELDS, SurveyStatus

ALLOWED_TRANSITIONS = {
    SurveyStatus.DRAFT: SurveyStatus.LOCKED,
    SurveyStatus.LOCKED: SurveyStatus.ARCHIVED,
}


def validate_update(current: Mapping[str, Any], proposed: Mapping[str, Any]) -> None:
    """Raise if `proposed` (only the fields being changed) is not allowed on `current`."""
    status = current.get("status")
    survey_id = current.get("id")
    target = proposed.get("status")

    if status == SurveyStatus.ARCHIVED:
        raise ArchivedImmutable(survey_id, target)

    if status == SurveyStatus.LOCKED:
        touched = [f for f in CONTENT_FIELDS if f in proposed]
        if touched:
            raise LockedImmutable(touched, survey_id)

    if "status" in proposed and target != ALLOWED_TRANSITIONS.get(status):
        raise InvalidTransition(str(status), str(target))


def can_edit_content(status: str) -> bool:
    return status == SurveyStatus.DRAFT


__all__ = ["ALLOWED_TRANSITIONS", "validate_update", "can_edit_content"]
