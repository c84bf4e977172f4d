"""Typed domain errors for the integrity engine.

Every failure the engine reports to a caller is a `FieldworkError` subclass
carrying a stable `code` and a `context` dict (current status, attempted
target, counts). Codes map to HTTP statuses in
`fieldwork.http.error_mapping`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class FieldworkError(Exception):
    code = "FIELDWORK_ERROR"
    kind = "internal"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "context": dict(self.context)}


# Validation: local, never retried


class ValidationFailure(FieldworkError):
    kind = "validation"


class MissingRequiredAnswers(ValidationFailure):
    code = "MISSING_REQUIRED_ANSWERS"

    def __init__(self, question_ids: Sequence[str]) -> None:
        missing = list(question_ids)
        super().__init__(
            f"Missing answers for {len(missing)} required question(s)",
            count=len(missing),
            question_ids=missing,
        )
        self.count = len(missing)


class ReasonRequired(ValidationFailure):
    code = "VOID_REASON_REQUIRED"

    def __init__(self, response_id: str) -> None:
        super().__init__("A non-empty reason is required to void a response", response_id=response_id)


class MalformedPseudonym(ValidationFailure):
    code = "MALFORMED_PSEUDONYM"

    def __init__(self, value: Any) -> None:
        super().__init__(f"Invalid respondent code format: {value!r}", value=str(value))


class ConsentRequired(ValidationFailure):
    code = "CONSENT_REQUIRED"

    def __init__(self) -> None:
        super().__init__("Consent must be given before creating a respondent")


class NameLikeValue(ValidationFailure):
    code = "NAME_LIKE_VALUE"

    def __init__(self, field: str) -> None:
        super().__init__(
            f"The {field} field appears to contain a name. Use anonymous descriptors only.",
            field=field,
        )


# State conflicts: deterministic given stored state, never retried


class StateConflict(FieldworkError):
    kind = "conflict"


class ActiveSessionExists(StateConflict):
    code = "ACTIVE_SESSION_EXISTS"

    def __init__(self, enumerator_id: str, session_id: Optional[str] = None) -> None:
        super().__init__(
            "Enumerator already has an open session",
            enumerator_id=enumerator_id,
            session_id=session_id,
            current_status="open",
        )


class AlreadyClosed(StateConflict):
    code = "SESSION_ALREADY_CLOSED"

    def __init__(self, session_id: str, current_status: str, attempted: Optional[str] = None) -> None:
        super().__init__(
            "Cannot change a session that is already closed",
            session_id=session_id,
            current_status=current_status,
            attempted_status=attempted,
        )


class AlreadySubmitted(StateConflict):
    code = "ALREADY_SUBMITTED"

    def __init__(self, session_id: str, survey_id: str) -> None:
        super().__init__(
            "Survey has already been submitted in this session",
            session_id=session_id,
            survey_id=survey_id,
            current_status="submitted",
        )


class ArchivedImmutable(StateConflict):
    code = "SURVEY_ARCHIVED_IMMUTABLE"

    def __init__(self, survey_id: Optional[str] = None, attempted: Optional[str] = None) -> None:
        super().__init__(
            "Archived surveys cannot be changed",
            survey_id=survey_id,
            current_status="archived",
            attempted_status=attempted,
        )


class LockedImmutable(StateConflict):
    code = "SURVEY_LOCKED_IMMUTABLE"

    def __init__(self, fields: Sequence[str], survey_id: Optional[str] = None) -> None:
        super().__init__(
            "Content of a locked survey cannot be changed",
            survey_id=survey_id,
            current_status="locked",
            fields=sorted(fields),
        )


class InvalidTransition(StateConflict):
    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, attempted: str, subject: str = "survey") -> None:
        super().__init__(
            f"Cannot move {subject} from {current} to {attempted}",
            current_status=current,
            attempted_status=attempted,
        )


class NotVoidable(StateConflict):
    code = "RESPONSE_NOT_VOIDABLE"

    def __init__(self, response_id: str, current_status: str) -> None:
        super().__init__(
            f"A {current_status} response cannot be voided",
            response_id=response_id,
            current_status=current_status,
            attempted_status="voided",
        )


class NotSubmittable(StateConflict):
    code = "RESPONSE_NOT_SUBMITTABLE"

    def __init__(self, response_id: str, current_status: str) -> None:
        super().__init__(
            f"A {current_status} response cannot be submitted",
            response_id=response_id,
            current_status=current_status,
            attempted_status="submitted",
        )


class SurveyNotActive(StateConflict):
    code = "SURVEY_NOT_ACTIVE"

    def __init__(self, survey_id: str, current_status: str) -> None:
        super().__init__(
            "Survey is not locked and cannot be used for data collection",
            survey_id=survey_id,
            current_status=current_status,
        )


class CorruptSequence(StateConflict):
    code = "CORRUPT_RESPONDENT_SEQUENCE"

    def __init__(self, last_code: Any) -> None:
        super().__init__("Invalid respondent code format in store", last_code=str(last_code))


class AllocationContention(StateConflict):
    code = "RESPONDENT_ALLOCATION_CONTENTION"

    def __init__(self, attempts: int) -> None:
        super().__init__("Could not allocate a unique respondent code", attempts=attempts)


# Transient failures after retries


class TransientFailure(FieldworkError):
    kind = "transient"


class SubmissionFailed(TransientFailure):
    code = "SUBMISSION_FAILED"

    def __init__(self, attempts: int, last_error: Optional[BaseException]) -> None:
        super().__init__(
            f"Submission failed after {attempts} attempt(s)",
            attempts=attempts,
            last_error=repr(last_error) if last_error is not None else None,
        )
        self.attempts = attempts
        self.last_error = last_error


class SubmissionCancelled(TransientFailure):
    code = "SUBMISSION_CANCELLED"

    def __init__(self, attempts: int, last_error: Optional[BaseException]) -> None:
        super().__init__(
            f"Submission cancelled after {attempts} attempt(s)",
            attempts=attempts,
            last_error=repr(last_error) if last_error is not None else None,
        )
        self.attempts = attempts
        self.last_error = last_error


# Capacity


class CapacityExceeded(FieldworkError):
    code = "RESPONDENT_CAPACITY_EXCEEDED"
    kind = "capacity"

    def __init__(self, max_count: int) -> None:
        super().__init__(
            f"Maximum respondent count ({max_count}) exceeded. Contact the system administrator.",
            max_count=max_count,
        )


class NotFound(FieldworkError):
    code = "NOT_FOUND"
    kind = "not_found"

    def __init__(self, collection: str, document_id: str) -> None:
        super().__init__(f"{collection} {document_id} not found", collection=collection, id=document_id)


__all__ = [
    "FieldworkError",
    "ValidationFailure",
    "MissingRequiredAnswers",
    "ReasonRequired",
    "MalformedPseudonym",
    "ConsentRequired",
    "NameLikeValue",
    "StateConflict",
    "ActiveSessionExists",
    "AlreadyClosed",
    "AlreadySubmitted",
    "ArchivedImmutable",
    "LockedImmutable",
    "InvalidTransition",
    "NotVoidable",
    "NotSubmittable",
    "SurveyNotActive",
    "CorruptSequence",
    "AllocationContention",
    "TransientFailure",
    "SubmissionFailed",
    "SubmissionCancelled",
    "CapacityExceeded",
    "NotFound",
]
