"""Submission pipeline: drafts, submission with retry, voiding and review reads.

`submit()` writes the Response and its Answers as one atomic batch. The
response id is fixed before the first attempt, so an attempt whose commit
landed but whose acknowledgement was lost is recognised on the next attempt:
the partial unique index on submitted `(session_id, survey_id)` rejects the
rewrite, and reading the fixed id back tells a landed earlier attempt apart
from a genuine duplicate.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence

from fieldwork.logic.clock import SystemClock, format_timestamp
from fieldwork.logic.completion import CompletionIndex
from fieldwork.logic.document_store import (
    ANSWERS,
    RESPONSES,
    SESSIONS,
    DocumentConflict,
    DocumentNotFound,
    DocumentStore,
    NewDocument,
)
from fieldwork.logic.errors import (
    AlreadySubmitted,
    MissingRequiredAnswers,
    NotFound,
    NotSubmittable,
    NotVoidable,
    ReasonRequired,
)
from fieldwork.logic.events import RESPONSE_DRAFTED, RESPONSE_SUBMITTED, RESPONSE_VOIDED, publish
from fieldwork.logic.retry import Observer, RetryPolicy, RetryRunner
from fieldwork.models.response import (
    Answer,
    Response,
    ResponseStatus,
    ResponseWithAnswers,
    SubmissionInput,
    SubmissionResult,
)

logger = logging.getLogger(__name__)


def missing_required(required_question_ids: Iterable[str], answered: Iterable[str]) -> List[str]:
    answered_ids = set(answered)
    return [qid for qid in required_question_ids if qid not in answered_ids]


class SubmissionPipeline:
    def __init__(
        self,
        store: DocumentStore,
        completion: Optional[CompletionIndex] = None,
        clock: Optional[SystemClock] = None,
        policy: Optional[RetryPolicy] = None,
        observer: Optional[Observer] = None,
    ) -> None:
        self.store = store
        self.completion = completion or CompletionIndex(store)
        self.clock = clock or SystemClock()
        self.policy = policy or RetryPolicy()
        self.observer = observer

    # Writes

    def _batch(self, response: Response, payload: SubmissionInput, answer_ids: Sequence[str]) -> List[NewDocument]:
        batch = [NewDocument(RESPONSES, response.to_document(), response.id)]
        for answer_id, item in zip(answer_ids, payload.answers):
            answer = Answer(
                id=answer_id,
                response_id=response.id,
                question_id=item.question_id,
                answer_value=item.answer_value,
            )
            batch.append(NewDocument(ANSWERS, answer.to_document(), answer.id))
        return batch

    def _build_response(self, response_id: str, payload: SubmissionInput, status: str) -> Response:
        now = self.clock.now()
        return Response(
            id=response_id,
            session_id=payload.session_id,
            respondent_id=payload.respondent_id,
            survey_id=payload.survey_id,
            survey_version=payload.survey_version,
            location=payload.gps.serialize() if payload.gps else None,
            status=status,
            submitted_at=now if status == ResponseStatus.SUBMITTED else None,
            created_at=now,
            updated_at=now,
        )

    def submit(
        self,
        payload: SubmissionInput,
        required_question_ids: Sequence[str],
        cancel: Optional[threading.Event] = None,
    ) -> SubmissionResult:
        missing = missing_required(required_question_ids, (a.question_id for a in payload.answers))
        if missing:
            raise MissingRequiredAnswers(missing)
        if self.completion.is_completed(payload.session_id, payload.survey_id):
            raise AlreadySubmitted(payload.session_id, payload.survey_id)

        response_id = uuid.uuid4().hex
        answer_ids = [uuid.uuid4().hex for _ in payload.answers]

        def attempt(number: int) -> str:
            response = self._build_response(response_id, payload, ResponseStatus.SUBMITTED)
            try:
                self.store.create_batch(self._batch(response, payload, answer_ids))
            except DocumentConflict as exc:
                try:
                    self.store.get(RESPONSES, response_id)
                except DocumentNotFound:
                    logger.info(
                        "submission.duplicate session_id=%s survey_id=%s index=%s",
                        payload.session_id,
                        payload.survey_id,
                        exc.index,
                    )
                    raise AlreadySubmitted(payload.session_id, payload.survey_id) from exc
                logger.warning(
                    "submission.acknowledgement_lost response_id=%s attempt=%d", response_id, number
                )
            return response_id

        runner: RetryRunner[str] = RetryRunner(self.policy, self.clock, cancel, self.observer)
        runner.run(attempt)

        logger.info(
            "submission.succeeded response_id=%s session_id=%s attempts=%d",
            response_id,
            payload.session_id,
            runner.attempts,
            extra={"response_id": response_id, "attempts": runner.attempts},
        )
        publish(
            RESPONSE_SUBMITTED,
            {
                "response_id": response_id,
                "session_id": payload.session_id,
                "survey_id": payload.survey_id,
                "enumerator_id": payload.enumerator_id,
                "attempts": runner.attempts,
            },
        )
        return SubmissionResult(response_id=response_id, status=ResponseStatus.SUBMITTED, attempts=runner.attempts)

    def save_draft(self, payload: SubmissionInput) -> SubmissionResult:
        response = self._build_response(uuid.uuid4().hex, payload, ResponseStatus.DRAFT)
        self.store.create_batch(self._batch(response, payload, [uuid.uuid4().hex for _ in payload.answers]))
        publish(RESPONSE_DRAFTED, {"response_id": response.id, "session_id": payload.session_id})
        return SubmissionResult(response_id=response.id, status=ResponseStatus.DRAFT, attempts=1)

    def submit_draft(self, response_id: str, required_question_ids: Sequence[str]) -> SubmissionResult:
        response = self.get(response_id)
        if response.status != ResponseStatus.DRAFT:
            raise NotSubmittable(response_id, response.status)
        missing = missing_required(required_question_ids, (a.question_id for a in self.answers(response_id)))
        if missing:
            raise MissingRequiredAnswers(missing)
        if self.completion.is_completed(response.session_id, response.survey_id):
            raise AlreadySubmitted(response.session_id, response.survey_id)

        now = format_timestamp(self.clock.now())
        try:
            self.store.update(
                RESPONSES,
                response_id,
                {"status": ResponseStatus.SUBMITTED, "submitted_at": now, "updated_at": now},
                expected={"status": ResponseStatus.DRAFT},
            )
        except DocumentConflict as exc:
            if exc.index:
                raise AlreadySubmitted(response.session_id, response.survey_id) from exc
            raise NotSubmittable(response_id, self.get(response_id).status) from exc
        publish(RESPONSE_SUBMITTED, {"response_id": response_id, "session_id": response.session_id, "survey_id": response.survey_id})
        return SubmissionResult(response_id=response_id, status=ResponseStatus.SUBMITTED, attempts=1)

    def void_response(self, response_id: str, voided_by: str, void_reason: str) -> Response:
        response = self.get(response_id)
        if response.status != ResponseStatus.SUBMITTED:
            raise NotVoidable(response_id, response.status)
        if not void_reason or not void_reason.strip():
            raise ReasonRequired(response_id)
        try:
            stored = self.store.update(
                RESPONSES,
                response_id,
                {
                    "status": ResponseStatus.VOIDED,
                    "voided_by": voided_by,
                    "void_reason": void_reason.strip(),
                    "updated_at": format_timestamp(self.clock.now()),
                },
                expected={"status": ResponseStatus.SUBMITTED},
            )
        except DocumentConflict as exc:
            raise NotVoidable(response_id, self.get(response_id).status) from exc
        logger.info("response.voided response_id=%s voided_by=%s", response_id, voided_by)
        publish(RESPONSE_VOIDED, {"response_id": response_id, "voided_by": voided_by})
        return Response.from_document(stored)

    # Reads

    def get(self, response_id: str) -> Response:
        try:
            return Response.from_document(self.store.get(RESPONSES, response_id))
        except DocumentNotFound:
            raise NotFound(RESPONSES, response_id) from None

    def answers(self, response_id: str) -> List[Answer]:
        return [Answer.from_document(row) for row in self.store.list(ANSWERS, {"response_id": response_id})]

    def with_answers(self, response_id: str) -> ResponseWithAnswers:
        response = self.get(response_id)
        return ResponseWithAnswers(**response.model_dump(), answers=self.answers(response_id))

    def for_session(self, session_id: str) -> List[Response]:
        rows = self.store.list(RESPONSES, {"session_id": session_id}, order=["created_at"])
        return [Response.from_document(row) for row in rows]

    def list(
        self,
        survey_id: Optional[str] = None,
        status: Optional[str] = None,
        session_id: Optional[str] = None,
        enumerator_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Admin review listing, newest first.

        Responses do not carry the enumerator, so an enumerator filter is
        resolved through that enumerator's sessions.
        """
        filters = {k: v for k, v in {"survey_id": survey_id, "status": status}.items() if v}
        if enumerator_id:
            session_ids = [s["id"] for s in self.store.list(SESSIONS, {"enumerator_id": enumerator_id})]
            if session_id:
                session_ids = [s for s in session_ids if s == session_id]
            rows: List[Dict[str, Any]] = []
            for sid in session_ids:
                rows.extend(self.store.list(RESPONSES, {**filters, "session_id": sid}))
            rows.sort(key=lambda r: r["created_at"], reverse=True)
            return {
                "responses": [Response.from_document(r) for r in rows[offset : offset + limit]],
                "total": len(rows),
                "limit": limit,
                "offset": offset,
            }
        if session_id:
            filters["session_id"] = session_id
        rows = self.store.list(RESPONSES, filters, order=["-created_at"], limit=limit, offset=offset)
        return {
            "responses": [Response.from_document(r) for r in rows],
            "total": self.store.count(RESPONSES, filters),
            "limit": limit,
            "offset": offset,
        }


__all__ = ["missing_required", "SubmissionPipeline"]
