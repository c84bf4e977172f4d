"""Survey catalog: instruments, questions, options and guarded updates."""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Dict, List, Optional

from fieldwork.logic.clock import SystemClock, format_timestamp
from fieldwork.logic.document_store import (
    OPTIONS,
    QUESTIONS,
    RESPONSES,
    SURVEYS,
    DocumentNotFound,
    DocumentStore,
    NewDocument,
)
from fieldwork.logic.errors import ArchivedImmutable, LockedImmutable, NotFound, SurveyNotActive
from fieldwork.logic.events import SURVEY_STATUS_CHANGED, publish
from fieldwork.logic.survey_guard import can_edit_content, validate_update
from fieldwork.models.response import ResponseStatus
from fieldwork.models.survey import (
    Option,
    OptionCreate,
    Question,
    QuestionCreate,
    QuestionType,
    QuestionWithOptions,
    Survey,
    SurveyCreate,
    SurveyStats,
    SurveyStatus,
    SurveyWithQuestions,
)

logger = logging.getLogger(__name__)


class SurveyCatalog:
    def __init__(self, store: DocumentStore, clock: Optional[SystemClock] = None) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        # survey_id -> ordered questions; only frozen (non-draft) surveys are cached
        self._detail_cache: Dict[str, List[QuestionWithOptions]] = {}
        self._cache_lock = threading.Lock()

    def get(self, survey_id: str) -> Survey:
        try:
            return Survey.from_document(self.store.get(SURVEYS, survey_id))
        except DocumentNotFound:
            raise NotFound(SURVEYS, survey_id) from None

    def create(self, payload: SurveyCreate) -> Survey:
        now = self.clock.now()
        survey = Survey(
            id=uuid.uuid4().hex,
            title=payload.title,
            description=payload.description,
            version=payload.version,
            status=SurveyStatus.DRAFT,
            created_at=now,
            updated_at=now,
        )
        return Survey.from_document(self.store.create(SURVEYS, survey.to_document(), survey.id))

    def update(self, survey_id: str, patch: Dict[str, Any]) -> Survey:
        """Apply `patch` (fields the caller actually sent) after the lifecycle guard approves it."""
        current = self.get(survey_id)
        validate_update(current.model_dump(), patch)
        if not patch:
            return current
        values = dict(patch)
        values["updated_at"] = format_timestamp(self.clock.now())
        # Conditional on the status we validated against
        updated = Survey.from_document(
            self.store.update(SURVEYS, survey_id, values, expected={"status": current.status})
        )
        if "status" in patch:
            logger.info("survey.status_changed survey_id=%s from=%s to=%s", survey_id, current.status, updated.status)
            publish(SURVEY_STATUS_CHANGED, {"survey_id": survey_id, "from": current.status, "to": updated.status})
        return updated

    def list_active(self, limit: int = 50, offset: int = 0, search: Optional[str] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {"status": SurveyStatus.LOCKED}
        if search:
            filters["title__contains"] = search
        rows = self.store.list(SURVEYS, filters, order=["created_at"], limit=limit, offset=offset)
        return {
            "surveys": [Survey.from_document(r) for r in rows],
            "total": self.store.count(SURVEYS, filters),
            "limit": limit,
            "offset": offset,
        }

    def search(self, term: str, limit: int = 50) -> List[Survey]:
        return self.list_active(limit=limit, search=term)["surveys"]

    def validate_active(self, survey_id: str) -> Survey:
        survey = self.get(survey_id)
        if survey.status != SurveyStatus.LOCKED:
            raise SurveyNotActive(survey_id, survey.status)
        return survey

    def _require_editable(self, survey: Survey) -> None:
        if can_edit_content(survey.status):
            return
        if survey.status == SurveyStatus.ARCHIVED:
            raise ArchivedImmutable(survey.id)
        raise LockedImmutable(["questions"], survey.id)

    def add_question(self, survey_id: str, payload: QuestionCreate) -> QuestionWithOptions:
        self._require_editable(self.get(survey_id))
        question = Question(
            id=uuid.uuid4().hex,
            survey_id=survey_id,
            question_text=payload.question_text,
            question_type=payload.question_type,
            required=payload.required,
            order=payload.order,
            created_at=self.clock.now(),
        )
        batch = [NewDocument(QUESTIONS, question.to_document(), question.id)]
        if question.question_type in QuestionType.WITH_OPTIONS:
            for opt in payload.options:
                option = Option(id=uuid.uuid4().hex, question_id=question.id, **opt.model_dump())
                batch.append(NewDocument(OPTIONS, option.to_document(), option.id))
        created = self.store.create_batch(batch)
        return QuestionWithOptions(
            **Question.from_document(created[0]).model_dump(),
            options=[Option.from_document(d) for d in created[1:]],
        )

    def add_option(self, question_id: str, payload: OptionCreate) -> Option:
        try:
            question = Question.from_document(self.store.get(QUESTIONS, question_id))
        except DocumentNotFound:
            raise NotFound(QUESTIONS, question_id) from None
        self._require_editable(self.get(question.survey_id))
        option = Option(id=uuid.uuid4().hex, question_id=question_id, **payload.model_dump())
        return Option.from_document(self.store.create(OPTIONS, option.to_document(), option.id))

    def questions(self, survey_id: str) -> List[QuestionWithOptions]:
        result: List[QuestionWithOptions] = []
        for row in self.store.list(QUESTIONS, {"survey_id": survey_id}, order=["order"]):
            question = Question.from_document(row)
            options: List[Option] = []
            if question.question_type in QuestionType.WITH_OPTIONS:
                options = [
                    Option.from_document(o)
                    for o in self.store.list(OPTIONS, {"question_id": question.id}, order=["order"])
                ]
            result.append(QuestionWithOptions(**question.model_dump(), options=options))
        return result

    def get_with_questions(self, survey_id: str) -> SurveyWithQuestions:
        """Survey with ordered questions and options.

        The question tree of a locked or archived survey can no longer change,
        so it is cached per survey and never invalidated. The survey fields
        themselves are read live on every call, since status still moves from
        locked to archived.
        """
        survey = self.get(survey_id)
        with self._cache_lock:
            questions = self._detail_cache.get(survey_id)
        if questions is None:
            questions = self.questions(survey_id)
            if survey.status != SurveyStatus.DRAFT:
                with self._cache_lock:
                    self._detail_cache[survey_id] = questions
        return SurveyWithQuestions(**survey.model_dump(), questions=questions)

    def required_question_ids(self, survey_id: str) -> List[str]:
        return [q.id for q in self.get_with_questions(survey_id).questions if q.required]

    def stats(self, survey_id: str) -> SurveyStats:
        def _count(status: Optional[str] = None) -> int:
            filters: Dict[str, Any] = {"survey_id": survey_id}
            if status:
                filters["status"] = status
            return self.store.count(RESPONSES, filters)

        return SurveyStats(
            total_responses=_count(),
            submitted_responses=_count(ResponseStatus.SUBMITTED),
            draft_responses=_count(ResponseStatus.DRAFT),
            voided_responses=_count(ResponseStatus.VOIDED),
        )


__all__ = ["SurveyCatalog"]
