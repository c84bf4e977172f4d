"""Survey instruments, questions and options."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from fieldwork.models.common import Document, Timestamp


class SurveyStatus:
    DRAFT = "draft"
    LOCKED = "locked"
    ARCHIVED = "archived"


class QuestionType:
    TEXT = "text"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    SCALE = "scale"

    WITH_OPTIONS = (RADIO, CHECKBOX, SCALE)


SurveyStatusValue = Literal["draft", "locked", "archived"]
QuestionTypeValue = Literal["text", "radio", "checkbox", "scale"]

# Fields frozen once a survey is locked
CONTENT_FIELDS = ("title", "description", "version")


class Survey(Document):
    title: str
    description: Optional[str] = None
    version: str
    status: SurveyStatusValue
    created_at: Timestamp
    updated_at: Timestamp


class SurveyCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    version: str = "1.0"


class SurveyUpdate(BaseModel):
    """Partial update; only fields the caller sent are considered present."""

    title: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    status: Optional[SurveyStatusValue] = None


class Option(Document):
    question_id: str
    option_text: str
    value: str
    order: int


class OptionCreate(BaseModel):
    option_text: str = Field(min_length=1)
    value: str
    order: int = 0


class Question(Document):
    survey_id: str
    question_text: str
    question_type: QuestionTypeValue
    required: bool = False
    order: int
    created_at: Timestamp


class QuestionCreate(BaseModel):
    question_text: str = Field(min_length=1)
    question_type: QuestionTypeValue = "text"
    required: bool = False
    order: int = 0
    options: List[OptionCreate] = Field(default_factory=list)


class QuestionWithOptions(Question):
    options: List[Option] = Field(default_factory=list)


class SurveyWithQuestions(Survey):
    questions: List[QuestionWithOptions] = Field(default_factory=list)


class SurveyStats(BaseModel):
    total_responses: int
    submitted_responses: int
    draft_responses: int
    voided_responses: int


__all__ = [
    "SurveyStatus",
    "QuestionType",
    "CONTENT_FIELDS",
    "Survey",
    "SurveyCreate",
    "SurveyUpdate",
    "Option",
    "OptionCreate",
    "Question",
    "QuestionCreate",
    "QuestionWithOptions",
    "SurveyWithQuestions",
    "SurveyStats",
]
