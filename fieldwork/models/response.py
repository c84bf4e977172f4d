"""Survey responses, answers and submission payloads."""

from __future__ import annotations

import json
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from fieldwork.logic.clock import format_timestamp
from fieldwork.models.common import Document, Timestamp


class ResponseStatus:
    DRAFT = "draft"
    SUBMITTED = "submitted"
    VOIDED = "voided"


ResponseStatusValue = Literal["draft", "submitted", "voided"]


class Location(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0)
    captured_at: datetime

    def serialize(self) -> str:
        return json.dumps(
            {
                "latitude": self.latitude,
                "longitude": self.longitude,
                "accuracy": self.accuracy,
                "capturedAt": format_timestamp(self.captured_at),
            }
        )


class AnswerInput(BaseModel):
    question_id: str = Field(min_length=1)
    # Serialised value: text, number, or JSON for multi-select
    answer_value: str


class SubmissionInput(BaseModel):
    session_id: str = Field(min_length=1)
    survey_id: str = Field(min_length=1)
    survey_version: str = Field(min_length=1)
    respondent_id: str = Field(min_length=1)
    enumerator_id: str = Field(min_length=1)
    answers: List[AnswerInput] = Field(default_factory=list)
    gps: Optional[Location] = None


class Response(Document):
    session_id: str
    respondent_id: str
    survey_id: str
    survey_version: str
    location: Optional[str] = None
    status: ResponseStatusValue
    submitted_at: Optional[Timestamp] = None
    voided_by: Optional[str] = None
    void_reason: Optional[str] = None
    created_at: Timestamp
    updated_at: Timestamp


class Answer(Document):
    response_id: str
    question_id: str
    answer_value: str


class ResponseWithAnswers(Response):
    answers: List[Answer] = Field(default_factory=list)


class SubmissionResult(BaseModel):
    response_id: str
    status: ResponseStatusValue
    attempts: int = 1


class VoidRequest(BaseModel):
    voided_by: str = Field(min_length=1)
    void_reason: str = ""


__all__ = [
    "ResponseStatus",
    "Location",
    "AnswerInput",
    "SubmissionInput",
    "Response",
    "Answer",
    "ResponseWithAnswers",
    "SubmissionResult",
    "VoidRequest",
]
