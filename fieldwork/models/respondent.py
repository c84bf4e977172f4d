"""Respondent document and registration payload."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from fieldwork.models.common import Document, Timestamp


AgeRangeValue = Literal["18-24", "25-34", "35-44", "45-54", "55-64", "65+"]
SexValue = Literal["M", "F", "Other"]


class Respondent(Document):
    pseudonym: str
    age_range: AgeRangeValue
    sex: SexValue
    admin_area: str
    consent_given: bool
    consent_timestamp: Optional[Timestamp] = None
    enumerator_id: str
    created_at: Timestamp


class RespondentCreate(BaseModel):
    age_range: AgeRangeValue
    sex: SexValue
    admin_area: str = Field(min_length=1)
    consent_given: bool
    enumerator_id: str = Field(min_length=1)


__all__ = ["Respondent", "RespondentCreate"]
