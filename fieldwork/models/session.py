"""Session documents and activity snapshots."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from fieldwork.models.common import Document, Timestamp


class SessionStatus:
    OPEN = "open"
    CLOSED = "closed"
    TIMEOUT = "timeout"


class CloseReason:
    MANUAL = "manual"
    TIMEOUT = "timeout"
    COMPLETED = "completed"

    VALUES = (MANUAL, TIMEOUT, COMPLETED)


SessionStatusValue = Literal["open", "closed", "timeout"]
CloseReasonValue = Literal["manual", "timeout", "completed"]


class Session(Document):
    respondent_id: str
    enumerator_id: str
    start_time: Timestamp
    end_time: Optional[Timestamp] = None
    status: SessionStatusValue
    created_at: Timestamp
    updated_at: Timestamp
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_open(self) -> bool:
        return self.status == SessionStatus.OPEN


class SessionCreate(BaseModel):
    respondent_id: str = Field(min_length=1)
    enumerator_id: str = Field(min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SessionClose(BaseModel):
    reason: CloseReasonValue = "manual"


class SessionActivity(BaseModel):
    session_id: str
    last_activity_at: Timestamp
    time_remaining_seconds: float
    is_near_timeout: bool
    has_timed_out: bool
    poll_seconds: int


class SessionView(BaseModel):
    session: Session
    activity: SessionActivity


class SessionSummary(BaseModel):
    session: Session
    respondent_pseudonym: Optional[str] = None
    completed_surveys: List[str]
    response_count: int
    duration_seconds: Optional[float] = None


__all__ = [
    "SessionStatus",
    "CloseReason",
    "Session",
    "SessionCreate",
    "SessionClose",
    "SessionActivity",
    "SessionView",
    "SessionSummary",
]
