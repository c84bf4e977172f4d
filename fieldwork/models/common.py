"""Shared field types for document models."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict

from pydantic import BaseModel, ConfigDict, PlainSerializer

from fieldwork.logic.clock import format_timestamp

# Serialised as fixed-width RFC3339 text so stored values sort chronologically
Timestamp = Annotated[datetime, PlainSerializer(format_timestamp, return_type=str, when_used="json")]


class Document(BaseModel):
    """Base for stored documents: round-trips through the gateway as plain dicts."""

    model_config = ConfigDict(extra="ignore")

    id: str

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, data: Dict[str, Any]):
        return cls.model_validate(data)


__all__ = ["Timestamp", "Document"]
