"""SQLAlchemy Core table declarations matching migrations/001_fieldwork_schema.sql.

The declarations drive query construction only; the schema itself is owned by
the SQL migrations.
"""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, Integer, MetaData, Table, Text

metadata = MetaData()

respondents = Table(
    "respondents",
    metadata,
    Column("id", Text, primary_key=True),
    Column("pseudonym", Text, nullable=False),
    Column("age_range", Text, nullable=False),
    Column("sex", Text, nullable=False),
    Column("admin_area", Text, nullable=False),
    Column("consent_given", Boolean, nullable=False),
    Column("consent_timestamp", Text),
    Column("enumerator_id", Text, nullable=False),
    Column("created_at", Text, nullable=False),
)

sessions = Table(
    "sessions",
    metadata,
    Column("id", Text, primary_key=True),
    Column("respondent_id", Text, nullable=False),
    Column("enumerator_id", Text, nullable=False),
    Column("start_time", Text, nullable=False),
    Column("end_time", Text),
    Column("status", Text, nullable=False),
    Column("created_at", Text, nullable=False),
    Column("updated_at", Text, nullable=False),
    Column("metadata", JSON),
)

surveys = Table(
    "surveys",
    metadata,
    Column("id", Text, primary_key=True),
    Column("title", Text, nullable=False),
    Column("description", Text),
    Column("version", Text, nullable=False),
    Column("status", Text, nullable=False),
    Column("created_at", Text, nullable=False),
    Column("updated_at", Text, nullable=False),
)

questions = Table(
    "questions",
    metadata,
    Column("id", Text, primary_key=True),
    Column("survey_id", Text, nullable=False),
    Column("question_text", Text, nullable=False),
    Column("question_type", Text, nullable=False),
    Column("required", Boolean, nullable=False),
    Column("order", Integer, nullable=False),
    Column("created_at", Text, nullable=False),
)

options = Table(
    "options",
    metadata,
    Column("id", Text, primary_key=True),
    Column("question_id", Text, nullable=False),
    Column("option_text", Text, nullable=False),
    Column("value", Text, nullable=False),
    Column("order", Integer, nullable=False),
)

responses = Table(
    "responses",
    metadata,
    Column("id", Text, primary_key=True),
    Column("session_id", Text, nullable=False),
    Column("respondent_id", Text, nullable=False),
    Column("survey_id", Text, nullable=False),
    Column("survey_version", Text, nullable=False),
    Column("location", Text),
    Column("status", Text, nullable=False),
    Column("submitted_at", Text),
    Column("voided_by", Text),
    Column("void_reason", Text),
    Column("created_at", Text, nullable=False),
    Column("updated_at", Text, nullable=False),
)

answers = Table(
    "answers",
    metadata,
    Column("id", Text, primary_key=True),
    Column("response_id", Text, nullable=False),
    Column("question_id", Text, nullable=False),
    Column("answer_value", Text, nullable=False),
)

TABLES = {t.name: t for t in (respondents, sessions, surveys, questions, options, responses, answers)}

__all__ = ["metadata", "TABLES"]
