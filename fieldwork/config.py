"""Configuration utilities for the fieldwork service.

This module loads application configuration with the following rules:
- Primary source: `fieldwork_config.json` at the project root.
- Overrides: optional text files under `config/`, then environment variables.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator, model_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("fieldwork_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        # Recoverable: an unreadable override falls through to the base value
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class SessionConfig(BaseModel):
    timeout_minutes: float = Field(default=120, gt=0)
    warning_minutes: float = Field(default=15, gt=0)
    poll_seconds: int = Field(default=10, gt=0)

    @model_validator(mode="after")
    def warning_inside_timeout(self) -> "SessionConfig":
        if self.warning_minutes >= self.timeout_minutes:
            raise ValueError("sessions.warning_minutes must be smaller than sessions.timeout_minutes")
        return self


class SubmissionConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    initial_delay_seconds: float = Field(default=2.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)


class RespondentConfig(BaseModel):
    max_count: int = Field(default=99999, ge=1, le=99999)
    allocation_attempts: int = Field(default=5, ge=1)


class AppConfig(BaseModel):
    database: DatabaseConfig
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    submissions: SubmissionConfig = Field(default_factory=SubmissionConfig)
    respondents: RespondentConfig = Field(default_factory=RespondentConfig)
    auto_apply_migrations: bool = True
    log_level: str = "INFO"


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def _truthy(text: Optional[str]) -> bool:
    return str(text).strip().lower() in {"1", "true", "yes", "on"}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) fieldwork_config.json at project root (primary base)
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    def _pick(env_key: str, file_key: str, base_key: str, default: Optional[str] = None) -> Optional[str]:
        return _env(env_key) or _read_config_file(file_key) or _base(base_key, default)

    dsn = _pick("DATABASE_URL", "database.url", "database.dsn") or "sqlite+pysqlite:///:memory:"

    try:
        cfg = AppConfig(
            database=DatabaseConfig(dsn=dsn),
            sessions=SessionConfig(
                timeout_minutes=float(_pick("SESSION_TIMEOUT_MINUTES", "sessions.timeout_minutes", "sessions.timeout_minutes", "120")),
                warning_minutes=float(_pick("SESSION_WARNING_MINUTES", "sessions.warning_minutes", "sessions.warning_minutes", "15")),
                poll_seconds=int(_pick("SESSION_POLL_SECONDS", "sessions.poll_seconds", "sessions.poll_seconds", "10")),
            ),
            submissions=SubmissionConfig(
                max_attempts=int(_pick("SUBMISSION_MAX_ATTEMPTS", "submissions.max_attempts", "submissions.max_attempts", "3")),
                initial_delay_seconds=float(
                    _pick("SUBMISSION_INITIAL_DELAY_SECONDS", "submissions.initial_delay_seconds", "submissions.initial_delay_seconds", "2")
                ),
                multiplier=float(_pick("SUBMISSION_BACKOFF_MULTIPLIER", "submissions.multiplier", "submissions.multiplier", "2")),
            ),
            respondents=RespondentConfig(
                max_count=int(_pick("RESPONDENT_MAX_COUNT", "respondents.max_count", "respondents.max_count", "99999")),
                allocation_attempts=int(
                    _pick("RESPONDENT_ALLOCATION_ATTEMPTS", "respondents.allocation_attempts", "respondents.allocation_attempts", "5")
                ),
            ),
            auto_apply_migrations=_truthy(_pick("AUTO_APPLY_MIGRATIONS", "migrations.auto_apply", "migrations.auto_apply", "true")),
            log_level=(_pick("LOG_LEVEL", "logging.level", "logging.level", "INFO") or "INFO").strip().upper(),
        )
        return cfg
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "SessionConfig",
    "SubmissionConfig",
    "RespondentConfig",
    "load_config",
]
