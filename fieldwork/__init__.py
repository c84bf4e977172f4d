"""Fieldwork survey service.

Anonymous respondent registration, session lifecycle with inactivity timeout,
survey versioning and idempotent response submission, exposed through a
FastAPI application factory. Engine logic lives in `fieldwork/logic/` and
route handlers in `fieldwork/routes/`.
"""

from __future__ import annotations

from fieldwork.main import create_app

__all__ = ["create_app"]
