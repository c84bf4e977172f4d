"""APIRouter registration for the fieldwork service."""

from __future__ import annotations

from fastapi import APIRouter

from fieldwork.routes.health import router as health_router
from fieldwork.routes.respondents import router as respondents_router
from fieldwork.routes.responses import router as responses_router
from fieldwork.routes.sessions import router as sessions_router
from fieldwork.routes.surveys import router as surveys_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(respondents_router, tags=["Respondents"])
api_router.include_router(sessions_router, tags=["Sessions"])
api_router.include_router(surveys_router, tags=["Surveys"])
api_router.include_router(responses_router, tags=["Responses"])

__all__ = ["api_router", "health_router"]
