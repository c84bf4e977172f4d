"""Session lifecycle routes.

Reads commit an overdue timeout as a side effect: the first caller to observe
`has_timed_out` closes the session with status `timeout`.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from fieldwork.logic.errors import NotFound
from fieldwork.logic.services import Services, get_services
from fieldwork.models.session import Session, SessionClose, SessionCreate, SessionView

router = APIRouter()


def _view(services: Services, session: Session) -> SessionView:
    activity = services.sessions.activity(session)
    if activity.has_timed_out:
        session = services.sessions.expire_if_timed_out(session.id)
    return SessionView(session=session, activity=activity)


@router.post("/sessions", summary="Open a session for a respondent")
def create_session(payload: SessionCreate, services: Services = Depends(get_services)):
    session = services.sessions.create(payload.respondent_id, payload.enumerator_id, payload.metadata)
    return JSONResponse(_view(services, session).model_dump(mode="json"), status_code=201)


@router.get("/sessions", summary="List an enumerator's sessions")
def list_sessions(
    enumerator_id: str,
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
):
    return jsonable_encoder(services.sessions.list(enumerator_id, status, limit, offset))


@router.get("/sessions/active", summary="The enumerator's open session with its activity")
def active_session(enumerator_id: str, services: Services = Depends(get_services)):
    session = services.sessions.get_active(enumerator_id)
    if session is None:
        raise NotFound("sessions", f"active:{enumerator_id}")
    return _view(services, session).model_dump(mode="json")


@router.get("/sessions/{session_id}", summary="Session with activity snapshot")
def get_session(session_id: str, services: Services = Depends(get_services)):
    return _view(services, services.sessions.get(session_id)).model_dump(mode="json")


@router.post("/sessions/{session_id}/touch", summary="Record user activity")
def touch_session(session_id: str, services: Services = Depends(get_services)):
    session = services.sessions.touch(session_id)
    return _view(services, session).model_dump(mode="json")


@router.post("/sessions/{session_id}/close", summary="Close a session")
def close_session(session_id: str, payload: Optional[SessionClose] = None, services: Services = Depends(get_services)):
    reason = (payload or SessionClose()).reason
    session = services.sessions.close(session_id, reason)
    return _view(services, session).model_dump(mode="json")


@router.get("/sessions/{session_id}/summary", summary="Session summary")
def session_summary(session_id: str, services: Services = Depends(get_services)):
    return services.sessions.summary(session_id).model_dump(mode="json")
