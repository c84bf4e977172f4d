"""Response submission, review and voiding routes.

Submission runs synchronously, including its backoff waits, so a request can
take up to the cumulative retry delay before it answers.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from fieldwork.logic.services import Services, get_services
from fieldwork.models.response import SubmissionInput, VoidRequest

router = APIRouter()


@router.post("/responses", summary="Submit a completed survey response")
def submit_response(payload: SubmissionInput, services: Services = Depends(get_services)):
    services.surveys.validate_active(payload.survey_id)
    required = services.surveys.required_question_ids(payload.survey_id)
    result = services.submissions.submit(payload, required)
    return JSONResponse(result.model_dump(mode="json"), status_code=201)


@router.post("/responses/drafts", summary="Save a draft response")
def save_draft(payload: SubmissionInput, services: Services = Depends(get_services)):
    result = services.submissions.save_draft(payload)
    return JSONResponse(result.model_dump(mode="json"), status_code=201)


@router.post("/responses/{response_id}/submit", summary="Promote a draft to submitted")
def submit_draft(response_id: str, services: Services = Depends(get_services)):
    draft = services.submissions.get(response_id)
    services.surveys.validate_active(draft.survey_id)
    required = services.surveys.required_question_ids(draft.survey_id)
    return services.submissions.submit_draft(response_id, required).model_dump(mode="json")


@router.post("/responses/{response_id}/void", summary="Void a submitted response")
def void_response(response_id: str, payload: VoidRequest, services: Services = Depends(get_services)):
    response = services.submissions.void_response(response_id, payload.voided_by, payload.void_reason)
    return response.model_dump(mode="json")


@router.get("/responses", summary="Admin review listing")
def list_responses(
    survey_id: Optional[str] = None,
    status: Optional[str] = None,
    session_id: Optional[str] = None,
    enumerator_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
):
    page = services.submissions.list(survey_id, status, session_id, enumerator_id, limit, offset)
    return jsonable_encoder(page)


@router.get("/responses/{response_id}", summary="Response with its answers")
def get_response(response_id: str, services: Services = Depends(get_services)):
    return services.submissions.with_answers(response_id).model_dump(mode="json")
