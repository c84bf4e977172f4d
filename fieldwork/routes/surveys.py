"""Survey authoring and catalog routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from fieldwork.logic.services import Services, get_services
from fieldwork.models.survey import OptionCreate, QuestionCreate, SurveyCreate, SurveyUpdate

router = APIRouter()


@router.post("/surveys", summary="Create a draft survey")
def create_survey(payload: SurveyCreate, services: Services = Depends(get_services)):
    survey = services.surveys.create(payload)
    return JSONResponse(survey.model_dump(mode="json"), status_code=201)


@router.get("/surveys", summary="List locked surveys available for data collection")
def list_surveys(
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
):
    return jsonable_encoder(services.surveys.list_active(limit, offset, search))


@router.get("/surveys/{survey_id}", summary="Survey with ordered questions and options")
def get_survey(survey_id: str, services: Services = Depends(get_services)):
    return services.surveys.get_with_questions(survey_id).model_dump(mode="json")


@router.patch("/surveys/{survey_id}", summary="Update a survey within its lifecycle rules")
def update_survey(survey_id: str, payload: SurveyUpdate, services: Services = Depends(get_services)):
    survey = services.surveys.update(survey_id, payload.model_dump(exclude_unset=True))
    return survey.model_dump(mode="json")


@router.post("/surveys/{survey_id}/questions", summary="Add a question to a draft survey")
def add_question(survey_id: str, payload: QuestionCreate, services: Services = Depends(get_services)):
    question = services.surveys.add_question(survey_id, payload)
    return JSONResponse(question.model_dump(mode="json"), status_code=201)


@router.post("/questions/{question_id}/options", summary="Add an option to a question of a draft survey")
def add_option(question_id: str, payload: OptionCreate, services: Services = Depends(get_services)):
    option = services.surveys.add_option(question_id, payload)
    return JSONResponse(option.model_dump(mode="json"), status_code=201)


@router.get("/surveys/{survey_id}/stats", summary="Response counts by status")
def survey_stats(survey_id: str, services: Services = Depends(get_services)):
    services.surveys.get(survey_id)
    return services.surveys.stats(survey_id).model_dump()


@router.get("/surveys/{survey_id}/completion", summary="Has the survey been submitted in a session")
def survey_completion(survey_id: str, session_id: str, services: Services = Depends(get_services)):
    return {
        "survey_id": survey_id,
        "session_id": session_id,
        "completed": services.completion.is_completed(session_id, survey_id),
    }
