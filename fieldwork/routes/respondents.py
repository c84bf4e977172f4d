"""Respondent registration and lookup routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from fieldwork.logic.services import Services, get_services
from fieldwork.models.respondent import RespondentCreate

router = APIRouter()


@router.post("/respondents", summary="Register an anonymous respondent")
def register_respondent(payload: RespondentCreate, services: Services = Depends(get_services)):
    respondent = services.respondents.register(payload)
    return JSONResponse(respondent.model_dump(mode="json"), status_code=201)


@router.get("/respondents", summary="List or search respondents")
def list_respondents(
    enumerator_id: Optional[str] = None,
    pseudonym: Optional[str] = None,
    admin_area: Optional[str] = None,
    age_range: Optional[str] = None,
    sex: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
):
    page = services.respondents.search(enumerator_id, pseudonym, admin_area, age_range, sex, limit, offset)
    return jsonable_encoder(page)


@router.get("/respondents/stats", summary="Demographic counts for an enumerator")
def respondent_stats(enumerator_id: str, services: Services = Depends(get_services)):
    return services.respondents.stats(enumerator_id)


@router.get("/respondents/capacity", summary="Pseudonym capacity")
def respondent_capacity(services: Services = Depends(get_services)):
    return services.respondents.capacity()


@router.get("/respondents/{respondent_id}", summary="Get a respondent")
def get_respondent(respondent_id: str, services: Services = Depends(get_services)):
    return services.respondents.get(respondent_id).model_dump(mode="json")
