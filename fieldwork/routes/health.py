"""Liveness probe with a store reachability check."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from fieldwork.logic.document_store import StoreError
from fieldwork.logic.services import Services, get_services

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", summary="Liveness and store reachability")
def health(services: Services = Depends(get_services)):
    try:
        reachable = services.store.ping()
    except StoreError as exc:
        logger.warning("health.store_unreachable error=%s", exc)
        reachable = False
    body = {"status": "ok" if reachable else "degraded", "store": "reachable" if reachable else "unreachable"}
    return JSONResponse(body, status_code=200 if reachable else 503)
