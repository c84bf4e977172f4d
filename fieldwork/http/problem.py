"""Problem+JSON utilities and global exception handlers.

Defines the RFC 7807 media type and handler callables that render engine
errors, request validation failures and unexpected exceptions as
application/problem+json responses.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from fieldwork.http.error_mapping import STORE_UNAVAILABLE, status_for, title_for
from fieldwork.logic.document_store import StoreUnavailable
from fieldwork.logic.errors import FieldworkError

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_response(status: int, title: str, detail: str, **extra: Any) -> JSONResponse:
    body: Dict[str, Any] = {"title": title, "status": status, "detail": detail}
    body.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(jsonable_encoder(body), status_code=status, media_type=PROBLEM_MEDIA_TYPE)


async def handle_fieldwork_error(request: Request, exc: FieldworkError) -> JSONResponse:
    status = status_for(exc)
    log = logger.warning if status >= 500 else logger.info
    log(
        "http.problem code=%s status=%s path=%s",
        exc.code,
        status,
        request.url.path,
        extra={"code": exc.code, "context": exc.context},
    )
    return problem_response(status, title_for(exc), exc.message, code=exc.code, context=exc.context)


async def handle_store_unavailable(request: Request, exc: StoreUnavailable) -> JSONResponse:
    logger.warning("http.store_unavailable path=%s error=%s", request.url.path, exc)
    return problem_response(
        int(STORE_UNAVAILABLE["status"]),
        str(STORE_UNAVAILABLE["title"]),
        str(exc) or "The document store is unavailable",
        code=STORE_UNAVAILABLE["code"],
    )


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        return JSONResponse(exc.detail, status_code=exc.status_code, media_type=PROBLEM_MEDIA_TYPE)
    return problem_response(exc.status_code, "Error", str(exc.detail or ""))


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return problem_response(
        422,
        "Invalid Request",
        "Request validation failed",
        code="REQUEST_VALIDATION_FAILED",
        errors=[{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()],
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("http.unexpected_error path=%s", request.url.path, exc_info=exc)
    return problem_response(500, "Internal Server Error", "An unexpected error occurred")


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_response",
    "handle_fieldwork_error",
    "handle_store_unavailable",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
