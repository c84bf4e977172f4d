"""FastAPI application factory for the fieldwork service."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from fieldwork.config import AppConfig, load_config
from fieldwork.db.base import get_engine
from fieldwork.db.migrations_runner import apply_migrations
from fieldwork.http.problem import (
    handle_fieldwork_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_store_unavailable,
    handle_unexpected_error,
)
from fieldwork.http.request_id import RequestIdMiddleware
from fieldwork.logging_setup import configure_logging
from fieldwork.logic.clock import SystemClock
from fieldwork.logic.document_store import DocumentStore, StoreUnavailable
from fieldwork.logic.errors import FieldworkError
from fieldwork.logic.repository_documents import SqlDocumentStore
from fieldwork.logic.services import build_services
from fieldwork.routes import api_router, health_router

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[DocumentStore] = None,
    clock: Optional[SystemClock] = None,
) -> FastAPI:
    """Build the app over `store`, or over a SQL store at `config.database.dsn`."""
    config = config or load_config()
    configure_logging(config.log_level)

    engine = None
    if store is None:
        engine = get_engine(config.database.dsn)
        store = SqlDocumentStore(engine)

    app = FastAPI(title="Fieldwork Survey Service")
    app.state.config = config
    app.state.services = build_services(config, store, clock)

    app.add_exception_handler(FieldworkError, handle_fieldwork_error)
    app.add_exception_handler(StoreUnavailable, handle_store_unavailable)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["Content-Type", "X-Request-Id"],
        expose_headers=["X-Request-Id"],
    )
    app.add_middleware(RequestIdMiddleware)

    if engine is not None and config.auto_apply_migrations:

        @app.on_event("startup")
        def _apply_migrations() -> None:
            applied = apply_migrations(engine)
            logger.info("startup.migrations applied=%s", applied)

    app.include_router(api_router)
    app.include_router(health_router)
    logger.info(
        "app.created store=%s timeout_minutes=%s max_attempts=%s",
        type(store).__name__,
        config.sessions.timeout_minutes,
        config.submissions.max_attempts,
    )
    return app


__all__ = ["create_app"]
