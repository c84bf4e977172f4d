"""Wiring of engine components for one application instance.

`build_services()` assembles the respondent registry, session manager, survey
catalog and submission pipeline over a single document store and clock, with
tunables taken from `AppConfig`. Route handlers reach the container through
`get_services()`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request

from fieldwork.config import AppConfig
from fieldwork.logic.clock import SystemClock
from fieldwork.logic.completion import CompletionIndex
from fieldwork.logic.document_store import DocumentStore
from fieldwork.logic.respondent_codes import RespondentCodeAllocator
from fieldwork.logic.respondents import RespondentRegistry
from fieldwork.logic.retry import RetryPolicy
from fieldwork.logic.sessions import SessionLifecycleManager
from fieldwork.logic.submissions import SubmissionPipeline
from fieldwork.logic.surveys import SurveyCatalog


@dataclass
class Services:
    config: AppConfig
    store: DocumentStore
    clock: SystemClock
    respondents: RespondentRegistry
    sessions: SessionLifecycleManager
    surveys: SurveyCatalog
    completion: CompletionIndex
    submissions: SubmissionPipeline


def build_services(config: AppConfig, store: DocumentStore, clock: Optional[SystemClock] = None) -> Services:
    clock = clock or SystemClock()
    completion = CompletionIndex(store)
    allocator = RespondentCodeAllocator(store, max_count=config.respondents.max_count)
    policy = RetryPolicy(
        max_attempts=config.submissions.max_attempts,
        initial_delay=config.submissions.initial_delay_seconds,
        multiplier=config.submissions.multiplier,
    )
    return Services(
        config=config,
        store=store,
        clock=clock,
        respondents=RespondentRegistry(
            store, allocator, clock, allocation_attempts=config.respondents.allocation_attempts
        ),
        sessions=SessionLifecycleManager(
            store,
            clock,
            timeout=timedelta(minutes=config.sessions.timeout_minutes),
            warning_window=timedelta(minutes=config.sessions.warning_minutes),
            poll_seconds=config.sessions.poll_seconds,
            completion=completion,
        ),
        surveys=SurveyCatalog(store, clock),
        completion=completion,
        submissions=SubmissionPipeline(store, completion, clock, policy),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the container attached at startup."""
    return request.app.state.services


__all__ = ["Services", "build_services", "get_services"]
