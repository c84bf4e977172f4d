"""Central error mapping for the HTTP layer.

Single source of truth for turning engine errors into problem+json titles and
HTTP statuses. Handlers must look statuses up here instead of hardcoding
numbers.
"""

from __future__ import annotations

from typing import Dict

from fieldwork.logic.errors import FieldworkError

# Error kind -> default status and title
KIND_STATUS_MAP: Dict[str, Dict[str, object]] = {
    "validation": {"status": 422, "title": "Validation Failed"},
    "conflict": {"status": 409, "title": "State Conflict"},
    "transient": {"status": 503, "title": "Temporarily Unavailable"},
    "capacity": {"status": 507, "title": "Capacity Exceeded"},
    "not_found": {"status": 404, "title": "Not Found"},
    "internal": {"status": 500, "title": "Internal Server Error"},
}

# Per-code overrides where a code does not follow its kind's default
CODE_STATUS_OVERRIDES: Dict[str, int] = {}

STORE_UNAVAILABLE = {"code": "STORE_UNAVAILABLE", "status": 503, "title": "Temporarily Unavailable"}


def status_for(exc: FieldworkError) -> int:
    if exc.code in CODE_STATUS_OVERRIDES:
        return CODE_STATUS_OVERRIDES[exc.code]
    return int(KIND_STATUS_MAP.get(exc.kind, KIND_STATUS_MAP["internal"])["status"])


def title_for(exc: FieldworkError) -> str:
    return str(KIND_STATUS_MAP.get(exc.kind, KIND_STATUS_MAP["internal"])["title"])


__all__ = [
    "KIND_STATUS_MAP",
    "CODE_STATUS_OVERRIDES",
    "STORE_UNAVAILABLE",
    "status_for",
    "title_for",
]
