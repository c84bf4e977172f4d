"""Session lifecycle: open, touch, close, and lazily derived timeout state.

A session is `open` until an explicit `close()` moves it to `closed` or
`timeout`; both are terminal. Inactivity is measured from `updated_at`, which
every user interaction refreshes through `touch()`. Timeout is never driven
by a timer: each read re-derives it from `(now, updated_at)`, and the first
caller that observes `has_timed_out` commits it with `close(..., "timeout")`.

At most one open session per enumerator. The lookup in `create()` is only a
hint; the partial unique index on `sessions(enumerator_id) WHERE status =
'open'` decides, and its conflict is reported as `ActiveSessionExists`.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional

from fieldwork.logic.clock import SystemClock, format_timestamp
from fieldwork.logic.completion import CompletionIndex
from fieldwork.logic.document_store import (
    RESPONDENTS,
    RESPONSES,
    SESSIONS,
    DocumentConflict,
    DocumentNotFound,
    DocumentStore,
)
from fieldwork.logic.errors import ActiveSessionExists, AlreadyClosed, InvalidTransition, NotFound
from fieldwork.logic.events import SESSION_CLOSED, SESSION_OPENED, publish
from fieldwork.models.session import (
    CloseReason,
    Session,
    SessionActivity,
    SessionStatus,
    SessionSummary,
)

logger = logging.getLogger(__name__)

SESSION_TIMEOUT = timedelta(hours=2)
WARNING_WINDOW = timedelta(minutes=15)
# How often clients should re-read activity to refresh the countdown
POLL_SECONDS = 10


class SessionLifecycleManager:
    def __init__(
        self,
        store: DocumentStore,
        clock: Optional[SystemClock] = None,
        timeout: timedelta = SESSION_TIMEOUT,
        warning_window: timedelta = WARNING_WINDOW,
        poll_seconds: int = POLL_SECONDS,
        completion: Optional[CompletionIndex] = None,
    ) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        self.timeout = timeout
        self.warning_window = warning_window
        self.poll_seconds = poll_seconds
        self.completion = completion or CompletionIndex(store)

    # Reads

    def get(self, session_id: str) -> Session:
        try:
            return Session.from_document(self.store.get(SESSIONS, session_id))
        except DocumentNotFound:
            raise NotFound(SESSIONS, session_id) from None

    def get_active(self, enumerator_id: str) -> Optional[Session]:
        rows = self.store.list(
            SESSIONS,
            {"enumerator_id": enumerator_id, "status": SessionStatus.OPEN},
            order=["-start_time"],
            limit=1,
        )
        return Session.from_document(rows[0]) if rows else None

    def list(self, enumerator_id: str, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        filters: Dict[str, Any] = {"enumerator_id": enumerator_id}
        if status:
            filters["status"] = status
        rows = self.store.list(SESSIONS, filters, order=["-start_time"], limit=limit, offset=offset)
        return {
            "sessions": [Session.from_document(r) for r in rows],
            "total": self.store.count(SESSIONS, filters),
            "limit": limit,
            "offset": offset,
        }

    def for_respondent(self, respondent_id: str, limit: int = 10, offset: int = 0) -> Dict[str, Any]:
        filters = {"respondent_id": respondent_id}
        rows = self.store.list(SESSIONS, filters, order=["-start_time"], limit=limit, offset=offset)
        return {
            "sessions": [Session.from_document(r) for r in rows],
            "total": self.store.count(SESSIONS, filters),
            "limit": limit,
            "offset": offset,
        }

    # Writes

    def create(self, respondent_id: str, enumerator_id: str, metadata: Optional[Dict[str, Any]] = None) -> Session:
        existing = self.get_active(enumerator_id)
        if existing is not None:
            raise ActiveSessionExists(enumerator_id, existing.id)
        try:
            self.store.get(RESPONDENTS, respondent_id)
        except DocumentNotFound:
            raise NotFound(RESPONDENTS, respondent_id) from None

        now = self.clock.now()
        session = Session(
            id=uuid.uuid4().hex,
            respondent_id=respondent_id,
            enumerator_id=enumerator_id,
            start_time=now,
            end_time=None,
            status=SessionStatus.OPEN,
            created_at=now,
            updated_at=now,
            metadata=metadata or {},
        )
        try:
            stored = self.store.create(SESSIONS, session.to_document(), session.id)
        except DocumentConflict as exc:
            logger.info("session.create_conflict enumerator_id=%s index=%s", enumerator_id, exc.index)
            winner = self.get_active(enumerator_id)
            raise ActiveSessionExists(enumerator_id, winner.id if winner else None) from exc
        created = Session.from_document(stored)
        logger.info("session.created session_id=%s enumerator_id=%s", created.id, enumerator_id)
        publish(SESSION_OPENED, {"session_id": created.id, "respondent_id": respondent_id, "enumerator_id": enumerator_id})
        return created

    def touch(self, session_id: str) -> Session:
        """Record user activity; the only way to push the timeout back.

        A session already past its timeout cannot be revived: the timeout is
        committed first and the touch fails with AlreadyClosed.
        """
        expired = self.expire_if_timed_out(session_id)
        if not expired.is_open:
            raise AlreadyClosed(session_id, expired.status)
        now = self.clock.now()
        try:
            stored = self.store.update(
                SESSIONS,
                session_id,
                {"updated_at": format_timestamp(now)},
                expected={"status": SessionStatus.OPEN},
            )
        except DocumentNotFound:
            raise NotFound(SESSIONS, session_id) from None
        except DocumentConflict:
            current = self.get(session_id)
            raise AlreadyClosed(session_id, current.status) from None
        return Session.from_document(stored)

    def close(self, session_id: str, reason: str = CloseReason.MANUAL) -> Session:
        final_status = SessionStatus.TIMEOUT if reason == CloseReason.TIMEOUT else SessionStatus.CLOSED
        current = self.get(session_id)
        if reason not in CloseReason.VALUES:
            raise InvalidTransition(current.status, reason, subject="session")
        if not current.is_open:
            raise AlreadyClosed(session_id, current.status, final_status)
        now = format_timestamp(self.clock.now())
        try:
            # Conditional on status so a racing close loses with AlreadyClosed
            stored = self.store.update(
                SESSIONS,
                session_id,
                {"status": final_status, "end_time": now, "updated_at": now},
                expected={"status": SessionStatus.OPEN},
            )
        except DocumentConflict:
            latest = self.get(session_id)
            raise AlreadyClosed(session_id, latest.status, final_status) from None
        closed = Session.from_document(stored)
        logger.info("session.closed session_id=%s reason=%s status=%s", session_id, reason, final_status)
        publish(SESSION_CLOSED, {"session_id": session_id, "reason": reason, "status": final_status})
        return closed

    def expire_if_timed_out(self, session_id: str) -> Session:
        """Commit the timeout transition if inactivity has exceeded the limit."""
        session = self.get(session_id)
        if not self.has_timed_out(session):
            return session
        try:
            return self.close(session_id, CloseReason.TIMEOUT)
        except AlreadyClosed:
            # Someone else committed first; report what they stored
            return self.get(session_id)

    # Derived timeout state

    def inactivity(self, session: Session) -> timedelta:
        return self.clock.now() - session.updated_at

    def time_remaining(self, session: Session) -> timedelta:
        if not session.is_open:
            return timedelta(0)
        return max(timedelta(0), self.timeout - self.inactivity(session))

    def is_near_timeout(self, session: Session) -> bool:
        if not session.is_open:
            return False
        elapsed = self.inactivity(session)
        return self.timeout - self.warning_window <= elapsed < self.timeout

    def has_timed_out(self, session: Session) -> bool:
        if not session.is_open:
            return False
        return self.inactivity(session) >= self.timeout

    def activity(self, session: Session) -> SessionActivity:
        return SessionActivity(
            session_id=session.id,
            last_activity_at=session.updated_at,
            time_remaining_seconds=self.time_remaining(session).total_seconds(),
            is_near_timeout=self.is_near_timeout(session),
            has_timed_out=self.has_timed_out(session),
            poll_seconds=self.poll_seconds,
        )

    def summary(self, session_id: str) -> SessionSummary:
        session = self.get(session_id)
        pseudonym = None
        try:
            pseudonym = self.store.get(RESPONDENTS, session.respondent_id).get("pseudonym")
        except DocumentNotFound:
            logger.warning("session.summary.respondent_missing session_id=%s", session_id)
        end = session.end_time or self.clock.now()
        return SessionSummary(
            session=session,
            respondent_pseudonym=pseudonym,
            completed_surveys=self.completion.completed_surveys(session_id),
            response_count=self.store.count(RESPONSES, {"session_id": session_id}),
            duration_seconds=(end - session.start_time).total_seconds(),
        )


__all__ = ["SESSION_TIMEOUT", "WARNING_WINDOW", "POLL_SECONDS", "SessionLifecycleManager"]
