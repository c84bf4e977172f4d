"""Domain events for the fieldwork engine.

`publish()` logs each event under its dotted type and appends it to a bounded
in-process buffer that tests read back. Subscribers registered for the type
are then called synchronously, in the publishing thread.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List

logger = logging.getLogger(__name__)

RESPONDENT_REGISTERED = "respondent.registered"
SESSION_OPENED = "session.opened"
SESSION_CLOSED = "session.closed"
RESPONSE_DRAFTED = "response.drafted"
RESPONSE_SUBMITTED = "response.submitted"
RESPONSE_VOIDED = "response.voided"
SURVEY_STATUS_CHANGED = "survey.status_changed"

Subscriber = Callable[[str, Dict[str, Any]], None]

EVENT_BUFFER_SIZE = 1000

# Most recent published events (test visibility); older entries drop off
EVENT_BUFFER: Deque[Dict[str, Any]] = deque(maxlen=EVENT_BUFFER_SIZE)
_SUBSCRIBERS: Dict[str, List[Subscriber]] = defaultdict(list)
_LOCK = threading.Lock()


def subscribe(event_type: str, handler: Subscriber) -> None:
    with _LOCK:
        _SUBSCRIBERS[event_type].append(handler)


def unsubscribe(event_type: str, handler: Subscriber) -> None:
    with _LOCK:
        if handler in _SUBSCRIBERS.get(event_type, []):
            _SUBSCRIBERS[event_type].remove(handler)


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    logger.info("%s payload=%s", event_type, payload, extra={"event_type": event_type})
    with _LOCK:
        EVENT_BUFFER.append({"type": event_type, "payload": dict(payload)})
        handlers = list(_SUBSCRIBERS.get(event_type, []))
    for handler in handlers:
        handler(event_type, dict(payload))


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events; optionally clear the buffer."""
    with _LOCK:
        events = list(EVENT_BUFFER)
        if clear:
            EVENT_BUFFER.clear()
    return events


__all__ = [
    "RESPONDENT_REGISTERED",
    "SESSION_OPENED",
    "SESSION_CLOSED",
    "RESPONSE_DRAFTED",
    "RESPONSE_SUBMITTED",
    "RESPONSE_VOIDED",
    "SURVEY_STATUS_CHANGED",
    "EVENT_BUFFER_SIZE",
    "EVENT_BUFFER",
    "subscribe",
    "unsubscribe",
    "publish",
    "get_buffered_events",
]
