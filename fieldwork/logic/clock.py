"""Wall clock used for session timeouts and submission backoff.

`wait()` doubles as the cancellation point of the retry runner: it returns
early, with False, once the supplied event is set.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Optional


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def wait(self, seconds: float, cancel: Optional[threading.Event] = None) -> bool:
        """Block for `seconds`; return False if `cancel` fired first."""
        if seconds <= 0:
            return not (cancel is not None and cancel.is_set())
        if cancel is None:
            threading.Event().wait(seconds)
            return True
        return not cancel.wait(seconds)


def format_timestamp(dt: datetime) -> str:
    """Format an RFC3339 UTC timestamp with microseconds and trailing 'Z'.

    Fixed width so stored timestamps sort lexicographically.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


__all__ = ["SystemClock", "format_timestamp", "parse_timestamp"]
