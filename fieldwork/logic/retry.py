"""Bounded exponential backoff as an explicit state machine.

    Attempting(n) -> Succeeded
    Attempting(n) -> Waiting(delay) -> Attempting(n + 1)
    Attempting(max) -> Exhausted
    Waiting(delay) -> Cancelled        (cancel event set while waiting)

Only store-level transient errors are retried. Domain errors and unique-index
conflicts describe stored state and are raised to the caller immediately.
Waiting goes through the injected clock so tests can run the schedule
without sleeping.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Tuple, Type, TypeVar

from fieldwork.logic.clock import SystemClock
from fieldwork.logic.document_store import DocumentConflict
from fieldwork.logic.errors import FieldworkError, SubmissionCancelled, SubmissionFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryState:
    ATTEMPTING = "attempting"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 2.0
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number `attempt` (1-based)."""
        return self.initial_delay * (self.multiplier ** (attempt - 1))


@dataclass(frozen=True)
class RetryTransition:
    state: str
    attempt: int
    delay: Optional[float] = None
    error: Optional[BaseException] = None


Observer = Callable[[RetryTransition], None]

NON_RETRYABLE: Tuple[Type[BaseException], ...] = (FieldworkError, DocumentConflict)


class RetryRunner(Generic[T]):
    def __init__(
        self,
        policy: RetryPolicy,
        clock: Optional[SystemClock] = None,
        cancel: Optional[threading.Event] = None,
        observer: Optional[Observer] = None,
        operation_name: str = "submission",
    ) -> None:
        self.policy = policy
        self.clock = clock or SystemClock()
        self.cancel = cancel
        self.observer = observer
        self.operation_name = operation_name
        self.state = RetryState.ATTEMPTING
        self.attempts = 0
        self.last_error: Optional[BaseException] = None

    def _transition(self, state: str, delay: Optional[float] = None, error: Optional[BaseException] = None) -> None:
        self.state = state
        logger.info(
            "%s.retry.%s attempt=%d delay=%s error=%r",
            self.operation_name,
            state,
            self.attempts,
            delay,
            error,
            extra={"attempt": self.attempts, "retry_state": state},
        )
        if self.observer is not None:
            self.observer(RetryTransition(state, self.attempts, delay, error))

    def run(self, operation: Callable[[int], T]) -> T:
        """Call `operation(attempt)` until it succeeds, the policy is exhausted or the run is cancelled."""
        while True:
            self.attempts += 1
            self._transition(RetryState.ATTEMPTING)
            try:
                result = operation(self.attempts)
            except NON_RETRYABLE:
                raise
            except Exception as exc:
                self.last_error = exc
                if self.attempts >= self.policy.max_attempts:
                    self._transition(RetryState.EXHAUSTED, error=exc)
                    raise SubmissionFailed(self.attempts, exc) from exc
                delay = self.policy.delay_for(self.attempts)
                self._transition(RetryState.WAITING, delay=delay, error=exc)
                if not self.clock.wait(delay, self.cancel):
                    self._transition(RetryState.CANCELLED, error=exc)
                    raise SubmissionCancelled(self.attempts, exc) from exc
                continue
            self._transition(RetryState.SUCCEEDED)
            return result


__all__ = ["RetryState", "RetryPolicy", "RetryTransition", "RetryRunner", "NON_RETRYABLE"]
