"""Retry policy for backend calls made by the Executor."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from crustasync.errors import BackendError

T = TypeVar("T")


class RetryCancelled(Exception):
    """Raised when the cancel event fires during a backoff delay."""

    def __init__(self, last_error: BackendError, attempts: int) -> None:
        super().__init__(str(last_error))
        self.last_error = last_error
        self.attempts = attempts


class RetryExhausted(Exception):
    """Raised when a call failed terminally; carries the attempt count."""

    def __init__(self, last_error: BackendError, attempts: int) -> None:
        super().__init__(str(last_error))
        self.last_error = last_error
        self.attempts = attempts


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay_sec: float = 1.0
    multiplier: float = 2.0
    max_delay_sec: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        delay = self.initial_delay_sec * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_delay_sec)


def call_with_retry(
    func: Callable[[], T],
    policy: RetryPolicy,
    cancel_event: threading.Event,
    *,
    on_retry: Optional[Callable[[int, BackendError, float], None]] = None,
) -> tuple[T, int]:
    """
    Run ``func`` until it succeeds or fails terminally.

    Only RateLimited/Transient errors are retried. The backoff delay waits on
    ``cancel_event`` so an interrupt ends it early.

    Returns:
        (result, attempts)

    Raises:
        RetryExhausted: non-retryable error, or attempts used up.
        RetryCancelled: cancel_event was set during a backoff delay.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return func(), attempt
        except BackendError as exc:
            if not exc.is_retryable or attempt >= policy.max_attempts:
                raise RetryExhausted(exc, attempt) from exc

            delay = policy.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            if cancel_event.wait(delay):
                raise RetryCancelled(exc, attempt) from exc
