"""Public execute exports for crustasync."""

from __future__ import annotations

from .executor import Executor
from .retry import RetryCancelled, RetryExhausted, RetryPolicy, call_with_retry

__all__ = [
    "Executor",
    "RetryPolicy",
    "RetryCancelled",
    "RetryExhausted",
    "call_with_retry",
]
