"""Public report exports for crustasync."""

from __future__ import annotations

from .reporter import (
    EXIT_CANCELLED,
    EXIT_FAILURE,
    EXIT_OK,
    SyncReport,
    build_report,
    format_plan,
)

__all__ = [
    "SyncReport",
    "build_report",
    "format_plan",
    "EXIT_OK",
    "EXIT_FAILURE",
    "EXIT_CANCELLED",
]
