"""Public backend exports for crustasync."""

from __future__ import annotations

from .base import (
    Backend,
    BackendKind,
    ListedItem,
    MoveOutcome,
    copy_then_delete,
)
from .drive import DriveBackend
from .factory import open_backend, parse_location
from .fingerprint_cache import FingerprintCache
from .local import LocalBackend

__all__ = [
    "Backend",
    "BackendKind",
    "ListedItem",
    "MoveOutcome",
    "copy_then_delete",
    "LocalBackend",
    "DriveBackend",
    "FingerprintCache",
    "open_backend",
    "parse_location",
]
