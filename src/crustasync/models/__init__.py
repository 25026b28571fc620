"""Public model exports for crustasync."""

from __future__ import annotations

from .entry import Entry, EntryKind, Fingerprint
from .results import ActionResult, ActionStatus, SkipReason
from .snapshot import Snapshot

__all__ = [
    "Entry",
    "EntryKind",
    "Fingerprint",
    "Snapshot",
    "ActionResult",
    "ActionStatus",
    "SkipReason",
]
