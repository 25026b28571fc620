"""Public plan exports for crustasync."""

from __future__ import annotations

from .actions import (
    ActionType,
    Create,
    Delete,
    Move,
    SourceRef,
    SyncAction,
    Update,
    describe,
    target_of,
    vacated_by,
)
from .differ import diff
from .planner import batch_of, plan
from .sync_plan import SyncPlan

__all__ = [
    "ActionType",
    "Create",
    "Update",
    "Delete",
    "Move",
    "SourceRef",
    "SyncAction",
    "SyncPlan",
    "describe",
    "target_of",
    "vacated_by",
    "diff",
    "plan",
    "batch_of",
]
