"""SyncPlan model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Mapping

from .actions import SyncAction


@dataclass(frozen=True, slots=True)
class SyncPlan:
    """
    Ordered batches of actions.

    Every action of batch k+1 may assume all of batch k reached a terminal
    state. ``dependencies`` maps an action's ``op_id`` to the ``op_id``s it
    waits for; the Executor uses it to skip dependents of failed actions.
    """

    plan_id: str
    created_at: datetime
    batches: tuple[tuple[SyncAction, ...], ...]
    dependencies: Mapping[str, frozenset[str]] = field(default_factory=dict)
    staged_moves: int = 0

    def __len__(self) -> int:
        return sum(len(batch) for batch in self.batches)

    def __iter__(self) -> Iterator[SyncAction]:
        for batch in self.batches:
            yield from batch

    @property
    def is_empty(self) -> bool:
        return not self.batches

    @property
    def actions(self) -> list[SyncAction]:
        return list(self)
