"""Sync actions produced by the Differ and ordered by the Planner."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from crustasync.models import Entry, EntryKind
from crustasync.util.ids import new_op_id
from crustasync.util.paths import RelPath, format_path


class ActionType(str, Enum):
    """Supported sync actions."""

    CREATE = "Create"
    UPDATE = "Update"
    DELETE = "Delete"
    MOVE = "Move"


@dataclass(frozen=True, slots=True)
class SourceRef:
    """What the source backend needs to stream one file."""

    backend: Any = field(compare=False, repr=False)
    path: RelPath
    size: Optional[int] = None
    modified_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Create:
    """
    Create ``path`` on the destination.

    ``source`` is None for directories; files are streamed from it.
    """

    path: RelPath
    entry: Entry
    source: Optional[SourceRef] = None
    op_id: str = field(default_factory=new_op_id, compare=False)

    type = ActionType.CREATE

    @property
    def kind(self) -> EntryKind:
        return self.entry.kind


@dataclass(frozen=True, slots=True)
class Update:
    """Replace the content of the destination file at ``path``."""

    path: RelPath
    entry: Entry
    source: SourceRef
    op_id: str = field(default_factory=new_op_id, compare=False)

    type = ActionType.UPDATE

    @property
    def kind(self) -> EntryKind:
        return EntryKind.FILE


@dataclass(frozen=True, slots=True)
class Delete:
    """Delete ``path`` (recursively for directories) on the destination."""

    path: RelPath
    kind: EntryKind
    op_id: str = field(default_factory=new_op_id, compare=False)

    type = ActionType.DELETE


@dataclass(frozen=True, slots=True)
class Move:
    """
    Rename ``from_path`` to ``to_path`` on the destination.

    ``replacement`` holds the Creates that rebuild ``to_path`` (and its
    subtree) from the source, used when the Planner has to stage this move
    as Delete+Create to break a cycle.
    """

    from_path: RelPath
    to_path: RelPath
    entry: Entry
    source: Optional[SourceRef] = None
    replacement: tuple[Create, ...] = field(default=(), repr=False)
    op_id: str = field(default_factory=new_op_id, compare=False)

    type = ActionType.MOVE

    @property
    def kind(self) -> EntryKind:
        return self.entry.kind


SyncAction = Union[Create, Update, Delete, Move]


def target_of(action: SyncAction) -> Optional[RelPath]:
    """Path an action produces on the destination, if any."""
    if isinstance(action, Move):
        return action.to_path
    if isinstance(action, (Create, Update)):
        return action.path
    return None


def vacated_by(action: SyncAction) -> Optional[RelPath]:
    """Path an action removes from the destination, if any."""
    if isinstance(action, Move):
        return action.from_path
    if isinstance(action, Delete):
        return action.path
    return None


def describe(action: SyncAction) -> str:
    if isinstance(action, Move):
        return f"Move({format_path(action.from_path)} -> {format_path(action.to_path)})"
    return f"{action.type.value}({format_path(action.path)})"


def sort_key(action: SyncAction) -> tuple:
    """Deterministic ordering used for display and tie-breaking."""
    primary = target_of(action) or vacated_by(action) or ()
    secondary = vacated_by(action) or ()
    return (primary, action.type.value, secondary)
