"""Backend capability interface shared by the Local and RemoteDrive variants."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import BinaryIO, Optional, Protocol, runtime_checkable

from crustasync.errors import BackendError
from crustasync.models import EntryKind
from crustasync.util.paths import RelPath, format_path

logger = logging.getLogger(__name__)


class BackendKind(str, Enum):
    LOCAL = "Local"
    REMOTE_DRIVE = "RemoteDrive"


@dataclass(frozen=True, slots=True)
class ListedItem:
    """One child returned by ``Backend.list``."""

    name: str
    kind: EntryKind
    size: Optional[int]
    modified_at: Optional[datetime]
    fingerprint_hint: Optional[str] = None


@dataclass(frozen=True, slots=True)
class MoveOutcome:
    """
    Result of ``Backend.move``.

    ``native`` is False when the backend had to copy then delete. ``partial``
    is set when the copy succeeded but the delete did not; the destination then
    holds a duplicate (no data is lost) and ``detail`` says why.
    """

    native: bool = True
    partial: bool = False
    detail: Optional[str] = None


@runtime_checkable
class Backend(Protocol):
    """
    Uniform capability set over one storage namespace.

    All paths are relative to the backend root. Operations raise BackendError
    subclasses and never retry; retry policy belongs to the Executor.
    Implementations must be safe for concurrent use from worker threads.
    """

    kind: BackendKind
    root_id: str

    def list(self, dir_path: RelPath) -> list[ListedItem]: ...

    def read_content(self, path: RelPath) -> BinaryIO: ...

    def write_content(
        self,
        path: RelPath,
        stream: BinaryIO,
        expected_size: Optional[int],
        *,
        modified_at: Optional[datetime] = None,
    ) -> None: ...

    def make_directory(self, path: RelPath) -> None: ...

    def delete(self, path: RelPath) -> None: ...

    def move(self, from_path: RelPath, to_path: RelPath) -> MoveOutcome: ...

    def content_digest(self, path: RelPath) -> Optional[str]: ...


def copy_then_delete(
    backend: Backend,
    from_path: RelPath,
    to_path: RelPath,
    kind: EntryKind,
) -> MoveOutcome:
    """
    Degraded move for backends without a usable native rename.

    Copies the subtree at ``from_path`` through the backend's own capability
    set (parents before children), then deletes the source. A failing copy
    raises; a failing delete is reported through ``MoveOutcome.partial``.
    """
    logger.debug("Copy+delete move %s -> %s", format_path(from_path), format_path(to_path))

    pending: list[tuple[RelPath, RelPath, EntryKind, Optional[ListedItem]]] = [
        (from_path, to_path, kind, None)
    ]
    while pending:
        src, dst, src_kind, item = pending.pop()
        if src_kind is EntryKind.FILE:
            with backend.read_content(src) as stream:
                backend.write_content(
                    dst,
                    stream,
                    item.size if item else None,
                    modified_at=item.modified_at if item else None,
                )
            continue

        backend.make_directory(dst)
        for child in backend.list(src):
            pending.append((src + (child.name,), dst + (child.name,), child.kind, child))

    try:
        backend.delete(from_path)
    except BackendError as exc:
        logger.warning(
            "PartialMove: copied %s to %s but could not delete the source: %s",
            format_path(from_path),
            format_path(to_path),
            exc,
        )
        return MoveOutcome(native=False, partial=True, detail=str(exc))

    return MoveOutcome(native=False)
