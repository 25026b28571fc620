"""Immutable, path-keyed view of one tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, Optional

from crustasync.errors import ScanError
from crustasync.util.paths import RelPath, format_path, parent_of

from .entry import Entry, EntryKind


@dataclass(frozen=True)
class Snapshot:
    """
    Normalized tree representation of one backend root.

    ``base_path`` is where the snapshot root sits inside its backend; entry
    paths are relative to it.

    Invariants (checked by ``from_entries``):
        - relative paths are unique
        - every entry's parent is the root or a Directory entry
    """

    root_id: str
    entries: Mapping[RelPath, Entry]
    backend: Optional[Any] = field(default=None, compare=False, repr=False)
    base_path: RelPath = ()

    @classmethod
    def from_entries(
        cls,
        root_id: str,
        entries: Iterable[Entry],
        *,
        backend: Optional[Any] = None,
        base_path: RelPath = (),
    ) -> Snapshot:
        by_path: dict[RelPath, Entry] = {}
        for entry in entries:
            if not entry.path:
                raise ScanError("Snapshot entries must not include the root")
            if entry.path in by_path:
                raise ScanError(
                    "Duplicate path in snapshot",
                    details={"root_id": root_id, "path": format_path(entry.path)},
                )
            by_path[entry.path] = entry

        for path in by_path:
            parent = parent_of(path)
            if not parent:
                continue
            parent_entry = by_path.get(parent)
            if parent_entry is None or parent_entry.kind is not EntryKind.DIRECTORY:
                raise ScanError(
                    "Snapshot entry has no parent directory",
                    details={"root_id": root_id, "path": format_path(path)},
                )

        return cls(
            root_id=root_id,
            entries=MappingProxyType(by_path),
            backend=backend,
            base_path=tuple(base_path),
        )

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, path: object) -> bool:
        return path in self.entries

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries.values())

    def get(self, path: RelPath) -> Optional[Entry]:
        return self.entries.get(path)

    def descendants_of(self, path: RelPath) -> list[Entry]:
        """All entries strictly below ``path``, shallowest first."""
        n = len(path)
        found = [
            e for p, e in self.entries.items() if len(p) > n and p[:n] == path
        ]
        found.sort(key=lambda e: (len(e.path), e.path))
        return found
