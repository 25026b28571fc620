"""Compare two Snapshots into an unordered set of SyncActions."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Optional

from crustasync.models import Entry, EntryKind, Snapshot
from crustasync.util.paths import (
    RelPath,
    ancestors_of,
    format_path,
    is_within,
    path_edit_distance,
)

from .actions import Create, Delete, Move, SourceRef, SyncAction, Update

logger = logging.getLogger(__name__)


def diff(source: Snapshot, dest: Snapshot) -> set[SyncAction]:
    """
    Compute the actions that make ``dest`` match ``source``.

    Steps:
        - paths only in source become Create candidates, paths only in dest
          become Delete candidates
        - paths in both: a kind change is Delete+Create, a file whose
          fingerprint differs is an Update, anything else is left alone
        - Create/Delete candidates sharing a fingerprint, kind and size are
          paired into Moves; directories first, shallowest first, ties broken
          by path edit distance then destination path
        - a directory pair is skipped when its subtree already holds the source
          or target of an accepted Move
        - Deletes under an already deleted directory are dropped

    Action paths are expressed in the destination backend's namespace
    (``dest.base_path`` prefixed); SourceRefs in the source backend's.
    """
    return _Differ(source, dest).run()


class _Differ:
    def __init__(self, source: Snapshot, dest: Snapshot) -> None:
        self._source = source
        self._dest = dest
        self._creates: dict[RelPath, Entry] = {}
        self._deletes: dict[RelPath, Entry] = {}
        self._actions: set[SyncAction] = set()
        self._moved_from: list[RelPath] = []
        self._moved_to: list[RelPath] = []

    def run(self) -> set[SyncAction]:
        self._partition()
        self._detect_moves(EntryKind.DIRECTORY)
        self._detect_moves(EntryKind.FILE)

        for rel, entry in self._creates.items():
            self._actions.add(self._create(rel, entry))

        for rel, entry in self._deletes.items():
            if any(a in self._deletes for a in ancestors_of(rel)):
                continue
            self._actions.add(Delete(path=self._dst(rel), kind=entry.kind))

        logger.debug(
            "Diff %s -> %s: %d actions",
            self._source.root_id,
            self._dest.root_id,
            len(self._actions),
        )
        return self._actions

    def _partition(self) -> None:
        src_entries = self._source.entries
        dst_entries = self._dest.entries

        for rel, src in src_entries.items():
            dst = dst_entries.get(rel)
            if dst is None:
                self._creates[rel] = src
                continue
            if src.kind is not dst.kind:
                self._deletes[rel] = dst
                self._creates[rel] = src
                continue
            if src.is_file and not src.fingerprint.matches(dst.fingerprint):
                self._actions.add(
                    Update(path=self._dst(rel), entry=src, source=self._ref(rel, src))
                )

        for rel, dst in dst_entries.items():
            if rel not in src_entries:
                self._deletes[rel] = dst

    def _detect_moves(self, kind: EntryKind) -> None:
        creates_by_token: dict[tuple, list[RelPath]] = defaultdict(list)
        deletes_by_token: dict[tuple, list[RelPath]] = defaultdict(list)
        for rel, entry in self._creates.items():
            if entry.kind is kind:
                creates_by_token[entry.fingerprint.token].append(rel)
        for rel, entry in self._deletes.items():
            if entry.kind is kind:
                deletes_by_token[entry.fingerprint.token].append(rel)

        candidates: list[tuple[int, int, RelPath, RelPath]] = []
        for token, create_paths in creates_by_token.items():
            for from_rel in deletes_by_token.get(token, ()):
                from_entry = self._deletes[from_rel]
                for to_rel in create_paths:
                    if self._creates[to_rel].size != from_entry.size:
                        continue
                    candidates.append(
                        (len(to_rel), path_edit_distance(from_rel, to_rel), to_rel, from_rel)
                    )

        candidates.sort()
        for _, _, to_rel, from_rel in candidates:
            if to_rel not in self._creates or from_rel not in self._deletes:
                continue
            if self._overlaps_accepted_move(from_rel, to_rel):
                continue
            self._accept_move(from_rel, to_rel)

    def _accept_move(self, from_rel: RelPath, to_rel: RelPath) -> None:
        entry = self._creates.pop(to_rel)
        self._deletes.pop(from_rel)
        self._moved_from.append(from_rel)
        self._moved_to.append(to_rel)

        replacement: list[Create] = [self._create(to_rel, entry)]
        if entry.is_dir:
            for child in self._source.descendants_of(to_rel):
                self._creates.pop(child.path, None)
                replacement.append(self._create(child.path, child))
            for rel in [p for p in self._deletes if is_within(p, from_rel)]:
                del self._deletes[rel]

        logger.debug("Detected move %s -> %s", format_path(from_rel), format_path(to_rel))
        self._actions.add(
            Move(
                from_path=self._dst(from_rel),
                to_path=self._dst(to_rel),
                entry=entry,
                source=self._ref(to_rel, entry) if entry.is_file else None,
                replacement=tuple(replacement),
            )
        )

    def _overlaps_accepted_move(self, from_rel: RelPath, to_rel: RelPath) -> bool:
        """True if the pair's subtrees already hold an accepted Move's source or target."""
        return any(is_within(p, from_rel) for p in self._moved_from) or any(
            is_within(p, to_rel) for p in self._moved_to
        )

    def _create(self, rel: RelPath, entry: Entry) -> Create:
        source: Optional[SourceRef] = self._ref(rel, entry) if entry.is_file else None
        return Create(path=self._dst(rel), entry=entry, source=source)

    def _ref(self, rel: RelPath, entry: Entry) -> SourceRef:
        return SourceRef(
            backend=self._source.backend,
            path=self._source.base_path + rel,
            size=entry.size,
            modified_at=entry.modified_at,
        )

    def _dst(self, rel: RelPath) -> RelPath:
        return self._dest.base_path + rel
