"""Builds comparable Snapshots by walking a backend namespace."""

from __future__ import annotations

import hashlib
import logging
from collections import defaultdict, deque
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from crustasync.backend.base import Backend, ListedItem
from crustasync.errors import BackendError, ScanError
from crustasync.models import Entry, EntryKind, Fingerprint, Snapshot
from crustasync.util.paths import ROOT, RelPath, format_path

logger = logging.getLogger(__name__)


class Snapshotter:
    """
    Walks a backend with an explicit work queue of directories.

    File fingerprints come from the listing's hint when the backend provides
    one (Drive ``sha256Checksum``), otherwise from ``Backend.content_digest``,
    computed on a bounded thread pool. A backend that cannot produce a digest
    leaves the entry with the weaker ``(size, modified_at)`` fingerprint.
    Directory fingerprints hash their children's names and tokens, bottom-up.
    """

    def __init__(self, *, concurrency: int = 4) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._concurrency = concurrency

    def build(self, backend: Backend, root_path: RelPath = ROOT) -> Snapshot:
        """
        Snapshot the tree under ``root_path`` of ``backend``.

        Raises:
            ScanError: if any directory cannot be listed or any file cannot be
                fingerprinted. No partial snapshot is returned.
        """
        root_path = tuple(root_path)
        listed = self._walk(backend, root_path)
        file_digests = self._fingerprint_files(backend, root_path, listed)

        entries: dict[RelPath, Entry] = {}
        children: dict[RelPath, list[RelPath]] = defaultdict(list)
        for rel, item in listed:
            children[rel[:-1]].append(rel)
            if item.kind is EntryKind.FILE:
                fingerprint = Fingerprint(
                    digest=file_digests.get(rel),
                    size=item.size,
                    modified_at=item.modified_at,
                )
                entries[rel] = Entry(
                    path=rel,
                    kind=EntryKind.FILE,
                    size=item.size,
                    modified_at=item.modified_at,
                    fingerprint=fingerprint,
                )

        directories = [(rel, item) for rel, item in listed if item.kind is EntryKind.DIRECTORY]
        directories.sort(key=lambda pair: len(pair[0]), reverse=True)
        for rel, item in directories:
            digest = _directory_digest(entries, children.get(rel, []))
            entries[rel] = Entry(
                path=rel,
                kind=EntryKind.DIRECTORY,
                modified_at=item.modified_at,
                fingerprint=Fingerprint(digest=digest),
            )

        snapshot = Snapshot.from_entries(
            backend.root_id,
            entries.values(),
            backend=backend,
            base_path=root_path,
        )
        logger.info(
            "Snapshot of %s%s: %d entries (%d directories)",
            backend.root_id,
            format_path(root_path) if root_path else "",
            len(snapshot),
            len(directories),
        )
        return snapshot

    def _walk(self, backend: Backend, root_path: RelPath) -> list[tuple[RelPath, ListedItem]]:
        listed: list[tuple[RelPath, ListedItem]] = []
        queue: deque[RelPath] = deque([ROOT])

        while queue:
            rel_dir = queue.popleft()
            try:
                items = backend.list(root_path + rel_dir)
            except BackendError as exc:
                raise ScanError(
                    f"Cannot list {format_path(rel_dir)} on {backend.root_id}: {exc}",
                    details={"root_id": backend.root_id, "path": format_path(rel_dir)},
                    cause=exc,
                ) from exc

            for item in items:
                rel = rel_dir + (item.name,)
                listed.append((rel, item))
                if item.kind is EntryKind.DIRECTORY:
                    queue.append(rel)

        return listed

    def _fingerprint_files(
        self,
        backend: Backend,
        root_path: RelPath,
        listed: list[tuple[RelPath, ListedItem]],
    ) -> dict[RelPath, Optional[str]]:
        digests: dict[RelPath, Optional[str]] = {}
        pending: list[RelPath] = []
        for rel, item in listed:
            if item.kind is not EntryKind.FILE:
                continue
            if item.fingerprint_hint:
                digests[rel] = item.fingerprint_hint
            else:
                pending.append(rel)

        if not pending:
            return digests

        logger.debug("Computing %d content digests on %s", len(pending), backend.root_id)
        with ThreadPoolExecutor(max_workers=self._concurrency) as pool:
            futures = {
                rel: pool.submit(backend.content_digest, root_path + rel) for rel in pending
            }
            for rel, future in futures.items():
                try:
                    digests[rel] = future.result()
                except BackendError as exc:
                    raise ScanError(
                        f"Cannot fingerprint {format_path(rel)} on {backend.root_id}: {exc}",
                        details={"root_id": backend.root_id, "path": format_path(rel)},
                        cause=exc,
                    ) from exc

        return digests


def _directory_digest(entries: dict[RelPath, Entry], child_paths: list[RelPath]) -> str:
    h = hashlib.sha256()
    for path in sorted(child_paths):
        child = entries[path]
        h.update(child.name.encode("utf-8"))
        h.update(b"\0")
        h.update(repr(child.fingerprint.token).encode("utf-8"))
        h.update(b"\n")
    return h.hexdigest()


def build_snapshot(backend: Backend, root_path: RelPath = ROOT, *, concurrency: int = 4) -> Snapshot:
    return Snapshotter(concurrency=concurrency).build(backend, root_path)
