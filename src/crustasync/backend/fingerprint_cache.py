"""Optional persisted cache of local content digests."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from typing import Optional

logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1


class FingerprintCache:
    """
    Maps absolute file paths to ``{size, mtime_ns, digest}``.

    A cached digest is only returned while the file's size and mtime_ns are
    unchanged, so the cache never alters which files are considered equal.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._entries: dict[str, dict] = {}
        self._dirty = False

    @classmethod
    def load(cls, path: str) -> FingerprintCache:
        cache = cls(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except FileNotFoundError:
            return cache
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable fingerprint cache %s: %s", path, exc)
            return cache

        if isinstance(payload, dict) and payload.get("version") == _FORMAT_VERSION:
            entries = payload.get("entries")
            if isinstance(entries, dict):
                cache._entries = entries
        logger.debug("Loaded %d cached fingerprints from %s", len(cache._entries), path)
        return cache

    @property
    def path(self) -> str:
        return self._path

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def lookup(self, abs_path: str, size: int, mtime_ns: int) -> Optional[str]:
        with self._lock:
            record = self._entries.get(abs_path)
        if not record:
            return None
        if record.get("size") != size or record.get("mtime_ns") != mtime_ns:
            return None
        digest = record.get("digest")
        return digest if isinstance(digest, str) else None

    def store(self, abs_path: str, size: int, mtime_ns: int, digest: str) -> None:
        with self._lock:
            self._entries[abs_path] = {
                "size": size,
                "mtime_ns": mtime_ns,
                "digest": digest,
            }
            self._dirty = True

    def save(self) -> None:
        """Write the cache atomically if anything changed."""
        with self._lock:
            if not self._dirty:
                return
            payload = {"version": _FORMAT_VERSION, "entries": dict(self._entries)}
            self._dirty = False

        cache_dir = os.path.dirname(self._path)
        if cache_dir:
            os.makedirs(cache_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=cache_dir or None, prefix=".fingerprints-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.debug("Saved %d fingerprints to %s", len(payload["entries"]), self._path)
