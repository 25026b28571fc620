"""Data model for tree entries."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from crustasync.util.paths import RelPath


class EntryKind(str, Enum):
    FILE = "File"
    DIRECTORY = "Directory"


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """
    Comparable content token for an entry.

    Notes:
        - ``digest`` is a hex sha256 (local content hash, Drive
          ``sha256Checksum``, or a directory's subtree hash).
        - Without a digest, ``(size, modified_at)`` is used as the weaker
          fingerprint, compared at whole-second precision.
    """

    digest: Optional[str] = None
    size: Optional[int] = None
    modified_at: Optional[datetime] = None

    @property
    def is_strong(self) -> bool:
        return self.digest is not None

    @property
    def stat_key(self) -> tuple[Optional[int], Optional[int]]:
        seconds = None
        if self.modified_at is not None:
            seconds = math.floor(self.modified_at.timestamp())
        return (self.size, seconds)

    @property
    def token(self) -> tuple:
        """Hashable grouping key."""
        if self.digest is not None:
            return ("sha256", self.digest)
        return ("stat",) + self.stat_key

    def matches(self, other: Fingerprint) -> bool:
        if self.digest is not None and other.digest is not None:
            return self.digest == other.digest
        return self.stat_key == other.stat_key and self.size is not None


@dataclass(frozen=True, slots=True)
class Entry:
    """One file or directory of a Snapshot."""

    path: RelPath
    kind: EntryKind
    modified_at: Optional[datetime]
    fingerprint: Fingerprint
    size: Optional[int] = None

    @property
    def name(self) -> str:
        return self.path[-1] if self.path else ""

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE
