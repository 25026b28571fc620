"""Local filesystem backend."""

from __future__ import annotations

import errno
import hashlib
import logging
import os
import shutil
import stat
import tempfile
from contextlib import contextmanager
from datetime import datetime
from typing import BinaryIO, Iterator, Optional

from crustasync.errors import FatalBackendError, TransientError, map_os_error
from crustasync.models import EntryKind
from crustasync.util.paths import RelPath, format_path
from crustasync.util.time import from_timestamp

from .base import BackendKind, ListedItem, MoveOutcome, copy_then_delete
from .fingerprint_cache import FingerprintCache

logger = logging.getLogger(__name__)

_HASH_CHUNK_SIZE = 1024 * 1024
_TEMP_PREFIX = ".crustasync-"


@contextmanager
def _os_errors(path: str) -> Iterator[None]:
    try:
        yield
    except OSError as exc:
        raise map_os_error(exc, path) from exc


class LocalBackend:
    """
    Backend over a directory of the local filesystem.

    Symlinks are followed and flattened; dangling links, special files and
    links that point back into their own ancestry are reported as Fatal.
    """

    kind = BackendKind.LOCAL

    def __init__(self, root: str, *, cache: Optional[FingerprintCache] = None) -> None:
        self._root = os.path.realpath(os.path.expanduser(root))
        self._cache = cache
        self.root_id = self._root

    @property
    def cache(self) -> Optional[FingerprintCache]:
        return self._cache

    def __repr__(self) -> str:
        return f"LocalBackend({self._root!r})"

    # ----------------------------
    # Capability set
    # ----------------------------
    def list(self, dir_path: RelPath) -> list[ListedItem]:
        abs_dir = self._abs(dir_path)
        real_dir = os.path.realpath(abs_dir)
        items: list[ListedItem] = []

        with _os_errors(abs_dir):
            with os.scandir(abs_dir) as it:
                children = list(it)

        for child in children:
            if child.name.startswith(_TEMP_PREFIX):
                logger.debug("Ignoring leftover temp file %s", child.path)
                continue
            items.append(self._listed_item(child, real_dir))

        logger.debug("Listed %d items in %s", len(items), abs_dir)
        return items

    def read_content(self, path: RelPath) -> BinaryIO:
        abs_path = self._abs(path)
        with _os_errors(abs_path):
            return open(abs_path, "rb")

    def write_content(
        self,
        path: RelPath,
        stream: BinaryIO,
        expected_size: Optional[int],
        *,
        modified_at: Optional[datetime] = None,
    ) -> None:
        abs_path = self._abs(path)
        parent = os.path.dirname(abs_path)

        with _os_errors(abs_path):
            if os.path.isdir(abs_path) and not os.path.islink(abs_path):
                raise FatalBackendError(
                    "Cannot write file over a directory",
                    details={"path": abs_path},
                )
            fd, tmp_path = tempfile.mkstemp(dir=parent, prefix=_TEMP_PREFIX)
            try:
                with os.fdopen(fd, "wb") as out:
                    shutil.copyfileobj(stream, out, _HASH_CHUNK_SIZE)
                written = os.path.getsize(tmp_path)
                if expected_size is not None and written != expected_size:
                    raise TransientError(
                        "Size mismatch after write",
                        details={
                            "path": abs_path,
                            "expected_size": expected_size,
                            "written": written,
                        },
                    )
                if modified_at is not None:
                    ts = modified_at.timestamp()
                    os.utime(tmp_path, (ts, ts))
                os.replace(tmp_path, abs_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise

    def make_directory(self, path: RelPath) -> None:
        abs_path = self._abs(path)
        with _os_errors(abs_path):
            try:
                os.mkdir(abs_path)
            except FileExistsError:
                if os.path.isdir(abs_path):
                    return
                raise FatalBackendError(
                    "Path exists and is not a directory",
                    details={"path": abs_path},
                ) from None

    def delete(self, path: RelPath) -> None:
        if not path:
            raise FatalBackendError("Refusing to delete the backend root")
        abs_path = self._abs(path)
        with _os_errors(abs_path):
            if os.path.isdir(abs_path) and not os.path.islink(abs_path):
                shutil.rmtree(abs_path)
            else:
                os.remove(abs_path)

    def move(self, from_path: RelPath, to_path: RelPath) -> MoveOutcome:
        src = self._abs(from_path)
        dst = self._abs(to_path)

        with _os_errors(src):
            if os.path.lexists(dst):
                raise FatalBackendError(
                    "Move destination already exists",
                    details={"from": src, "to": dst},
                )
            try:
                os.rename(src, dst)
                return MoveOutcome(native=True)
            except OSError as exc:
                if exc.errno != errno.EXDEV:
                    raise
                logger.info(
                    "Native rename unavailable for %s (cross-device); copying instead",
                    format_path(from_path),
                )

        kind = EntryKind.DIRECTORY if os.path.isdir(src) else EntryKind.FILE
        return copy_then_delete(self, from_path, to_path, kind)

    def content_digest(self, path: RelPath) -> Optional[str]:
        abs_path = self._abs(path)
        with _os_errors(abs_path):
            st = os.stat(abs_path)
            if self._cache is not None:
                cached = self._cache.lookup(abs_path, st.st_size, st.st_mtime_ns)
                if cached is not None:
                    return cached

            h = hashlib.sha256()
            with open(abs_path, "rb") as f:
                for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
                    h.update(chunk)
            digest = h.hexdigest()

        if self._cache is not None:
            self._cache.store(abs_path, st.st_size, st.st_mtime_ns, digest)
        return digest

    # ----------------------------
    # Internals
    # ----------------------------
    def _abs(self, path: RelPath) -> str:
        return os.path.join(self._root, *path)

    def _listed_item(self, child: os.DirEntry, real_parent: str) -> ListedItem:
        try:
            st = os.stat(child.path)
        except FileNotFoundError as exc:
            raise FatalBackendError(
                "Dangling symbolic link",
                details={"path": child.path},
                cause=exc,
            ) from exc
        except OSError as exc:
            raise map_os_error(exc, child.path) from exc

        modified_at = from_timestamp(st.st_mtime)

        if stat.S_ISDIR(st.st_mode):
            if child.is_symlink():
                self._reject_symlink_cycle(child.path, real_parent)
            return ListedItem(
                name=child.name,
                kind=EntryKind.DIRECTORY,
                size=None,
                modified_at=modified_at,
            )

        if stat.S_ISREG(st.st_mode):
            return ListedItem(
                name=child.name,
                kind=EntryKind.FILE,
                size=st.st_size,
                modified_at=modified_at,
            )

        raise FatalBackendError(
            "Special files cannot be synchronized",
            details={"path": child.path, "mode": stat.filemode(st.st_mode)},
        )

    def _reject_symlink_cycle(self, link_path: str, real_parent: str) -> None:
        target = os.path.realpath(link_path)
        try:
            common = os.path.commonpath([target, real_parent])
        except ValueError:
            return
        if common == target:
            raise FatalBackendError(
                "Symbolic link loops back into its own ancestry",
                details={"path": link_path, "target": target},
            )


