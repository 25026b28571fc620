import errno
import hashlib
import io
import os
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

from crustasync.backend import FingerprintCache, LocalBackend
from crustasync.errors import FatalBackendError, NotFoundError, TransientError
from crustasync.models import EntryKind


class TestLocalBackend(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        (self.root / "docs").mkdir()
        (self.root / "docs" / "readme.txt").write_bytes(b"v1")
        self.backend = LocalBackend(str(self.root))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_list_reports_kind_and_size(self) -> None:
        items = {i.name: i for i in self.backend.list(("docs",))}
        self.assertEqual(items["readme.txt"].kind, EntryKind.FILE)
        self.assertEqual(items["readme.txt"].size, 2)
        self.assertIsNotNone(items["readme.txt"].modified_at.tzinfo)

        root_items = self.backend.list(())
        self.assertEqual([(i.name, i.kind) for i in root_items], [("docs", EntryKind.DIRECTORY)])

    def test_list_ignores_leftover_temp_files(self) -> None:
        (self.root / "docs" / ".crustasync-abc123").write_bytes(b"partial")

        items = self.backend.list(("docs",))

        self.assertEqual([i.name for i in items], ["readme.txt"])

    def test_list_missing_directory_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            self.backend.list(("missing",))

    def test_symlinks_are_followed(self) -> None:
        os.symlink(self.root / "docs" / "readme.txt", self.root / "link.txt")
        os.symlink(self.root / "docs", self.root / "docs-link")

        items = {i.name: i for i in self.backend.list(())}
        self.assertEqual(items["link.txt"].kind, EntryKind.FILE)
        self.assertEqual(items["docs-link"].kind, EntryKind.DIRECTORY)

    def test_dangling_symlink_is_fatal(self) -> None:
        os.symlink(self.root / "nowhere", self.root / "broken")
        with self.assertRaises(FatalBackendError):
            self.backend.list(())

    def test_symlink_loop_is_fatal(self) -> None:
        os.symlink(self.root, self.root / "docs" / "up")
        with self.assertRaises(FatalBackendError):
            self.backend.list(("docs",))

    @unittest.skipUnless(hasattr(os, "mkfifo"), "requires mkfifo")
    def test_special_file_is_fatal(self) -> None:
        os.mkfifo(self.root / "pipe")
        with self.assertRaises(FatalBackendError):
            self.backend.list(())

    def test_write_content_is_atomic_and_keeps_mtime(self) -> None:
        mtime = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        self.backend.write_content(("docs", "new.txt"), io.BytesIO(b"hello"), 5, modified_at=mtime)

        target = self.root / "docs" / "new.txt"
        self.assertEqual(target.read_bytes(), b"hello")
        self.assertEqual(int(target.stat().st_mtime), int(mtime.timestamp()))
        self.assertEqual(sorted(p.name for p in (self.root / "docs").iterdir()), ["new.txt", "readme.txt"])

    def test_write_content_size_mismatch_leaves_no_file(self) -> None:
        with self.assertRaises(TransientError):
            self.backend.write_content(("docs", "new.txt"), io.BytesIO(b"abc"), 10)
        self.assertEqual(sorted(p.name for p in (self.root / "docs").iterdir()), ["readme.txt"])

    def test_make_directory_is_idempotent(self) -> None:
        self.backend.make_directory(("manual",))
        self.backend.make_directory(("manual",))
        self.assertTrue((self.root / "manual").is_dir())

        with self.assertRaises(FatalBackendError):
            self.backend.make_directory(("docs", "readme.txt"))

    def test_delete_is_recursive(self) -> None:
        self.backend.delete(("docs",))
        self.assertFalse((self.root / "docs").exists())

        with self.assertRaises(NotFoundError):
            self.backend.delete(("docs",))
        with self.assertRaises(FatalBackendError):
            self.backend.delete(())

    def test_move_is_native_rename(self) -> None:
        outcome = self.backend.move(("docs",), ("manual",))
        self.assertTrue(outcome.native)
        self.assertEqual((self.root / "manual" / "readme.txt").read_bytes(), b"v1")
        self.assertFalse((self.root / "docs").exists())

    def test_move_onto_existing_path_is_fatal(self) -> None:
        (self.root / "manual").mkdir()
        with self.assertRaises(FatalBackendError):
            self.backend.move(("docs",), ("manual",))

    def test_cross_device_move_degrades_to_copy_then_delete(self) -> None:
        def fake_rename(src, dst):
            raise OSError(errno.EXDEV, "Invalid cross-device link")

        with patch("crustasync.backend.local.os.rename", side_effect=fake_rename):
            outcome = self.backend.move(("docs",), ("manual",))

        self.assertFalse(outcome.native)
        self.assertFalse(outcome.partial)
        self.assertEqual((self.root / "manual" / "readme.txt").read_bytes(), b"v1")
        self.assertFalse((self.root / "docs").exists())

    def test_content_digest_is_sha256(self) -> None:
        self.assertEqual(
            self.backend.content_digest(("docs", "readme.txt")),
            hashlib.sha256(b"v1").hexdigest(),
        )

    def test_content_digest_uses_cache_for_unchanged_files(self) -> None:
        cache = FingerprintCache(str(self.root / "cache.json"))
        backend = LocalBackend(str(self.root), cache=cache)
        path = ("docs", "readme.txt")
        abs_path = os.path.realpath(str(self.root / "docs" / "readme.txt"))

        first = backend.content_digest(path)
        st = os.stat(abs_path)
        cache.store(abs_path, st.st_size, st.st_mtime_ns, "cached")

        self.assertEqual(first, hashlib.sha256(b"v1").hexdigest())
        self.assertEqual(backend.content_digest(path), "cached")


if __name__ == "__main__":
    unittest.main()
