import unittest

from crustasync.errors import ScanError
from crustasync.models import Entry, EntryKind, Fingerprint, Snapshot


def _dir(*path: str) -> Entry:
    return Entry(path=path, kind=EntryKind.DIRECTORY, modified_at=None, fingerprint=Fingerprint(digest="d"))


def _file(*path: str) -> Entry:
    return Entry(
        path=path,
        kind=EntryKind.FILE,
        modified_at=None,
        fingerprint=Fingerprint(digest="f", size=1),
        size=1,
    )


class TestSnapshot(unittest.TestCase):
    def test_from_entries_builds_read_only_mapping(self) -> None:
        snap = Snapshot.from_entries("root", [_dir("a"), _file("a", "x")])
        self.assertEqual(len(snap), 2)
        self.assertIn(("a", "x"), snap)
        self.assertEqual(snap.get(("a",)).kind, EntryKind.DIRECTORY)
        with self.assertRaises(TypeError):
            snap.entries[("b",)] = _file("b")  # type: ignore[index]

    def test_equality_ignores_insertion_order_and_backend(self) -> None:
        a = Snapshot.from_entries("root", [_dir("a"), _file("a", "x")], backend=object())
        b = Snapshot.from_entries("root", [_file("a", "x"), _dir("a")], backend=object())
        self.assertEqual(a, b)

    def test_rejects_duplicates(self) -> None:
        with self.assertRaises(ScanError):
            Snapshot.from_entries("root", [_file("x"), _file("x")])

    def test_rejects_missing_parent(self) -> None:
        with self.assertRaises(ScanError):
            Snapshot.from_entries("root", [_file("a", "x")])

    def test_rejects_file_parent(self) -> None:
        with self.assertRaises(ScanError):
            Snapshot.from_entries("root", [_file("a"), _file("a", "x")])

    def test_rejects_root_entry(self) -> None:
        with self.assertRaises(ScanError):
            Snapshot.from_entries("root", [_dir()])

    def test_descendants_of_is_shallowest_first(self) -> None:
        snap = Snapshot.from_entries(
            "root",
            [_dir("a"), _dir("a", "b"), _file("a", "b", "c"), _file("a", "z"), _file("q")],
        )
        paths = [e.path for e in snap.descendants_of(("a",))]
        self.assertEqual(paths, [("a", "b"), ("a", "z"), ("a", "b", "c")])


if __name__ == "__main__":
    unittest.main()
