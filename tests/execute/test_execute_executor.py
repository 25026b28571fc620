import io
import threading
import time
import unittest
from datetime import datetime, timezone
from unittest.mock import Mock

from crustasync.backend.base import MoveOutcome
from crustasync.backend.drive import DriveBackend
from crustasync.errors import (
    AuthError,
    ErrorKind,
    FatalBackendError,
    PermissionDeniedError,
    RateLimitError,
)
from crustasync.execute import Executor, RetryPolicy
from crustasync.models import Entry, EntryKind, Fingerprint
from crustasync.plan import Create, Delete, Move, SourceRef, Update, plan

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


class _Source:
    def __init__(self, files) -> None:
        self.files = files

    def read_content(self, path):
        return io.BytesIO(self.files[path])


class _RecordingDest:
    """Records mutating calls; ``failures`` maps a path to exceptions to raise in order."""

    def __init__(self) -> None:
        self.calls = []
        self.written = {}
        self.failures = {}
        self.move_outcome = MoveOutcome()
        self._lock = threading.Lock()

    def _record(self, name, path):
        with self._lock:
            self.calls.append((name, path))
            pending = self.failures.get(path)
            if pending:
                raise pending.pop(0)

    def write_content(self, path, stream, expected_size, *, modified_at=None):
        self._record("write_content", path)
        self.written[path] = (stream.read(), expected_size, modified_at)

    def make_directory(self, path):
        self._record("make_directory", path)

    def delete(self, path):
        self._record("delete", path)

    def move(self, from_path, to_path):
        self._record("move", from_path)
        return self.move_outcome


def _file_entry(path, data: bytes) -> Entry:
    return Entry(
        path=path,
        kind=EntryKind.FILE,
        modified_at=T0,
        fingerprint=Fingerprint(digest=str(hash(data)), size=len(data)),
        size=len(data),
    )


def _create_file(source, *path):
    data = source.files[path]
    return Create(
        path=path,
        entry=_file_entry(path, data),
        source=SourceRef(source, path, len(data), T0),
    )


def _create_dir(*path):
    return Create(
        path=path,
        entry=Entry(path=path, kind=EntryKind.DIRECTORY, modified_at=None, fingerprint=Fingerprint(digest="d")),
    )


def _no_wait_event() -> Mock:
    event = Mock(spec=threading.Event)
    event.is_set.return_value = False
    event.wait.return_value = False
    return event


class TestExecutor(unittest.TestCase):
    def setUp(self) -> None:
        self.source = _Source(
            {
                ("docs", "readme.txt"): b"v1",
                ("a.txt",): b"aaa",
                ("b.txt",): b"b",
            }
        )
        self.dest = _RecordingDest()

    def _mixed_plan(self):
        move_entry = _file_entry(("moved.txt",), b"m")
        return plan(
            {
                _create_dir("docs"),
                _create_file(self.source, "docs", "readme.txt"),
                Update(path=("a.txt",), entry=_file_entry(("a.txt",), b"aaa"), source=SourceRef(self.source, ("a.txt",), 3, T0)),
                Delete(path=("old",), kind=EntryKind.DIRECTORY),
                Move(from_path=("m.txt",), to_path=("moved.txt",), entry=move_entry),
            }
        )

    def test_dry_run_never_touches_the_backend(self) -> None:
        sync_plan = self._mixed_plan()
        results = Executor(dry_run=True).execute(sync_plan, self.dest)

        self.assertEqual(self.dest.calls, [])
        self.assertEqual(len(results), len(sync_plan))
        self.assertTrue(all(r.status == "skipped" and r.skip_reason == "dry_run" for r in results))

    def test_executes_every_action_type(self) -> None:
        sync_plan = self._mixed_plan()
        results = Executor(concurrency=2).execute(sync_plan, self.dest)

        self.assertTrue(all(r.status == "success" for r in results))
        self.assertEqual(
            sorted(self.dest.calls),
            sorted(
                [
                    ("make_directory", ("docs",)),
                    ("write_content", ("docs", "readme.txt")),
                    ("write_content", ("a.txt",)),
                    ("delete", ("old",)),
                    ("move", ("m.txt",)),
                ]
            ),
        )
        self.assertEqual(self.dest.written[("docs", "readme.txt")], (b"v1", 2, T0))
        self.assertLess(
            self.dest.calls.index(("make_directory", ("docs",))),
            self.dest.calls.index(("write_content", ("docs", "readme.txt"))),
        )

    def test_results_follow_plan_order(self) -> None:
        sync_plan = self._mixed_plan()
        results = Executor().execute(sync_plan, self.dest)
        self.assertEqual([r.action for r in results], list(sync_plan))

    def test_rate_limited_twice_then_success(self) -> None:
        sync_plan = plan({_create_file(self.source, "a.txt")})
        self.dest.failures[("a.txt",)] = [RateLimitError("slow"), RateLimitError("slow")]
        event = _no_wait_event()

        results = Executor(cancel_event=event).execute(sync_plan, self.dest)

        self.assertEqual(results[0].status, "success")
        self.assertEqual(results[0].attempts, 3)
        self.assertEqual(event.wait.call_count, 2)
        self.assertEqual(self.dest.written[("a.txt",)][0], b"aaa")

    def test_permission_denied_is_not_retried(self) -> None:
        sync_plan = plan({_create_file(self.source, "a.txt")})
        self.dest.failures[("a.txt",)] = [PermissionDeniedError("no")]
        event = _no_wait_event()

        results = Executor(cancel_event=event).execute(sync_plan, self.dest)

        self.assertEqual(results[0].status, "failed")
        self.assertEqual(results[0].attempts, 1)
        self.assertEqual(results[0].error.kind, ErrorKind.PERMISSION_DENIED)
        event.wait.assert_not_called()

    def test_failure_is_isolated_and_dependents_are_skipped(self) -> None:
        sync_plan = plan(
            {
                _create_dir("docs"),
                _create_file(self.source, "docs", "readme.txt"),
                _create_file(self.source, "b.txt"),
            }
        )
        self.dest.failures[("docs",)] = [PermissionDeniedError("no")]

        with self.assertLogs("crustasync.execute.executor", level="ERROR"):
            results = {r.action.path: r for r in Executor().execute(sync_plan, self.dest)}

        self.assertEqual(results[("docs",)].status, "failed")
        self.assertEqual(results[("docs", "readme.txt")].status, "skipped")
        self.assertEqual(results[("docs", "readme.txt")].skip_reason, "dependency")
        self.assertEqual(results[("b.txt",)].status, "success")
        self.assertNotIn(("write_content", ("docs", "readme.txt")), self.dest.calls)

    def test_unexpected_exception_fails_only_its_action(self) -> None:
        sync_plan = plan(
            {
                Delete(path=("broken",), kind=EntryKind.FILE),
                _create_file(self.source, "b.txt"),
            }
        )
        self.dest.failures[("broken",)] = [RuntimeError("disk on fire")]

        with self.assertLogs("crustasync.execute.executor", level="ERROR"):
            results = {r.action.path: r for r in Executor().execute(sync_plan, self.dest)}

        broken = results[("broken",)]
        self.assertEqual(broken.status, "failed")
        self.assertEqual(broken.attempts, 1)
        self.assertIsInstance(broken.error.cause, RuntimeError)
        self.assertEqual(broken.error.details["kind"], "unexpected")
        self.assertEqual(results[("b.txt",)].status, "success")

    def test_drive_service_auth_failure_is_recorded_per_action(self) -> None:
        def failing_factory():
            raise AuthError("Failed to build Drive service")

        dest = DriveBackend(failing_factory)
        sync_plan = plan(
            {
                Delete(path=("a",), kind=EntryKind.FILE),
                Delete(path=("b",), kind=EntryKind.FILE),
            }
        )

        with self.assertLogs("crustasync.execute.executor", level="ERROR"):
            results = Executor(concurrency=2).execute(sync_plan, dest)

        self.assertEqual(len(results), 2)
        for result in results:
            self.assertEqual(result.status, "failed")
            self.assertEqual(result.attempts, 1)
            self.assertIsInstance(result.error.cause, FatalBackendError)
            self.assertIsInstance(result.error.cause.cause, AuthError)
            self.assertEqual(result.error.kind, ErrorKind.FATAL)

    def test_partial_move_is_success_with_warning(self) -> None:
        entry = _file_entry(("new.txt",), b"m")
        sync_plan = plan({Move(from_path=("old.txt",), to_path=("new.txt",), entry=entry)})
        self.dest.move_outcome = MoveOutcome(native=False, partial=True, detail="read-only")

        results = Executor().execute(sync_plan, self.dest)

        self.assertEqual(results[0].status, "success")
        self.assertEqual(len(results[0].warnings), 1)
        self.assertTrue(results[0].warnings[0].startswith("PartialMove"))

    def test_cancel_stops_scheduling_later_batches(self) -> None:
        sync_plan = plan({_create_dir("docs"), _create_file(self.source, "docs", "readme.txt")})
        event = threading.Event()
        original = self.dest.make_directory

        def make_directory_then_interrupt(path):
            original(path)
            event.set()

        self.dest.make_directory = make_directory_then_interrupt
        results = Executor(cancel_event=event).execute(sync_plan, self.dest)

        self.assertEqual(results[0].status, "success")
        self.assertEqual(results[1].status, "skipped")
        self.assertEqual(results[1].skip_reason, "cancelled")
        self.assertEqual(self.dest.calls, [("make_directory", ("docs",))])

    def test_concurrency_is_bounded(self) -> None:
        files = {(f"f{i}.txt",): b"x" for i in range(8)}
        source = _Source(files)
        sync_plan = plan({_create_file(source, *path) for path in files})

        lock = threading.Lock()
        state = {"running": 0, "peak": 0}

        class _SlowDest(_RecordingDest):
            def write_content(self, path, stream, expected_size, *, modified_at=None):
                with lock:
                    state["running"] += 1
                    state["peak"] = max(state["peak"], state["running"])
                time.sleep(0.01)
                with lock:
                    state["running"] -= 1

        results = Executor(concurrency=2).execute(sync_plan, _SlowDest())

        self.assertTrue(all(r.status == "success" for r in results))
        self.assertLessEqual(state["peak"], 2)

    def test_default_retry_policy(self) -> None:
        executor = Executor(retry_policy=RetryPolicy(max_attempts=1))
        self.assertFalse(executor.cancel_event.is_set())
        with self.assertRaises(ValueError):
            Executor(concurrency=0)


if __name__ == "__main__":
    unittest.main()
