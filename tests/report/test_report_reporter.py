import unittest

from crustasync.errors import ExecutionError, TransientError
from crustasync.models import ActionResult, Entry, EntryKind, Fingerprint
from crustasync.plan import Create, Delete, Move, Update, plan
from crustasync.report import EXIT_CANCELLED, EXIT_FAILURE, EXIT_OK, build_report, format_plan


def _entry(*path: str, kind: EntryKind = EntryKind.FILE) -> Entry:
    return Entry(path=path, kind=kind, modified_at=None, fingerprint=Fingerprint(digest="d", size=1), size=1)


class TestReporter(unittest.TestCase):
    def test_counts_by_action_and_outcome(self) -> None:
        results = [
            ActionResult(action=Create(path=("a",), entry=_entry("a")), status="success"),
            ActionResult(action=Update(path=("b",), entry=_entry("b"), source=None), status="success"),
            ActionResult(action=Delete(path=("c",), kind=EntryKind.FILE), status="success"),
            ActionResult(
                action=Move(from_path=("d",), to_path=("e",), entry=_entry("e")),
                status="success",
                warnings=["PartialMove: /d -> /e: denied"],
            ),
            ActionResult(action=Create(path=("f",), entry=_entry("f")), status="skipped", skip_reason="dependency"),
            ActionResult(
                action=Create(path=("g",), entry=_entry("g")),
                status="failed",
                error=ExecutionError("Create(/g) failed", cause=TransientError("x")),
            ),
        ]
        report = build_report(results)

        self.assertEqual(
            report.summary(),
            {"created": 1, "updated": 1, "deleted": 1, "moved": 1, "skipped": 1, "failed": 1},
        )
        self.assertTrue(report.any_failure)
        self.assertEqual(report.exit_code, EXIT_FAILURE)
        self.assertEqual(report.warnings, ["PartialMove: /d -> /e: denied"])
        self.assertEqual(report.total, 6)

    def test_dry_run_without_failures_exits_zero(self) -> None:
        results = [
            ActionResult(action=Create(path=("a",), entry=_entry("a")), status="skipped", skip_reason="dry_run")
        ]
        report = build_report(results, dry_run=True)

        self.assertFalse(report.any_failure)
        self.assertEqual(report.exit_code, EXIT_OK)
        self.assertTrue(report.format_lines()[0].startswith("Dry run: created=0"))

    def test_cancelled_run_exit_code(self) -> None:
        results = [
            ActionResult(action=Create(path=("a",), entry=_entry("a")), status="skipped", skip_reason="cancelled")
        ]
        report = build_report(results)
        self.assertTrue(report.cancelled)
        self.assertEqual(report.exit_code, EXIT_CANCELLED)

    def test_format_plan_lists_batches(self) -> None:
        sync_plan = plan(
            {
                Create(path=("docs",), entry=_entry("docs", kind=EntryKind.DIRECTORY)),
                Create(path=("docs", "readme.txt"), entry=_entry("docs", "readme.txt")),
            }
        )
        self.assertEqual(
            format_plan(sync_plan),
            ["---- Batch 0 ----", "  Create(/docs)", "---- Batch 1 ----", "  Create(/docs/readme.txt)"],
        )
        self.assertEqual(format_plan(plan(set())), ["Nothing to do"])


if __name__ == "__main__":
    unittest.main()
