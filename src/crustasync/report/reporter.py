"""Aggregate per-action outcomes into the run summary and exit signal."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from crustasync.models import ActionResult
from crustasync.plan import Create, Delete, Move, SyncPlan, Update, describe

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


@dataclass(slots=True)
class SyncReport:
    """Counts of terminal outcomes for one run."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    moved: int = 0
    skipped: int = 0
    failed: int = 0

    dry_run: bool = False
    cancelled: bool = False
    warnings: list[str] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def any_failure(self) -> bool:
        return self.failed > 0

    @property
    def total(self) -> int:
        return (
            self.created + self.updated + self.deleted + self.moved + self.skipped + self.failed
        )

    @property
    def exit_code(self) -> int:
        if self.cancelled:
            return EXIT_CANCELLED
        return EXIT_FAILURE if self.any_failure else EXIT_OK

    def summary(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "moved": self.moved,
            "skipped": self.skipped,
            "failed": self.failed,
        }

    def format_lines(self) -> list[str]:
        counts = ", ".join(f"{k}={v}" for k, v in self.summary().items())
        head = "Dry run" if self.dry_run else "Sync"
        if self.cancelled:
            head += " (cancelled)"
        lines = [f"{head}: {counts}"]
        lines.extend(f"warning: {w}" for w in self.warnings)
        lines.extend(f"failed: {f}" for f in self.failures)
        return lines


def build_report(
    results: Iterable[ActionResult],
    *,
    dry_run: bool = False,
    cancelled: bool = False,
) -> SyncReport:
    """Fold ActionResults into a SyncReport."""
    report = SyncReport(dry_run=dry_run, cancelled=cancelled)
    for result in results:
        report.warnings.extend(result.warnings)
        if result.status == "skipped":
            report.skipped += 1
            if result.skip_reason == "cancelled":
                report.cancelled = True
            continue
        if result.status == "failed":
            report.failed += 1
            report.failures.append(result.error_message or describe(result.action))
            continue

        action = result.action
        if isinstance(action, Create):
            report.created += 1
        elif isinstance(action, Update):
            report.updated += 1
        elif isinstance(action, Delete):
            report.deleted += 1
        elif isinstance(action, Move):
            report.moved += 1
    return report


def format_plan(plan: SyncPlan) -> list[str]:
    """One header line per batch followed by its actions."""
    if plan.is_empty:
        return ["Nothing to do"]
    lines: list[str] = []
    for index, batch in enumerate(plan.batches):
        lines.append(f"---- Batch {index} ----")
        lines.extend(f"  {describe(action)}" for action in batch)
    return lines
