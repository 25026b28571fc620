"""SyncManager: orchestrates snapshot -> diff -> plan -> execute -> report."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from crustasync.backend import Backend, FingerprintCache
from crustasync.config import SyncOptions
from crustasync.execute import Executor
from crustasync.models import ActionResult, Snapshot
from crustasync.plan import SyncPlan, diff, plan
from crustasync.report import SyncReport, build_report
from crustasync.scan import Snapshotter

logger = logging.getLogger(__name__)


class SyncManager:
    """
    High-level one-directional sync of ``source`` onto ``dest``.

    Scan and plan failures (ScanError/PlanError) are raised before anything
    is executed; per-action failures are only reported.
    """

    def __init__(
        self,
        source: Backend,
        dest: Backend,
        options: Optional[SyncOptions] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._source = source
        self._dest = dest
        self._options = options or SyncOptions()
        self._cancel_event = cancel_event or threading.Event()
        self._snapshotter = Snapshotter(concurrency=self._options.concurrency)

    @property
    def options(self) -> SyncOptions:
        return self._options

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def snapshots(self) -> tuple[Snapshot, Snapshot]:
        """Scan both sides. Raises ScanError."""
        try:
            source = self._snapshotter.build(self._source)
            dest = self._snapshotter.build(self._dest)
        finally:
            self._save_caches()
        return source, dest

    def build_plan(self) -> SyncPlan:
        """Scan both sides and plan the convergence. Raises ScanError/PlanError."""
        source, dest = self.snapshots()
        return plan(diff(source, dest))

    def execute(self, sync_plan: SyncPlan) -> list[ActionResult]:
        executor = Executor(
            concurrency=self._options.concurrency,
            dry_run=self._options.dry_run,
            retry_policy=self._options.retry_policy(),
            cancel_event=self._cancel_event,
        )
        return executor.execute(sync_plan, self._dest)

    def sync(self, sync_plan: Optional[SyncPlan] = None) -> SyncReport:
        """Build (unless given) and execute a plan, then summarize it."""
        if sync_plan is None:
            sync_plan = self.build_plan()
        results = self.execute(sync_plan)
        report = build_report(
            results,
            dry_run=self._options.dry_run,
            cancelled=self._cancel_event.is_set(),
        )
        logger.info("%s", report.format_lines()[0])
        return report

    def _save_caches(self) -> None:
        seen: set[int] = set()
        for backend in (self._source, self._dest):
            cache: Optional[FingerprintCache] = getattr(backend, "cache", None)
            if cache is None or id(cache) in seen:
                continue
            seen.add(id(cache))
            try:
                cache.save()
            except OSError as exc:
                logger.warning("Could not save fingerprint cache %s: %s", cache.path, exc)
