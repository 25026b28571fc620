"""Run a SyncPlan against the destination backend."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Optional

from crustasync.errors import BackendError, ExecutionError
from crustasync.models import ActionResult
from crustasync.plan import Create, Delete, Move, SyncAction, SyncPlan, Update, describe
from crustasync.util.paths import format_path

from .retry import RetryCancelled, RetryExhausted, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


class Executor:
    """
    Executes batches strictly in order, each on a bounded thread pool.

    Notes:
        - ``dry_run`` records every action as skipped without touching any
          backend.
        - Only RateLimited/Transient failures are retried, with exponential
          backoff that waits on ``cancel_event``.
        - A failed action never stops its batch; later actions depending on
          it are skipped.
        - Once ``cancel_event`` is set no new batch starts and queued actions
          are skipped; actions already running finish.
    """

    def __init__(
        self,
        *,
        concurrency: int = 4,
        dry_run: bool = False,
        retry_policy: Optional[RetryPolicy] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._concurrency = concurrency
        self._dry_run = dry_run
        self._retry_policy = retry_policy or RetryPolicy()
        self._cancel_event = cancel_event or threading.Event()

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def execute(self, plan: SyncPlan, dest: Any) -> list[ActionResult]:
        results: dict[str, ActionResult] = {}
        blocked: set[str] = set()

        for index, batch in enumerate(plan.batches):
            if self._cancel_event.is_set():
                logger.warning("Cancelled: skipping %d remaining batches", len(plan.batches) - index)
                for action in batch:
                    results[action.op_id] = ActionResult(
                        action=action, status="skipped", skip_reason="cancelled"
                    )
                continue

            logger.info("Batch %d/%d: %d actions", index + 1, len(plan.batches), len(batch))
            runnable: list[SyncAction] = []
            for action in batch:
                if plan.dependencies.get(action.op_id, frozenset()) & blocked:
                    logger.info("Skipping %s: a dependency did not succeed", describe(action))
                    results[action.op_id] = ActionResult(
                        action=action, status="skipped", skip_reason="dependency"
                    )
                    blocked.add(action.op_id)
                else:
                    runnable.append(action)

            for result in self._run_batch(runnable, dest):
                results[result.action.op_id] = result
                if result.status != "success" and result.skip_reason != "dry_run":
                    blocked.add(result.action.op_id)

        return [results[action.op_id] for action in plan]

    def _run_batch(self, actions: list[SyncAction], dest: Any) -> list[ActionResult]:
        if not actions:
            return []
        if self._dry_run:
            for action in actions:
                logger.info("[dry-run] %s", describe(action))
            return [
                ActionResult(action=a, status="skipped", skip_reason="dry_run") for a in actions
            ]

        results: list[ActionResult] = []
        with ThreadPoolExecutor(max_workers=min(self._concurrency, len(actions))) as pool:
            futures = [pool.submit(self._run_one, action, dest) for action in actions]
            for future in as_completed(futures):
                results.append(future.result())
        return results

    def _run_one(self, action: SyncAction, dest: Any) -> ActionResult:
        if self._cancel_event.is_set():
            return ActionResult(action=action, status="skipped", skip_reason="cancelled")

        logger.info("Start %s", describe(action))
        warnings: list[str] = []
        tried = 0

        def attempt() -> None:
            nonlocal tried
            tried += 1
            self._apply(action, dest, warnings)

        def on_retry(attempt: int, exc: BackendError, delay: float) -> None:
            logger.debug(
                "%s attempt %d failed (%s); retrying in %.1fs",
                describe(action),
                attempt,
                exc.kind.value,
                delay,
            )

        try:
            _, attempts = call_with_retry(
                attempt,
                self._retry_policy,
                self._cancel_event,
                on_retry=on_retry,
            )
        except (RetryExhausted, RetryCancelled) as exc:
            cause = exc.last_error
            reason = "cancelled during backoff" if isinstance(exc, RetryCancelled) else cause.kind.value
            error = ExecutionError(
                f"{describe(action)} failed after {exc.attempts} attempt(s): {cause}",
                action=action,
                attempts=exc.attempts,
                details={"kind": cause.kind.value, "reason": reason},
                cause=cause,
            )
            logger.error("%s", error)
            return ActionResult(
                action=action,
                status="failed",
                error=error,
                attempts=exc.attempts,
                warnings=warnings,
            )
        except Exception as exc:
            error = ExecutionError(
                f"{describe(action)} failed: {exc}",
                action=action,
                attempts=tried,
                details={"kind": "unexpected", "reason": type(exc).__name__},
                cause=exc,
            )
            logger.exception("%s", error)
            return ActionResult(
                action=action,
                status="failed",
                error=error,
                attempts=tried,
                warnings=warnings,
            )

        logger.info("Done %s", describe(action))
        return ActionResult(action=action, status="success", attempts=attempts, warnings=warnings)

    def _apply(self, action: SyncAction, dest: Any, warnings: list[str]) -> None:
        if isinstance(action, Delete):
            dest.delete(action.path)
            return

        if isinstance(action, Move):
            outcome = dest.move(action.from_path, action.to_path)
            if outcome.partial:
                warnings.append(
                    f"PartialMove: {format_path(action.from_path)} -> "
                    f"{format_path(action.to_path)}: {outcome.detail}"
                )
            return

        if isinstance(action, Create) and action.entry.is_dir:
            dest.make_directory(action.path)
            return

        if isinstance(action, (Create, Update)):
            source = action.source
            if source is None:
                raise ValueError(f"{describe(action)} has no source")
            with source.backend.read_content(source.path) as stream:
                dest.write_content(
                    action.path,
                    stream,
                    source.size,
                    modified_at=source.modified_at,
                )
            return

        raise ValueError(f"Unsupported action: {action!r}")
