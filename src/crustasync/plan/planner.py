"""Order SyncActions into dependency-respecting, parallel-safe batches."""

from __future__ import annotations

import logging
from collections import defaultdict
from types import MappingProxyType
from typing import Iterable, Optional

from crustasync.errors import PlanError
from crustasync.util.ids import new_plan_id
from crustasync.util.paths import RelPath, format_path, is_strict_ancestor
from crustasync.util.time import now_utc

from .actions import (
    Create,
    Delete,
    Move,
    SyncAction,
    describe,
    sort_key,
    target_of,
    vacated_by,
)
from .sync_plan import SyncPlan

logger = logging.getLogger(__name__)


def plan(actions: Iterable[SyncAction]) -> SyncPlan:
    """
    Build a SyncPlan from an unordered action set.

    Dependency rules:
        - anything producing path T waits for the Create (directory) or Move
          producing each ancestor of T
        - anything producing path T waits for the Delete or Move that vacates
          T or one of its ancestors
        - a Delete of V waits for every Move out of V's subtree

    Batches are the levels of a topological sort. A cycle is broken by
    staging its lowest-priority Move (greatest destination path) as
    Delete+Create, logged at WARNING. Raises PlanError when no Move is left
    to stage, or when two actions produce or vacate the same path.
    """
    pending = _drop_covered_deletes(list(actions))
    staged = 0

    while True:
        deps = _dependencies(pending)
        levels, remaining = _levels(pending, deps)
        if not remaining:
            break

        core = _cycle_core(remaining, deps)
        moves = [a for a in core if isinstance(a, Move)]
        if not moves:
            raise PlanError(
                "Unresolvable dependency cycle",
                details={"actions": sorted(describe(a) for a in core)},
            )

        victim = max(moves, key=lambda m: (m.to_path, m.from_path))
        logger.warning(
            "Dependency cycle: staging %s as Delete+Create",
            describe(victim),
        )
        pending.remove(victim)
        pending.append(Delete(path=victim.from_path, kind=victim.kind))
        pending.extend(victim.replacement)
        pending = _drop_covered_deletes(pending)
        staged += 1

    batches: list[list[SyncAction]] = []
    for action in pending:
        level = levels[action.op_id]
        while len(batches) <= level:
            batches.append([])
        batches[level].append(action)

    frozen_batches = tuple(tuple(sorted(b, key=sort_key)) for b in batches)
    sync_plan = SyncPlan(
        plan_id=new_plan_id(),
        created_at=now_utc(),
        batches=frozen_batches,
        dependencies=MappingProxyType(
            {op_id: frozenset(a.op_id for a in d) for op_id, d in deps.items()}
        ),
        staged_moves=staged,
    )
    logger.info(
        "Planned %d actions in %d batches (%d staged moves)",
        len(sync_plan),
        len(frozen_batches),
        staged,
    )
    return sync_plan


def _drop_covered_deletes(actions: list[SyncAction]) -> list[SyncAction]:
    deleted = {a.path for a in actions if isinstance(a, Delete)}
    return [
        a
        for a in actions
        if not (
            isinstance(a, Delete)
            and any(is_strict_ancestor(p, a.path) for p in deleted)
        )
    ]


def _index(
    actions: list[SyncAction],
) -> tuple[dict[RelPath, SyncAction], dict[RelPath, SyncAction]]:
    producers: dict[RelPath, SyncAction] = {}
    vacaters: dict[RelPath, SyncAction] = {}
    for action in actions:
        target = target_of(action)
        if target is not None:
            if target in producers:
                raise PlanError(
                    "Two actions produce the same path",
                    details={
                        "path": format_path(target),
                        "actions": [describe(producers[target]), describe(action)],
                    },
                )
            producers[target] = action
        vacated = vacated_by(action)
        if vacated is not None:
            if vacated in vacaters:
                raise PlanError(
                    "Two actions vacate the same path",
                    details={
                        "path": format_path(vacated),
                        "actions": [describe(vacaters[vacated]), describe(action)],
                    },
                )
            vacaters[vacated] = action
    return producers, vacaters


def _dependencies(actions: list[SyncAction]) -> dict[str, set[SyncAction]]:
    producers, vacaters = _index(actions)
    moves = [a for a in actions if isinstance(a, Move)]
    deps: dict[str, set[SyncAction]] = {a.op_id: set() for a in actions}

    for action in actions:
        found = deps[action.op_id]
        target = target_of(action)
        if target is not None:
            for i in range(len(target), 0, -1):
                prefix = target[:i]
                if i < len(target):
                    producer = producers.get(prefix)
                    if isinstance(producer, Move) or (
                        isinstance(producer, Create) and producer.entry.is_dir
                    ):
                        found.add(producer)
                vacater = vacaters.get(prefix)
                if vacater is not None and vacater is not action:
                    found.add(vacater)

        if isinstance(action, Delete):
            for move in moves:
                if is_strict_ancestor(action.path, move.from_path):
                    found.add(move)

    return deps


def _levels(
    actions: list[SyncAction],
    deps: dict[str, set[SyncAction]],
) -> tuple[dict[str, int], list[SyncAction]]:
    """Kahn's algorithm; returns levels by op_id and the actions left on cycles."""
    dependents: dict[str, list[SyncAction]] = defaultdict(list)
    unmet: dict[str, int] = {}
    for action in actions:
        unmet[action.op_id] = len(deps[action.op_id])
        for dep in deps[action.op_id]:
            dependents[dep.op_id].append(action)

    levels: dict[str, int] = {}
    frontier = [a for a in actions if unmet[a.op_id] == 0]
    level = 0
    while frontier:
        next_frontier: list[SyncAction] = []
        for action in frontier:
            levels[action.op_id] = level
            for dependent in dependents[action.op_id]:
                unmet[dependent.op_id] -= 1
                if unmet[dependent.op_id] == 0:
                    next_frontier.append(dependent)
        frontier = next_frontier
        level += 1

    remaining = [a for a in actions if a.op_id not in levels]
    return levels, remaining


def _cycle_core(
    remaining: list[SyncAction],
    deps: dict[str, set[SyncAction]],
) -> list[SyncAction]:
    """Strip actions that merely wait on a cycle without being part of one."""
    core: dict[str, SyncAction] = {a.op_id: a for a in remaining}
    changed = True
    while changed:
        changed = False
        needed: set[str] = set()
        for action in core.values():
            needed.update(d.op_id for d in deps[action.op_id] if d.op_id in core)
        for op_id in [o for o in core if o not in needed]:
            del core[op_id]
            changed = True
    return sorted(core.values(), key=sort_key)


def batch_of(sync_plan: SyncPlan, action: SyncAction) -> Optional[int]:
    for index, batch in enumerate(sync_plan.batches):
        if action in batch:
            return index
    return None
