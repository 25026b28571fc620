"""Relative path helpers.

Paths inside a synchronized tree are tuples of segments relative to the tree
root; ``()`` is the root itself. Both backends translate them to their own
addressing (filesystem paths, Drive folder ids).
"""

from __future__ import annotations

from typing import Iterator

RelPath = tuple[str, ...]

ROOT: RelPath = ()


def to_rel_path(value: str) -> RelPath:
    """
    Parse a ``/``-separated path into a RelPath.

    Empty segments and ``.`` are dropped; ``..`` is rejected because a sync
    never addresses anything outside of its root.
    """
    if not isinstance(value, str):
        raise TypeError("path must be a string")

    segments: list[str] = []
    for part in value.replace("\\", "/").split("/"):
        if not part or part == ".":
            continue
        if part == "..":
            raise ValueError(f"'..' is not allowed in a relative path: {value!r}")
        segments.append(part)
    return tuple(segments)


def format_path(path: RelPath) -> str:
    return "/" + "/".join(path)


def parent_of(path: RelPath) -> RelPath:
    if not path:
        raise ValueError("root has no parent")
    return path[:-1]


def ancestors_of(path: RelPath) -> Iterator[RelPath]:
    """Yield strict ancestors, nearest first, excluding the root."""
    for i in range(len(path) - 1, 0, -1):
        yield path[:i]


def is_strict_ancestor(ancestor: RelPath, path: RelPath) -> bool:
    return len(ancestor) < len(path) and path[: len(ancestor)] == ancestor


def is_within(path: RelPath, base: RelPath) -> bool:
    """True if ``path`` is ``base`` or lies below it."""
    return path[: len(base)] == base


def rebase(path: RelPath, old_base: RelPath, new_base: RelPath) -> RelPath:
    if not is_within(path, old_base):
        raise ValueError(f"{format_path(path)} is not within {format_path(old_base)}")
    return new_base + path[len(old_base):]


def path_edit_distance(a: RelPath, b: RelPath) -> int:
    """Levenshtein distance between the ``/``-joined forms of two paths."""
    s = "/".join(a)
    t = "/".join(b)
    if s == t:
        return 0
    if not s:
        return len(t)
    if not t:
        return len(s)

    previous = list(range(len(t) + 1))
    for i, cs in enumerate(s, start=1):
        current = [i]
        for j, ct in enumerate(t, start=1):
            cost = 0 if cs == ct else 1
            current.append(
                min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            )
        previous = current
    return previous[-1]
