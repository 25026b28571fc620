"""Public scan exports for crustasync."""

from __future__ import annotations

from .snapshotter import Snapshotter, build_snapshot

__all__ = ["Snapshotter", "build_snapshot"]
