"""Result model for executed actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from crustasync.errors import ExecutionError

ActionStatus = Literal["success", "skipped", "failed"]
SkipReason = Literal["dry_run", "dependency", "cancelled"]


@dataclass(slots=True)
class ActionResult:
    """Terminal outcome for a single SyncAction."""

    action: Any
    status: ActionStatus

    skip_reason: Optional[SkipReason] = None
    error: Optional[ExecutionError] = None
    attempts: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def error_type(self) -> Optional[str]:
        if self.error is None:
            return None
        cause = self.error.cause
        return (cause or self.error).__class__.__name__

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None
