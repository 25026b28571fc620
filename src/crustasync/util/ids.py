from __future__ import annotations

import uuid


def new_uuid() -> str:
    """Generate a UUID4 string."""
    return str(uuid.uuid4())


def new_plan_id() -> str:
    """Generate a new Plan ID."""
    return new_uuid()


def new_op_id() -> str:
    """Generate a new SyncAction ID."""
    return new_uuid()
