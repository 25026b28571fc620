"""crustasync public API."""

from __future__ import annotations

__version__ = "0.1.0"

from crustasync.auth import AuthInfo, OAuthClient
from crustasync.backend import (
    Backend,
    BackendKind,
    DriveBackend,
    FingerprintCache,
    LocalBackend,
    open_backend,
)
from crustasync.config import SyncOptions
from crustasync.errors import (
    AuthError,
    BackendError,
    ConfigError,
    CrustaSyncError,
    ErrorKind,
    ExecutionError,
    FatalBackendError,
    HttpErrorInfo,
    NotFoundError,
    PermissionDeniedError,
    PlanError,
    RateLimitError,
    ScanError,
    TransientError,
    map_http_error,
)
from crustasync.execute import Executor, RetryPolicy
from crustasync.manager import SyncManager
from crustasync.models import ActionResult, Entry, EntryKind, Fingerprint, Snapshot
from crustasync.plan import Create, Delete, Move, SyncPlan, Update, diff, plan
from crustasync.report import SyncReport, build_report, format_plan
from crustasync.scan import Snapshotter, build_snapshot

__all__ = [
    "__version__",
    # High-level
    "SyncManager",
    "SyncOptions",
    # Backends
    "Backend",
    "BackendKind",
    "LocalBackend",
    "DriveBackend",
    "FingerprintCache",
    "open_backend",
    # Auth
    "AuthInfo",
    "OAuthClient",
    # Pipeline
    "Snapshotter",
    "build_snapshot",
    "diff",
    "plan",
    "Executor",
    "RetryPolicy",
    "build_report",
    "format_plan",
    # Models
    "Entry",
    "EntryKind",
    "Fingerprint",
    "Snapshot",
    "Create",
    "Update",
    "Delete",
    "Move",
    "SyncPlan",
    "ActionResult",
    "SyncReport",
    # Errors
    "CrustaSyncError",
    "ErrorKind",
    "BackendError",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitError",
    "TransientError",
    "FatalBackendError",
    "AuthError",
    "ConfigError",
    "ScanError",
    "PlanError",
    "ExecutionError",
    "HttpErrorInfo",
    "map_http_error",
]
