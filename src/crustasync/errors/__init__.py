"""Public error exports for crustasync."""

from __future__ import annotations

from .exceptions import (
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
    map_os_error,
)

__all__ = [
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
    "map_os_error",
]
