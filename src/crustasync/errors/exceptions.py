"""Exception hierarchy and backend error mapping for crustasync."""

from __future__ import annotations

import errno
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Optional


class CrustaSyncError(Exception):
    """
    Base exception for crustasync.

    Attributes:
        details: Optional structured information (e.g., HTTP status, path).
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


class ErrorKind(str, Enum):
    """Classification of backend failures; drives the retry decision."""

    NOT_FOUND = "NotFound"
    PERMISSION_DENIED = "PermissionDenied"
    RATE_LIMITED = "RateLimited"
    TRANSIENT = "Transient"
    FATAL = "Fatal"


_RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.RATE_LIMITED, ErrorKind.TRANSIENT}
)


class BackendError(CrustaSyncError):
    """Raised by Backend operations. Subclasses fix ``kind``."""

    kind: ClassVar[ErrorKind] = ErrorKind.FATAL

    @property
    def is_retryable(self) -> bool:
        return self.kind in _RETRYABLE_KINDS


class NotFoundError(BackendError):
    """Raised when a path does not exist on the backend."""

    kind = ErrorKind.NOT_FOUND


class PermissionDeniedError(BackendError):
    """Raised when access is denied (HTTP 401/403 non-quota, EACCES)."""

    kind = ErrorKind.PERMISSION_DENIED


class RateLimitError(BackendError):
    """Raised when rate-limited or quota-throttled (HTTP 429, 403 rate reasons)."""

    kind = ErrorKind.RATE_LIMITED


class TransientError(BackendError):
    """Raised for failures worth retrying: timeouts, 5xx, dropped connections."""

    kind = ErrorKind.TRANSIENT


class FatalBackendError(BackendError):
    """Raised for failures that retrying cannot fix (bad request, kind clash)."""

    kind = ErrorKind.FATAL


class AuthError(CrustaSyncError):
    """Raised when OAuth authentication/refresh fails."""


class ConfigError(CrustaSyncError):
    """Raised for invalid options or location strings."""


class ScanError(CrustaSyncError):
    """Raised when a tree cannot be enumerated; aborts the whole run."""


class PlanError(CrustaSyncError):
    """Raised when actions cannot be ordered; aborts before any execution."""


class ExecutionError(CrustaSyncError):
    """
    Terminal failure of one action, recorded in its ActionResult.

    Never raised out of the Executor; a failed action does not stop the batch.
    """

    def __init__(
        self,
        message: str,
        *,
        action: Any = None,
        attempts: int = 0,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, details=details, cause=cause)
        self.action = action
        self.attempts = attempts

    @property
    def kind(self) -> Optional[ErrorKind]:
        if isinstance(self.cause, BackendError):
            return self.cause.kind
        return None


@dataclass(frozen=True)
class HttpErrorInfo:
    """Lightweight HTTP error information for mapping to backend errors."""

    status_code: int
    reason: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None


_RATE_REASON_KEYWORDS: tuple[str, ...] = (
    "quota",
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "dailyLimitExceeded",
    "usageLimits",
)


def _is_rate_reason(reason: str | None) -> bool:
    if not reason:
        return False
    # storageQuotaExceeded will not clear by waiting.
    if "storagequota" in reason.lower():
        return False
    return any(key.lower() in reason.lower() for key in _RATE_REASON_KEYWORDS)


def map_http_error(
    info: HttpErrorInfo,
    *,
    cause: Optional[BaseException] = None,
) -> BackendError:
    """
    Map an HTTP error to a BackendError.

    Policy:
        - 401 -> PermissionDenied
        - 403 -> RateLimited if rate/quota related, PermissionDenied otherwise
        - 404 -> NotFound
        - 408 -> Transient
        - 429 -> RateLimited
        - 5xx -> Transient
        - 400/409/412 and anything else -> Fatal
    """
    details: dict[str, Any] = {
        "status_code": info.status_code,
        "reason": info.reason,
    }
    if info.details:
        details.update(info.details)

    message = info.message or f"HTTP error {info.status_code}"

    if info.status_code == 401:
        return PermissionDeniedError(message, details=details, cause=cause)
    if info.status_code == 403:
        if _is_rate_reason(info.reason):
            return RateLimitError(message, details=details, cause=cause)
        return PermissionDeniedError(message, details=details, cause=cause)
    if info.status_code == 404:
        return NotFoundError(message, details=details, cause=cause)
    if info.status_code == 408:
        return TransientError(message, details=details, cause=cause)
    if info.status_code == 429:
        return RateLimitError(message, details=details, cause=cause)
    if 500 <= info.status_code <= 599:
        return TransientError(message, details=details, cause=cause)

    return FatalBackendError(message, details=details, cause=cause)


_TRANSIENT_ERRNOS: frozenset[int] = frozenset(
    {errno.EAGAIN, errno.EBUSY, errno.EINTR, errno.ETIMEDOUT}
)


def map_os_error(exc: OSError, path: str) -> BackendError:
    """Map an OSError raised by filesystem or socket calls to a BackendError."""
    details: dict[str, Any] = {"path": path, "errno": exc.errno}
    message = f"{exc.strerror or exc.__class__.__name__}: {path}"

    if isinstance(exc, FileNotFoundError):
        return NotFoundError(message, details=details, cause=exc)
    if isinstance(exc, PermissionError):
        return PermissionDeniedError(message, details=details, cause=exc)
    if isinstance(exc, (TimeoutError, socket.timeout, ConnectionError)):
        return TransientError(message, details=details, cause=exc)
    if exc.errno in _TRANSIENT_ERRNOS:
        return TransientError(message, details=details, cause=exc)
    return FatalBackendError(message, details=details, cause=exc)
