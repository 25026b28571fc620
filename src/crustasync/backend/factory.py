"""Construction of backend handles from location strings."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from crustasync.auth import AuthInfo, OAuthClient
from crustasync.config import SyncOptions
from crustasync.errors import ConfigError
from crustasync.util.paths import RelPath, to_rel_path

from .base import Backend, BackendKind
from .drive import DriveBackend
from .fingerprint_cache import FingerprintCache
from .local import LocalBackend

logger = logging.getLogger(__name__)

DRIVE_PREFIX = "gd:"


def parse_location(location: str) -> tuple[BackendKind, str]:
    """
    Split a SRC/DST argument into its backend variant and path.

    ``gd:<remote-path>`` selects RemoteDrive; anything else is a local path.
    """
    if not isinstance(location, str) or not location.strip():
        raise ConfigError("location must be a non-empty string")

    if location.startswith(DRIVE_PREFIX):
        return BackendKind.REMOTE_DRIVE, location[len(DRIVE_PREFIX):]
    return BackendKind.LOCAL, location


def drive_root_path(remote_path: str) -> RelPath:
    try:
        return to_rel_path(remote_path)
    except ValueError as exc:
        raise ConfigError(str(exc), details={"path": remote_path}, cause=exc) from exc


def open_backend(
    location: str,
    options: SyncOptions,
    *,
    auth_info: Optional[AuthInfo] = None,
    service_factory: Optional[Callable[[], Any]] = None,
    cache: Optional[FingerprintCache] = None,
) -> Backend:
    """
    Build the backend handle for ``location``.

    This is the only place that branches on the backend variant. For Drive,
    ``service_factory`` overrides the OAuth-backed one (tests, custom auth).
    A local backend uses ``cache`` when given, else loads one if
    ``options.fingerprint_cache`` is set.
    """
    kind, path = parse_location(location)

    if kind is BackendKind.REMOTE_DRIVE:
        root_path = drive_root_path(path)
        if service_factory is None:
            info = auth_info or AuthInfo.from_config_dir(options.resolved_config_dir)
            service_factory = OAuthClient(info).drive_service_factory(
                timeout=options.call_timeout
            )
        backend: Backend = DriveBackend(
            service_factory,
            root_path,
            use_trash=options.use_trash,
        )
    else:
        if cache is None and options.fingerprint_cache:
            cache = FingerprintCache.load(options.fingerprint_cache_file)
        backend = LocalBackend(path, cache=cache)

    logger.debug("Opened %s backend at %s", backend.kind.value, backend.root_id)
    return backend
