"""Google Drive (v3) backend."""

from __future__ import annotations

import json
import logging
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from tempfile import SpooledTemporaryFile
from typing import Any, BinaryIO, Callable, Optional, TypeVar

from crustasync.errors import (
    AuthError,
    BackendError,
    FatalBackendError,
    HttpErrorInfo,
    NotFoundError,
    TransientError,
    map_http_error,
)
from crustasync.models import EntryKind
from crustasync.util.mime import (
    FOLDER_MIME,
    OCTET_STREAM_MIME,
    is_folder,
    is_google_docs_download_disallowed,
)
from crustasync.util.paths import RelPath, format_path, is_within, rebase
from crustasync.util.time import parse_rfc3339, to_rfc3339

from .base import BackendKind, ListedItem, MoveOutcome
from .fields import FILE_FIELDS, LIST_FIELDS, LIST_PAGE_SIZE

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SPOOL_MAX_SIZE = 8 * 1024 * 1024
_UPLOAD_CHUNK_SIZE = 8 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class _DriveItem:
    file_id: str
    is_folder: bool


class DriveBackend:
    """
    Backend over a folder of Google Drive.

    Notes:
        - Drive addresses items by id; paths are resolved by walking folder
          names from ``root`` and cached (path -> id) under a lock.
        - Each worker thread gets its own service object from
          ``service_factory`` because httplib2 connections are not thread safe.
        - Google-native documents and shortcuts have no byte content; they
          are left out of listings.
        - No retry happens here.
    """

    kind = BackendKind.REMOTE_DRIVE

    def __init__(
        self,
        service_factory: Callable[[], Any],
        root_path: RelPath = (),
        *,
        use_trash: bool = True,
        supports_all_drives: bool = True,
    ) -> None:
        self._service_factory = service_factory
        self._root_path = tuple(root_path)
        self._use_trash = use_trash
        self._supports_all_drives = supports_all_drives

        self._thread_local = threading.local()
        self._lock = threading.Lock()
        self._items: dict[RelPath, _DriveItem] = {}

        self.root_id = "gd:" + format_path(self._root_path)

    @classmethod
    def from_service(
        cls,
        service: Any,
        root_path: RelPath = (),
        *,
        use_trash: bool = True,
        supports_all_drives: bool = True,
    ) -> "DriveBackend":
        """Create a backend over one pre-built Drive service (useful for tests)."""
        return cls(
            lambda: service,
            root_path,
            use_trash=use_trash,
            supports_all_drives=supports_all_drives,
        )

    def __repr__(self) -> str:
        return f"DriveBackend({self.root_id!r})"

    # ----------------------------
    # Capability set
    # ----------------------------
    def list(self, dir_path: RelPath) -> list[ListedItem]:
        parent = self._resolve(dir_path)
        if not parent.is_folder:
            raise FatalBackendError(
                "Not a folder", details={"path": format_path(dir_path)}
            )

        items: list[ListedItem] = []
        seen: set[str] = set()
        for data in self._query_children(parent.file_id):
            name = data.get("name")
            mime_type = data.get("mimeType", "")
            if not isinstance(name, str) or not name:
                continue

            if not is_folder(mime_type) and is_google_docs_download_disallowed(mime_type):
                logger.warning(
                    "Skipping Google-native item without byte content: %s (%s)",
                    format_path(dir_path + (name,)),
                    mime_type,
                )
                continue

            if name in seen:
                logger.warning(
                    "Skipping duplicate name in Drive folder: %s",
                    format_path(dir_path + (name,)),
                )
                continue
            seen.add(name)

            self._remember(dir_path + (name,), data)
            items.append(_file_dict_to_listed_item(data))

        logger.debug("Listed %d items in %s", len(items), format_path(dir_path))
        return items

    def read_content(self, path: RelPath) -> BinaryIO:
        from googleapiclient.http import MediaIoBaseDownload

        item = self._resolve(path)
        if item.is_folder:
            raise FatalBackendError("Cannot read a folder", details={"path": format_path(path)})

        request = self._service().files().get_media(
            fileId=item.file_id,
            acknowledgeAbuse=True,
            **self._common_get_kwargs(),
        )
        buf: BinaryIO = SpooledTemporaryFile(max_size=_SPOOL_MAX_SIZE)  # type: ignore[assignment]
        try:
            downloader = MediaIoBaseDownload(buf, request, chunksize=_UPLOAD_CHUNK_SIZE)
            done = False
            while not done:
                _, done = self._execute(downloader.next_chunk)
        except BaseException:
            buf.close()
            raise

        buf.seek(0)
        return buf

    def write_content(
        self,
        path: RelPath,
        stream: BinaryIO,
        expected_size: Optional[int],
        *,
        modified_at: Optional[datetime] = None,
    ) -> None:
        from googleapiclient.http import MediaIoBaseUpload

        if not path:
            raise FatalBackendError("Cannot write to the backend root")

        parent = self._resolve(path[:-1])
        existing = self._find_child(path, parent)
        if existing is not None and existing.is_folder:
            raise FatalBackendError(
                "Cannot write file over a folder", details={"path": format_path(path)}
            )

        media = MediaIoBaseUpload(
            stream,
            mimetype=OCTET_STREAM_MIME,
            chunksize=_UPLOAD_CHUNK_SIZE,
            resumable=True,
        )
        body: dict[str, Any] = {}
        if modified_at is not None:
            body["modifiedTime"] = to_rfc3339(modified_at)

        files = self._service().files()
        if existing is not None:
            logger.debug("Updating file content at %s", format_path(path))
            req = files.update(
                fileId=existing.file_id,
                body=body,
                media_body=media,
                fields=FILE_FIELDS,
                **self._common_write_kwargs(),
            )
        else:
            logger.debug("Creating file at %s", format_path(path))
            body["name"] = path[-1]
            body["parents"] = [parent.file_id]
            req = files.create(
                body=body,
                media_body=media,
                fields=FILE_FIELDS,
                **self._common_write_kwargs(),
            )

        data = self._execute(req.execute)
        self._remember(path, data)

        size = _parse_size(data.get("size"))
        if expected_size is not None and size is not None and size != expected_size:
            raise TransientError(
                "Size mismatch after upload",
                details={
                    "path": format_path(path),
                    "expected_size": expected_size,
                    "uploaded": size,
                },
            )

    def make_directory(self, path: RelPath) -> None:
        if not path:
            return

        parent = self._resolve(path[:-1])
        existing = self._find_child(path, parent)
        if existing is not None:
            if existing.is_folder:
                return
            raise FatalBackendError(
                "Path exists and is not a folder", details={"path": format_path(path)}
            )

        body = {"name": path[-1], "mimeType": FOLDER_MIME, "parents": [parent.file_id]}
        req = self._service().files().create(
            body=body,
            fields=FILE_FIELDS,
            **self._common_write_kwargs(),
        )
        data = self._execute(req.execute)
        self._remember(path, data)

    def delete(self, path: RelPath) -> None:
        if not path:
            raise FatalBackendError("Refusing to delete the backend root")

        item = self._resolve(path)
        files = self._service().files()
        if self._use_trash:
            req = files.update(
                fileId=item.file_id,
                body={"trashed": True},
                fields="id",
                **self._common_write_kwargs(),
            )
        else:
            req = files.delete(fileId=item.file_id, **self._common_write_kwargs())
        self._execute(req.execute)
        self._forget(path)

    def move(self, from_path: RelPath, to_path: RelPath) -> MoveOutcome:
        if not from_path or not to_path:
            raise FatalBackendError("Cannot move the backend root")

        item = self._resolve(from_path)
        old_parent = self._resolve(from_path[:-1])
        new_parent = self._resolve(to_path[:-1])
        if not new_parent.is_folder:
            raise FatalBackendError(
                "Move destination parent is not a folder",
                details={"path": format_path(to_path[:-1])},
            )
        if self._find_child(to_path, new_parent) is not None:
            raise FatalBackendError(
                "Move destination already exists",
                details={"from": format_path(from_path), "to": format_path(to_path)},
            )

        kwargs: dict[str, Any] = {}
        if new_parent.file_id != old_parent.file_id:
            kwargs["addParents"] = new_parent.file_id
            kwargs["removeParents"] = old_parent.file_id

        req = self._service().files().update(
            fileId=item.file_id,
            body={"name": to_path[-1]},
            fields=FILE_FIELDS,
            **kwargs,
            **self._common_write_kwargs(),
        )
        self._execute(req.execute)
        self._rebase_cached(from_path, to_path)
        return MoveOutcome(native=True)

    def content_digest(self, path: RelPath) -> Optional[str]:
        item = self._resolve(path)
        req = self._service().files().get(
            fileId=item.file_id,
            fields="sha256Checksum",
            **self._common_get_kwargs(),
        )
        data = self._execute(req.execute)
        value = data.get("sha256Checksum")
        return value.lower() if isinstance(value, str) else None

    # ----------------------------
    # Path resolution
    # ----------------------------
    def _resolve(self, path: RelPath) -> _DriveItem:
        """Return the Drive item at ``path`` or raise NotFoundError."""
        with self._lock:
            cached = self._items.get(path)
        if cached is not None:
            return cached

        if not path:
            root = self._resolve_root()
            with self._lock:
                self._items[()] = root
            return root

        parent = self._resolve(path[:-1])
        found = self._find_child(path, parent)
        if found is None:
            raise NotFoundError(
                "Path not found on Drive",
                details={"root": self.root_id, "path": format_path(path)},
            )
        return found

    def _resolve_root(self) -> _DriveItem:
        current = _DriveItem(file_id="root", is_folder=True)
        for depth, name in enumerate(self._root_path):
            matches = self._query_children(current.file_id, name=name)
            if not matches:
                raise NotFoundError(
                    "Root path not found on Drive",
                    details={"path": format_path(self._root_path[: depth + 1])},
                )
            current = _item_from_dict(matches[0])
            if not current.is_folder:
                raise FatalBackendError(
                    "Root path component is not a folder",
                    details={"path": format_path(self._root_path[: depth + 1])},
                )
        return current

    def _find_child(self, path: RelPath, parent: _DriveItem) -> Optional[_DriveItem]:
        with self._lock:
            cached = self._items.get(path)
        if cached is not None:
            return cached

        matches = self._query_children(parent.file_id, name=path[-1])
        if not matches:
            return None
        return self._remember(path, matches[0])

    def _remember(self, path: RelPath, data: dict[str, Any]) -> _DriveItem:
        item = _item_from_dict(data)
        with self._lock:
            self._items[path] = item
        return item

    def _forget(self, path: RelPath) -> None:
        with self._lock:
            for cached in [p for p in self._items if is_within(p, path)]:
                del self._items[cached]

    def _rebase_cached(self, from_path: RelPath, to_path: RelPath) -> None:
        with self._lock:
            moved = {p: i for p, i in self._items.items() if is_within(p, from_path)}
            for p in [p for p in self._items if is_within(p, to_path)]:
                del self._items[p]
            for p, item in moved.items():
                del self._items[p]
                self._items[rebase(p, from_path, to_path)] = item

    # ----------------------------
    # Requests
    # ----------------------------
    def _service(self) -> Any:
        service = getattr(self._thread_local, "service", None)
        if service is None:
            service = self._execute(self._service_factory)
            self._thread_local.service = service
        return service

    def _common_get_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    def _common_list_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True, "includeItemsFromAllDrives": True}

    def _common_write_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    def _query_children(
        self,
        parent_id: str,
        *,
        name: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        q = _build_parent_query(parent_id, name=name)
        all_files: list[dict[str, Any]] = []
        page_token: Optional[str] = None

        while True:
            req = self._service().files().list(
                q=q,
                fields=LIST_FIELDS,
                pageSize=LIST_PAGE_SIZE,
                pageToken=page_token,
                **self._common_list_kwargs(),
            )
            data = self._execute(req.execute)
            all_files.extend(f for f in data.get("files", []) if isinstance(f, dict))

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        return all_files

    def _execute(self, func: Callable[[], T]) -> T:
        try:
            return func()
        except BackendError:
            raise
        except Exception as exc:
            raise _map_exception(exc) from exc


def _map_exception(exc: Exception) -> BackendError:
    import httplib2
    from googleapiclient.errors import HttpError

    if isinstance(exc, HttpError):
        info = _http_error_to_info(exc)
        return map_http_error(info, cause=exc)

    if isinstance(exc, AuthError):
        return FatalBackendError("Drive authentication failed", details=exc.details, cause=exc)

    if isinstance(exc, (socket.timeout, TimeoutError, ConnectionError)):
        return TransientError("Drive request timed out or was interrupted", cause=exc)

    if isinstance(exc, (OSError, httplib2.HttpLib2Error)):
        return TransientError("Network error", cause=exc)

    return FatalBackendError("Drive API error", cause=exc)


def _escape_query(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _build_parent_query(parent_id: str, *, name: Optional[str] = None) -> str:
    q = f"'{_escape_query(parent_id)}' in parents and trashed=false"
    if name is not None:
        q = f"{q} and name = '{_escape_query(name)}'"
    return q


def _parse_size(value: Any) -> Optional[int]:
    if isinstance(value, str) and value.isdigit():
        return int(value)
    if isinstance(value, int):
        return value
    return None


def _item_from_dict(data: dict[str, Any]) -> _DriveItem:
    file_id = data.get("id")
    if not isinstance(file_id, str) or not file_id:
        raise FatalBackendError("Drive response is missing the file id", details={"data": data})
    return _DriveItem(file_id=file_id, is_folder=is_folder(data.get("mimeType", "")))


def _file_dict_to_listed_item(data: dict[str, Any]) -> ListedItem:
    mime_type = data.get("mimeType", "")
    kind = EntryKind.DIRECTORY if is_folder(mime_type) else EntryKind.FILE

    modified_at = None
    if isinstance(data.get("modifiedTime"), str):
        try:
            modified_at = parse_rfc3339(data["modifiedTime"])
        except ValueError:
            modified_at = None

    checksum = data.get("sha256Checksum")
    hint = checksum.lower() if isinstance(checksum, str) and checksum else None

    return ListedItem(
        name=data.get("name", ""),
        kind=kind,
        size=_parse_size(data.get("size")) if kind is EntryKind.FILE else None,
        modified_at=modified_at,
        fingerprint_hint=hint if kind is EntryKind.FILE else None,
    )


def _http_error_to_info(exc: Any) -> HttpErrorInfo:
    status_code = getattr(getattr(exc, "resp", None), "status", None)
    reason = getattr(getattr(exc, "resp", None), "reason", None)

    message = None
    details: dict[str, Any] = {}

    content = getattr(exc, "content", None)
    if isinstance(content, (bytes, bytearray)):
        try:
            payload = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            payload = None
        err = payload.get("error", {}) if isinstance(payload, dict) else {}
        if isinstance(err, dict):
            message = err.get("message") or None
            errors = err.get("errors") or []
            if errors and isinstance(errors, list) and isinstance(errors[0], dict):
                details["domain"] = errors[0].get("domain")
                details["reason_detail"] = errors[0].get("reason")
                if isinstance(errors[0].get("reason"), str):
                    reason = errors[0]["reason"]

    if not isinstance(status_code, int):
        try:
            status_code = int(status_code)
        except (TypeError, ValueError):
            status_code = 0

    return HttpErrorInfo(
        status_code=status_code,
        reason=reason if isinstance(reason, str) else None,
        message=message,
        details=details or None,
    )
