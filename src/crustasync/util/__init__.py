from .ids import new_op_id, new_plan_id, new_uuid
from .mime import (
    FOLDER_MIME,
    GOOGLE_APP_MIMES,
    SHORTCUT_MIME,
    is_folder,
    is_google_app,
    is_google_docs_download_disallowed,
)
from .paths import (
    ROOT,
    RelPath,
    ancestors_of,
    format_path,
    is_strict_ancestor,
    is_within,
    parent_of,
    path_edit_distance,
    rebase,
    to_rel_path,
)
from .time import (
    from_timestamp,
    normalize_dt,
    now_utc,
    parse_rfc3339,
    to_rfc3339,
)

__all__ = [
    "new_uuid",
    "new_plan_id",
    "new_op_id",
    "FOLDER_MIME",
    "GOOGLE_APP_MIMES",
    "SHORTCUT_MIME",
    "is_folder",
    "is_google_app",
    "is_google_docs_download_disallowed",
    "ROOT",
    "RelPath",
    "to_rel_path",
    "format_path",
    "parent_of",
    "ancestors_of",
    "is_strict_ancestor",
    "is_within",
    "rebase",
    "path_edit_distance",
    "now_utc",
    "from_timestamp",
    "parse_rfc3339",
    "to_rfc3339",
    "normalize_dt",
]
