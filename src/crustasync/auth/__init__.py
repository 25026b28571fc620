"""Public auth exports for crustasync."""

from __future__ import annotations

from .auth_info import AuthInfo
from .oauth_client import DRIVE_SCOPES, OAuthClient, build_drive_service

__all__ = ["AuthInfo", "OAuthClient", "DRIVE_SCOPES", "build_drive_service"]
