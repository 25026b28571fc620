"""Authentication information for the RemoteDrive backend (OAuth only)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

CLIENT_SECRETS_FILE_NAME = "client_secrets.json"
TOKEN_FILE_NAME = "token.json"


@dataclass(slots=True, frozen=True)
class AuthInfo:
    """
    Authentication information.

    Only OAuth is supported:
        kind = "oauth"
        data must include:
            - client_secrets_file
            - token_file
    """

    kind: str
    data: dict[str, Any]

    def __post_init__(self) -> None:
        if self.kind != "oauth":
            raise ValueError("AuthInfo.kind must be 'oauth'")

        if not isinstance(self.data, dict):
            raise TypeError("AuthInfo.data must be a dict")

        for key in ("client_secrets_file", "token_file"):
            value = self.data.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"AuthInfo.data['{key}'] must be a non-empty string")

    @classmethod
    def from_config_dir(cls, config_dir: str) -> AuthInfo:
        """Use the conventional file names inside the crustasync config directory."""
        config_dir = os.path.expanduser(config_dir)
        return cls(
            kind="oauth",
            data={
                "client_secrets_file": os.path.join(config_dir, CLIENT_SECRETS_FILE_NAME),
                "token_file": os.path.join(config_dir, TOKEN_FILE_NAME),
            },
        )

    @property
    def client_secrets_file(self) -> str:
        """Path to OAuth client secrets JSON."""
        return str(self.data["client_secrets_file"])

    @property
    def token_file(self) -> str:
        """Path to OAuth token JSON (authorized user)."""
        return str(self.data["token_file"])
