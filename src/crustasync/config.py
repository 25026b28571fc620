"""Run configuration for crustasync."""

from __future__ import annotations

import os
from dataclasses import dataclass

from crustasync.errors import ConfigError
from crustasync.execute.retry import RetryPolicy

CONFIG_DIR_ENV = "CRUSTASYNC_CONFIG_DIR"
DEFAULT_CONFIG_DIR = os.path.join("~", ".config", "crustasync")
FINGERPRINT_CACHE_FILE_NAME = "fingerprints.json"


@dataclass(slots=True, frozen=True)
class SyncOptions:
    """
    Options consumed by the core, passed explicitly at construction.

    Notes:
        - ``use_trash`` only affects the RemoteDrive backend.
        - ``fingerprint_cache`` only affects the Local backend.
    """

    dry_run: bool = False
    concurrency: int = 4
    max_attempts: int = 3
    initial_backoff: float = 1.0
    backoff_multiplier: float = 2.0
    max_backoff: float = 30.0
    call_timeout: float = 60.0
    use_trash: bool = True
    fingerprint_cache: bool = False
    config_dir: str = DEFAULT_CONFIG_DIR

    def __post_init__(self) -> None:
        if not isinstance(self.concurrency, int) or self.concurrency < 1:
            raise ConfigError("concurrency must be an integer >= 1")
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ConfigError("max_attempts must be an integer >= 1")
        if self.initial_backoff < 0 or self.max_backoff < 0:
            raise ConfigError("backoff delays must be >= 0")
        if self.backoff_multiplier < 1:
            raise ConfigError("backoff_multiplier must be >= 1")
        if self.call_timeout <= 0:
            raise ConfigError("call_timeout must be > 0")
        if not isinstance(self.config_dir, str) or not self.config_dir.strip():
            raise ConfigError("config_dir must be a non-empty string")

    @property
    def resolved_config_dir(self) -> str:
        return os.path.abspath(os.path.expanduser(self.config_dir))

    @property
    def fingerprint_cache_file(self) -> str:
        return os.path.join(self.resolved_config_dir, FINGERPRINT_CACHE_FILE_NAME)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay_sec=self.initial_backoff,
            multiplier=self.backoff_multiplier,
            max_delay_sec=self.max_backoff,
        )
