"""Command-line entry point for crustasync."""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any, Optional

import click

from crustasync import __version__
from crustasync.backend import FingerprintCache, open_backend, parse_location
from crustasync.backend.base import BackendKind
from crustasync.config import CONFIG_DIR_ENV, DEFAULT_CONFIG_DIR, SyncOptions
from crustasync.errors import AuthError, ConfigError, PlanError, ScanError
from crustasync.manager import SyncManager
from crustasync.report import format_plan

logger = logging.getLogger(__name__)

EXIT_USAGE_ERROR = 2

_LOG_LEVELS = {
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=_LOG_LEVELS[level_name.upper()],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)


class _InterruptHandler:
    """First SIGINT requests a graceful stop, the second one aborts."""

    def __init__(self, cancel_event: threading.Event) -> None:
        self._cancel_event = cancel_event
        self._previous: Any = None
        self._installed = False

    def __enter__(self) -> _InterruptHandler:
        if threading.current_thread() is threading.main_thread():
            self._previous = signal.signal(signal.SIGINT, self._handle)
            self._installed = True
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._installed:
            signal.signal(signal.SIGINT, self._previous or signal.SIG_DFL)

    def _handle(self, signum: int, frame: Any) -> None:
        if self._cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Interrupt received: finishing running actions (press Ctrl-C again to abort)")
        self._cancel_event.set()


@click.command()
@click.argument("src")
@click.argument("dst")
@click.option("--dry-run", is_flag=True, help="Print the plan without changing DST")
@click.option(
    "--log-level",
    type=click.Choice(list(_LOG_LEVELS), case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging verbosity",
)
@click.option(
    "--config-dir",
    "-c",
    envvar=CONFIG_DIR_ENV,
    default=DEFAULT_CONFIG_DIR,
    show_default=True,
    help="Directory holding client_secrets.json, token.json and the fingerprint cache",
)
@click.option("--concurrency", type=click.IntRange(min=1), default=4, show_default=True)
@click.option(
    "--max-attempts",
    type=click.IntRange(min=1),
    default=3,
    show_default=True,
    help="Attempts per action for rate-limited or transient failures",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=60.0,
    show_default=True,
    help="Per-call timeout in seconds for Drive requests",
)
@click.option("--no-trash", is_flag=True, help="Delete Drive files permanently instead of trashing them")
@click.option(
    "--fingerprint-cache",
    is_flag=True,
    help="Reuse local content hashes of unchanged files across runs",
)
@click.version_option(version=__version__, prog_name="crustasync")
@click.pass_context
def main(
    ctx: click.Context,
    src: str,
    dst: str,
    dry_run: bool,
    log_level: str,
    config_dir: str,
    concurrency: int,
    max_attempts: int,
    timeout: float,
    no_trash: bool,
    fingerprint_cache: bool,
) -> None:
    """Make DST match SRC. Either side is a local path or gd:<path> on Google Drive."""
    configure_logging(log_level)
    logger.info("crustasync %s", __version__)

    cancel_event = threading.Event()
    try:
        options = SyncOptions(
            dry_run=dry_run,
            concurrency=concurrency,
            max_attempts=max_attempts,
            call_timeout=timeout,
            use_trash=not no_trash,
            fingerprint_cache=fingerprint_cache,
            config_dir=config_dir,
        )
        manager = _build_manager(src, dst, options, cancel_event)
        with _InterruptHandler(cancel_event):
            sync_plan = manager.build_plan()
            if dry_run:
                for line in format_plan(sync_plan):
                    click.echo(line)
            report = manager.sync(sync_plan)
    except (ConfigError, AuthError, ScanError, PlanError) as exc:
        click.echo(f"Error: {exc}", err=True)
        ctx.exit(EXIT_USAGE_ERROR)
    except KeyboardInterrupt:
        click.echo("Aborted", err=True)
        ctx.exit(130)

    for line in report.format_lines():
        click.echo(line)
    ctx.exit(report.exit_code)


def _build_manager(
    src: str,
    dst: str,
    options: SyncOptions,
    cancel_event: threading.Event,
) -> SyncManager:
    cache: Optional[FingerprintCache] = None
    kinds = {parse_location(src)[0], parse_location(dst)[0]}
    if options.fingerprint_cache and BackendKind.LOCAL in kinds:
        cache = FingerprintCache.load(options.fingerprint_cache_file)

    source = open_backend(src, options, cache=cache)
    dest = open_backend(dst, options, cache=cache)
    return SyncManager(source, dest, options, cancel_event=cancel_event)


if __name__ == "__main__":
    main()
