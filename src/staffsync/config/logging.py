"""Root logger setup for staffsync command line runs."""

from __future__ import annotations

import logging
import os
from typing import Final

from .errors import ConfigurationError

LOG_LEVEL_ENV: Final[str] = "STAFFSYNC_LOG_LEVEL"
LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Per-request chatter from the payroll client and migration runner.
_CHATTY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore", "alembic.runtime.migration")


def resolve_log_level(value: int | str | None = None) -> int:
    """Turn a level number or name into a number, reading ``STAFFSYNC_LOG_LEVEL`` if unset."""
    if value is None:
        value = os.getenv(LOG_LEVEL_ENV, "").strip() or logging.INFO
    if isinstance(value, int):
        return value
    level = logging.getLevelNamesMapping().get(value.strip().upper())
    if level is None:
        raise ConfigurationError(f"Unknown log level: {value!r}", keys=(LOG_LEVEL_ENV,))
    return level


def configure_logging(*, level: int | str | None = None, force: bool = False) -> None:
    """Set up the root logger for a staffsync run.

    HTTP and migration loggers are held at WARNING unless DEBUG output is asked for.
    """
    resolved = resolve_log_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    quiet = logging.NOTSET if resolved <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
