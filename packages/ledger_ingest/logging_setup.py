"""Logging configuration for the ``ledger_ingest`` package.

Entrypoints (the CLI or a host service) call :func:`configure_logging` once;
library modules only ever call :func:`get_logger` and never attach handlers.

Messages follow a terse ``event:name key=value ...`` shape, e.g.
``aggregator_sync:page account_id=ab12 added=37 cursor_advanced=True``, so
they remain greppable. Financial content (descriptions, raw model output) is
only logged as bounded previews.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "ledger_ingest"
_LEVEL_ENV = "LEDGER_INGEST_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_handler: logging.Handler | None = None


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    # getLevelName returns "Level X" for unknown names
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Attach one ``StreamHandler`` to the package logger. Idempotent.

    ``level`` falls back to ``LEDGER_INGEST_LOG_LEVEL`` and then ``INFO``;
    ``stream`` defaults to the current ``sys.stderr``.
    """

    global _handler
    if _handler is not None:
        return

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(pkg_logger.handlers):
        if isinstance(h, logging.NullHandler):
            pkg_logger.removeHandler(h)

    resolved = _resolve_level(level)
    _handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    _handler.setLevel(resolved)
    _handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    pkg_logger.setLevel(resolved)
    pkg_logger.addHandler(_handler)
    pkg_logger.propagate = False


def reset_logging() -> None:
    """Detach the handler installed by :func:`configure_logging`."""

    global _handler
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is not None:
        pkg_logger.removeHandler(_handler)
        _handler = None
    pkg_logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger, keeping the package silent until configured."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "reset_logging"]
