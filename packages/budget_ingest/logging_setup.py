"""Logging for ``budget_ingest``.

Modules log through ``get_logger("budget_ingest.<module>")`` and never add
handlers. Output is switched on by ``configure_logging``, which the CLI calls
once; embedding applications may configure the ``budget_ingest`` logger
themselves instead.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

ROOT_LOGGER = "budget_ingest"
LOG_LEVEL_ENV = "BUDGET_INGEST_LOG_LEVEL"

# Shards of a batch are parsed on worker threads, so the thread is logged too.
_FORMAT = "%(asctime)s %(threadName)s %(name)s %(levelname)s %(message)s"

_configured = False


def _level_from_name(name: str) -> int | None:
    name = name.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelNamesMapping().get(name)
    return value if isinstance(value, int) else None


def _resolve_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    name = level if level is not None else os.getenv(LOG_LEVEL_ENV, "")
    resolved = _level_from_name(name) if name else None
    return logging.INFO if resolved is None else resolved


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Send ``budget_ingest`` records to ``stream``; later calls are no-ops.

    ``level`` may be a number or a level name. Without one the level comes
    from ``BUDGET_INGEST_LOG_LEVEL``; unknown names mean ``INFO``.
    """

    global _configured
    if _configured:
        return

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _FORMAT))

    root = logging.getLogger(ROOT_LOGGER)
    root.handlers[:] = [h for h in root.handlers if not isinstance(h, logging.NullHandler)]
    root.addHandler(handler)
    root.setLevel(resolved)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    # A NullHandler keeps library use silent until configure_logging runs.
    root = logging.getLogger(ROOT_LOGGER)
    if not _configured and not root.handlers:
        root.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["LOG_LEVEL_ENV", "ROOT_LOGGER", "configure_logging", "get_logger"]
