"""Logging for ``budget_engine``.

Engine modules log through ``get_logger("budget_engine.<module>")`` using the
``event:key=value`` message convention (``alerts:saved added=2 total=5``) and
never attach handlers. Until a host calls :func:`configure_logging` the package
logger carries only a ``NullHandler``, so importing the engine prints nothing.

The CLI configures logging in its root callback. The level comes from the
``--log-level`` option, then ``BUDGET_ENGINE_LOG_LEVEL``, then ``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "budget_engine"
LOG_LEVEL_ENV = "BUDGET_ENGINE_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s %(message)s"

_handler: logging.Handler | None = None


def level_from_name(value: int | str | None) -> int | None:
    """Return a numeric level for ``value`` or ``None`` when it is not one.

    Accepts ints, digit strings and standard names in any case.
    """

    if isinstance(value, int):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    name = value.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelNamesMapping().get(name)
    return numeric if isinstance(numeric, int) else None


def resolve_level(level: int | str | None = None) -> int:
    for candidate in (level, os.getenv(LOG_LEVEL_ENV)):
        parsed = level_from_name(candidate)
        if parsed is not None:
            return parsed
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> logging.Logger:
    """Attach the engine's stream handler and set the package level.

    The first call installs one ``StreamHandler`` on the ``budget_engine``
    logger. Later calls only move the level.
    """

    global _handler
    logger = logging.getLogger(PACKAGE_LOGGER)
    resolved = resolve_level(level)

    if _handler is None:
        for h in list(logger.handlers):
            if isinstance(h, logging.NullHandler):
                logger.removeHandler(h)
        _handler = logging.StreamHandler(stream)
        _handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
        logger.addHandler(_handler)
        logger.propagate = False

    _handler.setLevel(resolved)
    logger.setLevel(resolved)
    return logger


def get_logger(name: str) -> logging.Logger:
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)
