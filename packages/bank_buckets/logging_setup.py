"""Logging for the ``bank_buckets`` package.

Library modules only call ``get_logger("bank_buckets.<module>")``; the CLI
calls ``configure_logging`` once at startup to attach the single handler.
"""

from __future__ import annotations

import logging
import os
import sys

_PKG_LOGGER_NAME = "bank_buckets"
_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
# Bound at import so test runners that swap sys.stderr do not capture log lines
_STREAM = sys.stderr
_CONFIGURED = False


def resolve_level(level: str | None) -> int:
    """Level name from the argument, else ``BANK_BUCKETS_LOG_LEVEL``, else INFO."""

    name = (level or os.getenv("BANK_BUCKETS_LOG_LEVEL") or "INFO").strip().upper()
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(level: str | None = None) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    handler = logging.StreamHandler(_STREAM)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.setLevel(resolve_level(level))
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
