"""Logging setup for the command line."""

from __future__ import annotations

import logging
import re
from typing import TextIO

__all__ = ["RedactingFormatter", "redact", "setup_logging"]

LOGGER_NAME = "azimuth_cli"

_SENSITIVE_FIELDS = (
    "private_key",
    "private-key",
    "ticket",
    "seed",
    "admin-token",
    "token",
    "authorization",
)


def redact(value: str) -> str:
    """Mask ``field=value`` pairs for secret-bearing fields in ``value``."""
    redacted = value
    for field in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)({re.escape(field)}\s*[=:]\s*)([^,\s]+)",
            r"\1[REDACTED]",
            redacted,
        )
    return redacted


class RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def setup_logging(*, level: str = "INFO", stream: TextIO | None = None) -> logging.Logger:
    """Attach a single stderr handler to the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    logger.setLevel(numeric_level)

    for handler in list(logger.handlers):
        if getattr(handler, "_azimuth_cli_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(RedactingFormatter("%(levelname)s %(name)s: %(message)s"))
    handler._azimuth_cli_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False
    return logger
