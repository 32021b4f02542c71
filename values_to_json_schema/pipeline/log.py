"""
Logger plumbing.

Pipeline functions accept an optional `logging.Logger` and pass it down
explicitly. When none is given they fall back to the package logger,
which writes bare messages to stderr.
"""

from __future__ import annotations

import logging
import sys

DEFAULT_LOGGER_NAME = "values_to_json_schema"


class _StderrHandler(logging.StreamHandler):
    """Write to whatever `sys.stderr` is when the record is emitted."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def default_logger() -> logging.Logger:
    """Return the package logger, attaching its stderr handler on first use."""
    logger = logging.getLogger(DEFAULT_LOGGER_NAME)
    if not logger.handlers:
        handler = _StderrHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def get_logger(logger: logging.Logger | None = None) -> logging.Logger:
    return logger if logger is not None else default_logger()


def format_size_bytes(size: int) -> str:
    """Render a byte count the way the loaders log it (`512B`, `12KB`, `3MB`)."""
    if size < 2000:
        return f"{size}B"
    if size < 2_000_000:
        return f"{size // 1000}KB"
    return f"{size // 1_000_000}MB"
