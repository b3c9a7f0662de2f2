from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Application logging.

All engine modules log through logging.getLogger(__name__); those loggers sit
under the "grooming_backup" logger, which owns the only handler. Lines are
written as "LABEL message":

    INFO preview complete tables=3 rows=5 invalid_rows=0
    WARN skipping sheet 'Notes': not an allow-listed table
    SUMMARY status=success success=5 failed=0 ...

The CLI writes to stdout, except `preview --json` which keeps stdout for the
JSON body and sends log lines to stderr.
"""

__all__ = [
    "setup_logging",
    "get_logger",
    "log_summary",
    "reset_logging",
    "LabeledFormatter",
    "SUMMARY_LEVEL",
    "APP_LOGGER_NAME",
]

SUMMARY_LEVEL = 25  # between INFO and WARNING

APP_LOGGER_NAME = "grooming_backup"

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """"LABEL message" lines; tracebacks only for ERROR and above."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        SUMMARY_LEVEL: "SUMMARY",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        line = f"{label} {record.getMessage()}"
        if record.exc_info and record.levelno >= logging.ERROR:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _apply(logger: logging.Logger, level: int, stream: TextIO | None) -> None:
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
        if stream is not None and isinstance(handler, logging.StreamHandler):
            handler.setStream(stream)


def setup_logging(debug: bool = False, stream: TextIO | None = None) -> logging.Logger:
    """Configure the application logger.

    Calling it again only changes the level (and the stream when given), so
    the CLI and tests can call it freely.

    Args:
        debug: DEBUG instead of INFO
        stream: Output stream, stdout when omitted
    """
    global _logger

    level = logging.DEBUG if debug else logging.INFO
    if _logger is not None:
        _apply(_logger, level, stream)
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    logger = logging.getLogger(APP_LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    _apply(logger, level, None)
    # one handler only; the root logger must not print the same line again
    logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    return _logger if _logger is not None else setup_logging()


def log_summary(message: str) -> None:
    """Emit message at SUMMARY level (the label is added by the formatter)."""
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Drop the handler and restore propagation (tests rely on caplog)."""
    global _logger
    if _logger is not None:
        for handler in _logger.handlers[:]:
            _logger.removeHandler(handler)
        _logger.propagate = True
    _logger = None
