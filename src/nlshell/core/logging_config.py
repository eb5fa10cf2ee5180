"""Structured logging for nlshell, rendered through structlog.

Library modules log through stdlib loggers. ``setup_logging`` attaches a
structlog ``ProcessorFormatter`` to the root logger so those records come
out as JSON lines or as colored console output. ``log_error`` is the single
place an ``NLShellError`` is turned into a log record: its severity picks
the level and its ``to_dict()`` travels as the ``error`` field.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

from nlshell.core.exceptions import ErrorSeverity, NLShellError

if TYPE_CHECKING:
    from nlshell.core.config import ObservabilityConfig

_SEVERITY_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}

# Record attributes copied into the rendered event
_STRUCTURED_EXTRAS = ("error",)


def severity_to_level(severity: ErrorSeverity) -> int:
    return _SEVERITY_LEVELS.get(severity, logging.ERROR)


def log_error(logger: logging.Logger, err: NLShellError) -> None:
    """Log ``err`` at the level implied by its severity, with structured fields."""
    logger.log(
        severity_to_level(err.severity),
        "%s",
        err,
        extra={"error": err.to_dict()},
    )


def _pre_chain() -> list[Any]:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(allow=_STRUCTURED_EXTRAS),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderers(log_format: str) -> list[Any]:
    if log_format == "console" or (log_format == "auto" and sys.stderr.isatty()):
        # ConsoleRenderer formats exceptions itself
        return [structlog.dev.ConsoleRenderer()]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer(sort_keys=True)]


def build_formatter(log_format: str = "auto") -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering stdlib records, including ``log_error`` fields."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_renderers(log_format),
        ],
    )


def setup_logging(config: ObservabilityConfig) -> None:
    """Replace the root handlers with one structlog-rendered stderr handler."""
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(build_formatter(config.log_format))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("nlshell").setLevel(level)
