"""Logging utilities for pollwatch.

This module provides a standalone structlog logger factory that writes
text-formatted or JSON-formatted logs to stderr or to a log file. Each logger
is self-contained and does not modify global structlog configuration.
"""

from __future__ import annotations

import logging
import sys
from os import getenv
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TextIO, cast

import structlog

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

LogFormatType = Literal["json", "text"]


def _get_log_level() -> int:
    """Get the log level from environment variables.

    Checks POLLWATCH_DEBUG first (sets DEBUG if present), then
    POLLWATCH_LOG_LEVEL. Defaults to INFO if neither is set.

    Returns:
        The logging level as an integer.
    """
    if getenv("POLLWATCH_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(getenv("POLLWATCH_LOG_LEVEL", "info").upper(), logging.INFO)


def _log_level_from_string(level: str, *, respect_env: bool = False) -> int:
    """Convert a log level string to a logging level integer.

    Args:
        level: Log level string (debug, info, warning, error).
        respect_env: If True, POLLWATCH_DEBUG overrides to DEBUG level.

    Returns:
        The logging level as an integer.
    """
    if respect_env and getenv("POLLWATCH_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(level.upper(), logging.INFO)


def _open_log_file(log_file: str) -> TextIO:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return log_path.open("a", encoding="utf-8")


def create_logger(
    *,
    level: str | None = None,
    log_format: LogFormatType = "text",
    log_file: str = "",
    stream: TextIO | None = None,
) -> FilteringBoundLogger:
    """Create a logger for the watch loop.

    The log level is determined by (in order of precedence):
    1. POLLWATCH_DEBUG environment variable (if set, enables DEBUG level)
    2. The `level` parameter (if provided)
    3. POLLWATCH_LOG_LEVEL environment variable
    4. Default: INFO

    Args:
        level: Optional log level string (debug, info, warning, error).
        log_format: Output format, either "json" or "text".
        log_file: Path to a log file, opened in append mode. Empty writes to
            ``stream`` instead.
        stream: Stream to write to when no log file is given. Defaults to
            stderr.

    Returns:
        A configured FilteringBoundLogger instance.
    """
    if level is not None:
        effective_level = _log_level_from_string(level, respect_env=True)
    else:
        effective_level = _get_log_level()

    output = _open_log_file(log_file) if log_file else (stream or sys.stderr)

    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        # Add dict_tracebacks for structured exception logging in JSON
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Text format: "timestamp [level] event key=value ..."
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    wrapper_class = structlog.make_filtering_bound_logger(effective_level)

    # wrap_logger leaves the global structlog configuration untouched
    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            structlog.PrintLogger(file=output),
            processors=processors,
            wrapper_class=wrapper_class,
            context_class=dict,
        ),
    )


def get_default_logger() -> FilteringBoundLogger:
    """Return the logger used when a component is not given one."""
    return cast("FilteringBoundLogger", structlog.get_logger("pollwatch"))
