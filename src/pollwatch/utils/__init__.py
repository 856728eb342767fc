"""Shared utilities for pollwatch."""

from ._logging import LogFormatType, create_logger, get_default_logger

__all__ = ["LogFormatType", "create_logger", "get_default_logger"]
