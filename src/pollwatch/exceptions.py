"""pollwatch exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


class PollwatchError(Exception):
    """Base exception for pollwatch errors."""


class ConfigurationError(PollwatchError):
    """Base exception for configuration errors.

    Configuration errors are fatal: they are raised before the watch loop
    starts and are never raised from inside a poll cycle.
    """


class ConfigLoadError(ConfigurationError):
    """Raised when a configuration file cannot be read or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigurationError):
    """Raised when configuration values fail validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected


class GlobPatternError(ConfigurationError):
    """Raised when a glob pattern cannot be compiled."""

    def __init__(self, message: str, *, pattern: str, reason: str) -> None:
        """Initialize with error message and the offending pattern."""
        super().__init__(message)
        self.pattern: str = pattern
        self.reason: str = reason
