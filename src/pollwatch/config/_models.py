"""Configuration models.

This module provides the Pydantic models for the watch loop settings and the
logging section.
"""

from enum import StrEnum
from typing import Annotated, Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from pollwatch._models import WatchSource

DEFAULT_INTERVAL: float = 0.1

Seconds = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    TEXT = "text"
    JSON = "json"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold. None defers to the environment.
        format: Log output format.
        file: Path to log file (empty logs to stderr).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="forbid")

    level: LogLevel | None = None
    format: LogFormat = LogFormat.TEXT
    file: str = ""


class WatchConfig(BaseModel):
    """Validated configuration for one watch process.

    Attributes:
        exact: Exact paths to watch.
        glob: Extended glob patterns to watch.
        interval: Seconds to wait between polls that found no change.
        sleep: Seconds to pause after the command has run. Defaults to
            ``interval``.
        command: Executable followed by its arguments.
        shell: Shell used to run the command, if any.
        timeout: Seconds before a running command is killed. None waits for
            the command to exit.
        cwd: Working directory for the command.
        env: Environment variables added to the command's environment.
        escalate_after: Consecutive failed resolutions of one source after
            which its warning is logged as an error. None never escalates.
        logging: Logging section.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="forbid")

    exact: tuple[str, ...] = ()
    glob: tuple[str, ...] = ()
    interval: Seconds = DEFAULT_INTERVAL
    sleep: Seconds = DEFAULT_INTERVAL
    command: tuple[str, ...] = Field(min_length=1)
    shell: str | None = None
    timeout: Annotated[float, Field(gt=0, allow_inf_nan=False)] | None = None
    cwd: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    escalate_after: Annotated[int, Field(gt=0)] | None = None
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="before")
    @classmethod
    def _default_sleep_to_interval(cls, data: Any) -> Any:  # pyright: ignore[reportAny,reportExplicitAny]  # noqa: ANN401
        if isinstance(data, dict) and data.get("sleep") is None:
            data = {**data, "sleep": data.get("interval", DEFAULT_INTERVAL)}  # pyright: ignore[reportUnknownMemberType]
        return data  # pyright: ignore[reportUnknownVariableType]

    @model_validator(mode="after")
    def _require_sources(self) -> Self:
        if not self.exact and not self.glob:
            msg = "At least one exact path or glob pattern must be watched"
            raise ValueError(msg)
        if any(not path for path in self.exact):
            msg = "Exact paths must not be empty"
            raise ValueError(msg)
        if any(not name or "=" in name for name in self.env):
            msg = "Environment variable names must be non-empty and contain no '='"
            raise ValueError(msg)
        return self

    @property
    def sources(self) -> tuple[WatchSource, ...]:
        """Watch sources, exact paths first, in configuration order."""
        return tuple(
            [WatchSource.exact(path) for path in self.exact]
            + [WatchSource.glob(pattern) for pattern in self.glob]
        )
