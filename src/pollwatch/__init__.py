"""Poll files for modification-time changes and run a command per change."""

from ._differ import diff
from ._exec import CommandConfig, CommandResult, run_command
from ._glob import CompiledGlob, compile_glob, expand_braces
from ._models import ChangeKind, ChangeRecord, Resolution, SourceKind, WatchSource
from ._resolver import PathResolver
from ._scheduler import Scheduler, SchedulerState, stop_on_signals
from ._snapshot import Snapshot
from ._template import CommandTemplate
from .exceptions import (
    ConfigLoadError,
    ConfigurationError,
    ConfigValidationError,
    GlobPatternError,
    PollwatchError,
)

__version__ = "0.1.0"

__all__ = [
    "ChangeKind",
    "ChangeRecord",
    "CommandConfig",
    "CommandResult",
    "CommandTemplate",
    "CompiledGlob",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigurationError",
    "GlobPatternError",
    "PathResolver",
    "PollwatchError",
    "Resolution",
    "Scheduler",
    "SchedulerState",
    "Snapshot",
    "SourceKind",
    "WatchSource",
    "__version__",
    "compile_glob",
    "diff",
    "expand_braces",
    "run_command",
    "stop_on_signals",
]
