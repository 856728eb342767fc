"""The command-line interface for pollwatch."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter
from rich.console import Console

from pollwatch import __version__
from pollwatch._scheduler import Scheduler, stop_on_signals
from pollwatch.config import LogFormat, LogLevel, load_config
from pollwatch.exceptions import ConfigurationError
from pollwatch.utils import create_logger

from ._shared import ExitCode, exit_with_error

HELP = """Poll files for changes and run a command for each change.

The command's arguments may contain $path, $diff and $mtime (or ${path},
${diff}, ${mtime}), replaced by the changed path, the kind of change
(new, modified, deleted) and the new modification time. Quote them so the
invoking shell does not expand them, and put the command after -- when its
arguments start with a hyphen.
"""


def parse_env(assignments: list[str]) -> dict[str, str]:
    """Parse ``NAME=VALUE`` assignments given on the command line.

    Raises:
        ValueError: If an assignment has no ``=`` or an empty name.
    """
    environment: dict[str, str] = {}
    for assignment in assignments:
        name, sep, value = assignment.partition("=")
        if not sep or not name:
            msg = f"Invalid --env value '{assignment}', expected NAME=VALUE"
            raise ValueError(msg)
        environment[name] = value
    return environment


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="pollwatch",
        help=HELP,
        help_on_error=True,
        version=__version__,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.default
    def watch(  # pyright: ignore[reportUnusedFunction]
        *command: Annotated[
            str,
            Parameter(
                allow_leading_hyphen=True,
                help="Command to run for each change, followed by its arguments",
            ),
        ],
        exact: Annotated[
            list[str] | None,
            Parameter(name=["--exact", "-e"], help="Path to watch (repeatable)"),
        ] = None,
        glob: Annotated[
            list[str] | None,
            Parameter(
                name=["--glob", "-g"],
                help="Glob pattern to watch, with ** and {a,b} (repeatable)",
            ),
        ] = None,
        interval: Annotated[
            float | None,
            Parameter(
                name=["--interval", "-i"],
                help="Seconds between polls while nothing changes [default: 0.1]",
            ),
        ] = None,
        sleep: Annotated[
            float | None,
            Parameter(
                name=["--sleep", "-s"],
                help="Seconds to pause after the command ran [default: interval]",
            ),
        ] = None,
        shell: Annotated[
            str | None,
            Parameter(name="--shell", help="Run the command through this shell"),
        ] = None,
        timeout: Annotated[
            float | None,
            Parameter(name="--timeout", help="Seconds before the command is killed"),
        ] = None,
        cwd: Annotated[
            str | None,
            Parameter(name="--cwd", help="Working directory for the command"),
        ] = None,
        env: Annotated[
            list[str] | None,
            Parameter(
                name="--env",
                help="Set NAME=VALUE in the command's environment (repeatable)",
            ),
        ] = None,
        escalate_after: Annotated[
            int | None,
            Parameter(
                name="--escalate-after",
                help="Log unreadable paths as errors after this many failed polls",
            ),
        ] = None,
        config_file: Annotated[
            Path | None, Parameter(name="--config", help="Path to a TOML config file")
        ] = None,
        log_level: Annotated[
            LogLevel | None, Parameter(name="--log-level", help="Log level threshold")
        ] = None,
        log_format: Annotated[
            LogFormat | None, Parameter(name="--log-format", help="Log output format")
        ] = None,
        log_file: Annotated[
            str | None,
            Parameter(name="--log-file", help="Append logs to this file"),
        ] = None,
    ) -> None:
        """Watch files and run a command for each change.

        Args:
            command: Command to run for each change, followed by its arguments.
            exact: Exact paths to watch.
            glob: Glob patterns to watch.
            interval: Seconds between polls while nothing changes.
            sleep: Seconds to pause after the command ran.
            shell: Shell used to run the command.
            timeout: Seconds before a running command is killed.
            cwd: Working directory for the command.
            env: NAME=VALUE pairs added to the command's environment.
            escalate_after: Failed polls of one source before its warnings
                become errors.
            config_file: Path to a TOML config file.
            log_level: Log level threshold.
            log_format: Log output format.
            log_file: Path to a log file.
        """
        try:
            environment = parse_env(env or [])
        except ValueError as e:
            exit_with_error(str(e), ExitCode.CONFIGURATION_ERROR, console=error_console)

        overrides: dict[str, object] = {
            "exact": exact,
            "glob": glob,
            "interval": interval,
            "sleep": sleep,
            "command": list(command),
            "shell": shell,
            "timeout": timeout,
            "cwd": cwd,
            "env": environment,
            "escalate_after": escalate_after,
            "logging": {"level": log_level, "format": log_format, "file": log_file},
        }

        try:
            config = load_config(config_path=config_file, overrides=overrides)
        except ConfigurationError as e:
            exit_with_error(str(e), ExitCode.CONFIGURATION_ERROR, console=error_console)

        try:
            logger = create_logger(
                level=config.logging.level,
                log_format=config.logging.format.value,
                log_file=config.logging.file,
            )
        except OSError as e:
            msg = f"Cannot open log file {config.logging.file}: {e.strerror or e}"
            exit_with_error(msg, ExitCode.CONFIGURATION_ERROR, console=error_console)

        try:
            scheduler = Scheduler.from_config(config, logger=logger)
        except ConfigurationError as e:
            exit_with_error(str(e), ExitCode.CONFIGURATION_ERROR, console=error_console)

        with stop_on_signals(scheduler):
            scheduler.run()

    return app


app = create_app()


def main() -> None:
    """Run the pollwatch CLI."""
    app()
