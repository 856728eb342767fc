"""Execution of the triggered command.

The command runs synchronously: the caller blocks until the child process
exits. Failures are reported through ``CommandResult`` rather than raised, so
a failing command can never stop the watch loop.
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

# Maximum captured output kept for logging, in bytes
MAX_OUTPUT_BYTES: int = 102400  # 100KB


@dataclass(frozen=True, slots=True)
class CommandConfig:
    """How the rendered command is run.

    Attributes:
        shell: Shell to run the command through. When set, the rendered
            arguments are joined with spaces and passed to ``shell -c``.
        cwd: Working directory for the command.
        env: Additional environment variables to set.
        timeout: Seconds to wait before killing the command, or None to wait
            for it to exit however long it takes.
    """

    shell: str | None = None
    cwd: str | Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result from running the command.

    Attributes:
        argv: The argument list that was executed.
        success: Whether the process could be spawned and ran to completion.
        exit_code: Process exit code, or None if execution failed.
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        error: Error message if execution failed (timeout, not found, etc.).
        timed_out: Whether the command timed out.
        command_not_found: Whether the executable was not found.
    """

    argv: tuple[str, ...]
    success: bool
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: str | None = None
    timed_out: bool = False
    command_not_found: bool = False

    @property
    def failed(self) -> bool:
        """Whether the command failed to run or exited with a non-zero code."""
        return not self.success or self.exit_code != 0


def truncate_output(output: str, max_bytes: int = MAX_OUTPUT_BYTES) -> str:
    """Truncate output to max bytes, preserving valid UTF-8.

    Args:
        output: The string to truncate.
        max_bytes: Maximum size in bytes.

    Returns:
        Truncated string with indicator if truncated.
    """
    if not output:
        return output

    encoded = output.encode("utf-8")
    if len(encoded) <= max_bytes:
        return output

    # Drop any multi-byte sequence cut in half at the boundary
    truncated = encoded[:max_bytes].decode("utf-8", errors="ignore")
    return truncated + "\n... [output truncated]"


def build_argv(args: Sequence[str], config: CommandConfig) -> list[str]:
    """Build the argument list handed to the operating system.

    Args:
        args: The rendered command, executable first.
        config: Execution configuration.

    Returns:
        The argument list to spawn.
    """
    if config.shell:
        return [config.shell, "-c", " ".join(args)]
    return list(args)


def run_command(
    args: Sequence[str], config: CommandConfig | None = None
) -> CommandResult:
    """Run a rendered command and wait for it to exit.

    Args:
        args: The rendered command, executable first.
        config: Execution configuration. Uses defaults if None.

    Returns:
        CommandResult with the execution outcome.
    """
    if config is None:
        config = CommandConfig()

    argv = build_argv(args, config)
    if not argv:
        return CommandResult(argv=(), success=False, error="No command specified")

    env = {**os.environ, **config.env} if config.env else None
    cwd = str(config.cwd) if config.cwd else None

    try:
        result = subprocess.run(  # noqa: S603
            argv,
            env=env,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            timeout=config.timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(
            argv=tuple(argv),
            success=False,
            error=f"Command timed out after {config.timeout}s",
            timed_out=True,
        )
    except FileNotFoundError as e:
        # Also raised for a missing working directory, named in e.filename
        return CommandResult(
            argv=tuple(argv),
            success=False,
            error=str(e),
            command_not_found=e.filename == argv[0],
        )
    except OSError as e:
        return CommandResult(argv=tuple(argv), success=False, error=str(e))

    return CommandResult(
        argv=tuple(argv),
        success=True,
        exit_code=result.returncode,
        stdout=result.stdout.decode("utf-8", errors="replace"),
        stderr=result.stderr.decode("utf-8", errors="replace"),
    )
