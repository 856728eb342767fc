"""Shared CLI utilities: exit codes and error output."""

from __future__ import annotations

from enum import IntEnum
from typing import TYPE_CHECKING, Never

from rich.markup import escape

if TYPE_CHECKING:
    from rich.console import Console

__all__ = ["ExitCode", "exit_with_error", "get_error_console"]


class ExitCode(IntEnum):
    """Exit codes of the pollwatch CLI."""

    SUCCESS = 0
    CONFIGURATION_ERROR = 2


def get_error_console() -> Console:
    """Get a Rich console configured for error output to stderr.

    Returns:
        Console instance writing to stderr.
    """
    from rich.console import Console

    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode,
    *,
    console: Console | None = None,
) -> Never:
    """Print an error message and exit with the specified code.

    Args:
        message: The error message to display.
        code: The exit code to use.
        console: Optional Rich console for output. If not provided,
            a new stderr console will be created.

    Raises:
        SystemExit: Always raised with the specified exit code.
    """
    if console is None:
        console = get_error_console()

    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
    raise SystemExit(code)
