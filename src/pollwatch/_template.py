"""Variable substitution for the triggered command.

Each argument of the configured command may reference three variables:

    ``$diff`` / ``${diff}``     one of ``new``, ``modified`` or ``deleted``
    ``$path`` / ``${path}``     the path that changed
    ``$mtime`` / ``${mtime}``   the modification time of the path, rendered in
                                UTC as ``YYYY-MM-DDTHH:MM:SS.ffffff+00:00``;
                                empty for deleted paths, which have no mtime

Substitution is textual and happens once per argument. Substituted values are
never scanned again, and any other ``$NAME`` or ``${NAME}`` sequence is left
exactly as written so that a shell running the command can expand it later.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from ._models import ChangeKind
from .exceptions import ConfigValidationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ._models import ChangeRecord

# $name not followed by another identifier character, or ${name}
_VARIABLE_PATTERN = re.compile(
    r"\$(?:\{(?P<braced>diff|path|mtime)\}|(?P<bare>diff|path|mtime)(?![A-Za-z0-9_]))"
)

_NANOS_PER_SECOND = 1_000_000_000
_NANOS_PER_MICRO = 1_000


def render_mtime(mtime_ns: int) -> str:
    """Render a nanosecond timestamp in the fixed ``$mtime`` format.

    Args:
        mtime_ns: Nanoseconds since the epoch.

    Returns:
        ISO 8601 timestamp in UTC with microsecond precision.
    """
    seconds, remainder = divmod(mtime_ns, _NANOS_PER_SECOND)
    moment = datetime.fromtimestamp(seconds, tz=UTC) + timedelta(
        microseconds=remainder // _NANOS_PER_MICRO
    )
    return moment.isoformat(timespec="microseconds")


def diff_value(kind: ChangeKind) -> str:
    """Return the ``$diff`` value for a change kind."""
    match kind:
        case ChangeKind.NEW:
            return "new"
        case ChangeKind.MODIFIED:
            return "modified"
        case ChangeKind.DELETED:
            return "deleted"


def variables_for(record: ChangeRecord) -> dict[str, str]:
    """Build the substitution values for one change record.

    Args:
        record: The change record.

    Returns:
        Mapping of variable name to substituted text.
    """
    mtime = "" if record.mtime_ns is None else render_mtime(record.mtime_ns)
    return {
        "diff": diff_value(record.kind),
        "path": record.path,
        "mtime": mtime,
    }


def substitute(argument: str, values: dict[str, str]) -> str:
    """Substitute the recognized variables in a single argument.

    Args:
        argument: The argument as configured.
        values: Substitution values from ``variables_for``.

    Returns:
        The argument with every recognized variable replaced.
    """
    if "$" not in argument:
        return argument

    def replacer(match: re.Match[str]) -> str:
        name = match.group("braced") or match.group("bare")
        return values[name]

    return _VARIABLE_PATTERN.sub(replacer, argument)


@dataclass(frozen=True, slots=True)
class CommandTemplate:
    """The configured command, ready to be rendered for a change record.

    Attributes:
        argv: Executable followed by its arguments, as configured.
    """

    argv: tuple[str, ...]

    @classmethod
    def from_args(cls, args: Sequence[str]) -> CommandTemplate:
        """Create a template from a command line.

        Raises:
            ConfigValidationError: If ``args`` is empty.
        """
        if not args:
            msg = "A command needs at least an executable"
            raise ConfigValidationError(
                msg, key="command", value=list(args), expected="executable"
            )
        return cls(tuple(args))

    @property
    def uses_variables(self) -> bool:
        """Whether any argument references a recognized variable."""
        return any(_VARIABLE_PATTERN.search(arg) for arg in self.argv)

    def render(self, record: ChangeRecord) -> list[str]:
        """Render the argument list for one change record.

        Args:
            record: The change that triggered the command.

        Returns:
            The substituted argument list, executable first.
        """
        values = variables_for(record)
        return [substitute(arg, values) for arg in self.argv]

    def __str__(self) -> str:
        return " ".join(self.argv)
