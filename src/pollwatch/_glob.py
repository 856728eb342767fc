"""Extended glob pattern compilation.

Extended patterns add ``{a,b}`` alternation groups on top of the basic glob
syntax. Alternation groups are expanded up front into a set of basic
patterns, each of which is validated and later matched with recursive
globbing:

    ``?``       matches any single character except ``/``
    ``*``       matches any (possibly empty) sequence of characters except ``/``
    ``**``      matches the current directory and any subdirectories; must
                form a whole path component
    ``[...]``   matches any character in the set; ranges like ``[0-9]`` work
    ``[!...]``  matches any character not in the set

A backslash escapes the following character. Escapes survive brace expansion
unchanged and are only resolved when the basic pattern is compiled.
"""

from __future__ import annotations

import glob
import itertools
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pollwatch.exceptions import GlobPatternError

if TYPE_CHECKING:
    from collections.abc import Iterator

_MAGIC_CHARS = frozenset("*?[")


def _split_group(pattern: str, start: int) -> tuple[list[str], int]:
    """Split the alternation group opening at ``start``.

    Args:
        pattern: The full extended pattern.
        start: Index of the opening ``{``.

    Returns:
        Tuple of (top-level alternatives, index of the closing ``}``).

    Raises:
        GlobPatternError: If the group is never closed.
    """
    alternatives: list[str] = []
    depth = 0
    escaped = False
    segment_start = start + 1

    for index in range(start + 1, len(pattern)):
        char = pattern[index]
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "{":
            depth += 1
        elif char == "}":
            if depth == 0:
                alternatives.append(pattern[segment_start:index])
                return alternatives, index
            depth -= 1
        elif char == "," and depth == 0:
            alternatives.append(pattern[segment_start:index])
            segment_start = index + 1

    msg = f"Glob pattern '{pattern}' has an unclosed '{{' at position {start}"
    raise GlobPatternError(msg, pattern=pattern, reason="unclosed brace")


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternation groups into basic glob patterns.

    Groups may be nested and may appear several times in one pattern, in
    which case every combination is produced. Duplicates are removed while
    keeping the first occurrence.

    Args:
        pattern: An extended glob pattern.

    Returns:
        The equivalent basic glob patterns.

    Raises:
        GlobPatternError: If braces are unbalanced.

    Example:
        >>> expand_braces("config.{yml,yaml}")
        ['config.yml', 'config.yaml']
    """
    parts: list[list[str]] = []
    literal: list[str] = []
    index = 0

    while index < len(pattern):
        char = pattern[index]
        if char == "\\":
            literal.append(pattern[index : index + 2])
            index += 2
            continue
        if char == "{":
            alternatives, end = _split_group(pattern, index)
            parts.append(["".join(literal)])
            literal = []
            parts.append(
                [expanded for alt in alternatives for expanded in expand_braces(alt)]
            )
            index = end + 1
            continue
        if char == "}":
            msg = f"Glob pattern '{pattern}' has an unmatched '}}' at position {index}"
            raise GlobPatternError(msg, pattern=pattern, reason="unmatched brace")
        literal.append(char)
        index += 1

    parts.append(["".join(literal)])
    combined = ("".join(product) for product in itertools.product(*parts))
    return list(dict.fromkeys(combined))


def validate_pattern(pattern: str) -> None:
    """Check that a basic glob pattern is well formed.

    Args:
        pattern: A basic glob pattern (no alternation groups).

    Raises:
        GlobPatternError: If a character class is unclosed, if ``**`` does
            not form a whole path component, or if more than two ``*`` appear
            in a row.
    """
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if char == "\\":
            index += 2
            continue
        if char == "[":
            index = _class_end(pattern, index) + 1
            continue
        if char == "*":
            run_end = index
            while run_end < len(pattern) and pattern[run_end] == "*":
                run_end += 1
            run = run_end - index
            if run > 2:  # noqa: PLR2004
                msg = f"Glob pattern '{pattern}' has more than two consecutive '*'"
                raise GlobPatternError(msg, pattern=pattern, reason="too many stars")
            if run == 2:  # noqa: PLR2004
                before_ok = index == 0 or pattern[index - 1] == "/"
                after_ok = run_end == len(pattern) or pattern[run_end] == "/"
                if not (before_ok and after_ok):
                    msg = (
                        f"Glob pattern '{pattern}' uses '**' outside of a "
                        "whole path component"
                    )
                    raise GlobPatternError(
                        msg, pattern=pattern, reason="recursive wildcard"
                    )
            index = run_end
            continue
        index += 1


def _class_end(pattern: str, start: int) -> int:
    """Return the index of the ``]`` closing the class opened at ``start``."""
    index = start + 1
    if index < len(pattern) and pattern[index] == "!":
        index += 1
    # A ']' right after '[' or '[!' is part of the set
    if index < len(pattern) and pattern[index] == "]":
        index += 1
    end = pattern.find("]", index)
    if end == -1:
        msg = f"Glob pattern '{pattern}' has an unclosed '[' at position {start}"
        raise GlobPatternError(msg, pattern=pattern, reason="unclosed class")
    return end


def unescape(pattern: str) -> str:
    """Resolve backslash escapes into the form the glob module understands.

    Escaped wildcard characters become single-character classes (``\\*`` to
    ``[*]``); any other escaped character becomes itself.
    """
    result: list[str] = []
    chars = iter(pattern)
    for char in chars:
        if char != "\\":
            result.append(char)
            continue
        escaped = next(chars, "\\")
        result.append(f"[{escaped}]" if escaped in _MAGIC_CHARS else escaped)
    return "".join(result)


def glob_root(pattern: str) -> str:
    """Return the deepest directory of ``pattern`` that contains no wildcard.

    This is the directory globbing starts from, so an unreadable root means
    nothing below it can be resolved.
    """
    head = pattern
    while glob.has_magic(head):
        head = os.path.dirname(head)
    if head == pattern:
        head = os.path.dirname(pattern)
    return head or os.curdir


def search_depth(pattern: str) -> int | None:
    """Return how many directory levels below its root ``pattern`` reads.

    Zero means only the root directory itself is listed. None means the
    pattern recurses without bound through ``**``.
    """
    root = glob_root(pattern)
    if _is_implicit_root(pattern, root):
        rest = pattern
    else:
        rest = pattern[len(root) :].lstrip("/")

    components = rest.split("/")
    if "**" in components:
        return None
    return len(components) - 1


def _is_implicit_root(pattern: str, root: str) -> bool:
    return root == os.curdir and not pattern.startswith(os.curdir + "/")


def _scan_errors(
    root: str, depth: int | None, *, implicit: bool
) -> Iterator[tuple[str, OSError]]:
    # Paths are built the way glob builds them, so an implicit "." root
    # yields bare child names
    pending: list[tuple[str, int]] = [(root, 0)]
    while pending:
        directory, level = pending.pop()
        try:
            with os.scandir(directory) as entries:
                children = [entry.name for entry in entries if entry.is_dir()]
        except (FileNotFoundError, NotADirectoryError):
            continue
        except OSError as e:
            yield directory, e
            continue

        if depth is not None and level >= depth:
            continue
        for name in sorted(children, reverse=True):
            child = name if implicit and level == 0 else os.path.join(directory, name)
            pending.append((child, level + 1))


@dataclass(frozen=True, slots=True)
class CompiledGlob:
    """An extended glob pattern compiled into basic patterns.

    Attributes:
        source: The extended pattern as configured.
        patterns: The basic patterns produced by brace expansion, with
            escapes resolved.
    """

    source: str
    patterns: tuple[str, ...]

    @property
    def roots(self) -> tuple[str, ...]:
        """Directories every basic pattern starts globbing from."""
        return tuple(dict.fromkeys(glob_root(pattern) for pattern in self.patterns))

    def scan_errors(self) -> Iterator[tuple[str, OSError]]:
        """Yield the directories globbing needs to list but cannot.

        The glob module skips such directories silently, so they are listed
        separately, down to the depth each basic pattern reaches. The root of
        a pattern is always checked before anything below it.

        Yields:
            Tuples of (directory, error), each directory at most once.
        """
        seen: set[str] = set()
        for pattern in self.patterns:
            root = glob_root(pattern)
            errors = _scan_errors(
                root,
                search_depth(pattern),
                implicit=_is_implicit_root(pattern, root),
            )
            for directory, error in errors:
                if directory not in seen:
                    seen.add(directory)
                    yield directory, error

    def iter_matches(self) -> Iterator[str]:
        """Yield every path currently matching any of the basic patterns.

        Paths are yielded once even if several basic patterns match them.
        """
        seen: set[str] = set()
        for pattern in self.patterns:
            for path in glob.iglob(pattern, recursive=True, include_hidden=True):
                if path not in seen:
                    seen.add(path)
                    yield path


def compile_glob(pattern: str) -> CompiledGlob:
    """Compile an extended glob pattern.

    Args:
        pattern: The extended pattern as configured.

    Returns:
        The compiled pattern.

    Raises:
        GlobPatternError: If the pattern or any of its expansions is malformed.
    """
    if not pattern:
        msg = "Glob pattern must not be empty"
        raise GlobPatternError(msg, pattern=pattern, reason="empty pattern")

    basic_patterns = expand_braces(pattern)
    for basic in basic_patterns:
        try:
            validate_pattern(basic)
        except GlobPatternError as e:
            msg = f"Glob pattern from '{pattern}' is invalid: {e}"
            raise GlobPatternError(msg, pattern=pattern, reason=e.reason) from e

    return CompiledGlob(
        source=pattern,
        patterns=tuple(unescape(basic) for basic in basic_patterns),
    )
