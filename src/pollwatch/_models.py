"""Data models for the watch loop.

This module defines the core value types shared by the resolver, the
differ and the command template:
- SourceKind: Whether a watch source is an exact path or a glob pattern
- WatchSource: One configured watch target
- ChangeKind: Classification of a detected change
- ChangeRecord: One detected change for a single path
- Resolution: The outcome of resolving every watch source once
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Self


class SourceKind(StrEnum):
    """How a watch source is turned into concrete paths."""

    EXACT = "exact"
    GLOB = "glob"


@dataclass(frozen=True, slots=True)
class WatchSource:
    """A configured watch target.

    Attributes:
        kind: Whether ``value`` is an exact path or a glob pattern.
        value: The literal configuration string.
    """

    kind: SourceKind
    value: str

    @classmethod
    def exact(cls, path: str) -> Self:
        return cls(SourceKind.EXACT, path)

    @classmethod
    def glob(cls, pattern: str) -> Self:
        return cls(SourceKind.GLOB, pattern)

    def __str__(self) -> str:
        return f"{self.kind}:{self.value}"


class ChangeKind(StrEnum):
    """Types of detected changes.

    The values are the literal strings substituted for ``$diff``.
    """

    NEW = "new"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class ChangeRecord:
    """One detected change for a single path.

    Attributes:
        path: The path that changed.
        kind: The kind of change.
        mtime_ns: Modification time in nanoseconds since the epoch. Always
            set for new and modified records, always None for deleted ones.
    """

    path: str
    kind: ChangeKind
    mtime_ns: int | None = None

    def __post_init__(self) -> None:
        if self.kind is ChangeKind.DELETED and self.mtime_ns is not None:
            msg = "Deleted records carry no mtime"
            raise ValueError(msg)
        if self.kind is not ChangeKind.DELETED and self.mtime_ns is None:
            msg = f"{self.kind.capitalize()} records require an mtime"
            raise ValueError(msg)


@dataclass(slots=True)
class Resolution:
    """The result of resolving every watch source once.

    Attributes:
        entries: Existing paths mapped to their mtime in nanoseconds.
        origins: Existing paths mapped to the sources that produced them.
        failed_sources: Sources that could not be resolved this cycle.
        unreadable: Individual paths whose state could not be read this cycle.
        unreadable_dirs: Directories below a glob root that could not be
            listed this cycle. Nothing beneath them is known to be gone.
    """

    entries: dict[str, int] = field(default_factory=dict)
    origins: dict[str, set[WatchSource]] = field(default_factory=dict)
    failed_sources: set[WatchSource] = field(default_factory=set)
    unreadable: set[str] = field(default_factory=set)
    unreadable_dirs: set[str] = field(default_factory=set)

    def found(self, path: str, mtime_ns: int, source: WatchSource) -> None:
        """Record an existing path observed through ``source``."""
        self.entries[path] = mtime_ns
        self.origins.setdefault(path, set()).add(source)

    def __len__(self) -> int:
        return len(self.entries)
