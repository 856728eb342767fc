"""Resolution of watch sources into concrete paths.

Exact paths are checked directly with ``os.stat``. Glob patterns are expanded
with recursive globbing; pattern expansion is the only way the resolver ever
enumerates the file system.

Permission problems never turn into changes. When an exact path or a glob
root cannot be read, the source is marked as failed for the cycle and the
differ leaves every path it produced untouched until it can be read again.
A directory below a glob root that cannot be listed shields only the paths
beneath it.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, final

from ._glob import CompiledGlob, compile_glob
from ._models import Resolution, SourceKind, WatchSource
from .utils import get_default_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from structlog.typing import FilteringBoundLogger


@final
class PathResolver:
    """Expands watch sources into the paths that currently exist.

    Glob patterns are compiled once at construction, so a malformed pattern
    is reported before the first poll.
    """

    __slots__ = (
        "_escalate_after",
        "_failure_streaks",
        "_globs",
        "_logger",
        "_sources",
    )

    def __init__(
        self,
        sources: Sequence[WatchSource],
        *,
        escalate_after: int | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            sources: Watch sources in configuration order.
            escalate_after: Number of consecutive failed cycles after which a
                resolution warning is logged as an error. None never escalates.
            logger: Logger for resolution warnings.

        Raises:
            GlobPatternError: If any glob pattern is malformed.
        """
        self._sources: tuple[WatchSource, ...] = tuple(dict.fromkeys(sources))
        self._globs: dict[WatchSource, CompiledGlob] = {
            source: compile_glob(source.value)
            for source in self._sources
            if source.kind is SourceKind.GLOB
        }
        self._escalate_after: int | None = escalate_after
        self._failure_streaks: dict[WatchSource, int] = {}
        self._logger: FilteringBoundLogger = logger or get_default_logger()

    @property
    def sources(self) -> tuple[WatchSource, ...]:
        """The watch sources, deduplicated, in configuration order."""
        return self._sources

    def failure_streak(self, source: WatchSource) -> int:
        """Return how many consecutive cycles ``source`` failed to resolve."""
        return self._failure_streaks.get(source, 0)

    def resolve(self) -> Resolution:
        """Resolve every watch source once.

        Returns:
            The existing paths with their mtimes, and what could not be read.
        """
        resolution = Resolution()
        for source in self._sources:
            if source.kind is SourceKind.EXACT:
                ok = self._resolve_exact(source, resolution)
            else:
                ok = self._resolve_glob(source, self._globs[source], resolution)

            if ok:
                _ = self._failure_streaks.pop(source, None)
            else:
                resolution.failed_sources.add(source)
        return resolution

    def _resolve_exact(self, source: WatchSource, resolution: Resolution) -> bool:
        path = source.value
        try:
            stat = os.stat(path)
        except (FileNotFoundError, NotADirectoryError):
            return True
        except OSError as e:
            self._warn(source, path, e)
            return False

        resolution.found(path, stat.st_mtime_ns, source)
        return True

    def _resolve_glob(
        self,
        source: WatchSource,
        compiled: CompiledGlob,
        resolution: Resolution,
    ) -> bool:
        roots = set(compiled.roots)
        blocked: set[str] = set()
        for directory, error in compiled.scan_errors():
            if directory in roots:
                self._warn(source, directory, error)
                return False
            self._logger.warning(
                "resolution_warning",
                source=str(source),
                path=directory,
                error=str(error),
            )
            blocked.add(directory)
        resolution.unreadable_dirs |= blocked

        for path in compiled.iter_matches():
            try:
                stat = os.stat(path)
            except FileNotFoundError:
                # Removed between globbing and stat; it simply no longer exists
                continue
            except OSError as e:
                self._logger.warning(
                    "resolution_warning",
                    source=str(source),
                    path=path,
                    error=str(e),
                )
                resolution.unreadable.add(path)
                continue
            resolution.found(path, stat.st_mtime_ns, source)
        return True

    def _warn(self, source: WatchSource, path: str, error: OSError) -> None:
        streak = self._failure_streaks.get(source, 0) + 1
        self._failure_streaks[source] = streak

        escalated = self._escalate_after is not None and streak >= self._escalate_after
        log = self._logger.error if escalated else self._logger.warning
        log(
            "resolution_warning",
            source=str(source),
            path=path,
            error=str(error),
            consecutive_failures=streak,
        )
