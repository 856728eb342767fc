"""In-memory record of the last observed state of every watched path."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Self, final

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from ._models import Resolution, WatchSource


@final
class Snapshot(Mapping[str, int]):
    """Mapping from path to its last observed modification time.

    A path is present while it was seen to exist as of the most recent poll
    in which it could be observed. Alongside the mtime, the snapshot keeps the
    sources that produced each path so that a source which could not be
    resolved in a later cycle shields its paths from deletion.

    The snapshot lives only as long as the process; a new process always
    starts from an empty snapshot.
    """

    __slots__ = ("_mtimes", "_origins")

    def __init__(self) -> None:
        self._mtimes: dict[str, int] = {}
        self._origins: dict[str, frozenset[WatchSource]] = {}

    @classmethod
    def from_resolution(cls, resolution: Resolution) -> Self:
        """Create a baseline snapshot from a first resolution.

        Args:
            resolution: The first resolution of the process.

        Returns:
            A snapshot containing every resolved path.
        """
        snapshot = cls()
        for path, mtime_ns in resolution.entries.items():
            snapshot.upsert(path, mtime_ns, resolution.origins.get(path, ()))
        return snapshot

    def __len__(self) -> int:
        return len(self._mtimes)

    def __getitem__(self, path: str) -> int:
        return self._mtimes[path]

    def __contains__(self, path: object) -> bool:
        return path in self._mtimes

    def __iter__(self) -> Iterator[str]:
        return iter(self._mtimes)

    def origins(self, path: str) -> frozenset[WatchSource]:
        """Return the sources that last produced ``path``."""
        return self._origins.get(path, frozenset())

    def upsert(
        self,
        path: str,
        mtime_ns: int,
        origins: Iterable[WatchSource] = (),
    ) -> None:
        """Insert or update the state of ``path``."""
        self._mtimes[path] = mtime_ns
        self._origins[path] = frozenset(origins)

    def remove(self, path: str) -> None:
        """Forget ``path``. Missing paths are ignored."""
        _ = self._mtimes.pop(path, None)
        _ = self._origins.pop(path, None)
