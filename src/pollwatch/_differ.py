"""Change detection between two poll cycles."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from ._models import ChangeKind, ChangeRecord

if TYPE_CHECKING:
    from ._models import Resolution
    from ._snapshot import Snapshot


def _is_shielded(path: str, resolution: Resolution, snapshot: Snapshot) -> bool:
    """Check whether a missing path must not be judged deleted this cycle.

    A path is shielded when its own state could not be read or when it lies
    below a directory that could not be listed. It is also shielded while any
    source that produced it cannot be resolved.
    """
    if path in resolution.unreadable:
        return True
    if any(
        path.startswith(os.path.join(directory, ""))
        for directory in resolution.unreadable_dirs
    ):
        return True
    return not snapshot.origins(path).isdisjoint(resolution.failed_sources)


def diff(resolution: Resolution, snapshot: Snapshot) -> list[ChangeRecord]:
    """Compare a fresh resolution against the snapshot and update it.

    Records are produced in two passes, each in sorted path order:

    1. Every resolved path that is missing from the snapshot is ``new``;
       every resolved path whose mtime differs is ``modified``.
    2. Every snapshot path that no longer resolves is ``deleted``, unless it
       is shielded by a resolution failure in this cycle.

    The snapshot is updated to match before this function returns, so the
    whole batch of records describes one cycle.

    Args:
        resolution: The paths resolved in this cycle.
        snapshot: The state recorded by previous cycles. Mutated in place.

    Returns:
        The change records for this cycle, possibly empty.
    """
    records: list[ChangeRecord] = []

    for path in sorted(resolution.entries):
        mtime_ns = resolution.entries[path]
        origins = resolution.origins.get(path, set())
        previous = snapshot.get(path)

        if previous is None:
            records.append(ChangeRecord(path, ChangeKind.NEW, mtime_ns))
            snapshot.upsert(path, mtime_ns, origins)
        elif previous != mtime_ns:
            records.append(ChangeRecord(path, ChangeKind.MODIFIED, mtime_ns))
            snapshot.upsert(path, mtime_ns, origins)
        elif snapshot.origins(path) != origins:
            snapshot.upsert(path, mtime_ns, origins)

    missing = [path for path in snapshot if path not in resolution.entries]
    for path in sorted(missing):
        if _is_shielded(path, resolution, snapshot):
            continue
        records.append(ChangeRecord(path, ChangeKind.DELETED))
        snapshot.remove(path)

    return records
