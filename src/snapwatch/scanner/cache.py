"""In-memory holder of the last known good snapshot."""

from __future__ import annotations

import threading

import structlog

from snapwatch.scanner.models import EMPTY_SNAPSHOT, Snapshot

logger = structlog.get_logger()


class SnapshotCache:
    """Single-writer, many-reader snapshot holder.

    Snapshots are immutable, so replace() is a reference swap: a reader gets
    either the old snapshot or the new one, never a mix of both.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Snapshot = EMPTY_SNAPSHOT

    def replace(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
        logger.debug(
            "snapshot_replaced",
            root=str(snapshot.root_directory),
            files=len(snapshot.files),
        )

    def read(self) -> Snapshot:
        """Return the current snapshot, or EMPTY_SNAPSHOT before the first scan."""
        with self._lock:
            return self._snapshot

    def discard(self) -> None:
        with self._lock:
            if self._snapshot is EMPTY_SNAPSHOT:
                return
            self._snapshot = EMPTY_SNAPSHOT
        logger.debug("snapshot_discarded")
