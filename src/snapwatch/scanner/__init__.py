"""Directory scanning: filtered walker, snapshot types and cache."""

from snapwatch.scanner.cache import SnapshotCache
from snapwatch.scanner.export import export_markdown
from snapwatch.scanner.models import EMPTY_SNAPSHOT, ScannedFile, Snapshot
from snapwatch.scanner.walker import SkipReason, WalkStats, walk

__all__ = [
    "EMPTY_SNAPSHOT",
    "ScannedFile",
    "SkipReason",
    "Snapshot",
    "SnapshotCache",
    "WalkStats",
    "export_markdown",
    "walk",
]
