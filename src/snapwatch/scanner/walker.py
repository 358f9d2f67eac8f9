"""Recursive filtered directory walker.

walk() is the only place that reads the scanned tree. It is a pure function
of (root, config) and the filesystem: no state survives between calls.

Rules, applied per directory entry:
- Symbolic links are skipped unconditionally (never followed, never reported).
- Directories whose base name is in ignored_dir_names are pruned with their subtree.
- Regular files are skipped when their name is in ignored_file_names, their
  lowercase extension is not allowed, or they exceed max_file_size_bytes.
- Anything else (fifos, sockets, devices) is skipped.

Directory identities (st_dev, st_ino) are remembered so a re-entrant mount
cannot make the walk loop. Per-entry failures are skipped, never raised: only
an unreadable root fails the walk.
"""

from __future__ import annotations

import os
import stat
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog

from snapwatch.config.models import FilterConfig
from snapwatch.core.errors import ScanError
from snapwatch.scanner.models import ScannedFile

logger = structlog.get_logger()


class SkipReason(Enum):
    """Why an entry was left out of a walk."""

    SYMLINK = "symlink"
    IGNORED_DIR = "ignored_dir"
    IGNORED_FILE = "ignored_file"
    EXTENSION = "extension"
    TOO_LARGE = "too_large"
    REVISITED = "revisited"
    UNREADABLE = "unreadable"
    SPECIAL = "special"


@dataclass
class WalkStats:
    """Counters collected during one walk."""

    directories: int = 0
    files: int = 0
    skipped: Counter[SkipReason] = field(default_factory=Counter)
    duration_seconds: float = 0.0

    def skipped_summary(self) -> dict[str, int]:
        return {reason.value: count for reason, count in self.skipped.most_common()}


_Identity = tuple[int, int] | str


def _identity(path: str, st: os.stat_result) -> _Identity:
    # DirEntry.stat() reports st_ino == 0 on Windows
    if st.st_ino:
        return (st.st_dev, st.st_ino)
    return os.path.realpath(path)


def _read_text(path: str) -> str:
    with open(path, "rb") as f:
        return f.read().decode("utf-8", errors="replace")


def _open_root(root: Path | str) -> tuple[Path, list[os.DirEntry[str]], os.stat_result]:
    """Resolve and list the scan root, raising ScanError if that is impossible."""
    raw = str(root)
    try:
        root_path = Path(root).expanduser().resolve(strict=True)
        root_stat = root_path.stat()
    except OSError as e:
        raise ScanError.root_unreadable(raw, e.strerror or str(e)) from e

    if not stat.S_ISDIR(root_stat.st_mode):
        raise ScanError.root_unreadable(raw, "not a directory")

    try:
        with os.scandir(root_path) as it:
            entries = list(it)
    except OSError as e:
        raise ScanError.root_unreadable(raw, e.strerror or str(e)) from e

    return root_path, entries, root_stat


def _list_dir(path: Path) -> list[os.DirEntry[str]] | None:
    try:
        with os.scandir(path) as it:
            return list(it)
    except OSError as e:
        logger.debug("entry_skipped", path=str(path), reason=SkipReason.UNREADABLE.value, error=str(e))
        return None


def walk(
    root: Path | str,
    config: FilterConfig,
    *,
    stats: WalkStats | None = None,
) -> list[ScannedFile]:
    """Collect every file under root that passes config.

    Args:
        root: Directory to scan.
        config: Filter to apply.
        stats: Optional counters to fill in (for callers that report them).

    Returns:
        Matching files in traversal order, which is platform-dependent.

    Raises:
        ScanError: If root is missing, not a directory, or cannot be listed.
    """
    start = time.perf_counter()
    stats = stats if stats is not None else WalkStats()
    root_path, root_entries, root_stat = _open_root(root)

    visited: set[_Identity] = {_identity(str(root_path), root_stat)}
    results: list[ScannedFile] = []
    stack: list[tuple[Path, list[os.DirEntry[str]] | None]] = [(root_path, root_entries)]

    def skip(path: str, reason: SkipReason, **extra: object) -> None:
        stats.skipped[reason] += 1
        logger.debug("entry_skipped", path=path, reason=reason.value, **extra)

    while stack:
        dir_path, entries = stack.pop()
        if entries is None:
            entries = _list_dir(dir_path)
            if entries is None:
                stats.skipped[SkipReason.UNREADABLE] += 1
                continue
        stats.directories += 1

        subdirs: list[Path] = []
        for entry in entries:
            try:
                if entry.is_symlink():
                    skip(entry.path, SkipReason.SYMLINK)
                    continue

                if entry.is_dir(follow_symlinks=False):
                    if entry.name in config.ignored_dir_names:
                        skip(entry.path, SkipReason.IGNORED_DIR)
                        continue
                    ident = _identity(entry.path, entry.stat(follow_symlinks=False))
                    if ident in visited:
                        skip(entry.path, SkipReason.REVISITED)
                        continue
                    visited.add(ident)
                    subdirs.append(Path(entry.path))
                    continue

                if not entry.is_file(follow_symlinks=False):
                    skip(entry.path, SkipReason.SPECIAL)
                    continue

                if entry.name in config.ignored_file_names:
                    skip(entry.path, SkipReason.IGNORED_FILE)
                    continue

                ext = os.path.splitext(entry.name)[1]
                if not config.allows_extension(ext):
                    skip(entry.path, SkipReason.EXTENSION, ext=ext)
                    continue

                size = entry.stat(follow_symlinks=False).st_size
                if size > config.max_file_size_bytes:
                    skip(entry.path, SkipReason.TOO_LARGE, size=size)
                    continue

                content = _read_text(entry.path)
            except OSError as e:
                skip(entry.path, SkipReason.UNREADABLE, error=str(e))
                continue

            relative = Path(entry.path).relative_to(root_path).as_posix()
            results.append(ScannedFile(relative_path=relative, content=content))
            stats.files += 1

        # Reversed so the first child directory is walked first
        stack.extend((d, None) for d in reversed(subdirs))

    stats.duration_seconds = time.perf_counter() - start
    logger.info(
        "walk_complete",
        root=str(root_path),
        files=stats.files,
        directories=stats.directories,
        skipped=stats.skipped_summary(),
        duration_ms=round(stats.duration_seconds * 1000, 1),
    )
    return results
