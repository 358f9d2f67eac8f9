"""Native directory watcher using watchfiles for async filesystem monitoring.

Design:
- Python walks the watched tree, pruning ignored directory names and symlinks
- Builds an explicit list of directories to watch
- Passes them to awatch with recursive=False (one inotify watch per dir)
- Reacts immediately to new directory creation by restarting awatch
- The first batch awatch yields (yield_on_timeout=True) marks the watch as ready

Debouncing is not done here: every relevant batch goes straight to on_change
and the refresh coalescer decides when a rescan actually runs.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import structlog
from watchfiles import Change, awatch

from snapwatch.core.errors import WatchError

logger = structlog.get_logger()

# Change kinds that can alter a snapshot
RELEVANT_CHANGES: frozenset[Change] = frozenset({Change.added, Change.modified, Change.deleted})


def _collect_watch_dirs(root: Path, ignored_dir_names: frozenset[str]) -> list[Path]:
    """Walk the tree and collect all directories to watch.

    Ignored directory names are pruned with their subtree, and symlinked
    directories are neither watched nor descended into. The root itself is
    always included. Each directory gets a single non-recursive inotify watch.
    """
    dirs: list[Path] = [root]
    for dirpath, dirnames, _filenames in os.walk(root):
        # Prune in-place: remove dirs we should skip
        dirnames[:] = [
            d
            for d in dirnames
            if d not in ignored_dir_names and not os.path.islink(os.path.join(dirpath, d))
        ]
        for d in dirnames:
            dirs.append(Path(dirpath) / d)
    return dirs


def _is_ignored_path(rel_path: Path, ignored_dir_names: frozenset[str]) -> bool:
    """True if any directory component of rel_path is an ignored directory name."""
    return any(part in ignored_dir_names for part in rel_path.parts[:-1])


def _summarize_changes_by_type(paths: list[Path]) -> str:
    """Summarize changes by extension with grammatical correctness.

    Returns a human-readable summary like:
    - "1 Python file" (singular)
    - "3 Python files" (plural)
    - "2 Python files, 1 CSS file" (multiple types)
    """
    ext_names: dict[str, str] = {
        ".py": "Python",
        ".js": "JavaScript",
        ".jsx": "JSX",
        ".ts": "TypeScript",
        ".tsx": "TSX",
        ".java": "Java",
        ".rb": "Ruby",
        ".go": "Go",
        ".cs": "C#",
        ".cpp": "C++",
        ".html": "HTML",
        ".css": "CSS",
        ".swift": "Swift",
    }

    ext_counts: Counter[str] = Counter(p.suffix.lower() for p in paths)

    parts: list[str] = []
    for ext, count in ext_counts.most_common(3):  # Top 3 types
        name = ext_names.get(ext, ext.lstrip(".").upper() if ext else "other")
        word = "file" if count == 1 else "files"
        parts.append(f"{count} {name} {word}")

    shown_count = sum(count for _, count in ext_counts.most_common(3))
    remaining = len(paths) - shown_count
    if remaining > 0:
        word = "other" if remaining == 1 else "others"
        parts.append(f"{remaining} {word}")

    return ", ".join(parts)


@dataclass
class DirectoryWatcher:
    """
    Watches one directory tree and reports relevant changes.

    Lifecycle:
    - start() launches the watch task
    - wait_ready() resolves once the native watch is attached (or has failed)
    - failures before readiness are kept in `error`; failures after it go to on_error
    - stop() ends the watch; on_change and on_error are never called after it returns

    The watch never retries on its own: when the root disappears or the
    native watcher breaks, on_error is called once and the task ends.
    """

    root: Path
    on_change: Callable[[list[Path]], None]
    on_error: Callable[[WatchError], None]
    ignored_dir_names: frozenset[str] = frozenset()
    ignored_file_names: frozenset[str] = frozenset()
    rust_timeout_ms: int = 500
    step_ms: int = 50
    stop_timeout: float = 2.0

    _watch_task: asyncio.Task[None] | None = field(default=None, init=False)
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _ready: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _watched_dirs: set[Path] = field(default_factory=set, init=False)
    _error: WatchError | None = field(default=None, init=False)

    @property
    def is_running(self) -> bool:
        return self._watch_task is not None and not self._watch_task.done()

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    @property
    def error(self) -> WatchError | None:
        """The failure that prevented the watch from becoming ready, if any."""
        return self._error

    @property
    def watched_dirs(self) -> frozenset[Path]:
        return frozenset(self._watched_dirs)

    async def start(self) -> None:
        """Start watching. Idempotent while running."""
        if self._watch_task is not None:
            return

        self._stop_event.clear()
        self._ready.clear()
        self._error = None
        self._watch_task = asyncio.create_task(self._watch_loop())
        logger.info(
            "directory_watcher_started",
            root=str(self.root),
            mode="native_nonrecursive",
        )

    async def wait_ready(self, timeout: float) -> bool:
        """Wait until the native watch is attached. False on failure or timeout."""
        if self._watch_task is None:
            return False
        ready_waiter = asyncio.ensure_future(self._ready.wait())
        try:
            await asyncio.wait(
                {ready_waiter, self._watch_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not ready_waiter.done():
                ready_waiter.cancel()
        return self._ready.is_set()

    async def stop(self) -> None:
        """Stop watching for changes."""
        self._stop_event.set()

        task = self._watch_task
        if task is None:
            return
        self._watch_task = None
        if task is asyncio.current_task():
            return

        if not task.done():
            with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(task, timeout=self.stop_timeout)

        logger.info("directory_watcher_stopped", root=str(self.root))

    def _fail(self, error: WatchError) -> None:
        if self._stop_event.is_set():
            return
        if not self._ready.is_set():
            self._error = error
            logger.warning("watch_attach_failed", root=str(self.root), error=error.message)
            return
        logger.error("watch_runtime_error", root=str(self.root), error=error.message)
        self.on_error(error)

    def _root_missing(self) -> bool:
        try:
            return not self.root.is_dir()
        except OSError:
            return True

    async def _watch_loop(self) -> None:
        """Main watch loop using watchfiles with non-recursive inotify.

        Python builds the complete directory list, awatch gets recursive=False,
        so the native side never descends into ignored directories. When new
        directories appear the inner loop breaks and the list is rebuilt.
        """
        while not self._stop_event.is_set():
            if self._root_missing():
                if self._ready.is_set():
                    self._fail(WatchError.runtime_error(str(self.root), "directory was removed"))
                else:
                    self._fail(
                        WatchError.attach_failed(str(self.root), "not an accessible directory")
                    )
                return

            try:
                watch_dirs = _collect_watch_dirs(self.root, self.ignored_dir_names)
            except OSError as e:
                self._fail(WatchError.attach_failed(str(self.root), e.strerror or str(e)))
                return
            self._watched_dirs = set(watch_dirs)

            logger.info("watch_dirs_collected", count=len(watch_dirs), root=str(self.root))

            try:
                async for changes in awatch(
                    *watch_dirs,
                    watch_filter=None,
                    recursive=False,
                    yield_on_timeout=True,
                    step=self.step_ms,
                    rust_timeout=self.rust_timeout_ms,
                    stop_event=self._stop_event,
                    ignore_permission_denied=True,
                ):
                    if not self._ready.is_set():
                        self._ready.set()
                        logger.info("watch_ready", root=str(self.root))

                    if self._root_missing():
                        self._fail(
                            WatchError.runtime_error(str(self.root), "directory was removed")
                        )
                        return

                    if not changes:
                        continue

                    if self._handle_changes(changes):
                        logger.info("watcher_restart_requested", reason="new_directories")
                        break  # Break inner loop to re-collect dirs
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._stop_event.is_set():
                    return
                if self._root_missing():
                    self._fail(WatchError.runtime_error(str(self.root), "directory was removed"))
                elif self._ready.is_set():
                    self._fail(WatchError.runtime_error(str(self.root), str(e)))
                else:
                    self._fail(WatchError.attach_failed(str(self.root), str(e)))
                return

    def _handle_changes(self, changes: set[tuple[Change, str]]) -> bool:
        """Forward relevant changes to on_change.

        Returns True if a watcher restart is needed (new directories detected).
        """
        if self._stop_event.is_set():
            return False

        needs_restart = False
        relevant: list[Path] = []

        for change_type, path_str in changes:
            if change_type not in RELEVANT_CHANGES:
                continue
            path = Path(path_str)
            try:
                rel_path = path.relative_to(self.root)
            except ValueError:
                continue

            if _is_ignored_path(rel_path, self.ignored_dir_names):
                logger.debug("path_ignored", path=str(rel_path))
                continue

            if path.name in self.ignored_dir_names or path.name in self.ignored_file_names:
                continue

            # Detect new directory creation: request watcher restart to add watch
            if (
                change_type == Change.added
                and path not in self._watched_dirs
                and path.is_dir()
                and not path.is_symlink()
            ):
                logger.info("new_directory_detected", path=str(rel_path))
                needs_restart = True

            relevant.append(rel_path)
            logger.debug("path_changed", path=str(rel_path), change_type=change_type.name)

        if relevant:
            logger.info(
                "changes_detected",
                count=len(relevant),
                summary=_summarize_changes_by_type(relevant),
            )
            self.on_change(relevant)

        return needs_restart
