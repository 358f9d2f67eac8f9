"""Snapshot service: the single owner of scanning and watching state.

Wires the walker, snapshot cache, refresh coalescer, watch controller and
notification emitter together and exposes the operations the transport and
CLI call. All methods must be called from the event loop thread; the walker
itself runs in a single worker thread.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import structlog

from snapwatch.config.models import FilterConfig, SnapWatchConfig
from snapwatch.config.preferences import PreferencesStore
from snapwatch.core.errors import ScanError, WatchError
from snapwatch.daemon.coalescer import RefreshCoalescer, RefreshReason, RefreshRequest
from snapwatch.daemon.controller import WatchController
from snapwatch.daemon.notifications import NotificationEmitter
from snapwatch.scanner.cache import SnapshotCache
from snapwatch.scanner.export import export_markdown
from snapwatch.scanner.models import ScannedFile, Snapshot
from snapwatch.scanner.walker import walk

logger = structlog.get_logger()


def _walk_sync(directory: Path, config: FilterConfig) -> tuple[Path, list[ScannedFile]]:
    """Synchronous walk - runs in the walker thread."""
    root = directory.expanduser().resolve()
    return root, walk(root, config)


class SnapshotService:
    """
    Scan-and-watch service for one consumer.

    Design:
    - Every walk goes through the coalescer, so at most one runs at a time
    - Explicit scans run immediately (waiting for an in-flight cycle)
    - Filesystem events, watch readiness and focus refreshes are coalesced
    - files-updated for a cycle is emitted before any watch change it causes
    """

    def __init__(
        self,
        config: SnapWatchConfig | None = None,
        *,
        preferences: PreferencesStore | None = None,
        emitter: NotificationEmitter | None = None,
    ) -> None:
        self.config = config or SnapWatchConfig()
        self.preferences = preferences or PreferencesStore(self.config.state.preferences_path)
        self.emitter = emitter or NotificationEmitter()
        self.cache = SnapshotCache()
        self.coalescer = RefreshCoalescer(
            cycle=self._run_cycle,
            quiet_period=self.config.watch.debounce_sec,
        )
        self.watch = WatchController(
            self.emitter,
            self.cache,
            on_change=self._on_fs_change,
            on_ready=self._on_watch_ready,
            config=self.config.watch,
        )
        self._executor: ThreadPoolExecutor | None = None
        self._current_directory: Path | None = None
        self._last_filter: FilterConfig | None = None

    @property
    def current_directory(self) -> Path | None:
        """Root of the last successful scan."""
        return self._current_directory

    async def start(self, *, resume: bool = True) -> None:
        """Start the walker thread and optionally reload the last directory.

        The resumed scan never turns watching on.
        """
        self._ensure_executor()
        logger.info("snapshot_service_started", resume=resume)
        if not resume:
            return

        last = self.preferences.get_last_directory()
        if not last or not Path(last).is_dir():
            return
        request = RefreshRequest(
            directory=Path(last),
            config=self.preferences.get_filter_config(),
            reason=RefreshReason.RESUME,
        )
        try:
            await self.coalescer.run_now(request, lambda: self._scan_and_publish(request))
        except ScanError as e:
            logger.warning("resume_failed", directory=last, error=e.message)

    async def stop(self) -> None:
        """Shut down: drop the watch, cancel pending refreshes, stop the walker thread."""
        await self.watch.stop()
        await self.coalescer.stop()
        self.emitter.close()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.info("snapshot_service_stopped")

    async def scan(
        self,
        directory: Path | str,
        config: FilterConfig | None = None,
        watch: bool | None = None,
    ) -> tuple[ScannedFile, ...]:
        """Scan directory now and make it the current one.

        Args:
            directory: Directory to scan.
            config: Filter to apply; the saved filter defaults when omitted.
            watch: Desired watching state afterwards; None keeps the current one.

        Raises:
            ScanError: If the directory cannot be read. The previous snapshot stays.
        """
        request = RefreshRequest(
            directory=Path(directory),
            config=config or self.preferences.get_filter_config(),
            reason=RefreshReason.SCAN,
            watch=watch,
        )
        snapshot = await self.coalescer.run_now(request, lambda: self._scan_and_publish(request))
        # Runs after the cycle so the watch-ready refresh is not dropped
        await self._reconcile_watch(request, snapshot)
        return snapshot.files

    async def toggle_watch(
        self,
        should_watch: bool | None,
        directory: Path | str | None = None,
    ) -> bool:
        """Turn watching on or off; returns whether watching is active afterwards.

        should_watch=None only reports the current state. Turning watching on
        uses directory, or the current directory when omitted; with neither
        it returns False and nothing is emitted.
        """
        if should_watch is None:
            return self.watch.is_active
        if not should_watch:
            await self.watch.disable()
            return False

        target = Path(directory).expanduser().resolve() if directory else self._current_directory
        if target is None:
            logger.info("watch_not_enabled", reason="no_directory")
            return False
        if self.watch.is_active and self.watch.watched_directory == target:
            return True
        config = self._last_filter or self.preferences.get_filter_config()
        return await self.watch.enable(target, config)

    def get_snapshot(self) -> tuple[ScannedFile, ...]:
        """Files of the cached snapshot (empty before the first scan)."""
        return self.cache.read().files

    def get_last_directory(self) -> str | None:
        return self.preferences.get_last_directory()

    def refresh(self) -> bool:
        """Request a coalesced refresh of the watched directory (window focus).

        Does nothing unless watching is active.
        """
        directory = self.watch.watched_directory
        config = self.watch.filter_config
        if not self.watch.is_active or directory is None or config is None:
            return False
        return self.coalescer.request_refresh(
            RefreshRequest(directory=directory, config=config, reason=RefreshReason.FOCUS)
        )

    def export_markdown(self) -> str:
        return export_markdown(self.cache.read())

    def get_filter_defaults(self) -> FilterConfig:
        return self.preferences.get_filter_config()

    def save_filter_defaults(self, config: FilterConfig) -> FilterConfig:
        saved = self.preferences.set_filter_config(config)
        logger.info("filter_defaults_saved", extensions=len(saved.allowed_extensions))
        return saved

    def status(self) -> dict[str, Any]:
        snapshot = self.cache.read()
        coalescer = self.coalescer.status
        return {
            "current_directory": str(self._current_directory) if self._current_directory else None,
            "watch": self.watch.state.to_dict(),
            "refresh": {
                "state": coalescer.state.value,
                "pending": coalescer.pending.reason.value if coalescer.pending else None,
                "cycles_completed": coalescer.cycles_completed,
                "requests_dropped": coalescer.requests_dropped,
                "last_error": coalescer.last_error,
            },
            "snapshot": {
                "root_directory": str(snapshot.root_directory) if snapshot.root_directory else None,
                "generated_at": snapshot.generated_at.isoformat() if snapshot.generated_at else None,
                "file_count": len(snapshot.files),
            },
        }

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1,
                thread_name_prefix="snapwatch-walker",
            )
        return self._executor

    async def _scan_and_publish(self, request: RefreshRequest) -> Snapshot:
        """One cycle body: walk, replace the cache, remember the directory, notify."""
        loop = asyncio.get_running_loop()
        root, files = await loop.run_in_executor(
            self._ensure_executor(),
            _walk_sync,
            request.directory,
            request.config,
        )
        snapshot = Snapshot.create(root, files)
        self.cache.replace(snapshot)
        self._current_directory = root
        self._last_filter = request.config
        logger.info(
            "snapshot_published",
            root=str(root),
            files=len(snapshot.files),
            reason=request.reason.value,
        )
        self.emitter.files_updated(snapshot.files)
        # YAML write stays off the event loop
        await loop.run_in_executor(
            self._ensure_executor(), self.preferences.set_last_directory, str(root)
        )
        return snapshot

    async def _run_cycle(self, request: RefreshRequest) -> None:
        """Timer-driven cycle. A failed walk keeps the previous snapshot."""
        try:
            await self._scan_and_publish(request)
        except ScanError as e:
            logger.warning(
                "refresh_failed",
                directory=str(request.directory),
                reason=request.reason.value,
                error=e.message,
            )
            if self.watch.is_active:
                reason = e.details.get("reason", e.message)
                await self.watch.force_off(WatchError.runtime_error(str(request.directory), reason))

    async def _reconcile_watch(self, request: RefreshRequest, snapshot: Snapshot) -> None:
        root = snapshot.root_directory
        want = request.watch if request.watch is not None else self.watch.is_active
        if not want:
            if self.watch.is_active:
                await self.watch.disable()
            return

        current = self.watch.filter_config
        if (
            not self.watch.is_active
            or self.watch.watched_directory != root
            or current is None
            or current.ignored_dir_names != request.config.ignored_dir_names
            or current.ignored_file_names != request.config.ignored_file_names
        ):
            await self.watch.enable(root, request.config)
        else:
            self.watch.update_filter(request.config)

    def _on_fs_change(self, directory: Path, config: FilterConfig) -> None:
        self.coalescer.request_refresh(
            RefreshRequest(directory=directory, config=config, reason=RefreshReason.FS_CHANGE)
        )

    def _on_watch_ready(self, directory: Path, config: FilterConfig) -> None:
        self.coalescer.request_refresh(
            RefreshRequest(directory=directory, config=config, reason=RefreshReason.WATCH_READY)
        )
