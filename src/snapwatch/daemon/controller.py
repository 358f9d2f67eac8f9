"""Watch controller: the single source of truth for watching status.

State is one of IDLE, ACTIVE or ERROR plus the directory being (or last)
watched. ERROR is transient: a failure passes through it on its way back to
IDLE, emitting watch-failed and, when watching was on, watch-state-changed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from snapwatch.config.models import FilterConfig, WatchConfig
from snapwatch.core.errors import WatchError
from snapwatch.daemon.notifications import NotificationEmitter
from snapwatch.daemon.watcher import DirectoryWatcher
from snapwatch.scanner.cache import SnapshotCache

logger = structlog.get_logger()

WatchCallback = Callable[[Path, FilterConfig], None]


class WatchStatus(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class WatchState:
    status: WatchStatus = WatchStatus.IDLE
    watched_directory: Path | None = None

    @property
    def active(self) -> bool:
        return self.status is WatchStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "active": self.active,
            "watched_directory": str(self.watched_directory) if self.watched_directory else None,
        }


class WatchController:
    """Owns the one native watch of the process.

    on_ready is called once the watch is attached (the owner schedules an
    immediate refresh); on_change is called for every relevant batch of
    filesystem events. Neither is called for a watch that has been replaced
    or torn down.
    """

    def __init__(
        self,
        emitter: NotificationEmitter,
        cache: SnapshotCache,
        *,
        on_change: WatchCallback,
        on_ready: WatchCallback,
        config: WatchConfig | None = None,
    ) -> None:
        self._emitter = emitter
        self._cache = cache
        self._on_change = on_change
        self._on_ready = on_ready
        self._config = config or WatchConfig()
        self._state = WatchState()
        self._filter: FilterConfig | None = None
        self._watcher: DirectoryWatcher | None = None
        self._lock = asyncio.Lock()
        self._background: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> WatchState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state.active

    @property
    def watched_directory(self) -> Path | None:
        """Directory being watched, or the last one watched."""
        return self._state.watched_directory

    @property
    def filter_config(self) -> FilterConfig | None:
        """Filter of the current (or last) watch."""
        return self._filter

    async def enable(self, directory: Path | str | None, config: FilterConfig | None) -> bool:
        """Start watching directory, replacing any existing watch.

        Returns False without notifying when directory or config is missing,
        and after notifying when the watch could not be attached.
        """
        if directory is None or config is None:
            logger.debug("watch_enable_skipped", reason="no_directory_or_config")
            return False

        async with self._lock:
            was_active = self.is_active
            await self._teardown()
            path = Path(directory).expanduser().resolve()
            try:
                await self._attach(path, config)
            except WatchError as e:
                self._state = WatchState(self._state.status, path)
                self._handle_failure(e, was_active=was_active)
                return False

            cached = self._cache.read()
            if cached.root_directory is not None and cached.root_directory != path:
                self._cache.discard()

            self._state = WatchState(WatchStatus.ACTIVE, path)
            self._filter = config
            logger.info("watch_enabled", directory=str(path))
            self._on_ready(path, config)
            if not was_active:
                self._emitter.watch_state_changed(True)
            return True

    def update_filter(self, config: FilterConfig) -> None:
        """Use config for the refreshes of the current watch from now on."""
        self._filter = config

    async def disable(self) -> None:
        """Stop watching. The last watched directory is remembered."""
        async with self._lock:
            was_active = self.is_active
            await self._teardown()
            self._state = WatchState(WatchStatus.IDLE, self._state.watched_directory)
            if was_active:
                logger.info("watch_disabled", directory=str(self._state.watched_directory))
                self._emitter.watch_state_changed(False)

    async def force_off(self, error: WatchError) -> None:
        """Tear the watch down as failed (e.g. its directory can no longer be scanned)."""
        async with self._lock:
            was_active = self.is_active
            await self._teardown()
            self._handle_failure(error, was_active=was_active)

    async def stop(self) -> None:
        """Shutdown: drop the watch without notifying anyone."""
        async with self._lock:
            await self._teardown()
            self._state = WatchState(WatchStatus.IDLE, self._state.watched_directory)
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _attach(self, path: Path, config: FilterConfig) -> None:
        if not path.is_dir():
            raise WatchError.attach_failed(str(path), "not an accessible directory")

        watcher = DirectoryWatcher(
            root=path,
            on_change=lambda paths: self._watcher_changed(watcher, paths),
            on_error=lambda error: self._watcher_failed(watcher, error),
            ignored_dir_names=config.ignored_dir_names,
            ignored_file_names=config.ignored_file_names,
            rust_timeout_ms=self._config.rust_timeout_ms,
            step_ms=self._config.step_ms,
            stop_timeout=self._config.stop_timeout_sec,
        )
        self._watcher = watcher
        await watcher.start()
        if await watcher.wait_ready(self._config.ready_timeout_sec):
            return

        error = watcher.error or WatchError.attach_failed(
            str(path), f"not ready within {self._config.ready_timeout_sec}s"
        )
        await self._teardown()
        raise error

    async def _teardown(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            await watcher.stop()

    def _handle_failure(self, error: WatchError, *, was_active: bool) -> None:
        directory = self._state.watched_directory
        self._state = WatchState(WatchStatus.ERROR, directory)
        logger.warning("watch_failed", directory=str(directory), error=error.message)
        self._emitter.watch_failed(error.message)
        self._state = WatchState(WatchStatus.IDLE, directory)
        if was_active:
            self._emitter.watch_state_changed(False)

    def _watcher_changed(self, watcher: DirectoryWatcher, paths: list[Path]) -> None:
        if watcher is not self._watcher or self._filter is None:
            return
        logger.debug("watch_change_forwarded", count=len(paths))
        self._on_change(watcher.root, self._filter)

    def _watcher_failed(self, watcher: DirectoryWatcher, error: WatchError) -> None:
        # Called from inside the watch task, so its stop runs as a separate task
        if watcher is not self._watcher:
            return
        self._watcher = None
        task = asyncio.get_running_loop().create_task(watcher.stop())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        self._handle_failure(error, was_active=self.is_active)
