"""Tests for daemon/controller.py.

The native watcher is replaced by FakeWatcher so state transitions and
notifications can be checked without waiting on inotify.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from snapwatch.config.models import FilterConfig, WatchConfig
from snapwatch.core.errors import WatchError
from snapwatch.daemon.controller import WatchController, WatchState, WatchStatus
from snapwatch.daemon.notifications import Notification, NotificationEmitter, NotificationKind
from snapwatch.scanner.cache import SnapshotCache
from snapwatch.scanner.models import ScannedFile, Snapshot


class FakeWatcher:
    """Stands in for DirectoryWatcher."""

    instances: list[FakeWatcher] = []
    ready = True
    error: WatchError | None = None

    def __init__(
        self,
        root: Path,
        on_change: Callable[[list[Path]], None],
        on_error: Callable[[WatchError], None],
        **kwargs: Any,
    ) -> None:
        self.root = root
        self.on_change = on_change
        self.on_error = on_error
        self.kwargs = kwargs
        self.started = False
        self.stopped = False
        FakeWatcher.instances.append(self)

    async def start(self) -> None:
        self.started = True

    async def wait_ready(self, timeout: float) -> bool:
        return FakeWatcher.ready

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture(autouse=True)
def fake_watcher() -> Any:
    FakeWatcher.instances = []
    FakeWatcher.ready = True
    FakeWatcher.error = None
    with patch("snapwatch.daemon.controller.DirectoryWatcher", FakeWatcher):
        yield FakeWatcher


@pytest.fixture
def received() -> list[Notification]:
    return []


@pytest.fixture
def controller(received: list[Notification]) -> WatchController:
    emitter = NotificationEmitter()
    emitter.add_listener(received.append)
    return WatchController(
        emitter,
        SnapshotCache(),
        on_change=MagicMock(),
        on_ready=MagicMock(),
        config=WatchConfig(ready_timeout_sec=1.0),
    )


def _kinds(received: list[Notification]) -> list[NotificationKind]:
    return [n.kind for n in received]


class TestWatchState:
    """Tests for WatchState."""

    def test_default_idle(self) -> None:
        """A fresh state is idle with no directory."""
        state = WatchState()
        assert not state.active
        assert state.to_dict() == {"status": "idle", "active": False, "watched_directory": None}

    def test_active_to_dict(self) -> None:
        """Active state reports its directory."""
        state = WatchState(WatchStatus.ACTIVE, Path("/tmp/x"))
        assert state.active
        assert state.to_dict()["watched_directory"] == "/tmp/x"


class TestEnable:
    """Tests for WatchController.enable."""

    @pytest.mark.asyncio
    async def test_missing_arguments_do_nothing(
        self, controller: WatchController, received: list[Notification]
    ) -> None:
        """No directory or no config returns False without notifying."""
        assert await controller.enable(None, FilterConfig()) is False
        assert await controller.enable("/tmp", None) is False
        assert received == []
        assert controller.state.status is WatchStatus.IDLE

    @pytest.mark.asyncio
    async def test_enable_success(
        self, controller: WatchController, received: list[Notification], tmp_path: Path
    ) -> None:
        """A successful attach goes ACTIVE, calls on_ready and notifies once."""
        config = FilterConfig(
            ignored_dir_names={"node_modules"}, ignored_file_names={"package-lock.json"}
        )

        assert await controller.enable(tmp_path, config) is True

        assert controller.is_active
        assert controller.watched_directory == tmp_path.resolve()
        assert controller.filter_config == config
        controller._on_ready.assert_called_once_with(tmp_path.resolve(), config)  # type: ignore[attr-defined]
        assert _kinds(received) == [NotificationKind.WATCH_STATE_CHANGED]
        assert received[0].payload == {"active": True}
        watcher = FakeWatcher.instances[0]
        assert watcher.started
        assert watcher.kwargs["ignored_dir_names"] == frozenset({"node_modules"})
        assert watcher.kwargs["ignored_file_names"] == frozenset({"package-lock.json"})

    @pytest.mark.asyncio
    async def test_reenable_replaces_watch_silently(
        self, controller: WatchController, received: list[Notification], tmp_path: Path
    ) -> None:
        """Switching directories stops the old watch without a state-changed(False)."""
        first = tmp_path / "a"
        second = tmp_path / "b"
        first.mkdir()
        second.mkdir()

        await controller.enable(first, FilterConfig())
        await controller.enable(second, FilterConfig())

        assert FakeWatcher.instances[0].stopped
        assert not FakeWatcher.instances[1].stopped
        assert controller.watched_directory == second.resolve()
        assert _kinds(received) == [NotificationKind.WATCH_STATE_CHANGED]

    @pytest.mark.asyncio
    async def test_missing_directory_fails(
        self, controller: WatchController, received: list[Notification], tmp_path: Path
    ) -> None:
        """A directory that does not exist emits watch-failed but no state change."""
        assert await controller.enable(tmp_path / "missing", FilterConfig()) is False

        assert _kinds(received) == [NotificationKind.WATCH_FAILED]
        assert controller.state.status is WatchStatus.IDLE
        assert controller.watched_directory == (tmp_path / "missing").resolve()
        assert FakeWatcher.instances == []

    @pytest.mark.asyncio
    async def test_not_ready_fails(
        self, controller: WatchController, received: list[Notification], tmp_path: Path
    ) -> None:
        """A watch that never becomes ready is torn down and reported."""
        FakeWatcher.ready = False
        FakeWatcher.error = WatchError.attach_failed(str(tmp_path), "too many watches")

        assert await controller.enable(tmp_path, FilterConfig()) is False

        assert FakeWatcher.instances[0].stopped
        assert received[0].kind is NotificationKind.WATCH_FAILED
        assert "too many watches" in received[0].payload["message"]

    @pytest.mark.asyncio
    async def test_failure_while_active_turns_off(
        self, controller: WatchController, received: list[Notification], tmp_path: Path
    ) -> None:
        """A failed re-enable of an active watch also emits state-changed(False)."""
        await controller.enable(tmp_path, FilterConfig())
        received.clear()

        assert await controller.enable(tmp_path / "missing", FilterConfig()) is False

        assert _kinds(received) == [
            NotificationKind.WATCH_FAILED,
            NotificationKind.WATCH_STATE_CHANGED,
        ]
        assert received[1].payload == {"active": False}

    @pytest.mark.asyncio
    async def test_discards_cache_of_other_directory(
        self, received: list[Notification], tmp_path: Path
    ) -> None:
        """Watching a new directory drops a snapshot of a different one."""
        cache = SnapshotCache()
        cache.replace(Snapshot.create(tmp_path / "other", [ScannedFile("a.js", "")]))
        controller = WatchController(
            NotificationEmitter(), cache, on_change=MagicMock(), on_ready=MagicMock()
        )

        await controller.enable(tmp_path, FilterConfig())

        assert cache.read().is_empty

    @pytest.mark.asyncio
    async def test_keeps_cache_of_same_directory(self, tmp_path: Path) -> None:
        """Watching the directory already in the cache keeps the snapshot."""
        root = tmp_path.resolve()
        cache = SnapshotCache()
        cache.replace(Snapshot.create(root, [ScannedFile("a.js", "")]))
        controller = WatchController(
            NotificationEmitter(), cache, on_change=MagicMock(), on_ready=MagicMock()
        )

        await controller.enable(root, FilterConfig())

        assert len(cache.read().files) == 1


class TestDisable:
    """Tests for WatchController.disable."""

    @pytest.mark.asyncio
    async def test_disable_active(
        self, controller: WatchController, received: list[Notification], tmp_path: Path
    ) -> None:
        """Disabling an active watch notifies and keeps the directory."""
        await controller.enable(tmp_path, FilterConfig())
        received.clear()

        await controller.disable()

        assert not controller.is_active
        assert controller.watched_directory == tmp_path.resolve()
        assert FakeWatcher.instances[0].stopped
        assert _kinds(received) == [NotificationKind.WATCH_STATE_CHANGED]
        assert received[0].payload == {"active": False}

    @pytest.mark.asyncio
    async def test_disable_idle_is_silent(
        self, controller: WatchController, received: list[Notification]
    ) -> None:
        """Disabling when nothing is watched emits nothing."""
        await controller.disable()
        assert received == []


class TestRuntimeEvents:
    """Tests for callbacks coming from the watcher."""

    @pytest.mark.asyncio
    async def test_change_forwarded_with_filter(
        self, controller: WatchController, tmp_path: Path
    ) -> None:
        """Watcher changes call on_change with the root and the current filter."""
        config = FilterConfig(allowed_extensions={".js"})
        await controller.enable(tmp_path, config)
        updated = FilterConfig(allowed_extensions={".ts"})
        controller.update_filter(updated)

        FakeWatcher.instances[0].on_change([Path("a.js")])

        controller._on_change.assert_called_once_with(tmp_path.resolve(), updated)  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_stale_watcher_ignored(
        self, controller: WatchController, tmp_path: Path
    ) -> None:
        """Callbacks from a replaced watcher are dropped."""
        await controller.enable(tmp_path, FilterConfig())
        await controller.enable(tmp_path, FilterConfig())

        FakeWatcher.instances[0].on_change([Path("a.js")])
        FakeWatcher.instances[0].on_error(WatchError.runtime_error(str(tmp_path), "x"))

        controller._on_change.assert_not_called()  # type: ignore[attr-defined]
        assert controller.is_active

    @pytest.mark.asyncio
    async def test_runtime_error_turns_off(
        self, controller: WatchController, received: list[Notification], tmp_path: Path
    ) -> None:
        """A watcher failure emits watch-failed then state-changed(False)."""
        await controller.enable(tmp_path, FilterConfig())
        received.clear()

        FakeWatcher.instances[0].on_error(WatchError.runtime_error(str(tmp_path), "removed"))
        await asyncio.sleep(0)

        assert not controller.is_active
        assert _kinds(received) == [
            NotificationKind.WATCH_FAILED,
            NotificationKind.WATCH_STATE_CHANGED,
        ]
        await controller.stop()
        assert FakeWatcher.instances[0].stopped

    @pytest.mark.asyncio
    async def test_force_off(
        self, controller: WatchController, received: list[Notification], tmp_path: Path
    ) -> None:
        """force_off tears down and reports the given error."""
        await controller.enable(tmp_path, FilterConfig())
        received.clear()

        await controller.force_off(WatchError.runtime_error(str(tmp_path), "unreadable"))

        assert not controller.is_active
        assert received[0].payload["message"].endswith("unreadable")
        assert received[1].payload == {"active": False}


class TestStop:
    """Tests for WatchController.stop."""

    @pytest.mark.asyncio
    async def test_stop_is_silent(
        self, controller: WatchController, received: list[Notification], tmp_path: Path
    ) -> None:
        """Shutdown drops the watch without notifying."""
        await controller.enable(tmp_path, FilterConfig())
        received.clear()

        await controller.stop()

        assert received == []
        assert not controller.is_active
        assert FakeWatcher.instances[0].stopped
