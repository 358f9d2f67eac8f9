"""SnapWatch service - scan coalescing, directory watching and the local HTTP transport."""

from snapwatch.daemon.app import create_app
from snapwatch.daemon.coalescer import RefreshCoalescer, RefreshReason, RefreshRequest
from snapwatch.daemon.controller import WatchController, WatchState, WatchStatus
from snapwatch.daemon.notifications import Notification, NotificationEmitter, NotificationKind
from snapwatch.daemon.service import SnapshotService
from snapwatch.daemon.watcher import DirectoryWatcher

__all__ = [
    "DirectoryWatcher",
    "Notification",
    "NotificationEmitter",
    "NotificationKind",
    "RefreshCoalescer",
    "RefreshReason",
    "RefreshRequest",
    "SnapshotService",
    "WatchController",
    "WatchState",
    "WatchStatus",
    "create_app",
]
