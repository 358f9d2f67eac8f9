"""Tests for daemon/notifications.py.

Covers:
- Notification serialization
- listener fan-out and failure isolation
- Subscription mailboxes (one outstanding notification per kind)
"""

from __future__ import annotations

import asyncio

import pytest

from snapwatch.daemon.notifications import (
    Notification,
    NotificationEmitter,
    NotificationKind,
    Subscription,
)
from snapwatch.scanner.models import ScannedFile


class TestNotification:
    """Tests for Notification."""

    def test_to_dict_flattens_payload(self) -> None:
        """to_dict puts the kind next to the payload fields."""
        n = Notification(NotificationKind.WATCH_FAILED, {"message": "gone"})
        assert n.to_dict() == {"kind": "watch-failed", "message": "gone"}

    def test_kind_values(self) -> None:
        """Kinds serialize to their wire names."""
        assert NotificationKind.FILES_UPDATED == "files-updated"
        assert NotificationKind.WATCH_STATE_CHANGED == "watch-state-changed"
        assert NotificationKind.WATCH_FAILED == "watch-failed"


class TestListeners:
    """Tests for synchronous listeners."""

    def test_listener_receives_emits(self) -> None:
        """Every emit reaches every listener in order."""
        emitter = NotificationEmitter()
        received: list[Notification] = []
        emitter.add_listener(received.append)

        emitter.watch_state_changed(True)
        emitter.watch_failed("boom")

        assert [n.kind for n in received] == [
            NotificationKind.WATCH_STATE_CHANGED,
            NotificationKind.WATCH_FAILED,
        ]
        assert received[0].payload == {"active": True}
        assert received[1].payload == {"message": "boom"}

    def test_files_updated_payload(self) -> None:
        """files_updated carries the full file list."""
        emitter = NotificationEmitter()
        received: list[Notification] = []
        emitter.add_listener(received.append)

        emitter.files_updated([ScannedFile("a.js", "x")])

        assert received[0].payload == {"files": [{"relative_path": "a.js", "content": "x"}]}

    def test_remove_listener(self) -> None:
        """The returned remover detaches the listener."""
        emitter = NotificationEmitter()
        received: list[Notification] = []
        remove = emitter.add_listener(received.append)
        remove()
        remove()  # idempotent

        emitter.watch_state_changed(False)
        assert received == []

    def test_failing_listener_does_not_block_others(self) -> None:
        """A raising listener is logged and the next one still runs."""
        emitter = NotificationEmitter()
        received: list[Notification] = []

        def broken(_n: Notification) -> None:
            raise RuntimeError("listener bug")

        emitter.add_listener(broken)
        emitter.add_listener(received.append)
        emitter.watch_state_changed(True)

        assert len(received) == 1


class TestSubscription:
    """Tests for Subscription mailboxes."""

    @pytest.mark.asyncio
    async def test_get_returns_in_emit_order(self) -> None:
        """Different kinds are delivered in emit order."""
        emitter = NotificationEmitter()
        sub = emitter.subscribe()

        emitter.files_updated([])
        emitter.watch_state_changed(True)

        first = await sub.get()
        second = await sub.get()
        assert first is not None and first.kind is NotificationKind.FILES_UPDATED
        assert second is not None and second.kind is NotificationKind.WATCH_STATE_CHANGED

    @pytest.mark.asyncio
    async def test_same_kind_replaces_undelivered(self) -> None:
        """Only the newest notification of a kind is kept."""
        emitter = NotificationEmitter()
        sub = emitter.subscribe()

        emitter.files_updated([ScannedFile("old.js", "")])
        emitter.watch_state_changed(True)
        emitter.files_updated([ScannedFile("new.js", "")])

        assert len(sub) == 2
        first = await sub.get()
        second = await sub.get()
        assert first is not None and first.kind is NotificationKind.WATCH_STATE_CHANGED
        assert second is not None
        assert second.payload["files"] == [{"relative_path": "new.js", "content": ""}]

    @pytest.mark.asyncio
    async def test_get_waits_for_emit(self) -> None:
        """get() blocks until something is emitted."""
        emitter = NotificationEmitter()
        sub = emitter.subscribe()

        task = asyncio.create_task(sub.get())
        await asyncio.sleep(0.01)
        assert not task.done()

        emitter.watch_failed("x")
        result = await asyncio.wait_for(task, timeout=1.0)
        assert result is not None and result.kind is NotificationKind.WATCH_FAILED

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self) -> None:
        """Closing a subscription ends async iteration after pending items."""
        sub = Subscription()
        sub.put(Notification(NotificationKind.WATCH_FAILED, {"message": "x"}))
        sub.close()

        items = [n async for n in sub]
        assert len(items) == 1
        assert await sub.get() is None

    @pytest.mark.asyncio
    async def test_put_after_close_ignored(self) -> None:
        """A closed subscription accepts nothing."""
        sub = Subscription()
        sub.close()
        sub.put(Notification(NotificationKind.WATCH_FAILED, {"message": "x"}))
        assert len(sub) == 0
        assert sub.closed

    def test_get_nowait_empty(self) -> None:
        """get_nowait returns None when nothing is pending."""
        assert Subscription().get_nowait() is None

    def test_unsubscribe_stops_delivery(self) -> None:
        """An unsubscribed mailbox receives nothing more."""
        emitter = NotificationEmitter()
        sub = emitter.subscribe()
        emitter.unsubscribe(sub)

        emitter.watch_state_changed(True)
        assert len(sub) == 0
        assert sub.closed

    def test_close_emitter_closes_all(self) -> None:
        """Closing the emitter closes every subscription."""
        emitter = NotificationEmitter()
        subs = [emitter.subscribe() for _ in range(3)]
        emitter.close()
        assert all(s.closed for s in subs)
