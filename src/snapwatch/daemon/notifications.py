"""One-way notifications from the core to its consumer.

Three kinds exist: files-updated (full file sequence), watch-state-changed
(active flag) and watch-failed (human readable cause). Delivery is
fire-and-forget through two channels:

- listeners: plain callables invoked synchronously on emit
- subscriptions: per-consumer mailboxes for async delivery (the /events
  stream). A mailbox holds at most one outstanding notification per kind; a
  newer one of the same kind replaces the older, undelivered one.

emit() must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from collections.abc import AsyncIterator, Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import structlog

from snapwatch.scanner.models import ScannedFile

logger = structlog.get_logger()


class NotificationKind(StrEnum):
    FILES_UPDATED = "files-updated"
    WATCH_STATE_CHANGED = "watch-state-changed"
    WATCH_FAILED = "watch-failed"


@dataclass(frozen=True, slots=True)
class Notification:
    kind: NotificationKind
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, **self.payload}


Listener = Callable[[Notification], None]


class Subscription:
    """Mailbox for one consumer."""

    def __init__(self) -> None:
        self._pending: OrderedDict[NotificationKind, Notification] = OrderedDict()
        self._ready = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._pending)

    def put(self, notification: Notification) -> None:
        if self._closed:
            return
        # Replacing moves the kind to the end so delivery follows emit order
        self._pending.pop(notification.kind, None)
        self._pending[notification.kind] = notification
        self._ready.set()

    def get_nowait(self) -> Notification | None:
        if not self._pending:
            return None
        _, notification = self._pending.popitem(last=False)
        if not self._pending:
            self._ready.clear()
        return notification

    async def get(self) -> Notification | None:
        """Wait for the next notification; None once the subscription is closed."""
        while not self._pending:
            if self._closed:
                return None
            await self._ready.wait()
        return self.get_nowait()

    def close(self) -> None:
        self._closed = True
        self._ready.set()

    async def __aiter__(self) -> AsyncIterator[Notification]:
        while True:
            notification = await self.get()
            if notification is None:
                return
            yield notification


class NotificationEmitter:
    """Fan-out of notifications to listeners and subscriptions."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._subscriptions: set[Subscription] = set()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a callback; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def subscribe(self) -> Subscription:
        sub = Subscription()
        self._subscriptions.add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subscriptions.discard(sub)
        sub.close()

    def close(self) -> None:
        """Close every subscription (service shutdown)."""
        for sub in list(self._subscriptions):
            self.unsubscribe(sub)

    def emit(self, kind: NotificationKind, **payload: Any) -> Notification:
        notification = Notification(kind=kind, payload=payload)
        logger.debug(
            "notification_emitted",
            kind=kind.value,
            listeners=len(self._listeners),
            subscriptions=len(self._subscriptions),
        )
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("notification_listener_failed", kind=kind.value)
        for sub in list(self._subscriptions):
            sub.put(notification)
        return notification

    def files_updated(self, files: Sequence[ScannedFile]) -> Notification:
        return self.emit(
            NotificationKind.FILES_UPDATED,
            files=[f.to_dict() for f in files],
        )

    def watch_state_changed(self, active: bool) -> Notification:
        return self.emit(NotificationKind.WATCH_STATE_CHANGED, active=active)

    def watch_failed(self, message: str) -> Notification:
        return self.emit(NotificationKind.WATCH_FAILED, message=message)
