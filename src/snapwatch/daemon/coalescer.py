"""Debounced, non-overlapping refresh scheduling.

One refresh cycle exists per process:

    IDLE --request--> SCHEDULED --quiet period--> SCANNING --done--> IDLE
                       ^    |
                       +----+ request: timer re-armed, latest request wins

A request that arrives while SCANNING is dropped, not queued. The scan that
is running finishes and the next filesystem event schedules the following
one. Explicit scans (run_now) do wait for the running cycle instead, so no
two cycles ever overlap.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum, StrEnum
from pathlib import Path
from typing import TypeVar

import structlog

from snapwatch.config.models import FilterConfig

logger = structlog.get_logger()

T = TypeVar("T")


class CycleState(Enum):
    """Refresh cycle state."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    SCANNING = "scanning"


class RefreshReason(StrEnum):
    SCAN = "scan"
    FS_CHANGE = "fs-change"
    WATCH_READY = "watch-ready"
    FOCUS = "focus"
    RESUME = "resume"


@dataclass(frozen=True, slots=True)
class RefreshRequest:
    """What to rescan and why. watch=None leaves the watching state as it is."""

    directory: Path
    config: FilterConfig
    reason: RefreshReason
    watch: bool | None = None


@dataclass
class CoalescerStatus:
    state: CycleState
    pending: RefreshRequest | None
    cycles_completed: int
    requests_dropped: int
    last_error: str | None = None


RefreshCycle = Callable[[RefreshRequest], Awaitable[object]]


@dataclass
class RefreshCoalescer:
    """
    Collapses bursts of refresh requests into single scan cycles.

    Design:
    - request_refresh() never blocks: it (re)arms one timer task
    - the timer fires after quiet_period of silence and runs `cycle`
    - an asyncio.Lock serializes every cycle, timer-driven or explicit
    - `cycle` is the owner's scan-and-publish step; this class only decides when it runs
    """

    cycle: RefreshCycle
    quiet_period: float = 0.3

    _state: CycleState = field(default=CycleState.IDLE, init=False)
    _pending: RefreshRequest | None = field(default=None, init=False)
    _timer_task: asyncio.Task[None] | None = field(default=None, init=False)
    _scan_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)
    _cycles_completed: int = field(default=0, init=False)
    _requests_dropped: int = field(default=0, init=False)
    _last_error: str | None = field(default=None, init=False)

    @property
    def state(self) -> CycleState:
        return self._state

    def request_refresh(self, request: RefreshRequest) -> bool:
        """Schedule a coalesced refresh. Returns False if the request was dropped."""
        if self._state is CycleState.SCANNING:
            self._requests_dropped += 1
            logger.debug(
                "refresh_dropped",
                reason=request.reason.value,
                directory=str(request.directory),
            )
            return False

        self._cancel_timer()
        self._pending = request
        self._state = CycleState.SCHEDULED
        self._timer_task = asyncio.get_running_loop().create_task(self._fire_after_quiet_period())
        logger.debug(
            "refresh_scheduled",
            reason=request.reason.value,
            directory=str(request.directory),
            quiet_period=self.quiet_period,
        )
        return True

    async def run_now(self, request: RefreshRequest, runner: Callable[[], Awaitable[T]]) -> T:
        """Run `runner` as a cycle right away, waiting for any running cycle first.

        A pending timer is cancelled: this cycle supersedes it. Exceptions from
        runner propagate to the caller.
        """
        self._cancel_timer()
        if self._state is CycleState.SCHEDULED:
            self._state = CycleState.IDLE
            self._pending = None
        async with self._scan_lock:
            self._state = CycleState.SCANNING
            try:
                result = await runner()
                self._cycles_completed += 1
                self._last_error = None
                return result
            except Exception as e:
                self._last_error = str(e)
                raise
            finally:
                self._state = CycleState.IDLE
                logger.debug("refresh_ran_now", reason=request.reason.value)

    async def stop(self) -> None:
        """Cancel a pending timer and wait for a running cycle to finish."""
        task = self._timer_task
        self._cancel_timer()
        if task is not None and not task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await task
        async with self._scan_lock:
            pass
        if self._state is CycleState.SCHEDULED:
            self._state = CycleState.IDLE
        self._pending = None

    @property
    def status(self) -> CoalescerStatus:
        return CoalescerStatus(
            state=self._state,
            pending=self._pending,
            cycles_completed=self._cycles_completed,
            requests_dropped=self._requests_dropped,
            last_error=self._last_error,
        )

    def _cancel_timer(self) -> None:
        if self._timer_task is not None and not self._timer_task.done():
            self._timer_task.cancel()
        self._timer_task = None

    async def _fire_after_quiet_period(self) -> None:
        await asyncio.sleep(self.quiet_period)
        # Past this point the cycle can no longer be cancelled by a new request
        self._timer_task = None

        async with self._scan_lock:
            request = self._pending
            self._pending = None
            if request is None:
                self._state = CycleState.IDLE
                return
            self._state = CycleState.SCANNING
            try:
                await self.cycle(request)
                self._cycles_completed += 1
                self._last_error = None
            except Exception as e:
                # The cycle owns failure handling; this is the last line
                self._last_error = str(e)
                logger.error("refresh_cycle_failed", error=str(e), reason=request.reason.value)
            finally:
                self._state = CycleState.IDLE
