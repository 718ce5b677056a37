"""Scheduled task primitives with an injectable clock.

Processors run on fixed intervals through PeriodicTask. Production code
uses SystemClock; tests drive a ManualClock and advance virtual time
instead of sleeping.
"""

import asyncio
import contextlib
import heapq
import itertools
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import structlog

from catalogsync.domain.base import utc_now

logger = structlog.get_logger()


# ============================================================================
# Clocks
# ============================================================================


class Clock(Protocol):
    """Time source for timers and timestamps."""

    def now(self) -> datetime:
        """Current wall-clock time (aware UTC)."""
        ...

    def monotonic(self) -> float:
        """Monotonic seconds, for measuring durations."""
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Real time backed by the event loop."""

    def now(self) -> datetime:
        return utc_now()

    def monotonic(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualClock:
    """Virtual clock advanced explicitly by tests.

    Sleepers are parked on futures and released in deadline order by
    ``advance``. After each release the event loop is drained so work
    triggered by the wake-up runs to its next suspension point.

    Example usage:
        clock = ManualClock()
        task = PeriodicTask("sync", 3.0, callback, clock)
        task.start()
        await clock.advance(3.0)  # callback has run once
    """

    DRAIN_ITERATIONS = 100

    def __init__(self, start: datetime | None = None) -> None:
        """Initialize clock.

        Args:
            start: Wall-clock time at offset zero.
        """
        self._start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._offset = 0.0
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._sequence = itertools.count()

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._offset)

    def monotonic(self) -> float:
        return self._offset

    @property
    def pending_sleepers(self) -> int:
        return sum(1 for _, _, fut in self._sleepers if not fut.done())

    async def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self._offset + seconds, next(self._sequence), future))
        await future

    async def advance(self, seconds: float) -> None:
        """Move virtual time forward, waking sleepers whose deadline passed.

        Args:
            seconds: Amount of virtual time to advance.
        """
        target = self._offset + seconds
        await self.drain()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            self._offset = max(self._offset, deadline)
            if not future.done():
                future.set_result(None)
            await self.drain()
        self._offset = target
        await self.drain()

    async def drain(self) -> None:
        """Let ready tasks run until they block again."""
        for _ in range(self.DRAIN_ITERATIONS):
            await asyncio.sleep(0)


# ============================================================================
# Periodic Task
# ============================================================================


class PeriodicTask:
    """Runs an async callback every ``interval`` seconds.

    Stopping cancels the task only while it is sleeping between runs;
    a callback already in progress is allowed to finish.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
        clock: Clock,
    ) -> None:
        """Initialize periodic task.

        Args:
            name: Task name for logging.
            interval: Seconds between runs.
            callback: Coroutine function invoked each tick.
            clock: Time source.
        """
        self.name = name
        self.interval = interval
        self._callback = callback
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._stopping = False
        self._in_callback = False
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the timer loop. Starting a running task is a no-op."""
        if self.is_running:
            return
        self._stopping = False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        logger.debug("Periodic task started", task=self.name, interval=self.interval)

    async def stop(self) -> None:
        """Stop the timer loop, letting an in-flight callback complete."""
        task = self._task
        if task is None:
            return
        self._stopping = True
        if not self._in_callback:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._task = None
        logger.debug("Periodic task stopped", task=self.name, runs=self.runs)

    async def _run(self) -> None:
        while not self._stopping:
            await self._clock.sleep(self.interval)
            if self._stopping:
                break
            self._in_callback = True
            try:
                await self._callback()
            except Exception:
                logger.exception("Periodic task callback failed", task=self.name)
            finally:
                self._in_callback = False
                self.runs += 1
