"""Tests for the virtual clock and periodic tasks."""

import asyncio
from datetime import timedelta

import pytest

from catalogsync.application.scheduler import ManualClock, PeriodicTask


class TestManualClock:
    """Tests for ManualClock."""

    @pytest.mark.asyncio
    async def test_advance_moves_time(self, clock: ManualClock, now) -> None:
        """Advancing shifts both wall-clock and monotonic time."""
        await clock.advance(90)

        assert clock.now() == now + timedelta(seconds=90)
        assert clock.monotonic() == 90

    @pytest.mark.asyncio
    async def test_sleepers_wake_in_deadline_order(self, clock: ManualClock) -> None:
        """Sleepers are released by deadline, not by registration order."""
        woke: list[int] = []

        async def sleeper(seconds: int) -> None:
            await clock.sleep(seconds)
            woke.append(seconds)

        tasks = [asyncio.create_task(sleeper(5)), asyncio.create_task(sleeper(2))]
        await clock.advance(1)
        assert woke == []
        assert clock.pending_sleepers == 2

        await clock.advance(10)
        await asyncio.gather(*tasks)
        assert woke == [2, 5]

    @pytest.mark.asyncio
    async def test_zero_sleep_does_not_park(self, clock: ManualClock) -> None:
        """Non-positive sleeps yield without waiting for an advance."""
        await clock.sleep(0)
        assert clock.pending_sleepers == 0


class TestPeriodicTask:
    """Tests for PeriodicTask."""

    @pytest.mark.asyncio
    async def test_runs_once_per_interval(self, clock: ManualClock) -> None:
        """The callback fires once each time the interval elapses."""
        calls: list[float] = []

        async def callback() -> None:
            calls.append(clock.monotonic())

        task = PeriodicTask("tick", 3.0, callback, clock)
        task.start()

        await clock.advance(2.5)
        assert calls == []
        await clock.advance(0.5)
        assert calls == [3.0]
        await clock.advance(6.0)
        assert calls == [3.0, 6.0, 9.0]

        await task.stop()
        assert task.runs == 3
        assert not task.is_running

    @pytest.mark.asyncio
    async def test_stop_while_sleeping_cancels(self, clock: ManualClock) -> None:
        """Stopping an idle task cancels its pending sleep."""
        calls: list[int] = []

        async def callback() -> None:
            calls.append(1)

        task = PeriodicTask("tick", 3.0, callback, clock)
        task.start()
        await clock.drain()

        await task.stop()
        await clock.advance(10)

        assert calls == []
        assert clock.pending_sleepers == 0

    @pytest.mark.asyncio
    async def test_stop_lets_running_callback_finish(self, clock: ManualClock) -> None:
        """A callback in progress completes before stop returns."""
        started = asyncio.Event()
        release = asyncio.Event()
        finished: list[bool] = []

        async def callback() -> None:
            started.set()
            await release.wait()
            finished.append(True)

        task = PeriodicTask("slow", 3.0, callback, clock)
        task.start()
        await clock.advance(3.0)
        assert started.is_set()

        stopping = asyncio.create_task(task.stop())
        await clock.drain()
        assert not stopping.done()

        release.set()
        await stopping
        assert finished == [True]
        assert clock.pending_sleepers == 0

    @pytest.mark.asyncio
    async def test_callback_errors_do_not_stop_the_loop(self, clock: ManualClock) -> None:
        """A failing callback is logged and the timer keeps running."""
        attempts: list[int] = []

        async def callback() -> None:
            attempts.append(1)
            raise RuntimeError("boom")

        task = PeriodicTask("failing", 1.0, callback, clock)
        task.start()
        await clock.advance(3.0)
        await task.stop()

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, clock: ManualClock) -> None:
        """Starting a running task does not spawn a second loop."""
        calls: list[int] = []

        async def callback() -> None:
            calls.append(1)

        task = PeriodicTask("tick", 1.0, callback, clock)
        task.start()
        task.start()
        await clock.advance(1.0)
        await task.stop()

        assert calls == [1]
