"""Tests for the periodic task scheduler."""

import asyncio

import pytest

from solana_whale_tracker.scheduler import PeriodicTask


class TestPeriodicTask:
    """Tests for PeriodicTask."""

    @pytest.mark.asyncio
    async def test_run_once(self) -> None:
        calls: list[int] = []

        async def body() -> None:
            calls.append(1)

        task = PeriodicTask("test", body, 60)

        assert await task.run_once() is True
        assert calls == [1]
        assert task.stats.runs == 1
        assert task.stats.last_run_at is not None

    @pytest.mark.asyncio
    async def test_tick_skipped_while_in_flight(self) -> None:
        release = asyncio.Event()
        calls: list[int] = []

        async def body() -> None:
            calls.append(1)
            await release.wait()

        task = PeriodicTask("test", body, 60)

        assert task.tick() is True
        await asyncio.sleep(0)
        assert task.is_running is True
        assert task.tick() is False
        assert task.tick() is False

        release.set()
        await task.stop(grace_seconds=1)

        assert calls == [1]
        assert task.stats.ticks == 3
        assert task.stats.skipped_ticks == 2
        assert task.is_running is False

    @pytest.mark.asyncio
    async def test_failure_is_recorded_not_raised(self) -> None:
        async def body() -> None:
            raise RuntimeError("cycle failed")

        task = PeriodicTask("test", body, 60)

        assert await task.run_once() is True
        assert task.stats.failures == 1
        assert task.stats.last_error == "cycle failed"

    @pytest.mark.asyncio
    async def test_loop_ticks_on_interval(self) -> None:
        calls: list[int] = []

        async def body() -> None:
            calls.append(1)

        task = PeriodicTask("test", body, 0.02)
        task.start()
        await asyncio.sleep(0.15)
        await task.stop(grace_seconds=1)

        assert len(calls) >= 3
        assert task.is_started is False

    @pytest.mark.asyncio
    async def test_run_immediately_false_waits_for_interval(self) -> None:
        calls: list[int] = []

        async def body() -> None:
            calls.append(1)

        task = PeriodicTask("test", body, 60, run_immediately=False)
        task.start()
        await asyncio.sleep(0.05)
        await task.stop(grace_seconds=1)

        assert calls == []

    @pytest.mark.asyncio
    async def test_stop_cancels_run_exceeding_grace(self) -> None:
        cancelled = asyncio.Event()

        async def body() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        task = PeriodicTask("test", body, 60)
        task.start()
        await asyncio.sleep(0.01)

        await asyncio.wait_for(task.stop(grace_seconds=0.05), timeout=2.0)

        assert cancelled.is_set()
        assert task.is_running is False

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_run(self) -> None:
        finished: list[bool] = []

        async def body() -> None:
            await asyncio.sleep(0.05)
            finished.append(True)

        task = PeriodicTask("test", body, 60)
        task.start()
        await asyncio.sleep(0.01)

        await task.stop(grace_seconds=1)

        assert finished == [True]
