"""Tests for the upstream request queue."""

import asyncio
import time

import pytest

from cryptodash.services.request_queue import RequestQueue


class FakeClock:
    """Monotonic clock that only advances when the queue sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


class TestRequestQueueSpacing:
    """Tests for spacing and ordering of queued upstream calls."""

    @pytest.mark.asyncio
    async def test_start_gap_is_at_least_min_interval(self):
        """
        **Feature: market-cache, Property 6: Upstream calls are spaced**

        For N queued tasks, the gap between the start of task i and task i+1
        SHALL be at least the configured spacing.
        """
        spacing = 0.05
        queue = RequestQueue(min_interval=spacing)
        starts: list[float] = []

        async def task():
            starts.append(time.monotonic())

        await asyncio.gather(*(queue.submit(task) for _ in range(5)))
        await queue.stop()

        assert len(starts) == 5
        gaps = [later - earlier for earlier, later in zip(starts, starts[1:])]
        assert all(gap >= spacing - 0.005 for gap in gaps), gaps

    @pytest.mark.asyncio
    async def test_sleeps_only_the_residual_delta(self):
        clock = FakeClock()
        queue = RequestQueue(min_interval=1.1, clock=clock, sleep=clock.sleep)

        async def slow_task():
            clock.now += 0.4

        await asyncio.gather(*(queue.submit(slow_task) for _ in range(3)))
        await queue.stop()

        # First task starts immediately; each later one waits 1.1 - 0.4
        assert clock.sleeps == [pytest.approx(0.7), pytest.approx(0.7)]

    @pytest.mark.asyncio
    async def test_no_sleep_when_tasks_are_already_far_apart(self):
        clock = FakeClock()
        queue = RequestQueue(min_interval=1.1, clock=clock, sleep=clock.sleep)

        async def long_task():
            clock.now += 5

        await queue.submit(long_task)
        await queue.submit(long_task)
        await queue.stop()

        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_tasks_run_in_enqueue_order_one_at_a_time(self):
        queue = RequestQueue(min_interval=0)
        order: list[int] = []
        active = 0
        peak = 0

        def make_task(index: int):
            async def task():
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01 * (5 - index))
                order.append(index)
                active -= 1
                return index

            return task

        results = await asyncio.gather(*(queue.submit(make_task(i)) for i in range(5)))
        await queue.stop()

        assert results == [0, 1, 2, 3, 4]
        assert order == [0, 1, 2, 3, 4]
        assert peak == 1


class TestRequestQueueFailures:
    """Tests for failure isolation."""

    @pytest.mark.asyncio
    async def test_failure_reaches_only_its_caller(self):
        queue = RequestQueue(min_interval=0)

        async def ok():
            return "ok"

        async def boom():
            raise ValueError("upstream exploded")

        results = await asyncio.gather(
            queue.submit(ok), queue.submit(boom), queue.submit(ok), return_exceptions=True
        )

        assert results[0] == "ok"
        assert isinstance(results[1], ValueError)
        assert results[2] == "ok"
        assert queue.running
        await queue.stop()

    @pytest.mark.asyncio
    async def test_stop_fails_tasks_that_never_started(self):
        queue = RequestQueue(min_interval=0)
        release = asyncio.Event()

        async def blocker():
            await release.wait()

        async def never_started():
            return "late"

        first = asyncio.ensure_future(queue.submit(blocker))
        second = asyncio.ensure_future(queue.submit(never_started))
        await asyncio.sleep(0.01)
        assert queue.pending == 1

        await queue.stop()

        with pytest.raises(RuntimeError, match="stopped"):
            await second
        with pytest.raises(RuntimeError, match="stopped"):
            await first

    @pytest.mark.asyncio
    async def test_stop_fails_the_running_task(self):
        queue = RequestQueue(min_interval=0)

        async def slow_refresh():
            await asyncio.sleep(10)

        caller = asyncio.ensure_future(queue.submit(slow_refresh))
        await asyncio.sleep(0.01)
        assert queue.pending == 0

        await queue.stop()

        done, _ = await asyncio.wait({caller}, timeout=1)
        assert caller in done
        with pytest.raises(RuntimeError, match="stopped"):
            caller.result()

    @pytest.mark.asyncio
    async def test_stop_during_spacing_wait_fails_the_task(self):
        queue = RequestQueue(min_interval=10)

        async def quick():
            return "ok"

        assert await queue.submit(quick) == "ok"
        caller = asyncio.ensure_future(queue.submit(quick))
        await asyncio.sleep(0.01)

        await queue.stop()

        done, _ = await asyncio.wait({caller}, timeout=1)
        assert caller in done
        with pytest.raises(RuntimeError, match="stopped"):
            caller.result()

    @pytest.mark.asyncio
    async def test_task_raising_cancelled_only_cancels_its_caller(self):
        queue = RequestQueue(min_interval=0)

        async def cancelled_inside():
            raise asyncio.CancelledError()

        async def ok():
            return "ok"

        caller = asyncio.ensure_future(queue.submit(cancelled_inside))
        done, _ = await asyncio.wait({caller}, timeout=1)

        assert caller in done
        assert caller.cancelled()
        assert queue.running
        assert await queue.submit(ok) == "ok"
        await queue.stop()

    @pytest.mark.asyncio
    async def test_submit_starts_worker_lazily(self):
        queue = RequestQueue(min_interval=0)
        assert not queue.running

        async def task():
            return 42

        assert await queue.submit(task) == 42
        assert queue.running
        await queue.stop()
        assert not queue.running
