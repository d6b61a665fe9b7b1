"""Tests for the bounded-concurrency limiter."""

import asyncio

import pytest

from dbbench.engine.limiter import ConcurrencyLimiter


class TestConcurrencyLimiter:
    @pytest.mark.parametrize("concurrency", [0, -3])
    def test_rejects_non_positive_concurrency(self, concurrency):
        with pytest.raises(ValueError, match="concurrency"):
            ConcurrencyLimiter(concurrency)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency", [1, 3, 8])
    async def test_in_flight_never_exceeds_bound(self, concurrency):
        limiter = ConcurrencyLimiter(concurrency)
        observed = []

        async def job():
            observed.append(limiter.in_flight)
            await asyncio.sleep(0.001)

        for _ in range(25):
            limiter.admit(job)
        await limiter.drain()

        assert max(observed) <= concurrency
        assert limiter.peak_in_flight == concurrency
        assert limiter.in_flight == 0
        assert limiter.admitted == limiter.settled == 25

    @pytest.mark.asyncio
    async def test_admission_is_fifo(self):
        limiter = ConcurrencyLimiter(2)
        started = []

        def make_job(index):
            async def job():
                started.append(index)
                await asyncio.sleep(0.001 * (index % 3))

            return job

        for index in range(12):
            limiter.admit(make_job(index))
        await limiter.drain()

        assert started == list(range(12))

    @pytest.mark.asyncio
    async def test_future_carries_result_and_exception(self):
        limiter = ConcurrencyLimiter(2)

        async def ok():
            return 42

        async def boom():
            raise KeyError("missing")

        ok_future = limiter.admit(ok)
        bad_future = limiter.admit(boom)
        await limiter.drain()

        assert ok_future.result() == 42
        assert isinstance(bad_future.exception(), KeyError)

    @pytest.mark.asyncio
    async def test_failing_job_does_not_stall_the_queue(self):
        limiter = ConcurrencyLimiter(1)
        completed = []

        async def boom():
            raise RuntimeError("first job fails")

        async def ok():
            completed.append(True)

        futures = [limiter.admit(boom)] + [limiter.admit(ok) for _ in range(4)]
        await asyncio.wait_for(limiter.drain(), timeout=2)

        assert len(completed) == 4
        assert all(future.done() for future in futures)
        # Retrieve the exception so the loop does not report it as unhandled.
        assert isinstance(futures[0].exception(), RuntimeError)

    @pytest.mark.asyncio
    async def test_drain_without_jobs_returns_immediately(self):
        limiter = ConcurrencyLimiter(4)
        await asyncio.wait_for(limiter.drain(), timeout=1)
        assert limiter.admitted == 0
        assert limiter.peak_in_flight == 0

    @pytest.mark.asyncio
    async def test_workers_are_released_after_drain(self):
        limiter = ConcurrencyLimiter(3)

        async def job():
            await asyncio.sleep(0)

        for _ in range(5):
            limiter.admit(job)
        await limiter.drain()

        pending = [
            task
            for task in asyncio.all_tasks()
            if task.get_name().startswith("limiter-worker-") and not task.done()
        ]
        assert pending == []

    @pytest.mark.asyncio
    async def test_job_raising_cancelled_error_does_not_stall(self):
        limiter = ConcurrencyLimiter(1)
        completed = []

        async def cancelled():
            raise asyncio.CancelledError()

        async def ok():
            completed.append(True)

        first = limiter.admit(cancelled)
        rest = [limiter.admit(ok) for _ in range(3)]
        await asyncio.wait_for(limiter.drain(), timeout=1)

        assert first.cancelled()
        assert len(completed) == 3
        assert all(future.done() for future in rest)
        assert limiter.settled == 4

    @pytest.mark.asyncio
    async def test_cancelling_drain_stops_running_jobs(self):
        limiter = ConcurrencyLimiter(2)

        async def slow():
            await asyncio.sleep(10)

        futures = [limiter.admit(slow) for _ in range(2)]
        drain = asyncio.create_task(limiter.drain())
        await asyncio.sleep(0.01)
        drain.cancel()

        with pytest.raises(asyncio.CancelledError):
            await drain
        assert all(future.cancelled() for future in futures)
        assert limiter.in_flight == 0
