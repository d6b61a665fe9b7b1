from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

LOGGER = logging.getLogger("dbbench.engine.limiter")

Job = Callable[[], Awaitable[Any]]


class ConcurrencyLimiter:
    """Admission control that keeps at most ``concurrency`` jobs in flight.

    Jobs are queued in submission order and picked up by a pool of at most
    ``concurrency`` workers, so admission is FIFO while completion order is
    whatever the jobs themselves dictate. ``admit`` never rejects work; it
    returns a future settled with the job's result or exception.
    """

    def __init__(self, concurrency: int) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self._concurrency = concurrency
        self._queue: asyncio.Queue[tuple[Job, asyncio.Future[Any]]] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._in_flight = 0
        self._peak_in_flight = 0
        self._admitted = 0
        self._settled = 0

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        return self._peak_in_flight

    @property
    def admitted(self) -> int:
        return self._admitted

    @property
    def settled(self) -> int:
        return self._settled

    def admit(self, job: Job) -> asyncio.Future[Any]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        self._queue.put_nowait((job, future))
        self._admitted += 1
        if len(self._workers) < self._concurrency:
            index = len(self._workers)
            self._workers.append(
                loop.create_task(self._worker(), name=f"limiter-worker-{index}")
            )
        return future

    async def drain(self) -> None:
        """Wait until every admitted job has settled, then release the workers."""
        LOGGER.debug(
            "Draining limiter (admitted=%d, settled=%d)", self._admitted, self._settled
        )
        try:
            await self._queue.join()
        finally:
            await self._stop_workers()

    async def _stop_workers(self) -> None:
        workers, self._workers = self._workers, []
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    async def _worker(self) -> None:
        while True:
            job, future = await self._queue.get()
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            try:
                result = await job()
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                # A job raising CancelledError by itself does not stop the worker.
                if asyncio.current_task().cancelling():
                    raise
            except Exception as exc:  # noqa: BLE001
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._in_flight -= 1
                self._settled += 1
                self._queue.task_done()
