"""Bounded worker pool shared by the live-update and backfill paths.

Producers put jobs on a bounded queue and get a future back; a fixed number of
workers drain the queue. The queue bound applies back-pressure to producers and
the worker count caps concurrent provider calls across all collections.
"""

import asyncio
from typing import Any, Awaitable, Callable

from shared.helper.HelperConfig import HelperConfig

Job = Callable[[], Awaitable[Any]]


class WorkerPoolStoppedError(RuntimeError):
    """Raised when work is submitted to a pool that is stopping or stopped."""


class WorkerPool:
    def __init__(self, helper_config: HelperConfig, worker_count: int = 4, queue_size: int = 100) -> None:
        self.logging = helper_config.get_logger()
        self._worker_count = max(1, worker_count)
        self._queue: asyncio.Queue[tuple[Job, asyncio.Future]] = asyncio.Queue(maxsize=max(1, queue_size))
        self._workers: list[asyncio.Task] = []
        self._in_flight = 0
        self._waiting_producers = 0
        self._accepting = False

    ##########################################
    ################ GETTER ##################
    ##########################################

    @property
    def is_running(self) -> bool:
        return self._accepting

    @property
    def pending(self) -> int:
        """Jobs queued or currently executing."""
        return self._queue.qsize() + self._in_flight

    @property
    def worker_count(self) -> int:
        return self._worker_count

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def do_start(self) -> None:
        if self._workers:
            return
        self._accepting = True
        self._workers = [
            asyncio.create_task(self._run_worker(index), name=f"vector-sync-worker-{index}")
            for index in range(self._worker_count)
        ]
        self.logging.info("Worker pool started with %d workers.", self._worker_count)

    async def do_stop(self, grace_period: float = 30.0) -> None:
        """Stop accepting work, let queued jobs finish within the grace period, then cancel.

        Args:
            grace_period (float): Seconds to wait for the queue to drain.
        """
        self._accepting = False
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=grace_period)
        except asyncio.TimeoutError:
            self.logging.warning("Worker pool did not drain within %.1fs, abandoning %d jobs.", grace_period, self.pending)

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        # anything still queued is abandoned; every freed slot wakes a blocked producer, which then gives up
        while True:
            while not self._queue.empty():
                _, future = self._queue.get_nowait()
                if not future.done():
                    future.cancel()
                self._queue.task_done()
            if not self._waiting_producers:
                break
            await asyncio.sleep(0)
        self.logging.info("Worker pool stopped.")

    ##########################################
    ################ SUBMIT ##################
    ##########################################

    async def enqueue(self, job: Job) -> asyncio.Future:
        """Queue a job, waiting for a free slot if the queue is full.

        Args:
            job (Job): Zero-argument coroutine function to run on a worker.

        Returns:
            asyncio.Future: Resolves with the job's result or exception.

        Raises:
            WorkerPoolStoppedError: If the pool is not accepting work.
        """
        if not self._accepting:
            raise WorkerPoolStoppedError("Worker pool is not running.")
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiting_producers += 1
        try:
            await self._queue.put((job, future))
        finally:
            self._waiting_producers -= 1
        if not self._accepting:
            # the pool stopped while this producer waited for a slot
            future.cancel()
            raise WorkerPoolStoppedError("Worker pool stopped while waiting for a free slot.")
        return future

    async def submit(self, job: Job) -> Any:
        """Queue a job and wait for its result. Must not be called from inside a worker."""
        future = await self.enqueue(job)
        return await future

    ##########################################
    ################ WORKER ##################
    ##########################################

    async def _run_worker(self, index: int) -> None:
        while True:
            job, future = await self._queue.get()
            if future.cancelled():
                self._queue.task_done()
                continue
            self._in_flight += 1
            try:
                result = await job()
            except asyncio.CancelledError:
                if not future.done():
                    future.cancel()
                raise
            except Exception as exc:
                self.logging.error("Worker %d: job failed: %s", index, exc)
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._in_flight -= 1
                self._queue.task_done()
