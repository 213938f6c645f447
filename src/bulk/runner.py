"""Resilient batch runner for bulk operations against the remote system.

Items are partitioned into batches of ``policy.batch_size``. Inside a batch,
``policy.worker_count`` workers pull indices from one shared queue; pulling
is a plain ``popleft()`` with no await in between, so no two workers ever
receive the same index. A worker waits ``item_delay`` after an item only while
the batch still has items to claim; between batches the runner waits
``max(batch_delay, item_delay)``.

Per item:
    success                                -> SUCCESS
    RateLimitError / TransientNetworkError -> retry up to max_retries,
                                              sleeping backoff_factor * attempt
    retries exhausted or any other error   -> FAILED, the batch carries on

Each item reaches exactly one terminal outcome. When the optional
cancellation event is set, workers stop claiming new items and everything
not yet started is reported as SKIPPED.
"""

import asyncio
import inspect
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import Any

import structlog

from shared.errors import is_retryable
from shared.remote import RemoteResult

from bulk.policy import BatchPolicy
from bulk.progress import BatchProgress, ItemOutcome, ItemStatus

logger = structlog.get_logger(__name__)

Operation = Callable[[Any], Awaitable[Any]]
ProgressCallback = Callable[[BatchProgress], Any]


class BatchRunner:
    def __init__(self, policy: BatchPolicy | None = None, sleep=asyncio.sleep):
        self.policy = policy or BatchPolicy()
        self._sleep = sleep

    async def run(
        self,
        items: Iterable,
        operation: Operation,
        on_progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> BatchProgress:
        """Process every item and return the final progress record."""
        items = list(items)
        progress = BatchProgress(total=len(items))
        size = self.policy.batch_size
        batches = [range(start, min(start + size, len(items))) for start in range(0, len(items), size)]

        logger.info(
            "Batch run started",
            total=len(items),
            batches=len(batches),
            worker_count=self.policy.worker_count,
        )

        for number, batch in enumerate(batches, start=1):
            if _is_set(cancel):
                break
            await self._run_batch(items, batch, operation, progress, on_progress, cancel)
            if not all(progress.is_settled(index) for index in batch):
                break
            progress.batches_processed += 1
            pause = max(self.policy.batch_delay, self.policy.item_delay)
            if number < len(batches) and pause:
                await self._sleep(pause)

        if _is_set(cancel):
            await self._skip_remaining(items, progress, on_progress)

        logger.info(
            "Batch run finished",
            total=progress.total,
            success_count=progress.success_count,
            fail_count=progress.fail_count,
            skipped_count=progress.skipped_count,
            batches_processed=progress.batches_processed,
        )
        return progress

    async def stream(
        self,
        items: Iterable,
        operation: Operation,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[BatchProgress]:
        """Yield a progress snapshot after every terminal item outcome."""
        queue: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(self.run(items, operation, on_progress=queue.put_nowait, cancel=cancel))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while (snapshot := await queue.get()) is not None:
                yield snapshot
            await task
        finally:
            if not task.done():
                task.cancel()

    async def _run_batch(
        self,
        items: list,
        batch: range,
        operation: Operation,
        progress: BatchProgress,
        on_progress: ProgressCallback | None,
        cancel: asyncio.Event | None,
    ) -> None:
        pending = deque(batch)
        workers = min(self.policy.worker_count, len(batch))
        await asyncio.gather(
            *(self._worker(pending, items, operation, progress, on_progress, cancel) for _ in range(workers))
        )

    async def _worker(
        self,
        pending: deque,
        items: list,
        operation: Operation,
        progress: BatchProgress,
        on_progress: ProgressCallback | None,
        cancel: asyncio.Event | None,
    ) -> None:
        while pending:
            if _is_set(cancel):
                return
            index = pending.popleft()
            progress.current += 1
            outcome = await self._attempt(index, items[index], operation)
            progress.record(outcome)
            await _notify(on_progress, progress)
            if pending and self.policy.item_delay:
                await self._sleep(self.policy.item_delay)

    async def _attempt(self, index: int, item: Any, operation: Operation) -> ItemOutcome:
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await operation(item)
                if isinstance(result, RemoteResult):
                    result = result.unwrap()
            except Exception as exc:
                message = getattr(exc, "message", None) or str(exc)
                if is_retryable(exc) and attempt <= self.policy.max_retries:
                    delay = self.policy.backoff_for(attempt)
                    logger.warning("Batch item retry scheduled", index=index, attempt=attempt, delay=delay, reason=message)
                    await self._sleep(delay)
                    continue
                logger.warning("Batch item failed", index=index, attempts=attempt, reason=message)
                return ItemOutcome(index, item, ItemStatus.FAILED, message=message, attempts=attempt)
            return ItemOutcome(index, item, ItemStatus.SUCCESS, attempts=attempt, result=result)

    async def _skip_remaining(self, items: list, progress: BatchProgress, on_progress: ProgressCallback | None) -> None:
        unsettled = [(index, item) for index, item in enumerate(items) if not progress.is_settled(index)]
        if not unsettled:
            return
        progress.cancelled = True
        for index, item in unsettled:
            progress.record(ItemOutcome(index, item, ItemStatus.SKIPPED, message="cancelled"))
        logger.info("Batch run cancelled", skipped_count=progress.skipped_count)
        await _notify(on_progress, progress)


def _is_set(cancel: asyncio.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


async def _notify(on_progress: ProgressCallback | None, progress: BatchProgress) -> None:
    if on_progress is None:
        return
    result = on_progress(progress.snapshot())
    if inspect.isawaitable(result):
        await result
