"""
Writer pool: pushes slabs to the destination.

``concurrent_push`` worker tasks take slabs off the shared queue, push
them under the writer retry policy and report each one to the progress
tracker. A worker stops when it receives the ``None`` end-of-stream
sentinel.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING

from tsmigrator.models import WriteRequest
from tsmigrator.observability import (
    ATTR_ATTEMPTS,
    ATTR_END_MS,
    ATTR_SAMPLE_COUNT,
    ATTR_SKIPPED,
    ATTR_SLAB_FIRST_INDEX,
    ATTR_SLAB_LAST_INDEX,
    ATTR_START_MS,
    ATTR_WORKER_ID,
    SPAN_WRITER_PUSH,
    Tracer,
    create_tracer,
)

if TYPE_CHECKING:
    from tsmigrator.clients import DestinationClient
    from tsmigrator.metrics import MigrationMetrics
    from tsmigrator.progress import ProgressTracker
    from tsmigrator.retry import RetryPolicy
    from tsmigrator.slabs import Slab

logger = logging.getLogger(__name__)


class WriterPool:
    """
    Fixed pool of writer tasks draining a slab queue.

    Empty slabs are not sent but still count as complete, so the frontier
    can move past time ranges with no data.
    """

    def __init__(
        self,
        destination: DestinationClient,
        policy: RetryPolicy,
        tracker: ProgressTracker,
        queue: asyncio.Queue[Slab | None],
        *,
        concurrency: int,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}.")
        self._destination = destination
        self._policy = policy
        self._tracker = tracker
        self._queue = queue
        self._concurrency = concurrency
        self._metrics = metrics
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

        self.slabs_pushed = 0
        self.slabs_skipped = 0
        self.samples_pushed = 0

    async def run(self) -> None:
        """
        Run all writer workers until each receives an end-of-stream sentinel.

        Raises:
            MigrationAbortedError: If a push aborts; the remaining workers
                are cancelled first
        """
        workers = [
            asyncio.create_task(self._worker(i), name=f"tsmigrator-writer-{i}")
            for i in range(self._concurrency)
        ]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for worker in workers:
                worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.gather(*workers, return_exceptions=True)
            raise

    async def _worker(self, worker_id: int) -> None:
        while True:
            slab = await self._queue.get()
            try:
                if slab is None:
                    return
                await self._push(slab, worker_id)
            finally:
                self._queue.task_done()

    async def _push(self, slab: Slab, worker_id: int) -> None:
        if slab.is_empty:
            await self._tracker.complete(slab)
            return

        request = WriteRequest(series=slab.series)
        destination = self._destination
        samples = slab.sample_count
        with self._tracer.span(
            SPAN_WRITER_PUSH,
            {
                ATTR_SLAB_FIRST_INDEX: slab.first_index,
                ATTR_SLAB_LAST_INDEX: slab.last_index,
                ATTR_START_MS: slab.start_ms,
                ATTR_END_MS: slab.end_ms,
                ATTR_SAMPLE_COUNT: samples,
                ATTR_WORKER_ID: worker_id,
            },
        ) as span:
            started = time.perf_counter()
            result = await self._policy.execute(
                lambda: destination.write(request),
                unit=str(slab),
            )
            elapsed = time.perf_counter() - started
            if span is not None:
                span.set_attribute(ATTR_ATTEMPTS, result.attempts)
                span.set_attribute(ATTR_SKIPPED, result.skipped)

        if result.skipped:
            self.slabs_skipped += 1
            await self._tracker.complete(slab, skipped=True, reason=str(result.error))
            return

        self.slabs_pushed += 1
        self.samples_pushed += samples
        if self._metrics is not None:
            self._metrics.record_push(samples, elapsed)
        logger.debug(
            "Pushed %s: %d samples in %.3fs",
            slab,
            samples,
            elapsed,
            extra={"worker_id": worker_id, "attempts": result.attempts},
        )
        await self._tracker.complete(slab)


__all__ = ["WriterPool"]
