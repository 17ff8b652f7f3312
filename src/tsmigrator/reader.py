"""
Reader pool: pulls blocks from the source and assembles slabs.

``concurrent_pull`` worker tasks share one Planner. Each worker claims a
block, pulls it under the reader retry policy, feeds the latency back to
the planner, and merges the payload into its own SlabBuilder. A worker
hands its slab to the writers when:

- the next payload would push it past ``max_slab_bytes``
- the next block it claims does not follow the buffered one
- the planner has no more blocks

Slabs go onto a bounded queue; a full queue suspends the reader, which
is what keeps memory bounded when the destination is slower than the
source.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from tsmigrator.config.parsing import format_bytes
from tsmigrator.models import LabelMatcher, ReadRequest, ReadResponse, all_series_matchers
from tsmigrator.observability import (
    ATTR_ATTEMPTS,
    ATTR_BLOCK_INDEX,
    ATTR_END_MS,
    ATTR_SAMPLE_COUNT,
    ATTR_SIZE_BYTES,
    ATTR_SKIPPED,
    ATTR_START_MS,
    ATTR_WORKER_ID,
    SPAN_READER_PULL,
    Tracer,
    create_tracer,
)
from tsmigrator.planner import Block, Planner, PullObservation
from tsmigrator.retry import AttemptOutcome, classify_error
from tsmigrator.slabs import Slab, SlabBuilder

if TYPE_CHECKING:
    from tsmigrator.clients import SourceClient
    from tsmigrator.metrics import MigrationMetrics
    from tsmigrator.progress import ProgressTracker
    from tsmigrator.retry import PolicyResult, RetryPolicy

logger = logging.getLogger(__name__)


class ReaderPool:
    """
    Fixed pool of reader tasks feeding a slab queue.

    When every reader has finished, one ``None`` sentinel per writer is put
    on the queue to signal end of stream.

    Example:
        >>> queue: asyncio.Queue[Slab | None] = asyncio.Queue(maxsize=plan.concurrent_push)
        >>> pool = ReaderPool(planner, source, reader_policy, tracker, queue,
        ...                   concurrency=plan.concurrent_pull, writer_count=plan.concurrent_push,
        ...                   max_slab_bytes=plan.max_slab_bytes)
        >>> await pool.run()
    """

    def __init__(
        self,
        planner: Planner,
        source: SourceClient,
        policy: RetryPolicy,
        tracker: ProgressTracker,
        queue: asyncio.Queue[Slab | None],
        *,
        concurrency: int,
        writer_count: int,
        max_slab_bytes: int,
        matchers: list[LabelMatcher] | None = None,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}.")
        self._planner = planner
        self._source = source
        self._policy = policy
        self._tracker = tracker
        self._queue = queue
        self._concurrency = concurrency
        self._writer_count = writer_count
        self._max_slab_bytes = max_slab_bytes
        self._matchers = matchers or all_series_matchers()
        self._metrics = metrics
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

        self.blocks_pulled = 0
        self.blocks_skipped = 0
        self.slabs_emitted = 0
        self.samples_pulled = 0
        self.bytes_pulled = 0

    async def run(self) -> None:
        """
        Run all reader workers to completion.

        Raises:
            MigrationAbortedError: If a pull aborts; the remaining workers
                are cancelled first
        """
        workers = [
            asyncio.create_task(self._worker(i), name=f"tsmigrator-reader-{i}")
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

        for _ in range(self._writer_count):
            await self._queue.put(None)
        logger.debug(
            "Reader pool finished",
            extra={
                "blocks_pulled": self.blocks_pulled,
                "blocks_skipped": self.blocks_skipped,
                "slabs_emitted": self.slabs_emitted,
            },
        )

    async def _worker(self, worker_id: int) -> None:
        builder = SlabBuilder(self._max_slab_bytes)

        while (block := self._planner.next_block()) is not None:
            if not builder.is_contiguous(block):
                await self._emit(builder.build())

            result = await self._pull(block, worker_id)
            if result.skipped or result.value is None:
                self.blocks_skipped += 1
                if not builder.empty:
                    await self._emit(builder.build())
                await self._tracker.record_skipped_block(block, reason=str(result.error))
                continue

            response = result.value
            size = response.payload_bytes
            if builder.would_overflow(size):
                await self._emit(builder.build())
            if size > self._max_slab_bytes:
                logger.warning(
                    "%s returned %s, more than the slab limit of %s",
                    block,
                    format_bytes(size),
                    format_bytes(self._max_slab_bytes),
                    extra={"block": block.to_dict(), "size_bytes": size},
                )
            builder.add(block, response.series, size)
            if builder.full:
                await self._emit(builder.build())

        if not builder.empty:
            await self._emit(builder.build())

    async def _pull(self, block: Block, worker_id: int) -> PolicyResult[ReadResponse]:
        request = ReadRequest(
            start_ms=block.start_ms,
            end_ms=block.end_ms,
            matchers=self._matchers,
        )
        source = self._source
        with self._tracer.span(
            SPAN_READER_PULL,
            {
                ATTR_BLOCK_INDEX: block.index,
                ATTR_START_MS: block.start_ms,
                ATTR_END_MS: block.end_ms,
                ATTR_WORKER_ID: worker_id,
            },
        ) as span:
            result = await self._policy.execute(lambda: source.read(request), unit=str(block))
            elapsed = result.last_attempt_seconds

            if span is not None:
                span.set_attribute(ATTR_ATTEMPTS, result.attempts)
                span.set_attribute(ATTR_SKIPPED, result.skipped)

            if result.value is not None:
                response = result.value
                size = response.payload_bytes
                samples = response.sample_count
                if span is not None:
                    span.set_attribute(ATTR_SIZE_BYTES, size)
                    span.set_attribute(ATTR_SAMPLE_COUNT, samples)
                width = self._planner.observe(
                    PullObservation(duration=timedelta(seconds=elapsed), size_bytes=size)
                )
                self.blocks_pulled += 1
                self.samples_pulled += samples
                self.bytes_pulled += size
                if self._metrics is not None:
                    self._metrics.record_pull(size, samples, elapsed)
                logger.debug(
                    "Pulled %s: %d samples, %s in %.3fs",
                    block,
                    samples,
                    format_bytes(size),
                    elapsed,
                    extra={"worker_id": worker_id, "next_width_ms": width},
                )
            elif result.error is not None and classify_error(result.error) is AttemptOutcome.TIMEOUT:
                width = self._planner.observe(
                    PullObservation(
                        duration=timedelta(seconds=elapsed),
                        size_bytes=0,
                        timed_out=True,
                    )
                )
                logger.debug(
                    "Pull of %s timed out, next block width %d ms",
                    block,
                    width,
                    extra={"worker_id": worker_id, "next_width_ms": width},
                )
        return result

    async def _emit(self, slab: Slab) -> None:
        await self._queue.put(slab)
        self.slabs_emitted += 1
        logger.debug(
            "Queued %s",
            slab,
            extra={"slab": slab.to_dict(), "queue_size": self._queue.qsize()},
        )


__all__ = ["ReaderPool"]
