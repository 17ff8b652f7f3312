"""
Progress tracking and checkpointing.

Slabs finish out of order when several writers run at once. The tracker
only advances the frontier across a contiguous prefix of block indices:
a slab covering index N becomes visible once every index below N has
completed, whether it was pushed or permanently skipped.

Every advance is persisted as a synthetic sample written to the
destination, so a later run over the same interval can read it back and
resume from there instead of from the configured start.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tsmigrator.config.parsing import format_timestamp
from tsmigrator.config.plan import PROGRESS_JOB_NAME, MigrationPlan
from tsmigrator.models import (
    METRIC_NAME_LABEL,
    LabelMatcher,
    ReadRequest,
    Sample,
    TimeSeries,
    WriteRequest,
)
from tsmigrator.observability import (
    ATTR_END_MS,
    ATTR_FRONTIER_MS,
    ATTR_MAXT,
    ATTR_MINT,
    ATTR_SKIPPED,
    SPAN_PROGRESS_CHECKPOINT,
    SPAN_PROGRESS_LOAD,
    Tracer,
    create_tracer,
)

if TYPE_CHECKING:
    from tsmigrator.clients import DestinationClient, SourceClient
    from tsmigrator.metrics import MigrationMetrics
    from tsmigrator.planner import Block
    from tsmigrator.retry import RetryPolicy
    from tsmigrator.slabs import Slab

logger = logging.getLogger(__name__)

MIGRATION_END_LABEL = "migration_end"


@dataclass(frozen=True)
class SkippedRange:
    """
    A range permanently left out of the destination.

    Attributes:
        start_ms: Start of the range
        end_ms: End of the range (exclusive)
        stage: "pull" when the source read was skipped, "push" when the
            destination write was skipped
        reason: Description of the last error
    """

    start_ms: int
    end_ms: int
    stage: str
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "stage": self.stage,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Checkpoint:
    """The persisted frontier: everything before ``last_migrated_ms`` is done."""

    last_migrated_ms: int


class ProgressTracker:
    """
    Maintains the contiguous frontier and persists checkpoints.

    Example:
        >>> tracker = ProgressTracker(plan, destination, writer_policy)
        >>> await tracker.load_checkpoint()
        >>> ...
        >>> await tracker.complete(slab)
        >>> await tracker.finalize()
    """

    def __init__(
        self,
        plan: MigrationPlan,
        destination: DestinationClient,
        writer_policy: RetryPolicy,
        *,
        progress_reader: SourceClient | None = None,
        reader_policy: RetryPolicy | None = None,
        metrics: MigrationMetrics | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            plan: Validated plan; its mint is the initial frontier
            destination: Client the checkpoint samples are written to
            writer_policy: Policy applied to checkpoint writes
            progress_reader: Client to read a prior checkpoint from
            reader_policy: Policy applied to the checkpoint read
            metrics: Optional metrics to update with the frontier
            tracer: Optional custom Tracer instance
            enable_tracing: If True, emit traces (ignored if tracer is given)
        """
        self._plan = plan
        self._destination = destination
        self._writer_policy = writer_policy
        self._progress_reader = progress_reader
        self._reader_policy = reader_policy
        self._metrics = metrics
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

        self._start_ms = plan.mint
        self._frontier_ms = plan.mint
        self._next_index = 0
        self._pending: dict[int, tuple[int, int]] = {}
        self._skipped: list[SkippedRange] = []
        self._persisted_ms: int | None = None
        self._resumed_from: int | None = None
        self._checkpoint_failures = 0
        self._lock = asyncio.Lock()
        self._persist_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self._plan.progress_enabled

    @property
    def frontier_ms(self) -> int:
        return self._frontier_ms

    @property
    def start_ms(self) -> int:
        """Effective start of this run (after resuming)."""
        return self._start_ms

    @property
    def resumed_from(self) -> int | None:
        return self._resumed_from

    @property
    def checkpoint(self) -> Checkpoint | None:
        """The last checkpoint durably written during this run."""
        if self._persisted_ms is None:
            return None
        return Checkpoint(last_migrated_ms=self._persisted_ms)

    @property
    def skipped_ranges(self) -> list[SkippedRange]:
        return sorted(self._skipped, key=lambda r: r.start_ms)

    @property
    def checkpoint_failures(self) -> int:
        return self._checkpoint_failures

    @property
    def pending_count(self) -> int:
        """Completed units waiting on an earlier index."""
        return len(self._pending)

    def progress_labels(self) -> dict[str, str]:
        """Labels identifying this migration's progress series."""
        return {
            METRIC_NAME_LABEL: self._plan.progress_metric_name,
            "job": PROGRESS_JOB_NAME,
            MIGRATION_END_LABEL: str(self._plan.maxt),
        }

    def progress_matchers(self) -> list[LabelMatcher]:
        return [LabelMatcher(name=k, value=v) for k, v in self.progress_labels().items()]

    def percent_complete(self) -> float:
        total = self._plan.maxt - self._plan.mint
        if total <= 0:
            return 100.0
        return (self._frontier_ms - self._plan.mint) / total * 100

    async def load_checkpoint(self) -> Checkpoint | None:
        """
        Read a prior checkpoint and move the start forward if it is ahead.

        Does nothing when progress is disabled or no progress reader is
        configured. The start never moves backwards and never past maxt.

        Returns:
            The checkpoint found, or None

        Raises:
            MigrationAbortedError: If the reader policy aborts
        """
        if not self.enabled or self._progress_reader is None or self._reader_policy is None:
            return None

        plan = self._plan
        request = ReadRequest(
            start_ms=plan.mint,
            end_ms=plan.maxt + 1,
            matchers=self.progress_matchers(),
        )
        reader = self._progress_reader
        with self._tracer.span(
            SPAN_PROGRESS_LOAD,
            {ATTR_MINT: plan.mint, ATTR_MAXT: plan.maxt},
        ):
            result = await self._reader_policy.execute(
                lambda: reader.read(request),
                unit="progress checkpoint read",
            )
        if result.skipped or result.value is None:
            return None

        latest: Sample | None = None
        for series in result.value.series:
            for sample in series.samples:
                if latest is None or sample.timestamp_ms >= latest.timestamp_ms:
                    latest = sample
        if latest is None:
            logger.info(
                "No previous progress found; starting from %s",
                format_timestamp(plan.mint, plan.human_readable),
            )
            return None

        checkpoint = Checkpoint(last_migrated_ms=int(latest.value))
        if checkpoint.last_migrated_ms > self._start_ms:
            resumed = min(checkpoint.last_migrated_ms, plan.maxt)
            self._start_ms = resumed
            self._frontier_ms = resumed
            self._persisted_ms = resumed
            self._resumed_from = resumed
            if self._metrics is not None:
                self._metrics.record_frontier(resumed)
            logger.info(
                "Resuming migration from %s",
                format_timestamp(resumed, plan.human_readable),
                extra={"mint": plan.mint, "maxt": plan.maxt, "resumed_from": resumed},
            )
        return checkpoint

    async def complete(self, slab: Slab, skipped: bool = False, reason: str = "") -> int:
        """
        Mark a slab done (pushed, or skipped at push time).

        Returns:
            The frontier after this completion
        """
        if skipped:
            self._skipped.append(SkippedRange(slab.start_ms, slab.end_ms, "push", reason))
        return await self._complete_range(slab.first_index, slab.last_index, slab.end_ms)

    async def record_skipped_block(self, block: Block, reason: str = "") -> int:
        """Mark a block whose pull was skipped; it never reaches a writer."""
        self._skipped.append(SkippedRange(block.start_ms, block.end_ms, "pull", reason))
        return await self._complete_range(block.index, block.index, block.end_ms)

    async def _complete_range(self, first_index: int, last_index: int, end_ms: int) -> int:
        async with self._lock:
            if first_index < self._next_index or first_index in self._pending:
                raise ValueError(f"index {first_index} completed twice")
            self._pending[first_index] = (last_index, end_ms)

            advanced = False
            while self._next_index in self._pending:
                last, end = self._pending.pop(self._next_index)
                self._next_index = last + 1
                if end > self._frontier_ms:
                    self._frontier_ms = end
                    advanced = True
            frontier = self._frontier_ms

        if advanced:
            if self._metrics is not None:
                self._metrics.record_frontier(frontier)
            logger.info(
                "Migrated up to %s (%.2f%%)",
                format_timestamp(frontier, self._plan.human_readable),
                self.percent_complete(),
                extra={"frontier_ms": frontier, "maxt": self._plan.maxt},
            )
            if self.enabled:
                await self._persist()
        return frontier

    def _progress_request(self, frontier: int) -> WriteRequest:
        return WriteRequest(
            series=[
                TimeSeries(
                    labels=self.progress_labels(),
                    samples=[Sample(timestamp_ms=frontier, value=float(frontier))],
                )
            ]
        )

    async def _persist(self, force: bool = False) -> None:
        async with self._persist_lock:
            frontier = self._frontier_ms
            if not force and self._persisted_ms is not None and frontier <= self._persisted_ms:
                return
            request = self._progress_request(frontier)
            with self._tracer.span(
                SPAN_PROGRESS_CHECKPOINT,
                {ATTR_FRONTIER_MS: frontier, ATTR_END_MS: self._plan.maxt},
            ) as span:
                result = await self._writer_policy.execute(
                    lambda: self._destination.write(request),
                    unit=f"progress checkpoint {frontier}",
                )
                if span is not None:
                    span.set_attribute(ATTR_SKIPPED, result.skipped)
            if result.skipped:
                self._checkpoint_failures += 1
                logger.warning(
                    "Checkpoint write for %s skipped",
                    format_timestamp(frontier, self._plan.human_readable),
                    extra={"frontier_ms": frontier, "error": str(result.error)},
                )
                return
            if self._persisted_ms is None or frontier > self._persisted_ms:
                self._persisted_ms = frontier

    async def finalize(self, aborted: bool = False) -> Checkpoint | None:
        """
        Write the final checkpoint.

        After an abort a single attempt is made and any failure is logged
        rather than raised, so it cannot mask the abort.
        """
        if not self.enabled:
            return None
        if not aborted:
            await self._persist(force=True)
            return self.checkpoint

        frontier = self._frontier_ms
        timeout = self._writer_policy.runtime.timeout.total_seconds()
        try:
            async with asyncio.timeout(timeout):
                await self._destination.write(self._progress_request(frontier))
        except Exception as e:
            self._checkpoint_failures += 1
            logger.error(
                "Final checkpoint write failed after abort",
                extra={"frontier_ms": frontier, "error": str(e), "error_type": type(e).__name__},
            )
        else:
            self._persisted_ms = max(self._persisted_ms or frontier, frontier)
        return self.checkpoint


__all__ = [
    "Checkpoint",
    "MIGRATION_END_LABEL",
    "ProgressTracker",
    "SkippedRange",
]
