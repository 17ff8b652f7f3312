"""
Migration engine.

Wires the planner, reader pool, writer pool and progress tracker together
and runs one migration:

1. Resolve a prior checkpoint (when progress is enabled) and derive the
   effective start
2. Start the reader and writer pools, connected by a bounded slab queue
3. Wait for both; if either aborts, cancel the other
4. Write the final checkpoint
5. Return a MigrationReport, or raise PartialMigrationError if any range
   had to be skipped
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from tsmigrator.clients import DestinationClient, SourceClient
from tsmigrator.config.params import MigrationParams
from tsmigrator.config.parsing import format_bytes, format_timestamp
from tsmigrator.config.plan import ValidatedConfig
from tsmigrator.config.validator import validate_params
from tsmigrator.exceptions import MigrationAbortedError, PartialMigrationError
from tsmigrator.metrics import MigrationMetrics
from tsmigrator.models import LabelMatcher
from tsmigrator.observability import (
    ATTR_FRONTIER_MS,
    ATTR_MAXT,
    ATTR_MINT,
    SPAN_MIGRATION_RUN,
    Tracer,
    create_tracer,
)
from tsmigrator.planner import BlockSizingStrategy, Planner
from tsmigrator.progress import ProgressTracker, SkippedRange
from tsmigrator.reader import ReaderPool
from tsmigrator.retry import RetryPolicy
from tsmigrator.slabs import Slab
from tsmigrator.writer import WriterPool

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """
    Outcome of a migration run.

    Attributes:
        mint: Configured start (ms)
        effective_mint: Start actually used, after resuming
        maxt: End of the interval (ms, exclusive)
        frontier_ms: Frontier reached
        resumed_from: Checkpoint resumed from, if any
        blocks_pulled: Blocks successfully pulled
        blocks_skipped: Blocks whose pull was skipped
        slabs_pushed: Slabs successfully pushed (empty slabs excluded)
        slabs_skipped: Slabs whose push was skipped
        samples_pulled: Samples read from the source
        samples_pushed: Samples written to the destination
        bytes_pulled: Payload bytes read from the source
        skipped_ranges: Ranges left out of the destination
        checkpoint_failures: Checkpoint writes that were skipped or failed
        duration_seconds: Wall-clock duration of the run
    """

    mint: int
    effective_mint: int
    maxt: int
    frontier_ms: int
    resumed_from: int | None = None
    blocks_pulled: int = 0
    blocks_skipped: int = 0
    slabs_pushed: int = 0
    slabs_skipped: int = 0
    samples_pulled: int = 0
    samples_pushed: int = 0
    bytes_pulled: int = 0
    skipped_ranges: list[SkippedRange] = field(default_factory=list)
    checkpoint_failures: int = 0
    duration_seconds: float = 0.0

    @property
    def has_gaps(self) -> bool:
        return bool(self.skipped_ranges)

    @property
    def is_complete(self) -> bool:
        return self.frontier_ms >= self.maxt and not self.has_gaps

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "mint": self.mint,
            "effective_mint": self.effective_mint,
            "maxt": self.maxt,
            "frontier_ms": self.frontier_ms,
            "resumed_from": self.resumed_from,
            "blocks_pulled": self.blocks_pulled,
            "blocks_skipped": self.blocks_skipped,
            "slabs_pushed": self.slabs_pushed,
            "slabs_skipped": self.slabs_skipped,
            "samples_pulled": self.samples_pulled,
            "samples_pushed": self.samples_pushed,
            "bytes_pulled": self.bytes_pulled,
            "skipped_ranges": [r.to_dict() for r in self.skipped_ranges],
            "checkpoint_failures": self.checkpoint_failures,
            "duration_seconds": self.duration_seconds,
        }


class Migrator:
    """
    Runs one migration from a source to a destination.

    Example:
        >>> config = validate_params(params)
        >>> migrator = Migrator(config, source_client, destination_client)
        >>> try:
        ...     report = await migrator.run()
        ... except PartialMigrationError as e:
        ...     for gap in e.skipped_ranges:
        ...         print("not migrated:", gap.start_ms, gap.end_ms)
    """

    def __init__(
        self,
        config: ValidatedConfig,
        source: SourceClient,
        destination: DestinationClient,
        *,
        progress_reader: SourceClient | None = None,
        matchers: list[LabelMatcher] | None = None,
        sizing: BlockSizingStrategy | None = None,
        metrics: MigrationMetrics | None = None,
        enable_metrics: bool = True,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the migrator.

        Args:
            config: Validated configuration
            source: Client for the source endpoint
            destination: Client for the destination endpoint
            progress_reader: Client for reading a prior checkpoint back
                (the endpoint at ``progress_metric_url``)
            matchers: Series selector; defaults to every named series
            sizing: Block sizing strategy; derived from the plan by default
            metrics: Metrics container; one is created if not provided
            enable_metrics: Whether a created metrics container records to
                OpenTelemetry
            tracer: Optional custom Tracer instance
            enable_tracing: If True, emit traces (ignored if tracer is given)
        """
        self._config = config
        self._source = source
        self._destination = destination
        self._progress_reader = progress_reader
        self._matchers = matchers
        self._sizing = sizing
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._metrics = metrics or MigrationMetrics(
            migration_id=f"{config.plan.mint}-{config.plan.maxt}",
            enable_metrics=enable_metrics,
        )
        if config.plan.progress_enabled and config.plan.progress_metric_url and progress_reader is None:
            logger.warning(
                "progress_metric_url is set but no progress reader was given; "
                "the migration will not resume from a previous checkpoint",
                extra={"progress_metric_url": config.plan.progress_metric_url},
            )

    @property
    def config(self) -> ValidatedConfig:
        return self._config

    @property
    def metrics(self) -> MigrationMetrics:
        return self._metrics

    async def run(self) -> MigrationReport:
        """
        Run the migration.

        Returns:
            MigrationReport when every range was migrated

        Raises:
            PartialMigrationError: If the run finished with skipped ranges
            MigrationAbortedError: If an endpoint policy aborted the run; its
                ``frontier_ms`` and ``skipped_ranges`` describe what was
                migrated before the abort
        """
        plan = self._config.plan
        human = plan.human_readable

        with self._tracer.span(
            SPAN_MIGRATION_RUN,
            {ATTR_MINT: plan.mint, ATTR_MAXT: plan.maxt},
        ) as span:
            started = time.perf_counter()
            reader_policy = RetryPolicy(self._config.reader, self._metrics)
            writer_policy = RetryPolicy(self._config.writer, self._metrics)
            tracker = ProgressTracker(
                plan,
                self._destination,
                writer_policy,
                progress_reader=self._progress_reader,
                reader_policy=reader_policy,
                metrics=self._metrics,
                tracer=self._tracer,
            )

            await tracker.load_checkpoint()
            effective = plan.with_mint(tracker.start_ms)
            planner = Planner.from_plan(
                effective,
                self._sizing,
                read_timeout=self._config.reader.timeout,
            )
            queue: asyncio.Queue[Slab | None] = asyncio.Queue(maxsize=plan.concurrent_push)
            readers = ReaderPool(
                planner,
                self._source,
                reader_policy,
                tracker,
                queue,
                concurrency=plan.concurrent_pull,
                writer_count=plan.concurrent_push,
                max_slab_bytes=plan.max_slab_bytes,
                matchers=self._matchers,
                metrics=self._metrics,
                tracer=self._tracer,
            )
            writers = WriterPool(
                self._destination,
                writer_policy,
                tracker,
                queue,
                concurrency=plan.concurrent_push,
                metrics=self._metrics,
                tracer=self._tracer,
            )

            logger.info(
                "Starting migration from %s to %s",
                format_timestamp(effective.mint, human),
                format_timestamp(plan.maxt, human),
                extra={"plan": effective.to_dict()},
            )

            tasks = [
                asyncio.create_task(readers.run(), name="tsmigrator-readers"),
                asyncio.create_task(writers.run(), name="tsmigrator-writers"),
            ]
            aborted = False
            try:
                done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
                for task in done:
                    error = task.exception()
                    if error is not None:
                        raise error
            except BaseException as e:
                aborted = True
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                skipped = tracker.skipped_ranges
                if isinstance(e, MigrationAbortedError):
                    e.frontier_ms = tracker.frontier_ms
                    e.skipped_ranges = skipped
                logger.error(
                    "Migration aborted at %s with %d skipped range(s)",
                    format_timestamp(tracker.frontier_ms, human),
                    len(skipped),
                    extra={
                        "frontier_ms": tracker.frontier_ms,
                        "maxt": plan.maxt,
                        "skipped_ranges": [r.to_dict() for r in skipped],
                    },
                )
                raise
            finally:
                await tracker.finalize(aborted=aborted)

            report = MigrationReport(
                mint=plan.mint,
                effective_mint=effective.mint,
                maxt=plan.maxt,
                frontier_ms=tracker.frontier_ms,
                resumed_from=tracker.resumed_from,
                blocks_pulled=readers.blocks_pulled,
                blocks_skipped=readers.blocks_skipped,
                slabs_pushed=writers.slabs_pushed,
                slabs_skipped=writers.slabs_skipped,
                samples_pulled=readers.samples_pulled,
                samples_pushed=writers.samples_pushed,
                bytes_pulled=readers.bytes_pulled,
                skipped_ranges=tracker.skipped_ranges,
                checkpoint_failures=tracker.checkpoint_failures,
                duration_seconds=time.perf_counter() - started,
            )
            if span is not None:
                span.set_attribute(ATTR_FRONTIER_MS, report.frontier_ms)

        logger.info(
            "Migration finished: %d samples (%s) in %.2fs, migrated up to %s",
            report.samples_pushed,
            format_bytes(report.bytes_pulled),
            report.duration_seconds,
            format_timestamp(report.frontier_ms, human),
            extra={"report": report.to_dict()},
        )
        if report.has_gaps:
            logger.warning(
                "Migration finished with %d skipped range(s)",
                len(report.skipped_ranges),
                extra={"skipped_ranges": [r.to_dict() for r in report.skipped_ranges]},
            )
            raise PartialMigrationError(report)
        return report


async def migrate(
    params: MigrationParams,
    source: SourceClient,
    destination: DestinationClient,
    **kwargs: Any,
) -> MigrationReport:
    """
    Validate ``params`` and run a migration.

    Keyword arguments are passed through to Migrator.

    Raises:
        ConfigurationError: If the parameters are invalid
        PartialMigrationError: If the run finished with skipped ranges
        MigrationAbortedError: If an endpoint policy aborted the run
    """
    config = validate_params(params)
    return await Migrator(config, source, destination, **kwargs).run()


__all__ = ["MigrationReport", "Migrator", "migrate"]
