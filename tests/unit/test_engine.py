"""
Unit tests for the migration engine.

Tests for:
- Migrator.run over the in-memory store
- Resuming from a stored checkpoint
- PartialMigrationError for skipped ranges
- Abort handling and the final checkpoint
- The migrate() convenience function
"""

import logging

import pytest

from tests.fixtures import (
    collect_metric_values,
    make_config,
    make_endpoint,
    make_plan,
    sample_points,
    without_progress,
)
from tsmigrator import (
    BlockSizingStrategy,
    EndpointParams,
    MigrationAbortedError,
    MigrationMetrics,
    MigrationParams,
    MigrationReport,
    Migrator,
    PartialMigrationError,
    SkippedRange,
    migrate,
)
from tsmigrator.clients import InMemorySeriesStore
from tsmigrator.config.plan import FailureAction
from tsmigrator.exceptions import ConfigurationError, EndpointOtherError, EndpointTimeoutError
from tsmigrator.models import Sample, TimeSeries
from tsmigrator.observability import SPAN_MIGRATION_RUN, SPAN_READER_PULL, SPAN_WRITER_PUSH


def _migrator(config, source, destination, **kwargs) -> Migrator:
    kwargs.setdefault("enable_metrics", False)
    kwargs.setdefault("enable_tracing", False)
    return Migrator(config, source, destination, **kwargs)


def _one_second_blocks(plan) -> BlockSizingStrategy:
    return BlockSizingStrategy.from_plan(plan, max_width_ms=1000)


async def _progress_values(store: InMemorySeriesStore) -> list[float]:
    return [
        sample.value
        for series in await store.get_all_series()
        if series.metric_name == "tsmigrator_progress"
        for sample in series.samples
    ]


async def _data_points(store: InMemorySeriesStore):
    return sample_points(without_progress(await store.get_all_series()))


class TestFullMigration:
    """Tests for a migration that runs to completion."""

    @pytest.mark.asyncio
    async def test_copies_every_sample(self, config, source_store, destination_store):
        report = await _migrator(config, source_store, destination_store).run()

        assert isinstance(report, MigrationReport)
        assert await _data_points(destination_store) == sample_points(
            await source_store.get_all_series()
        )
        assert report.samples_pulled == 80
        assert report.samples_pushed == 80
        assert report.frontier_ms == 10_000
        assert report.is_complete
        assert not report.has_gaps
        assert report.resumed_from is None

    @pytest.mark.asyncio
    async def test_final_checkpoint_is_maxt(self, config, source_store, destination_store):
        await _migrator(config, source_store, destination_store).run()

        values = await _progress_values(destination_store)
        assert max(values) == 10_000.0
        assert values == sorted(values)

    @pytest.mark.asyncio
    async def test_concurrent_pools(self, source_store, destination_store):
        plan = make_plan(concurrent_pull=3, concurrent_push=3, max_slab_bytes=400)
        report = await _migrator(
            make_config(plan),
            source_store,
            destination_store,
            sizing=_one_second_blocks(plan),
        ).run()

        assert report.blocks_pulled == 10
        assert report.samples_pushed == 80
        assert report.frontier_ms == 10_000
        assert await _data_points(destination_store) == sample_points(
            await source_store.get_all_series()
        )

    @pytest.mark.asyncio
    async def test_empty_interval(self, source_store, destination_store):
        config = make_config(make_plan(mint=5000, maxt=5000))
        report = await _migrator(config, source_store, destination_store).run()

        assert report.blocks_pulled == 0
        assert report.frontier_ms == 5000
        assert source_store.read_requests == []
        assert await _progress_values(destination_store) == [5000.0]

    @pytest.mark.asyncio
    async def test_interval_without_data(self, source_store, destination_store):
        config = make_config(make_plan(mint=20_000, maxt=30_000))
        report = await _migrator(config, source_store, destination_store).run()

        assert report.samples_pushed == 0
        assert report.slabs_pushed == 0
        assert report.frontier_ms == 30_000

    @pytest.mark.asyncio
    async def test_progress_disabled(self, source_store, destination_store):
        config = make_config(make_plan(progress_enabled=False))
        await _migrator(config, source_store, destination_store).run()

        assert await _progress_values(destination_store) == []

    @pytest.mark.asyncio
    async def test_report_to_dict(self, config, source_store, destination_store):
        report = await _migrator(config, source_store, destination_store).run()
        data = report.to_dict()

        assert data["samples_pushed"] == 80
        assert data["skipped_ranges"] == []
        assert data["maxt"] == 10_000


class TestResume:
    """Tests for resuming from a checkpoint."""

    @pytest.mark.asyncio
    async def test_resumes_from_checkpoint(self, config, source_store, destination_store):
        destination_store.seed(
            [
                TimeSeries(
                    labels={
                        "__name__": "tsmigrator_progress",
                        "job": "tsmigrator",
                        "migration_end": "10000",
                    },
                    samples=[Sample(timestamp_ms=6000, value=6000.0)],
                )
            ]
        )

        report = await _migrator(
            config,
            source_store,
            destination_store,
            progress_reader=destination_store,
        ).run()

        assert report.resumed_from == 6000
        assert report.effective_mint == 6000
        assert report.mint == 0
        assert report.samples_pushed == 32
        assert all(r.start_ms >= 6000 for r in source_store.read_requests)
        assert min(ts for _, ts, _ in await _data_points(destination_store)) == 6000

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, config, source_store, destination_store):
        await _migrator(config, source_store, destination_store).run()
        reads = len(source_store.read_requests)

        report = await _migrator(
            config,
            source_store,
            destination_store,
            progress_reader=destination_store,
        ).run()

        assert report.resumed_from == 10_000
        assert report.blocks_pulled == 0
        assert len(source_store.read_requests) == reads

    @pytest.mark.asyncio
    async def test_warns_without_progress_reader(self, source_store, destination_store, caplog):
        config = make_config(make_plan(progress_metric_url="http://progress/read"))
        with caplog.at_level(logging.WARNING, logger="tsmigrator.engine"):
            _migrator(config, source_store, destination_store)
        assert "no progress reader" in caplog.text


class TestPartialMigration:
    """Skipped ranges end the run with PartialMigrationError."""

    @pytest.mark.asyncio
    async def test_skipped_pull_reported(self, source_store, destination_store):
        plan = make_plan()
        config = make_config(plan, reader=make_endpoint("reader", on_error=FailureAction.SKIP))
        source_store.read_fault = lambda request: (
            EndpointOtherError("bad") if request.start_ms in (3000, 7000) else None
        )

        with pytest.raises(PartialMigrationError) as exc_info:
            await _migrator(
                config, source_store, destination_store, sizing=_one_second_blocks(plan)
            ).run()

        error = exc_info.value
        assert error.skipped_ranges == [
            SkippedRange(3000, 4000, "pull", "bad"),
            SkippedRange(7000, 8000, "pull", "bad"),
        ]
        assert error.report.blocks_skipped == 2
        assert error.report.frontier_ms == 10_000
        assert error.report.samples_pushed == 64
        assert not error.report.is_complete
        assert error.to_dict()["skipped_ranges"][0]["start_ms"] == 3000
        assert "[3000, 4000) (pull)" in str(error)
        assert max(await _progress_values(destination_store)) == 10_000.0

    @pytest.mark.asyncio
    async def test_skipped_push_reported(self, source_store, destination_store):
        plan = make_plan(max_slab_bytes=180)
        config = make_config(plan, writer=make_endpoint("writer", on_error=FailureAction.SKIP))

        def fail_block_two(request):
            first = request.series[0]
            if first.metric_name == "cpu_usage" and first.samples[0].timestamp_ms == 2000:
                return EndpointOtherError("rejected")
            return None

        destination_store.write_fault = fail_block_two

        with pytest.raises(PartialMigrationError) as exc_info:
            await _migrator(
                config, source_store, destination_store, sizing=_one_second_blocks(plan)
            ).run()

        assert exc_info.value.skipped_ranges == [SkippedRange(2000, 3000, "push", "rejected")]
        assert exc_info.value.report.slabs_skipped == 1


class TestAbort:
    """Tests for aborted migrations."""

    @pytest.mark.asyncio
    async def test_reader_abort_writes_final_checkpoint(self, source_store, destination_store):
        plan = make_plan(max_slab_bytes=180)
        source_store.read_fault = lambda request: (
            EndpointOtherError("fatal") if request.start_ms == 5000 else None
        )

        with pytest.raises(MigrationAbortedError) as exc_info:
            await _migrator(
                make_config(plan), source_store, destination_store, sizing=_one_second_blocks(plan)
            ).run()

        assert exc_info.value.endpoint == "reader"
        checkpoints = await _progress_values(destination_store)
        assert checkpoints
        assert max(checkpoints) <= 5000
        assert all(ts < 5000 for _, ts, _ in await _data_points(destination_store))

    @pytest.mark.asyncio
    async def test_abort_lists_ranges_skipped_before_it(self, source_store, destination_store):
        plan = make_plan(max_slab_bytes=180)
        config = make_config(
            plan,
            reader=make_endpoint("reader", on_timeout=FailureAction.SKIP),
        )

        def fail(request):
            if request.start_ms == 1000:
                return EndpointTimeoutError("slow")
            if request.start_ms == 6000:
                return EndpointOtherError("fatal")
            return None

        source_store.read_fault = fail

        with pytest.raises(MigrationAbortedError) as exc_info:
            await _migrator(
                config, source_store, destination_store, sizing=_one_second_blocks(plan)
            ).run()

        error = exc_info.value
        assert error.skipped_ranges == [SkippedRange(1000, 2000, "pull", "slow")]
        assert error.frontier_ms is not None
        assert error.frontier_ms <= 6000
        data = error.to_dict()
        assert data["endpoint"] == "reader"
        assert data["skipped_ranges"] == [
            {"start_ms": 1000, "end_ms": 2000, "stage": "pull", "reason": "slow"}
        ]
        assert data["frontier_ms"] == error.frontier_ms

    @pytest.mark.asyncio
    async def test_writer_abort(self, source_store, destination_store):
        def reject_data(request):
            if request.series[0].metric_name == "cpu_usage":
                return EndpointOtherError("HTTP 500")
            return None

        destination_store.write_fault = reject_data
        config = make_config()

        with pytest.raises(MigrationAbortedError) as exc_info:
            await _migrator(config, source_store, destination_store).run()

        assert exc_info.value.endpoint == "writer"
        assert exc_info.value.skipped_ranges == []
        assert await _progress_values(destination_store) == [0.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_abort(self, source_store, destination_store):
        config = make_config(
            reader=make_endpoint("reader", on_error=FailureAction.RETRY, max_retries=2)
        )
        source_store.read_fault = lambda request: EndpointOtherError("down")

        with pytest.raises(MigrationAbortedError) as exc_info:
            await _migrator(config, source_store, destination_store).run()

        assert exc_info.value.attempts == 3


class TestInstrumentation:
    """Tests for tracing and metrics wiring."""

    @pytest.mark.asyncio
    async def test_spans(self, config, source_store, destination_store, mock_tracer):
        await _migrator(config, source_store, destination_store, tracer=mock_tracer).run()

        names = mock_tracer.span_names
        assert names[0] == SPAN_MIGRATION_RUN
        assert SPAN_READER_PULL in names
        assert SPAN_WRITER_PUSH in names

    @pytest.mark.asyncio
    async def test_metrics(self, config, source_store, destination_store, meter_provider, metric_reader):
        metrics = MigrationMetrics("test", meter_provider=meter_provider)
        migrator = _migrator(config, source_store, destination_store, metrics=metrics)

        await migrator.run()

        assert migrator.metrics is metrics
        values = collect_metric_values(metric_reader)
        assert values["tsmigrator.samples.pulled"] == 80
        assert values["tsmigrator.samples.pushed"] == 80
        assert values["tsmigrator.frontier"] == 10_000


class TestMigrate:
    """Tests for migrate()."""

    @pytest.mark.asyncio
    async def test_validates_and_runs(self, source_store, destination_store):
        params = MigrationParams(
            start="0",
            end="10",
            reader=EndpointParams(url="memory://source"),
            writer=EndpointParams(url="memory://destination"),
            lookahead_increment="2s",
            max_read_duration="4s",
        )

        report = await migrate(
            params,
            source_store,
            destination_store,
            enable_metrics=False,
            enable_tracing=False,
        )

        assert report.samples_pushed == 80
        assert report.maxt == 10_000

    @pytest.mark.asyncio
    async def test_invalid_params_raise_before_io(self, source_store, destination_store):
        params = MigrationParams(start="0", end="10", reader=EndpointParams(url="memory://s"))

        with pytest.raises(ConfigurationError):
            await migrate(params, source_store, destination_store)

        assert source_store.read_requests == []
