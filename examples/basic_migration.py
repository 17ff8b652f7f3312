"""
Basic Migration Example

This example demonstrates a complete migration between two in-memory
stores:
- Describing a migration with MigrationParams
- Validating it into a plan
- Running the Migrator and reading its report
- Resuming from the checkpoint a previous run left behind

Run with: python examples/basic_migration.py
"""

import asyncio
import logging

from tsmigrator import (
    EndpointParams,
    InMemorySeriesStore,
    MigrationParams,
    Migrator,
    Sample,
    TimeSeries,
    validate_params,
)

HOUR_S = 3600

# =============================================================================
# Step 1: Seed a source with an hour of data
# =============================================================================
# Two counters scraped every 15 seconds.


def build_source() -> InMemorySeriesStore:
    source = InMemorySeriesStore(name="old-prometheus")
    source.seed(
        TimeSeries(
            labels={"__name__": "http_requests_total", "instance": instance, "job": "api"},
            samples=[
                Sample(timestamp_ms=ts * 1000, value=float(i))
                for i, ts in enumerate(range(0, HOUR_S, 15))
            ],
        )
        for instance in ("api-0", "api-1")
    )
    return source


async def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("Time-Series Migration Example")
    print("=" * 60)

    source = build_source()
    destination = InMemorySeriesStore(name="new-storage")

    # =========================================================================
    # Step 2: Describe and validate the migration
    # =========================================================================
    params = MigrationParams(
        start="1970-01-01T00:00:00Z",
        end=str(HOUR_S),
        reader=EndpointParams(url="http://old-prometheus:9090/api/v1/read"),
        writer=EndpointParams(url="http://new-storage:9201/write", retry_delay="100ms"),
        lookahead_increment="5m",
        max_read_duration="20m",
        max_read_size="8KB",
        concurrent_pull=2,
        concurrent_push=2,
    )
    config = validate_params(params)
    print(f"\n1. Plan: [{config.plan.mint}, {config.plan.maxt}) ms")
    print(f"   Slab limit: {config.plan.max_slab_bytes} bytes")

    # =========================================================================
    # Step 3: Run it
    # =========================================================================
    migrator = Migrator(
        config,
        source,
        destination,
        progress_reader=destination,
        enable_metrics=False,
        enable_tracing=False,
    )
    report = await migrator.run()

    print("\n2. First run")
    print(f"   Blocks pulled:  {report.blocks_pulled}")
    print(f"   Slabs pushed:   {report.slabs_pushed}")
    print(f"   Samples pushed: {report.samples_pushed}")
    print(f"   Frontier:       {report.frontier_ms} ms")

    # =========================================================================
    # Step 4: Run again; the stored checkpoint makes this a no-op
    # =========================================================================
    report = await Migrator(
        config,
        source,
        destination,
        progress_reader=destination,
        enable_metrics=False,
        enable_tracing=False,
    ).run()

    print("\n3. Second run")
    print(f"   Resumed from:   {report.resumed_from} ms")
    print(f"   Blocks pulled:  {report.blocks_pulled}")

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
