"""
Failure Policies Example

This example demonstrates per-endpoint failure handling:
- Retrying transient errors
- Skipping a range the source cannot serve
- Reading the skipped ranges from PartialMigrationError
- Backfilling a gap with a narrower follow-up migration

Run with: python examples/failure_policies.py
"""

import asyncio

from tsmigrator import (
    EndpointOtherError,
    EndpointParams,
    InMemorySeriesStore,
    MigrationParams,
    PartialMigrationError,
    Sample,
    TimeSeries,
    migrate,
)

BROKEN_START_MS = 600_000


def build_source() -> InMemorySeriesStore:
    source = InMemorySeriesStore(name="source")
    source.seed(
        [
            TimeSeries(
                labels={"__name__": "temperature_celsius", "room": "lab"},
                samples=[
                    Sample(timestamp_ms=ts, value=20.0 + (ts % 7))
                    for ts in range(0, 1_800_000, 30_000)
                ],
            )
        ]
    )
    return source


def params(start: int, end: int) -> MigrationParams:
    return MigrationParams(
        start=start,
        end=end,
        reader=EndpointParams(url="http://source/read", on_error="skip"),
        writer=EndpointParams(url="http://dest/write", on_error="retry", retry_delay="10ms"),
        lookahead_increment="5m",
        max_read_duration="5m",
    )


async def main():
    print("=" * 60)
    print("Failure Policies Example")
    print("=" * 60)

    source = build_source()
    destination = InMemorySeriesStore(name="destination")

    # The source fails every read of one five-minute range, and the
    # destination drops its first two writes.
    source.read_fault = lambda request: (
        EndpointOtherError("block unavailable") if request.start_ms == BROKEN_START_MS else None
    )
    destination.fail_next_writes(2)

    print("\n1. Migrating 30 minutes with one broken range")
    gaps = []
    try:
        await migrate(params(0, 1800), source, destination, enable_metrics=False)
    except PartialMigrationError as e:
        print(f"   {e}")
        gaps = e.skipped_ranges
        print(f"   Samples pushed: {e.report.samples_pushed}")

    print("\n2. Backfilling the gaps once the source recovers")
    source.read_fault = None
    for gap in gaps:
        report = await migrate(
            params(gap.start_ms // 1000, gap.end_ms // 1000),
            source,
            destination,
            enable_metrics=False,
        )
        print(f"   [{gap.start_ms}, {gap.end_ms}): {report.samples_pushed} samples")

    total = await destination.get_sample_count()
    print(f"\n3. Destination now holds {total} samples (including checkpoints)")

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
