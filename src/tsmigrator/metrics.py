"""
OpenTelemetry metrics for migration runs.

Metrics Exposed:
    - tsmigrator.blocks.pulled (Counter): Blocks pulled from the source
    - tsmigrator.bytes.pulled (Counter): Payload bytes pulled
    - tsmigrator.samples.pulled (Counter): Samples pulled
    - tsmigrator.slabs.pushed (Counter): Slabs pushed to the destination
    - tsmigrator.samples.pushed (Counter): Samples pushed
    - tsmigrator.retries (Counter): Retried attempts, by endpoint and outcome
    - tsmigrator.skips (Counter): Skipped units, by endpoint and outcome
    - tsmigrator.aborts (Counter): Aborts, by endpoint and outcome
    - tsmigrator.pull.duration (Histogram): Pull latency in seconds
    - tsmigrator.push.duration (Histogram): Push latency in seconds
    - tsmigrator.frontier (Gauge): Checkpoint frontier in milliseconds

All metrics carry a ``migration_id`` attribute. With ``enable_metrics=False``
every instrument is a no-op, but the snapshot counters still accumulate.

Example:
    >>> metrics = MigrationMetrics("1700000000-1700086400")
    >>> metrics.record_pull(bytes_pulled=2048, samples=128, duration_seconds=0.4)
    >>> metrics.get_snapshot().blocks_pulled
    1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import Observation

_meter: Any = None


def _get_meter() -> Any:
    """Get or create the module meter from the global meter provider."""
    global _meter
    if _meter is None:
        _meter = metrics.get_meter("tsmigrator", version="0.1.0")
    return _meter


def reset_meter() -> None:
    """
    Reset the global meter instance.

    Useful for testing to ensure fresh meter state between tests.
    """
    global _meter
    _meter = None


class NoOpCounter:
    """Counter stand-in used when metrics are disabled."""

    def add(
        self,
        amount: int | float,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        pass


class NoOpHistogram:
    """Histogram stand-in used when metrics are disabled."""

    def record(
        self,
        value: float,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        pass


@dataclass(frozen=True)
class MigrationMetricSnapshot:
    """
    Accumulated metric values for one migration.

    Useful for testing and debugging to see what values
    would be reported to OpenTelemetry.
    """

    blocks_pulled: int = 0
    bytes_pulled: int = 0
    samples_pulled: int = 0
    slabs_pushed: int = 0
    samples_pushed: int = 0
    retries: dict[str, int] = field(default_factory=dict)
    skips: dict[str, int] = field(default_factory=dict)
    aborts: dict[str, int] = field(default_factory=dict)
    frontier_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "blocks_pulled": self.blocks_pulled,
            "bytes_pulled": self.bytes_pulled,
            "samples_pulled": self.samples_pulled,
            "slabs_pushed": self.slabs_pushed,
            "samples_pushed": self.samples_pushed,
            "retries": dict(self.retries),
            "skips": dict(self.skips),
            "aborts": dict(self.aborts),
            "frontier_ms": self.frontier_ms,
        }


@dataclass
class MigrationMetrics:
    """
    Container for migration metric instruments.

    Attributes:
        migration_id: Identifier attached to every measurement
        enable_metrics: Whether OpenTelemetry instruments are created
        meter_provider: Optional provider to use instead of the global one
    """

    migration_id: str
    enable_metrics: bool = True
    meter_provider: Any = None

    _meter: Any = field(default=None, init=False, repr=False)
    _blocks_counter: Any = field(default=None, init=False, repr=False)
    _bytes_counter: Any = field(default=None, init=False, repr=False)
    _samples_pulled_counter: Any = field(default=None, init=False, repr=False)
    _slabs_counter: Any = field(default=None, init=False, repr=False)
    _samples_pushed_counter: Any = field(default=None, init=False, repr=False)
    _retry_counter: Any = field(default=None, init=False, repr=False)
    _skip_counter: Any = field(default=None, init=False, repr=False)
    _abort_counter: Any = field(default=None, init=False, repr=False)
    _pull_histogram: Any = field(default=None, init=False, repr=False)
    _push_histogram: Any = field(default=None, init=False, repr=False)

    _blocks_pulled: int = field(default=0, init=False, repr=False)
    _bytes_pulled: int = field(default=0, init=False, repr=False)
    _samples_pulled: int = field(default=0, init=False, repr=False)
    _slabs_pushed: int = field(default=0, init=False, repr=False)
    _samples_pushed: int = field(default=0, init=False, repr=False)
    _retries: dict[str, int] = field(default_factory=dict, init=False, repr=False)
    _skips: dict[str, int] = field(default_factory=dict, init=False, repr=False)
    _aborts: dict[str, int] = field(default_factory=dict, init=False, repr=False)
    _frontier_ms: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        """Initialize metric instruments."""
        if self.enable_metrics:
            self._setup_metrics()
        else:
            self._setup_noop()

    def _setup_metrics(self) -> None:
        if self.meter_provider is not None:
            self._meter = self.meter_provider.get_meter("tsmigrator", version="0.1.0")
        else:
            self._meter = _get_meter()

        self._blocks_counter = self._meter.create_counter(
            name="tsmigrator.blocks.pulled",
            unit="blocks",
            description="Number of blocks pulled from the source",
        )
        self._bytes_counter = self._meter.create_counter(
            name="tsmigrator.bytes.pulled",
            unit="By",
            description="Payload bytes pulled from the source",
        )
        self._samples_pulled_counter = self._meter.create_counter(
            name="tsmigrator.samples.pulled",
            unit="samples",
            description="Samples pulled from the source",
        )
        self._slabs_counter = self._meter.create_counter(
            name="tsmigrator.slabs.pushed",
            unit="slabs",
            description="Number of slabs pushed to the destination",
        )
        self._samples_pushed_counter = self._meter.create_counter(
            name="tsmigrator.samples.pushed",
            unit="samples",
            description="Samples pushed to the destination",
        )
        self._retry_counter = self._meter.create_counter(
            name="tsmigrator.retries",
            unit="attempts",
            description="Attempts retried after a timeout or error",
        )
        self._skip_counter = self._meter.create_counter(
            name="tsmigrator.skips",
            unit="units",
            description="Units of work skipped by a failure policy",
        )
        self._abort_counter = self._meter.create_counter(
            name="tsmigrator.aborts",
            unit="units",
            description="Failures that aborted the migration",
        )
        self._pull_histogram = self._meter.create_histogram(
            name="tsmigrator.pull.duration",
            unit="s",
            description="Time taken to pull one block",
        )
        self._push_histogram = self._meter.create_histogram(
            name="tsmigrator.push.duration",
            unit="s",
            description="Time taken to push one slab",
        )
        self._meter.create_observable_gauge(
            name="tsmigrator.frontier",
            callbacks=[self._observe_frontier],
            unit="ms",
            description="Timestamp below which all data has been migrated",
        )

    def _setup_noop(self) -> None:
        self._blocks_counter = NoOpCounter()
        self._bytes_counter = NoOpCounter()
        self._samples_pulled_counter = NoOpCounter()
        self._slabs_counter = NoOpCounter()
        self._samples_pushed_counter = NoOpCounter()
        self._retry_counter = NoOpCounter()
        self._skip_counter = NoOpCounter()
        self._abort_counter = NoOpCounter()
        self._pull_histogram = NoOpHistogram()
        self._push_histogram = NoOpHistogram()

    def _base_attributes(self) -> dict[str, str]:
        return {"migration_id": self.migration_id}

    def _observe_frontier(self, options: Any) -> Any:
        """Callback for the frontier gauge, invoked during collection."""
        yield Observation(value=self._frontier_ms, attributes=self._base_attributes())

    def record_pull(self, bytes_pulled: int, samples: int, duration_seconds: float) -> None:
        """Record one successfully pulled block."""
        attrs = self._base_attributes()
        self._blocks_counter.add(1, attrs)
        self._bytes_counter.add(bytes_pulled, attrs)
        self._samples_pulled_counter.add(samples, attrs)
        self._pull_histogram.record(duration_seconds, attrs)

        self._blocks_pulled += 1
        self._bytes_pulled += bytes_pulled
        self._samples_pulled += samples

    def record_push(self, samples: int, duration_seconds: float) -> None:
        """Record one successfully pushed slab."""
        attrs = self._base_attributes()
        self._slabs_counter.add(1, attrs)
        self._samples_pushed_counter.add(samples, attrs)
        self._push_histogram.record(duration_seconds, attrs)

        self._slabs_pushed += 1
        self._samples_pushed += samples

    def _record_failure(
        self,
        counter: Any,
        totals: dict[str, int],
        endpoint: str,
        outcome: str,
    ) -> None:
        attrs = {**self._base_attributes(), "endpoint": endpoint, "outcome": outcome}
        counter.add(1, attrs)
        totals[endpoint] = totals.get(endpoint, 0) + 1

    def record_retry(self, endpoint: str, outcome: str) -> None:
        self._record_failure(self._retry_counter, self._retries, endpoint, outcome)

    def record_skip(self, endpoint: str, outcome: str) -> None:
        self._record_failure(self._skip_counter, self._skips, endpoint, outcome)

    def record_abort(self, endpoint: str, outcome: str) -> None:
        self._record_failure(self._abort_counter, self._aborts, endpoint, outcome)

    def record_frontier(self, frontier_ms: int) -> None:
        """Update the value reported by the frontier gauge."""
        self._frontier_ms = max(self._frontier_ms, frontier_ms)

    def get_snapshot(self) -> MigrationMetricSnapshot:
        """
        Get a snapshot of accumulated metric values.

        Returns:
            MigrationMetricSnapshot with current values
        """
        return MigrationMetricSnapshot(
            blocks_pulled=self._blocks_pulled,
            bytes_pulled=self._bytes_pulled,
            samples_pulled=self._samples_pulled,
            slabs_pushed=self._slabs_pushed,
            samples_pushed=self._samples_pushed,
            retries=dict(self._retries),
            skips=dict(self._skips),
            aborts=dict(self._aborts),
            frontier_ms=self._frontier_ms,
        )

    @property
    def metrics_enabled(self) -> bool:
        return self.enable_metrics


__all__ = [
    "MigrationMetrics",
    "MigrationMetricSnapshot",
    "NoOpCounter",
    "NoOpHistogram",
    "reset_meter",
]
