"""
Shared pytest fixtures for the tsmigrator tests.

This module provides:
- Store fixtures (source_store, destination_store)
- Configuration fixtures (plan, config)
- Observability fixtures (mock_tracer, metric_reader, meter_provider)
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from tests.fixtures import make_config, make_plan, series_over
from tsmigrator.clients import InMemorySeriesStore
from tsmigrator.config.plan import MigrationPlan, ValidatedConfig
from tsmigrator.observability import MockTracer

# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def source_store() -> InMemorySeriesStore:
    """
    Source store holding two series with a sample every 250ms over [0, 10s).

    Returns:
        InMemorySeriesStore with 80 samples in total
    """
    store = InMemorySeriesStore(name="source")
    store.seed(
        [
            series_over("cpu_usage", 0, 10_000, 250, instance="a"),
            series_over("cpu_usage", 0, 10_000, 250, instance="b"),
        ]
    )
    return store


@pytest.fixture
def destination_store() -> InMemorySeriesStore:
    """Provide an empty destination store."""
    return InMemorySeriesStore(name="destination")


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def plan() -> MigrationPlan:
    """Plan over [0, 10s) with 1s lookahead and 4s max read duration."""
    return make_plan()


@pytest.fixture
def config(plan: MigrationPlan) -> ValidatedConfig:
    return make_config(plan=plan)


# =============================================================================
# Observability Fixtures
# =============================================================================


@pytest.fixture
def mock_tracer() -> MockTracer:
    return MockTracer()


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    """Provide a fresh InMemoryMetricReader for inspecting collected metrics."""
    return InMemoryMetricReader()


@pytest.fixture
def meter_provider(metric_reader: InMemoryMetricReader) -> Generator[MeterProvider, None, None]:
    """Meter provider wired to ``metric_reader``; pass it to MigrationMetrics."""
    provider = MeterProvider(metric_readers=[metric_reader])
    yield provider
    provider.shutdown()

