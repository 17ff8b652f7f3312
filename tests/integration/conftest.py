"""
Shared pytest fixtures for integration tests.

This module provides a larger source store than the unit tests use.
"""

from __future__ import annotations

import pytest

from tests.fixtures import series_over
from tsmigrator.clients import InMemorySeriesStore

HOUR_MS = 3_600_000

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for integration tests."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test in this directory as an integration test."""
    for item in items:
        if "tests/integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


# ============================================================================
# Stores
# ============================================================================


@pytest.fixture
def hour_of_data() -> InMemorySeriesStore:
    """
    Source with five series scraped every 10s over one hour.

    Returns:
        InMemorySeriesStore with 5 * 360 samples
    """
    store = InMemorySeriesStore(name="source")
    store.seed(
        [
            series_over("http_requests_total", 0, HOUR_MS, 10_000, instance=f"web-{i}", job="web")
            for i in range(4)
        ]
        + [series_over("node_load1", 0, HOUR_MS, 10_000, instance="db-0", job="node")]
    )
    return store
