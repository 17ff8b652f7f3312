"""
Shared test fixtures for the tsmigrator library.

Usage:
    from tests.fixtures import (
        collect_metric_values,
        make_config,
        make_endpoint,
        make_plan,
        make_series,
        sample_points,
        series_over,
        without_progress,
        SlowRangeStore,
    )
"""

from tests.fixtures.otel import collect_metric_values
from tests.fixtures.series import (
    make_config,
    make_endpoint,
    make_plan,
    make_series,
    sample_points,
    series_over,
    without_progress,
)
from tests.fixtures.stores import SlowRangeStore

__all__ = [
    "collect_metric_values",
    "make_config",
    "make_endpoint",
    "make_plan",
    "make_series",
    "sample_points",
    "series_over",
    "SlowRangeStore",
    "without_progress",
]
