"""
Helpers for reading OpenTelemetry SDK metrics in tests.
"""

from __future__ import annotations

from typing import Any

from opentelemetry.sdk.metrics.export import InMemoryMetricReader


def collect_metric_values(reader: InMemoryMetricReader) -> dict[str, Any]:
    """
    Collect metrics and sum data point values by metric name.

    Histograms report the sum of their recorded values.
    """
    values: dict[str, Any] = {}
    data = reader.get_metrics_data()
    if data is None:
        return values
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                total = 0.0
                for point in metric.data.data_points:
                    total += point.sum if hasattr(point, "bucket_counts") else point.value
                values[metric.name] = total
    return values
