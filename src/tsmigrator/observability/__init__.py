"""
Observability utilities for tsmigrator.

Tracing goes through the Tracer protocol so components can be given a
NullTracer or MockTracer in tests; span names and attribute keys are
shared constants.

Example:
    >>> from tsmigrator.observability import SPAN_READER_PULL, create_tracer
    >>>
    >>> tracer = create_tracer(__name__, enable_tracing=True)
    >>> with tracer.span(SPAN_READER_PULL, {"tsmigrator.block.index": 0}):
    ...     pass
"""

from tsmigrator.observability.attributes import (
    ATTR_ATTEMPTS,
    ATTR_BLOCK_INDEX,
    ATTR_END_MS,
    ATTR_ENDPOINT,
    ATTR_FRONTIER_MS,
    ATTR_MAXT,
    ATTR_MINT,
    ATTR_SAMPLE_COUNT,
    ATTR_SIZE_BYTES,
    ATTR_SKIPPED,
    ATTR_SLAB_FIRST_INDEX,
    ATTR_SLAB_LAST_INDEX,
    ATTR_START_MS,
    ATTR_WORKER_ID,
    SPAN_MIGRATION_RUN,
    SPAN_PROGRESS_CHECKPOINT,
    SPAN_PROGRESS_LOAD,
    SPAN_READER_PULL,
    SPAN_WRITER_PUSH,
)
from tsmigrator.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracers
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Span names
    "SPAN_MIGRATION_RUN",
    "SPAN_READER_PULL",
    "SPAN_WRITER_PUSH",
    "SPAN_PROGRESS_CHECKPOINT",
    "SPAN_PROGRESS_LOAD",
    # Attributes
    "ATTR_MINT",
    "ATTR_MAXT",
    "ATTR_START_MS",
    "ATTR_END_MS",
    "ATTR_BLOCK_INDEX",
    "ATTR_SLAB_FIRST_INDEX",
    "ATTR_SLAB_LAST_INDEX",
    "ATTR_SIZE_BYTES",
    "ATTR_SAMPLE_COUNT",
    "ATTR_WORKER_ID",
    "ATTR_ENDPOINT",
    "ATTR_ATTEMPTS",
    "ATTR_SKIPPED",
    "ATTR_FRONTIER_MS",
]
