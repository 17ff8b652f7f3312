"""
Standard span attributes for tsmigrator.

Example:
    >>> from tsmigrator.observability.attributes import ATTR_BLOCK_INDEX, ATTR_START_MS
    >>>
    >>> with tracer.span(
    ...     "tsmigrator.reader.pull",
    ...     {ATTR_BLOCK_INDEX: block.index, ATTR_START_MS: block.start_ms},
    ... ):
    ...     pass
"""

# =============================================================================
# Span Names
# =============================================================================

SPAN_MIGRATION_RUN = "tsmigrator.migration.run"
SPAN_READER_PULL = "tsmigrator.reader.pull"
SPAN_WRITER_PUSH = "tsmigrator.writer.push"
SPAN_PROGRESS_CHECKPOINT = "tsmigrator.progress.checkpoint"
SPAN_PROGRESS_LOAD = "tsmigrator.progress.load"

# =============================================================================
# Range Attributes
# =============================================================================

ATTR_MINT = "tsmigrator.mint"
"""Start of the migration interval in milliseconds (integer)."""

ATTR_MAXT = "tsmigrator.maxt"
"""End of the migration interval in milliseconds (integer)."""

ATTR_START_MS = "tsmigrator.range.start_ms"
"""Start of a block or slab range (integer)."""

ATTR_END_MS = "tsmigrator.range.end_ms"
"""End of a block or slab range, exclusive (integer)."""

# =============================================================================
# Work Unit Attributes
# =============================================================================

ATTR_BLOCK_INDEX = "tsmigrator.block.index"
"""Index of the block being pulled (integer)."""

ATTR_SLAB_FIRST_INDEX = "tsmigrator.slab.first_index"
"""First block index covered by a slab (integer)."""

ATTR_SLAB_LAST_INDEX = "tsmigrator.slab.last_index"
"""Last block index covered by a slab (integer)."""

ATTR_SIZE_BYTES = "tsmigrator.size_bytes"
"""Payload size in bytes (integer)."""

ATTR_SAMPLE_COUNT = "tsmigrator.sample_count"
"""Number of samples in a payload (integer)."""

ATTR_WORKER_ID = "tsmigrator.worker.id"
"""Index of the worker task within its pool (integer)."""

# =============================================================================
# Endpoint Attributes
# =============================================================================

ATTR_ENDPOINT = "tsmigrator.endpoint"
"""Logical endpoint name: 'reader' or 'writer' (string)."""

ATTR_ATTEMPTS = "tsmigrator.attempts"
"""Number of attempts a request took (integer)."""

ATTR_SKIPPED = "tsmigrator.skipped"
"""Whether the unit was skipped by the failure policy (boolean)."""

ATTR_FRONTIER_MS = "tsmigrator.frontier_ms"
"""Checkpoint frontier in milliseconds (integer)."""


__all__ = [
    "SPAN_MIGRATION_RUN",
    "SPAN_READER_PULL",
    "SPAN_WRITER_PUSH",
    "SPAN_PROGRESS_CHECKPOINT",
    "SPAN_PROGRESS_LOAD",
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
