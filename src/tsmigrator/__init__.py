"""
tsmigrator - Resumable migration of historical time-series data.

This library provides:
- Validation of migration parameters into an immutable plan
- Adaptive time-range planning over the migration interval
- Concurrent reader and writer pools joined by a bounded slab queue
- Per-endpoint timeout, retry, skip and abort policies
- Checkpointing through the destination, so interrupted runs resume
- An in-memory series store for tests and development
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tsmigrator")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from tsmigrator.clients import DestinationClient, InMemorySeriesStore, SourceClient
from tsmigrator.config import (
    BasicAuth,
    BearerToken,
    BearerTokenFile,
    EndpointParams,
    EndpointRuntime,
    FailureAction,
    MigrationParams,
    MigrationPlan,
    OAuth2,
    ValidatedConfig,
    parse_byte_size,
    parse_duration,
    parse_instant,
    validate_params,
)
from tsmigrator.engine import MigrationReport, Migrator, migrate
from tsmigrator.exceptions import (
    ConfigurationError,
    EndpointError,
    EndpointOtherError,
    EndpointTimeoutError,
    ExhaustedRetriesError,
    MigrationAbortedError,
    MigratorError,
    PartialMigrationError,
)
from tsmigrator.metrics import MigrationMetrics, MigrationMetricSnapshot
from tsmigrator.models import (
    LabelMatcher,
    MatchType,
    ReadRequest,
    ReadResponse,
    Sample,
    TimeSeries,
    WriteRequest,
)
from tsmigrator.planner import (
    Block,
    BlockSizingStrategy,
    Planner,
    PullObservation,
    next_block_width,
)
from tsmigrator.progress import Checkpoint, ProgressTracker, SkippedRange
from tsmigrator.reader import ReaderPool
from tsmigrator.retry import AttemptOutcome, PolicyResult, RetryPolicy
from tsmigrator.slabs import Slab, SlabBuilder
from tsmigrator.writer import WriterPool

__all__ = [
    "__version__",
    # Engine
    "Migrator",
    "MigrationReport",
    "migrate",
    # Configuration
    "MigrationParams",
    "EndpointParams",
    "MigrationPlan",
    "EndpointRuntime",
    "ValidatedConfig",
    "FailureAction",
    "BasicAuth",
    "BearerToken",
    "BearerTokenFile",
    "OAuth2",
    "validate_params",
    "parse_byte_size",
    "parse_duration",
    "parse_instant",
    # Planning
    "Block",
    "BlockSizingStrategy",
    "Planner",
    "PullObservation",
    "next_block_width",
    # Pools and slabs
    "ReaderPool",
    "WriterPool",
    "Slab",
    "SlabBuilder",
    # Progress
    "Checkpoint",
    "ProgressTracker",
    "SkippedRange",
    # Retry
    "AttemptOutcome",
    "PolicyResult",
    "RetryPolicy",
    # Clients and models
    "SourceClient",
    "DestinationClient",
    "InMemorySeriesStore",
    "LabelMatcher",
    "MatchType",
    "ReadRequest",
    "ReadResponse",
    "Sample",
    "TimeSeries",
    "WriteRequest",
    # Metrics
    "MigrationMetrics",
    "MigrationMetricSnapshot",
    # Exceptions
    "MigratorError",
    "ConfigurationError",
    "EndpointError",
    "EndpointTimeoutError",
    "EndpointOtherError",
    "MigrationAbortedError",
    "ExhaustedRetriesError",
    "PartialMigrationError",
]
