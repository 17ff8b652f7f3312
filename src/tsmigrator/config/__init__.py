"""
Migration configuration.

Raw parameters (MigrationParams, EndpointParams) are validated into an
immutable MigrationPlan plus one EndpointRuntime per endpoint.

Usage:
    >>> from tsmigrator.config import EndpointParams, MigrationParams, validate_params
    >>>
    >>> config = validate_params(
    ...     MigrationParams(
    ...         start="2024-01-01T00:00:00Z",
    ...         end="2024-01-02T00:00:00Z",
    ...         reader=EndpointParams(url="http://source/read", on_timeout="retry"),
    ...         writer=EndpointParams(url="http://dest/write", max_retries=5),
    ...         max_read_size="100MB",
    ...     )
    ... )
    >>> config.plan.max_slab_bytes
    104857600
"""

from tsmigrator.config.auth import (
    AuthConfig,
    BasicAuth,
    BearerToken,
    BearerTokenFile,
    OAuth2,
    resolve_auth,
)
from tsmigrator.config.params import EndpointParams, MigrationParams
from tsmigrator.config.parsing import (
    format_bytes,
    format_timestamp,
    parse_byte_size,
    parse_duration,
    parse_instant,
)
from tsmigrator.config.plan import (
    DEFAULT_PROGRESS_METRIC_NAME,
    PROGRESS_JOB_NAME,
    EndpointRuntime,
    FailureAction,
    MigrationPlan,
    ValidatedConfig,
)
from tsmigrator.config.validator import validate_metric_name, validate_params

__all__ = [
    # Raw parameters
    "EndpointParams",
    "MigrationParams",
    # Validated settings
    "EndpointRuntime",
    "FailureAction",
    "MigrationPlan",
    "ValidatedConfig",
    "DEFAULT_PROGRESS_METRIC_NAME",
    "PROGRESS_JOB_NAME",
    # Auth
    "AuthConfig",
    "BasicAuth",
    "BearerToken",
    "BearerTokenFile",
    "OAuth2",
    "resolve_auth",
    # Parsing
    "parse_byte_size",
    "parse_duration",
    "parse_instant",
    "format_timestamp",
    "format_bytes",
    # Validation
    "validate_params",
    "validate_metric_name",
]
