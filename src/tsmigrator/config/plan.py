"""
Validated, immutable migration settings.

A MigrationPlan and one EndpointRuntime per side are the only configuration
the engine ever sees. They are produced by ``validate_params`` and never
mutated afterwards; resuming from a checkpoint derives a new plan with
``with_mint``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any

from tsmigrator.config.auth import AuthConfig

DEFAULT_TIMEOUT = timedelta(minutes=5)
DEFAULT_RETRY_DELAY = timedelta(seconds=1)
DEFAULT_MAX_RETRIES = 0
DEFAULT_LOOKAHEAD_INCREMENT = timedelta(minutes=1)
DEFAULT_MAX_READ_DURATION = timedelta(hours=2)
DEFAULT_MAX_READ_SIZE = "500MB"
DEFAULT_CONCURRENT_PULL = 1
DEFAULT_CONCURRENT_PUSH = 1
DEFAULT_PROGRESS_METRIC_NAME = "tsmigrator_progress"
PROGRESS_JOB_NAME = "tsmigrator"
METRIC_NAME_PATTERN = r"^[a-zA-Z_:][a-zA-Z0-9_:]*$"


class FailureAction(Enum):
    """
    What an endpoint does when an attempt fails.

    Configured separately for timeouts and for all other errors.
    """

    RETRY = "retry"
    """Wait the retry delay and try the same unit again."""

    SKIP = "skip"
    """Give up on this unit, record a gap, and keep going."""

    ABORT = "abort"
    """Stop the whole migration."""


DEFAULT_ON_TIMEOUT = FailureAction.RETRY
DEFAULT_ON_ERROR = FailureAction.ABORT


@dataclass(frozen=True)
class EndpointRuntime:
    """
    Runtime settings for one endpoint.

    Attributes:
        name: "reader" or "writer"
        url: Endpoint URL
        timeout: Per-attempt deadline
        retry_delay: Fixed delay between attempts
        max_retries: Retries after the first attempt; 0 means unlimited
        on_timeout: Action when an attempt times out
        on_error: Action when an attempt fails otherwise
        auth: The single configured auth mechanism, if any
    """

    name: str
    url: str
    timeout: timedelta = DEFAULT_TIMEOUT
    retry_delay: timedelta = DEFAULT_RETRY_DELAY
    max_retries: int = DEFAULT_MAX_RETRIES
    on_timeout: FailureAction = DEFAULT_ON_TIMEOUT
    on_error: FailureAction = DEFAULT_ON_ERROR
    auth: AuthConfig | None = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.timeout <= timedelta(0):
            raise ValueError(f"{self.name} timeout must be positive, got {self.timeout}.")
        if self.retry_delay < timedelta(0):
            raise ValueError(f"{self.name} retry_delay must be >= 0, got {self.retry_delay}.")
        if self.max_retries < 0:
            raise ValueError(
                f"{self.name} max_retries must be >= 0, got {self.max_retries}. "
                "Use 0 for unlimited retries."
            )

    @property
    def unlimited_retries(self) -> bool:
        return self.max_retries == 0


@dataclass(frozen=True)
class MigrationPlan:
    """
    The validated migration interval and tuning knobs.

    ``mint`` and ``maxt`` are millisecond timestamps truncated to whole
    seconds. The interval migrated is ``[mint, maxt)``.
    """

    mint: int
    maxt: int
    lookahead_increment: timedelta = DEFAULT_LOOKAHEAD_INCREMENT
    max_read_duration: timedelta = DEFAULT_MAX_READ_DURATION
    max_slab_bytes: int = 500 * 1024 * 1024
    concurrent_pull: int = DEFAULT_CONCURRENT_PULL
    concurrent_push: int = DEFAULT_CONCURRENT_PUSH
    progress_enabled: bool = True
    progress_metric_name: str = DEFAULT_PROGRESS_METRIC_NAME
    progress_metric_url: str | None = None
    human_readable: bool = True
    start: str = ""
    end: str = ""

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.mint > self.maxt:
            raise ValueError(f"mint ({self.mint}) must be <= maxt ({self.maxt}).")
        if self.concurrent_pull < 1:
            raise ValueError(f"concurrent_pull must be >= 1, got {self.concurrent_pull}.")
        if self.concurrent_push < 1:
            raise ValueError(f"concurrent_push must be >= 1, got {self.concurrent_push}.")
        if self.max_slab_bytes <= 0:
            raise ValueError(f"max_slab_bytes must be positive, got {self.max_slab_bytes}.")
        if self.lookahead_increment <= timedelta(0):
            raise ValueError(
                f"lookahead_increment must be positive, got {self.lookahead_increment}."
            )
        if self.max_read_duration < self.lookahead_increment:
            raise ValueError(
                f"max_read_duration ({self.max_read_duration}) must be >= "
                f"lookahead_increment ({self.lookahead_increment})."
            )

    @property
    def mint_sec(self) -> int:
        return self.mint // 1000

    @property
    def maxt_sec(self) -> int:
        return self.maxt // 1000

    @property
    def span_ms(self) -> int:
        return self.maxt - self.mint

    def with_mint(self, mint: int) -> MigrationPlan:
        """Derive a plan starting at ``mint`` (used when resuming)."""
        return dataclasses.replace(self, mint=mint)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "mint": self.mint,
            "maxt": self.maxt,
            "lookahead_increment_s": self.lookahead_increment.total_seconds(),
            "max_read_duration_s": self.max_read_duration.total_seconds(),
            "max_slab_bytes": self.max_slab_bytes,
            "concurrent_pull": self.concurrent_pull,
            "concurrent_push": self.concurrent_push,
            "progress_enabled": self.progress_enabled,
            "progress_metric_name": self.progress_metric_name,
            "progress_metric_url": self.progress_metric_url,
        }


@dataclass(frozen=True)
class ValidatedConfig:
    """Everything the engine needs, validated."""

    plan: MigrationPlan
    reader: EndpointRuntime
    writer: EndpointRuntime


__all__ = [
    "DEFAULT_TIMEOUT",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_LOOKAHEAD_INCREMENT",
    "DEFAULT_MAX_READ_DURATION",
    "DEFAULT_MAX_READ_SIZE",
    "DEFAULT_CONCURRENT_PULL",
    "DEFAULT_CONCURRENT_PUSH",
    "DEFAULT_PROGRESS_METRIC_NAME",
    "DEFAULT_ON_TIMEOUT",
    "DEFAULT_ON_ERROR",
    "PROGRESS_JOB_NAME",
    "METRIC_NAME_PATTERN",
    "FailureAction",
    "EndpointRuntime",
    "MigrationPlan",
    "ValidatedConfig",
]
