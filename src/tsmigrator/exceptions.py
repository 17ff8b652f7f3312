"""
Exceptions for the tsmigrator package.

Exception Hierarchy:
    MigratorError (base)
    +-- ConfigurationError
    +-- EndpointError
    |   +-- EndpointTimeoutError
    |   +-- EndpointOtherError
    +-- MigrationAbortedError
    |   +-- ExhaustedRetriesError
    +-- PartialMigrationError

Configuration errors are raised before any I/O and are never retried.
Endpoint errors are raised by source/destination clients; the retry policy
classifies them into timeouts and other failures. Aborts stop the whole
migration. A partial migration finished, but with known gaps.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tsmigrator.engine import MigrationReport
    from tsmigrator.progress import SkippedRange


class MigratorError(Exception):
    """Base exception for the tsmigrator package."""

    pass


class ConfigurationError(MigratorError):
    """
    Raised when migration parameters fail validation.

    Validation stops at the first violation, so a single instance always
    describes exactly one problem.

    Attributes:
        field: Name of the offending parameter, if known
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class EndpointError(MigratorError):
    """
    Raised by a client when a request to a remote endpoint fails.

    Attributes:
        endpoint: Logical endpoint name ("reader" or "writer")
        url: Endpoint URL, if known
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        url: str | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.url = url
        super().__init__(message)


class EndpointTimeoutError(EndpointError):
    """Raised when a request exceeds its deadline."""

    pass


class EndpointOtherError(EndpointError):
    """Raised for any non-timeout endpoint failure (HTTP errors, decode errors, ...)."""

    pass


class MigrationAbortedError(MigratorError):
    """
    Raised when a failure policy decides the migration must stop.

    The engine fills in ``frontier_ms`` and ``skipped_ranges`` before the
    error leaves Migrator.run. The checkpoint is saved past skipped ranges,
    so a resumed run does not revisit them; backfill them separately.

    Attributes:
        endpoint: Endpoint whose policy aborted ("reader" or "writer")
        unit: Description of the unit of work that failed
        cause: The last underlying error
        frontier_ms: Frontier reached before the abort, if known
        skipped_ranges: Ranges skipped before the abort
    """

    def __init__(
        self,
        endpoint: str,
        unit: str,
        cause: BaseException | None = None,
        message: str | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.unit = unit
        self.cause = cause
        self.frontier_ms: int | None = None
        self.skipped_ranges: list[SkippedRange] = []
        if message is None:
            message = f"{endpoint} aborted migration on {unit}"
            if cause is not None:
                message += f": {type(cause).__name__}: {cause}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "message": str(self),
            "endpoint": self.endpoint,
            "unit": self.unit,
            "frontier_ms": self.frontier_ms,
            "skipped_ranges": [r.to_dict() for r in self.skipped_ranges],
        }


class ExhaustedRetriesError(MigrationAbortedError):
    """
    Raised when an endpoint keeps failing after its retry budget is spent.

    Attributes:
        attempts: Total number of attempts made (first attempt plus retries)
    """

    def __init__(
        self,
        endpoint: str,
        unit: str,
        attempts: int,
        cause: BaseException | None = None,
    ) -> None:
        self.attempts = attempts
        message = f"{endpoint} exhausted retries on {unit} after {attempts} attempts"
        if cause is not None:
            message += f": {type(cause).__name__}: {cause}"
        super().__init__(endpoint, unit, cause, message=message)


class PartialMigrationError(MigratorError):
    """
    Raised when a migration completed but some ranges were skipped.

    The skipped ranges are permanent gaps in the destination and are listed
    so an operator can re-run the migration for just those intervals.

    Attributes:
        report: The full migration report
        skipped_ranges: The ranges that were not migrated
    """

    def __init__(self, report: MigrationReport) -> None:
        self.report = report
        self.skipped_ranges: list[SkippedRange] = list(report.skipped_ranges)
        ranges = ", ".join(f"[{r.start_ms}, {r.end_ms}) ({r.stage})" for r in self.skipped_ranges)
        super().__init__(
            f"Migration finished with {len(self.skipped_ranges)} skipped range(s): {ranges}"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "message": str(self),
            "skipped_ranges": [r.to_dict() for r in self.skipped_ranges],
        }


__all__ = [
    "MigratorError",
    "ConfigurationError",
    "EndpointError",
    "EndpointTimeoutError",
    "EndpointOtherError",
    "MigrationAbortedError",
    "ExhaustedRetriesError",
    "PartialMigrationError",
]
