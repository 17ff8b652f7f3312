"""
Per-endpoint retry and failure policy.

Every remote request runs through a RetryPolicy built from its endpoint's
runtime settings. Each attempt is bounded by the endpoint timeout and ends
in success, a timeout, or some other error. Timeouts and other errors each
map to a FailureAction:

- RETRY: sleep the fixed retry delay and try again
- SKIP: give up on this unit; the caller records a gap
- ABORT: raise MigrationAbortedError and stop the migration

With ``max_retries = N > 0`` at most N retries follow the first attempt;
running out raises ExhaustedRetriesError. ``max_retries = 0`` retries
without limit.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from tsmigrator.config.plan import EndpointRuntime, FailureAction
from tsmigrator.exceptions import (
    EndpointTimeoutError,
    ExhaustedRetriesError,
    MigrationAbortedError,
)

if TYPE_CHECKING:
    from tsmigrator.metrics import MigrationMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptOutcome(Enum):
    """Classification of a single attempt."""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"


def classify_error(error: BaseException) -> AttemptOutcome:
    """
    Classify a failed attempt.

    Builtin/asyncio timeouts and EndpointTimeoutError count as timeouts;
    every other exception counts as an error.
    """
    if isinstance(error, TimeoutError | EndpointTimeoutError):
        return AttemptOutcome.TIMEOUT
    return AttemptOutcome.ERROR


@dataclass(frozen=True)
class PolicyResult(Generic[T]):
    """
    Final result of running an operation under a RetryPolicy.

    Attributes:
        value: The operation's return value (None when skipped)
        skipped: True when the policy gave up on this unit
        attempts: Number of attempts made
        error: The last error, if any attempt failed
        last_attempt_seconds: Duration of the final attempt alone, excluding
            earlier attempts and retry delays
    """

    value: T | None = None
    skipped: bool = False
    attempts: int = 1
    error: BaseException | None = None
    last_attempt_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return not self.skipped


@dataclass
class RetryStats:
    """
    Counters for one policy, aggregated over all the units it ran.
    """

    attempts: int = 0
    successes: int = 0
    timeouts: int = 0
    errors: int = 0
    retries: int = 0
    skips: int = 0
    aborts: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert stats to dictionary for serialization."""
        return {
            "attempts": self.attempts,
            "successes": self.successes,
            "timeouts": self.timeouts,
            "errors": self.errors,
            "retries": self.retries,
            "skips": self.skips,
            "aborts": self.aborts,
        }


class RetryPolicy:
    """
    Runs operations against one endpoint with its timeout and failure rules.

    Example:
        >>> policy = RetryPolicy(config.reader)
        >>> result = await policy.execute(
        ...     lambda: source.read(request),
        ...     unit="block 3 [1000, 2000)",
        ... )
        >>> if result.skipped:
        ...     record_gap()
    """

    def __init__(
        self,
        runtime: EndpointRuntime,
        metrics: MigrationMetrics | None = None,
    ) -> None:
        self._runtime = runtime
        self._metrics = metrics
        self.stats = RetryStats()

    @property
    def runtime(self) -> EndpointRuntime:
        return self._runtime

    @property
    def endpoint(self) -> str:
        return self._runtime.name

    def action_for(self, outcome: AttemptOutcome) -> FailureAction:
        """Failure action configured for an attempt outcome."""
        if outcome is AttemptOutcome.TIMEOUT:
            return self._runtime.on_timeout
        return self._runtime.on_error

    def _retries_exhausted(self, attempts: int) -> bool:
        if self._runtime.unlimited_retries:
            return False
        return attempts > self._runtime.max_retries

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        unit: str = "operation",
    ) -> PolicyResult[T]:
        """
        Run ``operation`` until it succeeds or the policy gives up.

        Args:
            operation: Zero-argument coroutine factory; called once per attempt
            unit: Human-readable description of the unit of work, for logs
                and errors

        Returns:
            PolicyResult carrying the value, or ``skipped=True``

        Raises:
            MigrationAbortedError: When the configured action is ABORT
            ExhaustedRetriesError: When the retry budget is spent
        """
        runtime = self._runtime
        timeout_seconds = runtime.timeout.total_seconds()
        attempts = 0

        while True:
            attempts += 1
            self.stats.attempts += 1
            started = time.perf_counter()
            try:
                async with asyncio.timeout(timeout_seconds):
                    value = await operation()
            except Exception as e:
                elapsed = time.perf_counter() - started
                outcome = classify_error(e)
                if outcome is AttemptOutcome.TIMEOUT:
                    self.stats.timeouts += 1
                else:
                    self.stats.errors += 1
                action = self.action_for(outcome)

                if action is FailureAction.ABORT:
                    self.stats.aborts += 1
                    if self._metrics is not None:
                        self._metrics.record_abort(runtime.name, outcome.value)
                    logger.error(
                        "%s aborting on %s after %s",
                        runtime.name,
                        unit,
                        outcome.value,
                        extra={
                            "endpoint": runtime.name,
                            "unit": unit,
                            "attempt": attempts,
                            "outcome": outcome.value,
                            "error": str(e),
                            "error_type": type(e).__name__,
                        },
                    )
                    raise MigrationAbortedError(runtime.name, unit, e) from e

                if action is FailureAction.SKIP:
                    self.stats.skips += 1
                    if self._metrics is not None:
                        self._metrics.record_skip(runtime.name, outcome.value)
                    logger.warning(
                        "%s skipping %s after %s",
                        runtime.name,
                        unit,
                        outcome.value,
                        extra={
                            "endpoint": runtime.name,
                            "unit": unit,
                            "attempt": attempts,
                            "outcome": outcome.value,
                            "error": str(e),
                            "error_type": type(e).__name__,
                        },
                    )
                    return PolicyResult(
                        skipped=True,
                        attempts=attempts,
                        error=e,
                        last_attempt_seconds=elapsed,
                    )

                if self._retries_exhausted(attempts):
                    self.stats.aborts += 1
                    if self._metrics is not None:
                        self._metrics.record_abort(runtime.name, outcome.value)
                    logger.error(
                        "%s exhausted retries on %s",
                        runtime.name,
                        unit,
                        extra={
                            "endpoint": runtime.name,
                            "unit": unit,
                            "attempts": attempts,
                            "max_retries": runtime.max_retries,
                            "error": str(e),
                            "error_type": type(e).__name__,
                        },
                    )
                    raise ExhaustedRetriesError(runtime.name, unit, attempts, e) from e

                self.stats.retries += 1
                if self._metrics is not None:
                    self._metrics.record_retry(runtime.name, outcome.value)
                delay = runtime.retry_delay.total_seconds()
                logger.warning(
                    "Retrying %s on %s after %s",
                    unit,
                    runtime.name,
                    outcome.value,
                    extra={
                        "endpoint": runtime.name,
                        "unit": unit,
                        "attempt": attempts,
                        "max_retries": runtime.max_retries,
                        "delay_seconds": delay,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                await asyncio.sleep(delay)
                continue

            self.stats.successes += 1
            if attempts > 1:
                logger.info(
                    "%s succeeded on %s after retry",
                    unit,
                    runtime.name,
                    extra={"endpoint": runtime.name, "unit": unit, "attempts": attempts},
                )
            return PolicyResult(
                value=value,
                attempts=attempts,
                last_attempt_seconds=time.perf_counter() - started,
            )


__all__ = [
    "AttemptOutcome",
    "PolicyResult",
    "RetryPolicy",
    "RetryStats",
    "classify_error",
]
