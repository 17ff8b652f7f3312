"""
Unit tests for exceptions module.

Tests the exception hierarchy and error messages.
"""

import pytest

from tsmigrator.engine import MigrationReport
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
from tsmigrator.progress import SkippedRange


def _report(skipped: list[SkippedRange]) -> MigrationReport:
    return MigrationReport(
        mint=0,
        maxt=10_000,
        effective_mint=0,
        frontier_ms=10_000,
        skipped_ranges=skipped,
    )


class TestHierarchy:
    """Every error derives from MigratorError."""

    @pytest.mark.parametrize(
        "error_type",
        [
            ConfigurationError,
            EndpointError,
            EndpointTimeoutError,
            EndpointOtherError,
            MigrationAbortedError,
            ExhaustedRetriesError,
            PartialMigrationError,
        ],
    )
    def test_is_migrator_error(self, error_type):
        assert issubclass(error_type, MigratorError)

    def test_endpoint_errors(self):
        assert issubclass(EndpointTimeoutError, EndpointError)
        assert issubclass(EndpointOtherError, EndpointError)
        assert not issubclass(EndpointTimeoutError, TimeoutError)

    def test_exhausted_retries_is_an_abort(self):
        assert issubclass(ExhaustedRetriesError, MigrationAbortedError)


class TestConfigurationError:
    def test_message_and_field(self):
        error = ConfigurationError("start must be before end", field="start")
        assert str(error) == "start must be before end"
        assert error.field == "start"

    def test_field_optional(self):
        assert ConfigurationError("bad").field is None


class TestEndpointError:
    def test_attributes(self):
        error = EndpointOtherError("HTTP 503", endpoint="reader", url="http://src/read")
        assert error.endpoint == "reader"
        assert error.url == "http://src/read"
        assert str(error) == "HTTP 503"


class TestMigrationAbortedError:
    def test_default_message_includes_cause(self):
        cause = EndpointOtherError("connection refused")
        error = MigrationAbortedError("writer", "slab [0, 1000)", cause)

        assert error.endpoint == "writer"
        assert error.unit == "slab [0, 1000)"
        assert error.cause is cause
        assert str(error) == (
            "writer aborted migration on slab [0, 1000): EndpointOtherError: connection refused"
        )

    def test_without_cause(self):
        error = MigrationAbortedError("reader", "block [0, 60000)")
        assert str(error) == "reader aborted migration on block [0, 60000)"

    def test_explicit_message(self):
        error = MigrationAbortedError("reader", "block", message="custom")
        assert str(error) == "custom"

    def test_progress_unknown_until_filled_in(self):
        error = MigrationAbortedError("reader", "block")
        assert error.frontier_ms is None
        assert error.skipped_ranges == []
        assert error.to_dict()["skipped_ranges"] == []

    def test_to_dict_lists_skipped_ranges(self):
        error = ExhaustedRetriesError("writer", "slab", attempts=2)
        error.frontier_ms = 4000
        error.skipped_ranges = [SkippedRange(1000, 2000, "push", "HTTP 400")]

        data = error.to_dict()

        assert data["frontier_ms"] == 4000
        assert data["skipped_ranges"][0]["stage"] == "push"
        assert data["message"] == str(error)


class TestExhaustedRetriesError:
    def test_message(self):
        cause = EndpointTimeoutError("deadline exceeded")
        error = ExhaustedRetriesError("reader", "block [0, 1000)", attempts=4, cause=cause)

        assert error.attempts == 4
        assert error.endpoint == "reader"
        assert error.cause is cause
        assert "after 4 attempts" in str(error)
        assert "EndpointTimeoutError: deadline exceeded" in str(error)


class TestPartialMigrationError:
    def test_lists_skipped_ranges(self):
        skipped = [
            SkippedRange(1000, 2000, "pull", "timeout"),
            SkippedRange(5000, 6000, "push", "HTTP 400"),
        ]
        error = PartialMigrationError(_report(skipped))

        assert error.skipped_ranges == skipped
        assert "2 skipped range(s)" in str(error)
        assert "[1000, 2000) (pull)" in str(error)
        assert "[5000, 6000) (push)" in str(error)

    def test_to_dict(self):
        error = PartialMigrationError(_report([SkippedRange(0, 500, "pull", "bad")]))
        data = error.to_dict()

        assert data["message"] == str(error)
        assert data["skipped_ranges"] == [
            {"start_ms": 0, "end_ms": 500, "stage": "pull", "reason": "bad"}
        ]
