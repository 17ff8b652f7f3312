"""
Wire-level models exchanged with source and destination endpoints.

These are the transport-neutral shapes of remote-read and remote-write
payloads. Clients translate them to and from whatever encoding their
endpoint speaks.
"""

from __future__ import annotations

import re
from enum import Enum
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Rough per-sample cost on the wire: int64 timestamp + float64 value.
SAMPLE_SIZE_BYTES = 16

METRIC_NAME_LABEL = "__name__"


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


class MatchType(Enum):
    """Label matcher operators."""

    EQUAL = "="
    """Label value equals the matcher value."""

    NOT_EQUAL = "!="
    """Label value differs from the matcher value."""

    REGEX = "=~"
    """Label value fully matches the regular expression."""

    NOT_REGEX = "!~"
    """Label value does not fully match the regular expression."""


class Sample(BaseModel):
    """A single (timestamp, value) pair."""

    model_config = ConfigDict(frozen=True)

    timestamp_ms: int
    value: float


class TimeSeries(BaseModel):
    """
    A labelled series of samples.

    Attributes:
        labels: Label set identifying the series (includes ``__name__``)
        samples: Samples in increasing timestamp order
    """

    model_config = ConfigDict(frozen=True)

    labels: dict[str, str] = Field(default_factory=dict)
    samples: list[Sample] = Field(default_factory=list)

    @property
    def label_key(self) -> tuple[tuple[str, str], ...]:
        """Hashable, order-independent identity of the label set."""
        return tuple(sorted(self.labels.items()))

    @property
    def metric_name(self) -> str | None:
        return self.labels.get(METRIC_NAME_LABEL)

    def size_bytes(self) -> int:
        """Estimate the encoded size of this series."""
        label_bytes = sum(len(k) + len(v) for k, v in self.labels.items())
        return label_bytes + SAMPLE_SIZE_BYTES * len(self.samples)


class LabelMatcher(BaseModel):
    """
    Selects series by a single label.

    Regex matchers are fully anchored, and a missing label matches as the
    empty string.

    Example:
        >>> LabelMatcher(name="__name__", value=".+", type=MatchType.REGEX)
    """

    model_config = ConfigDict(frozen=True)

    name: str
    value: str
    type: MatchType = MatchType.EQUAL

    @model_validator(mode="after")
    def _check_regex(self) -> LabelMatcher:
        if self.type in (MatchType.REGEX, MatchType.NOT_REGEX):
            try:
                re.compile(self.value)
            except re.error as e:
                raise ValueError(f"invalid regex in matcher {self.name!r}: {e}") from e
        return self

    def matches(self, labels: dict[str, str]) -> bool:
        actual = labels.get(self.name, "")
        if self.type is MatchType.EQUAL:
            return actual == self.value
        if self.type is MatchType.NOT_EQUAL:
            return actual != self.value
        matched = _compile(self.value).fullmatch(actual) is not None
        return matched if self.type is MatchType.REGEX else not matched

    def __str__(self) -> str:
        return f'{self.name}{self.type.value}"{self.value}"'


def all_series_matchers() -> list[LabelMatcher]:
    """Matchers selecting every series that has a metric name."""
    return [LabelMatcher(name=METRIC_NAME_LABEL, value=".+", type=MatchType.REGEX)]


class ReadRequest(BaseModel):
    """
    Pull request for a half-open time range ``[start_ms, end_ms)``.
    """

    model_config = ConfigDict(frozen=True)

    start_ms: int
    end_ms: int
    matchers: list[LabelMatcher] = Field(default_factory=all_series_matchers)

    @model_validator(mode="after")
    def _check_range(self) -> ReadRequest:
        if self.end_ms < self.start_ms:
            raise ValueError(
                f"end_ms ({self.end_ms}) must not be before start_ms ({self.start_ms})"
            )
        return self


class ReadResponse(BaseModel):
    """
    Result of a pull.

    Attributes:
        series: Series with samples inside the requested range
        size_bytes: Encoded payload size reported by the transport. When
            omitted the size is estimated from the series.
    """

    model_config = ConfigDict(frozen=True)

    series: list[TimeSeries] = Field(default_factory=list)
    size_bytes: int | None = Field(default=None, ge=0)

    @property
    def payload_bytes(self) -> int:
        if self.size_bytes is not None:
            return self.size_bytes
        return sum(s.size_bytes() for s in self.series)

    @property
    def sample_count(self) -> int:
        return sum(len(s.samples) for s in self.series)


class WriteRequest(BaseModel):
    """Push request carrying a batch of series."""

    model_config = ConfigDict(frozen=True)

    series: list[TimeSeries] = Field(default_factory=list)

    @property
    def sample_count(self) -> int:
        return sum(len(s.samples) for s in self.series)


__all__ = [
    "METRIC_NAME_LABEL",
    "SAMPLE_SIZE_BYTES",
    "MatchType",
    "Sample",
    "TimeSeries",
    "LabelMatcher",
    "ReadRequest",
    "ReadResponse",
    "WriteRequest",
    "all_series_matchers",
]
