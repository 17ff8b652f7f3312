"""
Unit tests for wire-level models.

Tests for:
- TimeSeries identity and size estimates
- LabelMatcher semantics
- ReadRequest / ReadResponse / WriteRequest
"""

import pytest
from pydantic import ValidationError

from tests.fixtures import make_series
from tsmigrator.models import (
    SAMPLE_SIZE_BYTES,
    LabelMatcher,
    MatchType,
    ReadRequest,
    ReadResponse,
    Sample,
    TimeSeries,
    WriteRequest,
    all_series_matchers,
)


class TestTimeSeries:
    """Tests for TimeSeries."""

    def test_label_key_is_order_independent(self):
        a = TimeSeries(labels={"__name__": "up", "job": "x"})
        b = TimeSeries(labels={"job": "x", "__name__": "up"})
        assert a.label_key == b.label_key

    def test_metric_name(self):
        assert make_series("up", [0]).metric_name == "up"
        assert TimeSeries(labels={"job": "x"}).metric_name is None

    def test_size_bytes(self):
        series = TimeSeries(
            labels={"__name__": "up"},
            samples=[Sample(timestamp_ms=0, value=1.0), Sample(timestamp_ms=1, value=2.0)],
        )
        assert series.size_bytes() == len("__name__") + len("up") + 2 * SAMPLE_SIZE_BYTES

    def test_frozen(self):
        series = make_series("up", [0])
        with pytest.raises(ValidationError):
            series.labels = {}


class TestLabelMatcher:
    """Tests for LabelMatcher."""

    def test_equal(self):
        matcher = LabelMatcher(name="job", value="api")
        assert matcher.matches({"job": "api"})
        assert not matcher.matches({"job": "web"})

    def test_not_equal(self):
        matcher = LabelMatcher(name="job", value="api", type=MatchType.NOT_EQUAL)
        assert matcher.matches({"job": "web"})
        assert matcher.matches({})

    def test_regex_is_fully_anchored(self):
        matcher = LabelMatcher(name="job", value="ap.", type=MatchType.REGEX)
        assert matcher.matches({"job": "api"})
        assert not matcher.matches({"job": "apis"})

    def test_not_regex(self):
        matcher = LabelMatcher(name="job", value="a.*", type=MatchType.NOT_REGEX)
        assert matcher.matches({"job": "web"})
        assert not matcher.matches({"job": "api"})

    def test_missing_label_matches_empty_string(self):
        assert LabelMatcher(name="env", value="").matches({"job": "api"})
        assert not LabelMatcher(name="env", value=".+", type=MatchType.REGEX).matches({})

    def test_invalid_regex_rejected(self):
        with pytest.raises(ValidationError):
            LabelMatcher(name="job", value="(", type=MatchType.REGEX)

    def test_str(self):
        assert str(LabelMatcher(name="__name__", value=".+", type=MatchType.REGEX)) == '__name__=~".+"'

    def test_all_series_matchers(self):
        (matcher,) = all_series_matchers()
        assert matcher.matches({"__name__": "anything"})
        assert not matcher.matches({"job": "nameless"})


class TestRequests:
    """Tests for request and response models."""

    def test_read_request_defaults_to_all_series(self):
        request = ReadRequest(start_ms=0, end_ms=1000)
        assert request.matchers == all_series_matchers()

    def test_read_request_empty_range_allowed(self):
        assert ReadRequest(start_ms=5, end_ms=5).end_ms == 5

    def test_read_request_inverted_range(self):
        with pytest.raises(ValidationError):
            ReadRequest(start_ms=10, end_ms=5)

    def test_response_estimates_size(self):
        series = [make_series("up", [0, 1, 2])]
        response = ReadResponse(series=series)
        assert response.payload_bytes == series[0].size_bytes()
        assert response.sample_count == 3

    def test_response_reported_size_wins(self):
        response = ReadResponse(series=[make_series("up", [0])], size_bytes=12345)
        assert response.payload_bytes == 12345

    def test_response_rejects_negative_size(self):
        with pytest.raises(ValidationError):
            ReadResponse(size_bytes=-1)

    def test_write_request_sample_count(self):
        request = WriteRequest(series=[make_series("a", [0, 1]), make_series("b", [0])])
        assert request.sample_count == 3
