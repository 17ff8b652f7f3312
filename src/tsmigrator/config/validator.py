"""
Validation of raw migration parameters.

``validate_params`` is pure: it performs no I/O and reports only the first
problem it finds, in a fixed order, so the same bad input always produces
the same error.
"""

from __future__ import annotations

import logging
import re
import time
from datetime import timedelta
from typing import TypeVar

from tsmigrator.config.auth import resolve_auth
from tsmigrator.config.params import EndpointParams, MigrationParams
from tsmigrator.config.parsing import parse_byte_size, parse_duration, parse_instant
from tsmigrator.config.plan import (
    DEFAULT_CONCURRENT_PULL,
    DEFAULT_CONCURRENT_PUSH,
    DEFAULT_LOOKAHEAD_INCREMENT,
    DEFAULT_MAX_READ_DURATION,
    DEFAULT_MAX_READ_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_ON_ERROR,
    DEFAULT_ON_TIMEOUT,
    DEFAULT_PROGRESS_METRIC_NAME,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    METRIC_NAME_PATTERN,
    EndpointRuntime,
    FailureAction,
    MigrationPlan,
    ValidatedConfig,
)
from tsmigrator.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_METRIC_NAME_RE = re.compile(METRIC_NAME_PATTERN)


def _blank(value: str | None) -> bool:
    return value is None or value.strip() == ""


def _pick(value: T | None, default: T) -> T:
    return default if value is None else value


def validate_metric_name(name: str) -> str:
    """
    Check that ``name`` is a legal metric name.

    Raises:
        ConfigurationError: Naming the rejected string
    """
    if not _METRIC_NAME_RE.match(name):
        raise ConfigurationError(
            "invalid metric-name regex match: prom metric must match "
            f"{METRIC_NAME_PATTERN}: received: {name}",
            field="progress_metric_name",
        )
    return name


def _check_urls(reader: EndpointParams, writer: EndpointParams) -> None:
    reader_missing = _blank(reader.url)
    writer_missing = _blank(writer.url)
    if reader_missing and writer_missing:
        raise ConfigurationError(
            "remote read storage url and remote write storage url must be specified. "
            "Without these, data migration cannot begin",
            field="url",
        )
    if reader_missing:
        raise ConfigurationError(
            "remote read storage url needs to be specified. "
            "Without read storage url, data migration cannot begin",
            field="reader.url",
        )
    if writer_missing:
        raise ConfigurationError(
            "remote write storage url needs to be specified. "
            "Without write storage url, data migration cannot begin",
            field="writer.url",
        )


def _parse_action(value: str | FailureAction | None, default: FailureAction, field: str) -> FailureAction:
    if value is None:
        return default
    if isinstance(value, FailureAction):
        return value
    try:
        return FailureAction(value.strip().lower())
    except ValueError as e:
        choices = ", ".join(a.value for a in FailureAction)
        raise ConfigurationError(
            f"invalid {field} action {value!r}: expected one of {choices}",
            field=field,
        ) from e


def _endpoint_timing(name: str, params: EndpointParams) -> tuple[timedelta, timedelta, int]:
    timeout = parse_duration(_pick(params.timeout, DEFAULT_TIMEOUT), field=f"{name}.timeout")
    if timeout <= timedelta(0):
        raise ConfigurationError(
            f"{name} timeout must be positive, got {timeout}", field=f"{name}.timeout"
        )
    delay = parse_duration(
        _pick(params.retry_delay, DEFAULT_RETRY_DELAY), field=f"{name}.retry_delay"
    )
    if delay < timedelta(0):
        raise ConfigurationError(
            f"{name} retry delay must be >= 0, got {delay}", field=f"{name}.retry_delay"
        )
    max_retries = _pick(params.max_retries, DEFAULT_MAX_RETRIES)
    if max_retries < 0:
        raise ConfigurationError(
            f"{name} max retries must be >= 0, got {max_retries}",
            field=f"{name}.max_retries",
        )
    return timeout, delay, max_retries


def validate_params(params: MigrationParams) -> ValidatedConfig:
    """
    Validate raw parameters and apply defaults.

    Checks run in this order and the first failure wins: start present,
    start/end parse, endpoint URLs, start <= end, slab size, progress
    metric name, durations and counts, failure actions, reader auth,
    writer auth.

    Args:
        params: Raw migration parameters

    Returns:
        ValidatedConfig with the plan and both endpoint runtimes

    Raises:
        ConfigurationError: On the first invalid parameter
    """
    if params.start is None or (isinstance(params.start, str) and params.start.strip() == ""):
        raise ConfigurationError(
            "mint should be provided for the migration to begin", field="start"
        )
    mint = parse_instant(params.start, field="start")
    if params.end is None or (isinstance(params.end, str) and params.end.strip() == ""):
        maxt = int(time.time()) * 1000
    else:
        maxt = parse_instant(params.end, field="end")

    _check_urls(params.reader, params.writer)

    if mint > maxt:
        raise ConfigurationError(
            "invalid input: minimum timestamp value (start) cannot be greater than "
            f"the maximum timestamp value (end): mint={mint}, maxt={maxt}",
            field="start",
        )

    max_slab_bytes = parse_byte_size(_pick(params.max_read_size, DEFAULT_MAX_READ_SIZE))
    if max_slab_bytes <= 0:
        raise ConfigurationError(
            f"parsing byte-size: size must be positive, got {params.max_read_size!r}",
            field="max_read_size",
        )

    metric_name = validate_metric_name(
        _pick(params.progress_metric_name, DEFAULT_PROGRESS_METRIC_NAME)
    )

    increment = parse_duration(
        _pick(params.lookahead_increment, DEFAULT_LOOKAHEAD_INCREMENT),
        field="lookahead_increment",
    )
    if increment <= timedelta(0):
        raise ConfigurationError(
            f"lookahead increment must be positive, got {increment}",
            field="lookahead_increment",
        )
    max_read_duration = parse_duration(
        _pick(params.max_read_duration, DEFAULT_MAX_READ_DURATION),
        field="max_read_duration",
    )
    if max_read_duration < increment:
        raise ConfigurationError(
            f"max read duration ({max_read_duration}) must be >= "
            f"lookahead increment ({increment})",
            field="max_read_duration",
        )
    concurrent_pull = _pick(params.concurrent_pull, DEFAULT_CONCURRENT_PULL)
    concurrent_push = _pick(params.concurrent_push, DEFAULT_CONCURRENT_PUSH)
    for field_name, value in (
        ("concurrent_pull", concurrent_pull),
        ("concurrent_push", concurrent_push),
    ):
        if value < 1:
            raise ConfigurationError(f"{field_name} must be >= 1, got {value}", field=field_name)
    reader_timing = _endpoint_timing("reader", params.reader)
    writer_timing = _endpoint_timing("writer", params.writer)

    reader_actions = (
        _parse_action(params.reader.on_timeout, DEFAULT_ON_TIMEOUT, "reader.on_timeout"),
        _parse_action(params.reader.on_error, DEFAULT_ON_ERROR, "reader.on_error"),
    )
    writer_actions = (
        _parse_action(params.writer.on_timeout, DEFAULT_ON_TIMEOUT, "writer.on_timeout"),
        _parse_action(params.writer.on_error, DEFAULT_ON_ERROR, "writer.on_error"),
    )

    reader_auth = resolve_auth("reader", params.reader)
    writer_auth = resolve_auth("writer", params.writer)

    progress_url = params.progress_metric_url
    if _blank(progress_url):
        progress_url = None

    try:
        plan = MigrationPlan(
            mint=mint,
            maxt=maxt,
            lookahead_increment=increment,
            max_read_duration=max_read_duration,
            max_slab_bytes=max_slab_bytes,
            concurrent_pull=concurrent_pull,
            concurrent_push=concurrent_push,
            progress_enabled=_pick(params.progress_enabled, True),
            progress_metric_name=metric_name,
            progress_metric_url=progress_url.strip() if progress_url else None,
            human_readable=_pick(params.human_readable, True),
            start=str(params.start),
            end="" if params.end is None else str(params.end),
        )
        reader = EndpointRuntime(
            name="reader",
            url=(params.reader.url or "").strip(),
            timeout=reader_timing[0],
            retry_delay=reader_timing[1],
            max_retries=reader_timing[2],
            on_timeout=reader_actions[0],
            on_error=reader_actions[1],
            auth=reader_auth,
        )
        writer = EndpointRuntime(
            name="writer",
            url=(params.writer.url or "").strip(),
            timeout=writer_timing[0],
            retry_delay=writer_timing[1],
            max_retries=writer_timing[2],
            on_timeout=writer_actions[0],
            on_error=writer_actions[1],
            auth=writer_auth,
        )
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    logger.debug(
        "Validated migration parameters",
        extra={"plan": plan.to_dict(), "reader_url": reader.url, "writer_url": writer.url},
    )
    return ValidatedConfig(plan=plan, reader=reader, writer=writer)


__all__ = ["validate_params", "validate_metric_name"]
