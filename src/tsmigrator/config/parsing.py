"""
Parsers for the loosely typed values accepted by MigrationParams.

Each parser accepts the forms an operator is likely to type (strings with
units, quoted timestamps, raw numbers) as well as already-typed Python
values, and raises ConfigurationError naming the offending input.
"""

from __future__ import annotations

import math
import re
from datetime import UTC, datetime, timedelta

from tsmigrator.exceptions import ConfigurationError

_BYTE_SIZE_RE = re.compile(r"^(?P<number>\d+(?:\.\d+)?) ?(?P<suffix>[A-Za-z]*)$")

_BYTE_MULTIPLIERS: dict[str, int] = {}
for _power, _names in enumerate(
    (
        ("", "b", "byte", "bytes"),
        ("k", "kb", "kilobyte", "kilobytes"),
        ("m", "mb", "megabyte", "megabytes"),
        ("g", "gb", "gigabyte", "gigabytes"),
        ("t", "tb", "terabyte", "terabytes"),
        ("p", "pb", "petabyte", "petabytes"),
        ("e", "eb", "exabyte", "exabytes"),
    )
):
    for _name in _names:
        _BYTE_MULTIPLIERS[_name] = 1024**_power

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_NUMERIC_RE = re.compile(r"^-?\d+(?:\.\d+)?$")


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        value = value[1:-1].strip()
    return value


def parse_byte_size(value: str | int) -> int:
    """
    Parse a human byte size into a number of bytes.

    Units are binary (``1KB == 1024``), case-insensitive, and may be
    separated from the number by one space.

    Example:
        >>> parse_byte_size("500MB")
        524288000
        >>> parse_byte_size("100 MB") == parse_byte_size("100MB")
        True

    Raises:
        ConfigurationError: If the string is malformed or the suffix unknown
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"parsing byte-size: invalid size {value!r}", field="max_read_size")
    if isinstance(value, int):
        return value

    text = _unquote(str(value))
    match = _BYTE_SIZE_RE.match(text)
    if match is None:
        raise ConfigurationError(f"parsing byte-size: invalid size {value!r}", field="max_read_size")

    suffix = match.group("suffix")
    multiplier = _BYTE_MULTIPLIERS.get(suffix.lower())
    if multiplier is None:
        raise ConfigurationError(
            f"parsing byte-size: Unrecognized size suffix {suffix}",
            field="max_read_size",
        )
    return int(float(match.group("number")) * multiplier)


def parse_duration(value: str | int | float | timedelta, field: str = "duration") -> timedelta:
    """
    Parse a duration.

    Accepts a timedelta, a number of seconds, or a duration string made of
    unit-suffixed parts such as ``"500ms"``, ``"7m"`` or ``"1h30m"``.

    Raises:
        ConfigurationError: If the value cannot be interpreted
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ConfigurationError(f"invalid duration for {field}: {value!r}", field=field)
    if isinstance(value, int | float):
        return timedelta(seconds=value)

    text = _unquote(str(value))
    sign = 1.0
    if text[:1] in ("-", "+"):
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if text == "0":
        return timedelta(0)

    seconds = 0.0
    position = 0
    for match in _DURATION_PART_RE.finditer(text):
        if match.start() != position:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if not text or position != len(text):
        raise ConfigurationError(f"invalid duration for {field}: {value!r}", field=field)
    return timedelta(seconds=sign * seconds)


def parse_instant(value: str | int | float | datetime, field: str = "start") -> int:
    """
    Parse an instant into a millisecond timestamp truncated to whole seconds.

    Strings may be wrapped in single or double quotes. A numeric string or
    number is interpreted as unix seconds; anything else must be RFC3339.
    Naive datetimes are taken as UTC.

    Example:
        >>> parse_instant("'1970-01-01T00:16:40+00:00'")
        1000000
        >>> parse_instant("1000")
        1000000

    Raises:
        ConfigurationError: If the value is not a recognisable instant
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"invalid {field} time: {value!r}", field=field)
    if isinstance(value, datetime):
        seconds = _datetime_seconds(value)
    elif isinstance(value, int | float):
        seconds = float(value)
    else:
        text = _unquote(str(value))
        if _NUMERIC_RE.match(text):
            seconds = float(text)
        else:
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError as e:
                raise ConfigurationError(
                    f"invalid {field} time {value!r}: expected RFC3339 or unix seconds",
                    field=field,
                ) from e
            seconds = _datetime_seconds(parsed)

    if not math.isfinite(seconds):
        raise ConfigurationError(f"invalid {field} time: {value!r}", field=field)
    return math.floor(seconds) * 1000


def _datetime_seconds(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.timestamp()


def format_timestamp(timestamp_ms: int, human_readable: bool = True) -> str:
    """Render a millisecond timestamp for logs."""
    if not human_readable:
        return str(timestamp_ms)
    dt = datetime.fromtimestamp(timestamp_ms / 1000, UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_bytes(size: int) -> str:
    """Render a byte count with a binary unit."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB", "TB", "PB"):
        if abs(value) < 1024 or unit == "PB":
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.2f}{unit}"
        value /= 1024
    return f"{size}B"


__all__ = [
    "parse_byte_size",
    "parse_duration",
    "parse_instant",
    "format_timestamp",
    "format_bytes",
]
