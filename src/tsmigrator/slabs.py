"""
Slabs: size-bounded batches of pulled samples.

A reader worker merges the payloads of consecutive blocks into one slab
until adding the next payload would exceed the byte limit. Each slab
records the block index range it covers, which is what the progress
tracker uses to advance the checkpoint in order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from tsmigrator.models import Sample, TimeSeries
from tsmigrator.planner import Block


@dataclass(frozen=True)
class Slab:
    """
    A merged batch of samples covering blocks ``first_index..last_index``.

    Attributes:
        first_index: Index of the first block covered
        last_index: Index of the last block covered (inclusive)
        start_ms: Start of the covered range
        end_ms: End of the covered range (exclusive)
        series: Merged series, one entry per label set
        size_bytes: Sum of the pulled payload sizes
    """

    first_index: int
    last_index: int
    start_ms: int
    end_ms: int
    series: list[TimeSeries] = field(default_factory=list)
    size_bytes: int = 0

    @property
    def source_block_index(self) -> int:
        return self.first_index

    @property
    def block_count(self) -> int:
        return self.last_index - self.first_index + 1

    @property
    def sample_count(self) -> int:
        return sum(len(s.samples) for s in self.series)

    @property
    def is_empty(self) -> bool:
        return self.sample_count == 0

    def __str__(self) -> str:
        return (
            f"slab {self.first_index}..{self.last_index} "
            f"[{self.start_ms}, {self.end_ms})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "first_index": self.first_index,
            "last_index": self.last_index,
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "series": len(self.series),
            "samples": self.sample_count,
            "size_bytes": self.size_bytes,
        }


def merge_series(batches: Iterable[Iterable[TimeSeries]]) -> list[TimeSeries]:
    """
    Merge batches of series, combining samples of identical label sets.

    Series keep first-seen order; samples are ordered by timestamp.
    """
    labels_by_key: dict[tuple[tuple[str, str], ...], dict[str, str]] = {}
    samples_by_key: dict[tuple[tuple[str, str], ...], list[Sample]] = {}
    for batch in batches:
        for series in batch:
            key = series.label_key
            if key not in labels_by_key:
                labels_by_key[key] = dict(series.labels)
                samples_by_key[key] = []
            samples_by_key[key].extend(series.samples)

    merged = []
    for key, labels in labels_by_key.items():
        samples = sorted(samples_by_key[key], key=lambda s: s.timestamp_ms)
        merged.append(TimeSeries(labels=labels, samples=samples))
    return merged


class SlabBuilder:
    """
    Accumulates consecutive block payloads into a slab.

    Example:
        >>> builder = SlabBuilder(max_bytes=1024)
        >>> if builder.would_overflow(size) or not builder.is_contiguous(block):
        ...     await emit(builder.build())
        >>> builder.add(block, response.series, size)
    """

    def __init__(self, max_bytes: int) -> None:
        if max_bytes <= 0:
            raise ValueError(f"max_bytes must be positive, got {max_bytes}.")
        self._max_bytes = max_bytes
        self._reset()

    def _reset(self) -> None:
        self._first: Block | None = None
        self._last: Block | None = None
        self._batches: list[list[TimeSeries]] = []
        self._size_bytes = 0

    @property
    def empty(self) -> bool:
        return self._first is None

    @property
    def size_bytes(self) -> int:
        return self._size_bytes

    @property
    def full(self) -> bool:
        return self._size_bytes >= self._max_bytes

    @property
    def last_index(self) -> int | None:
        return None if self._last is None else self._last.index

    def is_contiguous(self, block: Block) -> bool:
        """True if ``block`` directly follows the buffered range (or nothing is buffered)."""
        return self._last is None or block.index == self._last.index + 1

    def would_overflow(self, size_bytes: int) -> bool:
        """True if appending a payload of this size would exceed the limit."""
        return not self.empty and self._size_bytes + size_bytes > self._max_bytes

    def add(self, block: Block, series: Iterable[TimeSeries], size_bytes: int) -> None:
        if not self.is_contiguous(block):
            raise ValueError(
                f"{block} does not follow buffered block index {self.last_index}"
            )
        if self._first is None:
            self._first = block
        self._last = block
        self._batches.append(list(series))
        self._size_bytes += size_bytes

    def build(self) -> Slab:
        """Produce a slab from the buffered blocks and clear the buffer."""
        if self._first is None or self._last is None:
            raise ValueError("cannot build a slab from an empty builder")
        slab = Slab(
            first_index=self._first.index,
            last_index=self._last.index,
            start_ms=self._first.start_ms,
            end_ms=self._last.end_ms,
            series=merge_series(self._batches),
            size_bytes=self._size_bytes,
        )
        self._reset()
        return slab


__all__ = ["Slab", "SlabBuilder", "merge_series"]
