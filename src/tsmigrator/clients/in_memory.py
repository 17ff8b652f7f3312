"""
In-memory series store implementing both endpoint interfaces.

Holds series in dictionaries keyed by label set, deduplicating samples by
timestamp (a rewrite of the same timestamp replaces the value). Includes
fault-injection hooks so tests can simulate slow or failing endpoints.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

from tsmigrator.clients.interface import DestinationClient, SourceClient
from tsmigrator.exceptions import EndpointOtherError
from tsmigrator.models import (
    LabelMatcher,
    ReadRequest,
    ReadResponse,
    Sample,
    TimeSeries,
    WriteRequest,
)

LabelKey = tuple[tuple[str, str], ...]
ReadFault = Callable[[ReadRequest], BaseException | None]
WriteFault = Callable[[WriteRequest], BaseException | None]


class InMemorySeriesStore(SourceClient, DestinationClient):
    """
    In-memory time-series store.

    Suitable for:
    - Unit testing
    - Development environments
    - Examples

    Fault injection:
        ``read_delay``/``write_delay`` (seconds) slow every request down;
        ``fail_next_reads``/``fail_next_writes`` make the next N requests
        raise; ``read_fault``/``write_fault`` are called with each request and
        may return an exception to raise.

    Example:
        >>> store = InMemorySeriesStore(name="source")
        >>> store.seed([TimeSeries(labels={"__name__": "up"}, samples=[Sample(timestamp_ms=0, value=1)])])
        >>> response = await store.read(ReadRequest(start_ms=0, end_ms=1000))
        >>> len(response.series)
        1
    """

    def __init__(
        self,
        name: str = "memory",
        *,
        read_delay: float = 0.0,
        write_delay: float = 0.0,
        read_fault: ReadFault | None = None,
        write_fault: WriteFault | None = None,
    ) -> None:
        self.name = name
        self.read_delay = read_delay
        self.write_delay = write_delay
        self.read_fault = read_fault
        self.write_fault = write_fault

        self._series: dict[LabelKey, tuple[dict[str, str], dict[int, float]]] = {}
        self._pending_read_failures: list[BaseException] = []
        self._pending_write_failures: list[BaseException] = []
        self.read_requests: list[ReadRequest] = []
        self.write_requests: list[WriteRequest] = []
        self.samples_written = 0
        self._lock: asyncio.Lock = asyncio.Lock()

    def fail_next_reads(self, count: int, error: BaseException | None = None) -> None:
        """Make the next ``count`` reads raise ``error`` (EndpointOtherError by default)."""
        for _ in range(count):
            self._pending_read_failures.append(
                error or EndpointOtherError(f"{self.name}: injected read failure", endpoint=self.name)
            )

    def fail_next_writes(self, count: int, error: BaseException | None = None) -> None:
        """Make the next ``count`` writes raise ``error`` (EndpointOtherError by default)."""
        for _ in range(count):
            self._pending_write_failures.append(
                error or EndpointOtherError(f"{self.name}: injected write failure", endpoint=self.name)
            )

    def seed(self, series: Iterable[TimeSeries]) -> None:
        """Load series directly, bypassing faults and request accounting."""
        self._merge(series)

    def _merge(self, series: Iterable[TimeSeries]) -> int:
        count = 0
        for s in series:
            key = s.label_key
            if key not in self._series:
                self._series[key] = (dict(s.labels), {})
            points = self._series[key][1]
            for sample in s.samples:
                points[sample.timestamp_ms] = sample.value
                count += 1
        return count

    async def read(self, request: ReadRequest) -> ReadResponse:
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        self.read_requests.append(request)
        if self._pending_read_failures:
            raise self._pending_read_failures.pop(0)
        if self.read_fault is not None:
            error = self.read_fault(request)
            if error is not None:
                raise error

        async with self._lock:
            return ReadResponse(
                series=self._select(request.matchers, request.start_ms, request.end_ms)
            )

    def _select(
        self,
        matchers: list[LabelMatcher],
        start_ms: int,
        end_ms: int,
    ) -> list[TimeSeries]:
        result = []
        for labels, points in self._series.values():
            if not all(m.matches(labels) for m in matchers):
                continue
            samples = [
                Sample(timestamp_ms=ts, value=points[ts])
                for ts in sorted(points)
                if start_ms <= ts < end_ms
            ]
            if samples:
                result.append(TimeSeries(labels=dict(labels), samples=samples))
        return result

    async def write(self, request: WriteRequest) -> None:
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        if self._pending_write_failures:
            raise self._pending_write_failures.pop(0)
        if self.write_fault is not None:
            error = self.write_fault(request)
            if error is not None:
                raise error

        async with self._lock:
            self.write_requests.append(request)
            self.samples_written += self._merge(request.series)

    async def get_all_series(self) -> list[TimeSeries]:
        """Every stored series with all of its samples."""
        async with self._lock:
            return [
                TimeSeries(
                    labels=dict(labels),
                    samples=[Sample(timestamp_ms=ts, value=points[ts]) for ts in sorted(points)],
                )
                for labels, points in self._series.values()
            ]

    async def get_sample_count(self, matchers: list[LabelMatcher] | None = None) -> int:
        async with self._lock:
            return sum(
                len(points)
                for labels, points in self._series.values()
                if not matchers or all(m.matches(labels) for m in matchers)
            )

    async def clear(self) -> None:
        async with self._lock:
            self._series.clear()
            self.read_requests.clear()
            self.write_requests.clear()
            self.samples_written = 0


__all__ = ["InMemorySeriesStore"]
