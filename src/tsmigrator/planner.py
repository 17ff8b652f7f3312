"""
Time-range planning.

The Planner walks the migration interval ``[mint, maxt)`` in increasing
order and hands out Blocks, the unit of pull work. Block width adapts to
observed pull latency and payload size:

- a fast, small pull grows the next block by one lookahead increment
- a slow or oversized pull shrinks it by one increment
- anything in between keeps the width

Width is plain state folded over observations by ``next_block_width``;
the Planner only applies it.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from tsmigrator.config.plan import MigrationPlan


def _ms(value: timedelta) -> int:
    return int(value.total_seconds() * 1000)


@dataclass(frozen=True)
class Block:
    """
    A half-open time range ``[start_ms, end_ms)`` to pull.

    ``index`` starts at 0 and increases with time.
    """

    index: int
    start_ms: int
    end_ms: int

    @property
    def width_ms(self) -> int:
        return self.end_ms - self.start_ms

    def __str__(self) -> str:
        return f"block {self.index} [{self.start_ms}, {self.end_ms})"

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "start_ms": self.start_ms, "end_ms": self.end_ms}


@dataclass(frozen=True)
class PullObservation:
    """
    Latency and payload size of one pull.

    ``timed_out`` marks a pull that hit the reader timeout and was skipped;
    it always shrinks the next block.
    """

    duration: timedelta
    size_bytes: int
    timed_out: bool = False


@dataclass(frozen=True)
class BlockSizingStrategy:
    """
    Bounds and thresholds for adaptive block sizing.

    Attributes:
        increment_ms: Step by which the width grows or shrinks
        min_width_ms: Smallest width ever used (> 0)
        max_width_ms: Largest width ever used
        initial_width_ms: Width of the first block
        target_duration: Reference pull latency
        max_slab_bytes: Payload size above which the width shrinks
        grow_below: Grow when latency < grow_below * target_duration
        shrink_above: Shrink when latency >= shrink_above * target_duration
    """

    increment_ms: int
    min_width_ms: int
    max_width_ms: int
    initial_width_ms: int
    target_duration: timedelta
    max_slab_bytes: int
    grow_below: float = 0.5
    shrink_above: float = 0.8

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.increment_ms <= 0:
            raise ValueError(f"increment_ms must be positive, got {self.increment_ms}.")
        if self.min_width_ms <= 0:
            raise ValueError(f"min_width_ms must be positive, got {self.min_width_ms}.")
        if self.max_width_ms < self.min_width_ms:
            raise ValueError(
                f"max_width_ms ({self.max_width_ms}) must be >= "
                f"min_width_ms ({self.min_width_ms})."
            )
        if not self.min_width_ms <= self.initial_width_ms <= self.max_width_ms:
            raise ValueError(
                f"initial_width_ms ({self.initial_width_ms}) must be within "
                f"[{self.min_width_ms}, {self.max_width_ms}]."
            )
        if self.target_duration <= timedelta(0):
            raise ValueError(f"target_duration must be positive, got {self.target_duration}.")
        if not 0.0 < self.grow_below < self.shrink_above:
            raise ValueError(
                f"thresholds must satisfy 0 < grow_below ({self.grow_below}) < "
                f"shrink_above ({self.shrink_above})."
            )

    @classmethod
    def from_plan(
        cls,
        plan: MigrationPlan,
        read_timeout: timedelta | None = None,
        **overrides: Any,
    ) -> BlockSizingStrategy:
        """
        Derive the default strategy from a plan.

        The floor and starting width are the lookahead increment and the
        ceiling is the max read duration. The reference latency is the max
        read duration, or the reader timeout when that is shorter.
        """
        increment = max(1, _ms(plan.lookahead_increment))
        target = plan.max_read_duration
        if read_timeout is not None and read_timeout < target:
            target = read_timeout
        values: dict[str, Any] = {
            "increment_ms": increment,
            "min_width_ms": increment,
            "max_width_ms": max(increment, _ms(plan.max_read_duration)),
            "initial_width_ms": increment,
            "target_duration": target,
            "max_slab_bytes": plan.max_slab_bytes,
        }
        values.update(overrides)
        return cls(**values)


def next_block_width(
    width: int,
    observation: PullObservation,
    strategy: BlockSizingStrategy,
) -> int:
    """
    Compute the next block width from the previous one and a pull outcome.

    Example:
        >>> fast = PullObservation(duration=timedelta(seconds=1), size_bytes=10)
        >>> next_block_width(60_000, fast, strategy)
        120000
    """
    target = strategy.target_duration.total_seconds()
    latency = observation.duration.total_seconds()

    if (
        observation.timed_out
        or latency >= strategy.shrink_above * target
        or observation.size_bytes > strategy.max_slab_bytes
    ):
        width -= strategy.increment_ms
    elif latency < strategy.grow_below * target:
        width += strategy.increment_ms

    return max(strategy.min_width_ms, min(strategy.max_width_ms, width))


class Planner:
    """
    Emits Blocks covering ``[mint, maxt)`` in order.

    ``next_block`` never awaits, so concurrent reader tasks on one event loop
    claim blocks atomically.

    Example:
        >>> planner = Planner.from_plan(plan)
        >>> while (block := planner.next_block()) is not None:
        ...     response = await pull(block)
        ...     planner.observe(PullObservation(elapsed, response.payload_bytes))
    """

    def __init__(self, mint: int, maxt: int, strategy: BlockSizingStrategy) -> None:
        if mint > maxt:
            raise ValueError(f"mint ({mint}) must be <= maxt ({maxt}).")
        self._mint = mint
        self._maxt = maxt
        self._strategy = strategy
        self._cursor = mint
        self._width = strategy.initial_width_ms
        self._next_index = 0

    @classmethod
    def from_plan(
        cls,
        plan: MigrationPlan,
        strategy: BlockSizingStrategy | None = None,
        read_timeout: timedelta | None = None,
    ) -> Planner:
        strategy = strategy or BlockSizingStrategy.from_plan(plan, read_timeout)
        return cls(plan.mint, plan.maxt, strategy)

    @property
    def width_ms(self) -> int:
        """Width the next block will have (before clipping to maxt)."""
        return self._width

    @property
    def strategy(self) -> BlockSizingStrategy:
        return self._strategy

    @property
    def exhausted(self) -> bool:
        return self._cursor >= self._maxt

    @property
    def blocks_emitted(self) -> int:
        return self._next_index

    @property
    def cursor_ms(self) -> int:
        return self._cursor

    def next_block(self) -> Block | None:
        """Claim the next block, or None once the interval is covered."""
        if self.exhausted:
            return None
        end = min(self._cursor + self._width, self._maxt)
        block = Block(index=self._next_index, start_ms=self._cursor, end_ms=end)
        self._cursor = end
        self._next_index += 1
        return block

    def observe(self, observation: PullObservation) -> int:
        """Fold a pull outcome into the width and return the new width."""
        self._width = next_block_width(self._width, observation, self._strategy)
        return self._width

    def iter_blocks(self) -> Iterator[Block]:
        """Yield the remaining blocks at the current width, without feedback."""
        while (block := self.next_block()) is not None:
            yield block


__all__ = [
    "Block",
    "BlockSizingStrategy",
    "Planner",
    "PullObservation",
    "next_block_width",
]
