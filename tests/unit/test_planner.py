"""
Unit tests for time-range planning.

Tests for:
- Block
- BlockSizingStrategy validation and derivation from a plan
- next_block_width adaptation
- Planner coverage of [mint, maxt)
"""

from datetime import timedelta

import pytest

from tests.fixtures import make_plan
from tsmigrator.planner import Block, BlockSizingStrategy, Planner, PullObservation, next_block_width


def _strategy(**overrides) -> BlockSizingStrategy:
    values = {
        "increment_ms": 1000,
        "min_width_ms": 1000,
        "max_width_ms": 4000,
        "initial_width_ms": 1000,
        "target_duration": timedelta(seconds=10),
        "max_slab_bytes": 1000,
    }
    values.update(overrides)
    return BlockSizingStrategy(**values)


def _obs(seconds: float, size: int = 10) -> PullObservation:
    return PullObservation(duration=timedelta(seconds=seconds), size_bytes=size)


class TestBlock:
    """Tests for Block."""

    def test_width_and_str(self):
        block = Block(index=2, start_ms=1000, end_ms=3000)
        assert block.width_ms == 2000
        assert str(block) == "block 2 [1000, 3000)"
        assert block.to_dict() == {"index": 2, "start_ms": 1000, "end_ms": 3000}


class TestBlockSizingStrategy:
    """Tests for BlockSizingStrategy."""

    def test_from_plan(self):
        strategy = BlockSizingStrategy.from_plan(make_plan())
        assert strategy.increment_ms == 1000
        assert strategy.min_width_ms == 1000
        assert strategy.initial_width_ms == 1000
        assert strategy.max_width_ms == 4000
        assert strategy.target_duration == timedelta(seconds=4)
        assert strategy.max_slab_bytes == 1024 * 1024

    def test_latency_target_capped_by_read_timeout(self):
        strategy = BlockSizingStrategy.from_plan(make_plan(), timedelta(seconds=2))
        assert strategy.target_duration == timedelta(seconds=2)
        assert strategy.max_width_ms == 4000

    def test_longer_read_timeout_keeps_max_read_duration(self):
        strategy = BlockSizingStrategy.from_plan(make_plan(), read_timeout=timedelta(minutes=5))
        assert strategy.target_duration == timedelta(seconds=4)

    def test_from_plan_overrides(self):
        strategy = BlockSizingStrategy.from_plan(make_plan(), initial_width_ms=3000)
        assert strategy.initial_width_ms == 3000

    @pytest.mark.parametrize(
        "overrides",
        [
            {"increment_ms": 0},
            {"min_width_ms": 0},
            {"max_width_ms": 500},
            {"initial_width_ms": 5000},
            {"target_duration": timedelta(0)},
            {"grow_below": 0.9, "shrink_above": 0.8},
        ],
    )
    def test_invalid_strategies(self, overrides):
        with pytest.raises(ValueError):
            _strategy(**overrides)


class TestNextBlockWidth:
    """Tests for next_block_width."""

    def test_fast_pull_grows(self):
        assert next_block_width(2000, _obs(1), _strategy()) == 3000

    def test_slow_pull_shrinks(self):
        assert next_block_width(3000, _obs(9), _strategy()) == 2000

    def test_shrink_threshold_is_inclusive(self):
        assert next_block_width(3000, _obs(8), _strategy()) == 2000

    def test_middle_band_holds(self):
        assert next_block_width(3000, _obs(6), _strategy()) == 3000
        assert next_block_width(3000, _obs(5), _strategy()) == 3000

    def test_oversized_payload_shrinks_even_when_fast(self):
        assert next_block_width(3000, _obs(0.1, size=1001), _strategy()) == 2000

    def test_clamped_to_bounds(self):
        strategy = _strategy()
        assert next_block_width(4000, _obs(0.1), strategy) == 4000
        assert next_block_width(1000, _obs(20), strategy) == 1000

    def test_timed_out_pull_shrinks(self):
        timed_out = PullObservation(duration=timedelta(seconds=0.1), size_bytes=0, timed_out=True)
        assert next_block_width(3000, timed_out, _strategy()) == 2000
        assert next_block_width(1000, timed_out, _strategy()) == 1000


class TestPlanner:
    """Tests for Planner."""

    def test_blocks_cover_interval_without_gaps(self):
        planner = Planner(0, 10_000, _strategy(initial_width_ms=3000))
        blocks = list(planner.iter_blocks())

        assert [(b.start_ms, b.end_ms) for b in blocks] == [
            (0, 3000),
            (3000, 6000),
            (6000, 9000),
            (9000, 10_000),
        ]
        assert [b.index for b in blocks] == [0, 1, 2, 3]
        assert planner.exhausted
        assert planner.next_block() is None

    def test_last_block_is_clipped(self):
        planner = Planner(0, 2500, _strategy())
        assert [b.end_ms for b in planner.iter_blocks()] == [1000, 2000, 2500]

    def test_empty_interval_yields_nothing(self):
        planner = Planner(5000, 5000, _strategy())
        assert planner.exhausted
        assert planner.next_block() is None
        assert planner.blocks_emitted == 0

    def test_inverted_interval_rejected(self):
        with pytest.raises(ValueError):
            Planner(10, 5, _strategy())

    def test_observe_changes_next_width(self):
        planner = Planner(0, 100_000, _strategy())
        first = planner.next_block()
        assert planner.observe(_obs(1)) == 2000
        second = planner.next_block()

        assert first.width_ms == 1000
        assert second.start_ms == first.end_ms
        assert second.width_ms == 2000
        assert planner.cursor_ms == 3000
        assert planner.blocks_emitted == 2

    def test_from_plan(self):
        plan = make_plan(mint=1000, maxt=4000)
        planner = Planner.from_plan(plan)
        assert planner.width_ms == 1000
        assert [b.start_ms for b in planner.iter_blocks()] == [1000, 2000, 3000]

    def test_from_plan_with_read_timeout(self):
        planner = Planner.from_plan(make_plan(), read_timeout=timedelta(seconds=1))
        assert planner.strategy.target_duration == timedelta(seconds=1)

    def test_from_plan_with_strategy(self):
        planner = Planner.from_plan(make_plan(), strategy=_strategy(initial_width_ms=4000))
        assert planner.strategy.initial_width_ms == 4000
        assert planner.next_block().end_ms == 4000
