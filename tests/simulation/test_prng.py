"""Tests for the seedable Mulberry32 PRNG."""

import pytest

from adversim.simulation.prng import PRNG

pytestmark = pytest.mark.unit


class TestPRNG:
    def test_same_seed_same_sequence(self):
        a, b = PRNG(42), PRNG(42)
        assert [a.next() for _ in range(100)] == [b.next() for _ in range(100)]

    def test_different_seeds_diverge(self):
        a, b = PRNG(1), PRNG(2)
        assert [a.next() for _ in range(10)] != [b.next() for _ in range(10)]

    def test_values_in_unit_interval(self):
        prng = PRNG(7)
        for _ in range(5000):
            r = prng.next()
            assert 0.0 <= r < 1.0

    def test_roughly_uniform(self):
        prng = PRNG(123)
        draws = [prng.next() for _ in range(10_000)]
        assert sum(draws) / len(draws) == pytest.approx(0.5, abs=0.02)

    def test_random_is_alias_for_next(self):
        a, b = PRNG(9), PRNG(9)
        assert a.random() == b.next()

    def test_reseed_restarts_sequence(self):
        prng = PRNG(42)
        first = [prng.next() for _ in range(5)]
        prng.reseed(42)
        assert [prng.next() for _ in range(5)] == first

    def test_state_is_32_bit(self):
        prng = PRNG(-1)
        assert prng.state == 0xFFFFFFFF
        for _ in range(100):
            prng.next()
            assert 0 <= prng.state <= 0xFFFFFFFF

    def test_large_seed_wraps(self):
        a, b = PRNG(2**32 + 5), PRNG(5)
        assert a.next() == b.next()

    def test_choice_index_bounds(self):
        prng = PRNG(3)
        seen = {prng.choice_index(6) for _ in range(500)}
        assert seen == set(range(6))

    def test_choice_index_rejects_empty(self):
        with pytest.raises(ValueError):
            PRNG(1).choice_index(0)
