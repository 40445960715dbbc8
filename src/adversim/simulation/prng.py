"""Seedable Mulberry32 pseudo-random generator.

Every stochastic choice in a run (detection draws, civilian destinations)
goes through one PRNG instance, so a fixed seed replays a run exactly.
State is a 32-bit unsigned integer; there is no global entropy.
"""

from __future__ import annotations

_MASK32 = 0xFFFFFFFF
_INCREMENT = 0x6D2B79F5
_TWO_POW_32 = 4294967296.0


def _imul(a: int, b: int) -> int:
    """32-bit multiply keeping the low 32 bits (unsigned)."""
    return (a * b) & _MASK32


class PRNG:
    """Mulberry32 generator producing floats in [0, 1)."""

    def __init__(self, seed: int) -> None:
        self._state = int(seed) & _MASK32

    @property
    def state(self) -> int:
        return self._state

    def reseed(self, value: int) -> None:
        """Re-initialize internal state as if freshly constructed."""
        self._state = int(value) & _MASK32

    def next(self) -> float:
        self._state = (self._state + _INCREMENT) & _MASK32
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / _TWO_POW_32

    def random(self) -> float:
        """Alias for next(), mirrors random.random()."""
        return self.next()

    def choice_index(self, n: int) -> int:
        """Uniform index in [0, n).  Consumes one draw."""
        if n <= 0:
            raise ValueError("choice_index requires n > 0")
        return int(self.next() * n)
