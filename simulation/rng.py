"""
Seeded pseudo-random source shared by generation, training and simulation.

Park-Miller / Lehmer multiplicative congruential generator with derived
distributions. Every derived operation consumes a fixed number of ``next()``
draws, so two instances created from the same seed and driven with the same
call sequence produce bit-identical output.
"""

import math
from typing import List, Sequence, TypeVar

T = TypeVar('T')

MODULUS = 2147483647  # 2^31 - 1
MULTIPLIER = 16807


class SeededRandom:
    """Lehmer RNG owned by exactly one generation / training call."""

    def __init__(self, seed: int = 42):
        seed = int(seed)
        if seed < 0:
            raise ValueError(f"seed must be non-negative, got {seed}")
        self._state = seed % MODULUS or 1

    def next(self) -> float:
        """Uniform float in [0, 1)."""
        self._state = (self._state * MULTIPLIER) % MODULUS
        return (self._state - 1) / (MODULUS - 1)

    def randint(self, low: int, high: int) -> int:
        """Uniform integer in [low, high] inclusive."""
        return math.floor(self.next() * (high - low + 1)) + low

    def uniform(self, low: float, high: float) -> float:
        return self.next() * (high - low) + low

    def choice(self, items: Sequence[T]) -> T:
        return items[math.floor(self.next() * len(items))]

    def normal(self) -> float:
        """Standard normal via Box-Muller (two draws)."""
        u1 = max(1e-12, self.next())
        u2 = self.next()
        return math.sqrt(-2 * math.log(u1)) * math.cos(2 * math.pi * u2)

    def pareto(self, alpha: float, xm: float = 1.0) -> float:
        """Inverse-CDF Pareto sample."""
        return xm / math.pow(1 - self.next(), 1 / alpha)

    def lognormal(self, mu: float, sigma: float) -> float:
        return math.exp(mu + sigma * self.normal())

    def bernoulli(self, p: float) -> bool:
        return self.next() < p

    def shuffle(self, items: List[T]) -> List[T]:
        """In-place Fisher-Yates shuffle; returns the same list."""
        for i in range(len(items) - 1, 0, -1):
            j = math.floor(self.next() * (i + 1))
            items[i], items[j] = items[j], items[i]
        return items
