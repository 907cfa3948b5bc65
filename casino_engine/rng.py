"""Random sources used by the outcome rules.

Rules only ever call ``next()`` and ``next_int(lo, hi)``, so any source can be
swapped for a seeded or replayed one in tests.
"""
import math
import random
import secrets
from abc import ABC, abstractmethod
from typing import List, Sequence


class RandomSource(ABC):
    @abstractmethod
    def next(self) -> float:
        """Uniform float in [0, 1)."""
        ...

    def next_int(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi], both inclusive."""
        if hi < lo:
            raise ValueError(f"empty range [{lo}, {hi}]")
        return lo + min(int(math.floor(self.next() * (hi - lo + 1))), hi - lo)


class SystemRandomSource(RandomSource):
    def next(self) -> float:
        return secrets.randbits(53) / (1 << 53)

    def next_int(self, lo: int, hi: int) -> int:
        if hi < lo:
            raise ValueError(f"empty range [{lo}, {hi}]")
        return lo + secrets.randbelow(hi - lo + 1)


class SeededRandomSource(RandomSource):
    def __init__(self, seed: int = 42):
        self.seed = seed
        self._rng = random.Random(seed)

    def next(self) -> float:
        return self._rng.random()

    def next_int(self, lo: int, hi: int) -> int:
        if hi < lo:
            raise ValueError(f"empty range [{lo}, {hi}]")
        return self._rng.randint(lo, hi)


class FixedRandomSource(RandomSource):
    """Replays ``values`` in order, wrapping around at the end."""

    def __init__(self, values: Sequence[float]):
        if not values:
            raise ValueError("FixedRandomSource needs at least one value")
        for v in values:
            if not 0.0 <= v < 1.0:
                raise ValueError(f"value out of [0, 1): {v}")
        self.values = list(values)
        self.cursor = 0

    def next(self) -> float:
        v = self.values[self.cursor % len(self.values)]
        self.cursor += 1
        return v


def shuffle(items: list, rng: RandomSource) -> list:
    """Fisher-Yates in place; returns ``items`` for chaining."""
    for i in range(len(items) - 1, 0, -1):
        j = rng.next_int(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def sample(population: Sequence, k: int, rng: RandomSource) -> List:
    """k distinct elements, without replacement."""
    pool = list(population)
    if k > len(pool):
        raise ValueError(f"cannot sample {k} from {len(pool)}")
    result = []
    for _ in range(k):
        result.append(pool.pop(rng.next_int(0, len(pool) - 1)))
    return result
