"""
Rvs Sampling Primitives
=======================
Index-level sampling algorithms. They know nothing about expressions: each
draw returns a member index (and, for depleting pools, a done flag) and the
caller evaluates the chosen member.

- uniform_pick:   with replacement, O(1), never mutates
- WeightedTable:  with replacement, cumulative table built once, O(log n) draw
- Pool:           without replacement, lazy refill, swap-remove
- WeightedPool:   without replacement, per-member copy counts, lazy refill

Done contract for both pools: done is True on exactly the draw that empties
the pool. The refill for the next draw happens at the start of that draw,
never eagerly after signalling done.
"""

from __future__ import annotations
import logging
from typing import List, Sequence, Tuple
import numpy as np

from rvs.backend import RandomSource, cumulative_weights

logger = logging.getLogger(__name__)


def uniform_pick(source: RandomSource, n: int) -> int:
    """Uniform member index over n members."""
    return source.uniform_index(n)


def check_weights(weights: Sequence[int]) -> Tuple[int, ...]:
    weights = tuple(int(w) for w in weights)
    negative = [w for w in weights if w < 0]
    if negative:
        raise ValueError(f"Weights must be non-negative integers, got {negative}")
    return weights


class WeightedTable:
    """Weighted pick with replacement over a fixed weight vector."""

    __slots__ = ("weights", "cumulative")

    def __init__(self, weights: Sequence[int]):
        if len(weights) == 0:
            raise ValueError("Cannot build a weight table with no members")
        self.weights = check_weights(weights)
        self.cumulative = cumulative_weights(self.weights)

    @property
    def total(self) -> int:
        return int(self.cumulative[-1])

    def draw(self, source: RandomSource) -> int:
        # Raises WeightSumError when every weight is zero
        return source.cumulative_index(self.cumulative)


class Pool:
    """
    Draw-without-replacement over member indices 0..size-1.

    Invariants:
    - remaining holds each not-yet-drawn index exactly once.
    - Order within remaining carries no meaning (swap-remove).
    """

    __slots__ = ("size", "remaining")

    def __init__(self, size: int):
        if size <= 0:
            raise ValueError("Cannot build a pool with no members")
        self.size = size
        self.remaining: List[int] = list(range(size))

    def refill(self) -> None:
        self.remaining = list(range(self.size))

    def draw(self, source: RandomSource) -> Tuple[int, bool]:
        if not self.remaining:
            logger.debug("Pool exhausted, repopulating %d members", self.size)
            self.refill()

        pos = source.uniform_index(len(self.remaining))
        index = self.remaining[pos]
        # Swap-remove
        self.remaining[pos] = self.remaining[-1]
        self.remaining.pop()

        return index, not self.remaining

    def __len__(self) -> int:
        return len(self.remaining)


class WeightedPool:
    """
    Weighted draw-without-replacement.

    Conceptually a bag holding weights[i] copies of member i. Each draw
    removes one copy; members with no copies left are ineligible.

    Invariants:
    - total == sum(remaining) at all times.
    - total decreases by exactly 1 per draw until refill.
    """

    __slots__ = ("weights", "remaining", "total")

    def __init__(self, weights: Sequence[int]):
        weights = check_weights(weights)
        if sum(weights) == 0:
            raise ValueError("Cannot build a weighted pool with zero total count")
        self.weights = np.asarray(weights, dtype=np.int64)
        self.remaining = self.weights.copy()
        self.total = int(self.weights.sum())

    @property
    def capacity(self) -> int:
        return int(self.weights.sum())

    def refill(self) -> None:
        self.remaining = self.weights.copy()
        self.total = int(self.weights.sum())

    def draw(self, source: RandomSource) -> Tuple[int, bool]:
        if self.total == 0:
            logger.debug("Weighted pool exhausted, repopulating %d copies", self.capacity)
            self.refill()

        index = source.weighted_index(self.remaining)
        self.remaining[index] -= 1
        self.total -= 1

        return index, self.total == 0
