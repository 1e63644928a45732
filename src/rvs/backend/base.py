from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Sequence
import numpy as np

from rvs.errors import WeightSumError

SEED_MAX = 2**64 - 1


class RandomSource(ABC):
    """
    Abstract interface for pseudo-random sources (Philox, PCG64, ...).
    Every sampling primitive draws through a RandomSource.

    Determinism contract: identical backend + identical seed gives an
    identical output sequence on every platform.

    A source is exclusively owned by the model that seeded it.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Returns the backend name (e.g., 'philox', 'pcg64')."""
        ...

    @property
    @abstractmethod
    def current_seed(self) -> int:
        """The seed the stream was last restarted from."""
        ...

    @abstractmethod
    def seed(self, seed: int) -> None:
        """Restart the stream from a 64-bit unsigned seed."""

    @abstractmethod
    def get_state(self):
        """Snapshot of the stream position, for set_state()."""

    @abstractmethod
    def set_state(self, state) -> None:
        """Rewind or fast-forward to a get_state() snapshot."""

    @abstractmethod
    def uniform_int(self, lo: int, hi: int) -> int:
        """Uniform integer in the closed range [lo, hi], without modulo bias."""

    @abstractmethod
    def uniform_float(self) -> float:
        """Uniform float in [0, 1)."""

    # ---- derived draws ----

    def uniform_index(self, n: int) -> int:
        """Uniform index in [0, n). Used for pool draws."""
        if n <= 0:
            raise ValueError(f"Cannot draw an index from an empty set (n={n})")
        return self.uniform_int(0, n - 1)

    def weighted_index(self, weights: Sequence[int]) -> int:
        """
        Index chosen proportional to non-negative integer weights.

        Raises WeightSumError if the weights sum to zero.
        """
        return self.cumulative_index(cumulative_weights(weights))

    def cumulative_index(self, cumulative: np.ndarray) -> int:
        """
        Index chosen from a prebuilt cumulative weight table.

        Draws r uniformly in [0, total) and bisects, so the pick is exact
        integer arithmetic. Zero-weight members never own a slot.
        """
        total = int(cumulative[-1]) if len(cumulative) else 0
        if total <= 0:
            raise WeightSumError("no eligible member to draw: weights sum to 0")
        r = self.uniform_int(0, total - 1)
        return int(np.searchsorted(cumulative, r, side="right"))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def cumulative_weights(weights: Sequence[int]) -> np.ndarray:
    """Running sum of weights as an int64 table."""
    table = np.asarray(weights, dtype=np.int64)
    if table.size and table.min() < 0:
        raise ValueError(f"Weights must be non-negative: {list(weights)}")
    return np.cumsum(table, dtype=np.int64)


def check_seed(seed: int) -> int:
    seed = int(seed)
    if seed < 0 or seed > SEED_MAX:
        raise ValueError(f"Seed must be a 64-bit unsigned integer, got {seed}")
    return seed
