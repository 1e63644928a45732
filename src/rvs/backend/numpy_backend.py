from __future__ import annotations
from abc import abstractmethod
import numpy as np

from .base import RandomSource, check_seed

_INT64_MAX = np.iinfo(np.int64).max


class NumpySource(RandomSource):
    """
    RandomSource over a numpy.random.Generator.

    numpy's Generator.integers uses Lemire's bounded rejection method, so
    closed-range draws carry no modulo bias.
    """

    def __init__(self, seed: int = 0):
        self._seed = 0
        self._gen = None
        self.seed(seed)

    @abstractmethod
    def _bit_generator(self, seed: int) -> np.random.BitGenerator:
        """Build the underlying bit generator for a seed."""

    @property
    def current_seed(self) -> int:
        return self._seed

    def seed(self, seed: int) -> None:
        self._seed = check_seed(seed)
        self._gen = np.random.Generator(self._bit_generator(self._seed))

    def get_state(self):
        return self._gen.bit_generator.state

    def set_state(self, state) -> None:
        self._gen.bit_generator.state = state

    def uniform_int(self, lo: int, hi: int) -> int:
        lo, hi = int(lo), int(hi)
        if lo > hi:
            raise ValueError(f"Empty range [{lo}, {hi}]")
        # int64 covers every 32-bit word; wider unsigned ranges need uint64
        dtype = np.uint64 if hi > _INT64_MAX and lo >= 0 else np.int64
        return int(self._gen.integers(lo, hi, endpoint=True, dtype=dtype))

    def uniform_float(self) -> float:
        return float(self._gen.random())


class PhiloxSource(NumpySource):
    """Counter-based Philox4x64 generator. The default backend."""

    @property
    def name(self) -> str:
        return "philox"

    def _bit_generator(self, seed: int) -> np.random.BitGenerator:
        return np.random.Philox(seed)


class Pcg64Source(NumpySource):
    """Permutation-based PCG64 generator."""

    @property
    def name(self) -> str:
        return "pcg64"

    def _bit_generator(self, seed: int) -> np.random.BitGenerator:
        return np.random.PCG64(seed)
