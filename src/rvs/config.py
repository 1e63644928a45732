"""Engine configuration for rvs.

Resolution order (highest priority first):
1. Programmatic (EngineConfig constructed in code, or CLI flags)
2. Environment variables (RVS_SEED, RVS_BACKEND)
3. Hardcoded defaults (seed 0, philox backend)
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Optional

from rvs.backend import BACKENDS, DEFAULT_BACKEND
from rvs.backend.base import check_seed

logger = logging.getLogger(__name__)

ENV_SEED = "RVS_SEED"
ENV_BACKEND = "RVS_BACKEND"


@dataclass(frozen=True)
class EngineConfig:
    """Seed and random backend for a model."""

    seed: int = 0
    backend: str = DEFAULT_BACKEND

    def __post_init__(self):
        check_seed(self.seed)
        if self.backend not in BACKENDS:
            raise ValueError(
                f"Unknown random backend '{self.backend}'. "
                f"Available: {', '.join(sorted(BACKENDS))}"
            )

    @classmethod
    def from_env(cls, environ=None) -> "EngineConfig":
        """Defaults overlaid with RVS_SEED / RVS_BACKEND."""
        environ = os.environ if environ is None else environ
        kwargs = {}

        raw_seed = environ.get(ENV_SEED)
        if raw_seed:
            try:
                kwargs["seed"] = int(raw_seed, 0)
            except ValueError:
                raise ValueError(f"{ENV_SEED} must be an integer, got {raw_seed!r}") from None

        raw_backend = environ.get(ENV_BACKEND)
        if raw_backend:
            kwargs["backend"] = raw_backend.strip().lower()

        config = cls(**kwargs)
        logger.debug("Engine config from environment: %s", config)
        return config

    def override(self, seed: Optional[int] = None, backend: Optional[str] = None) -> "EngineConfig":
        """Copy with explicitly-given values replaced."""
        changes = {}
        if seed is not None:
            changes["seed"] = seed
        if backend is not None:
            changes["backend"] = backend
        return replace(self, **changes) if changes else self
