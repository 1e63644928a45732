from .base import RandomSource, cumulative_weights
from .numpy_backend import NumpySource, PhiloxSource, Pcg64Source

BACKENDS = {
    "philox": PhiloxSource,
    "pcg64": Pcg64Source,
}

DEFAULT_BACKEND = "philox"


def create_source(name: str = DEFAULT_BACKEND, seed: int = 0) -> RandomSource:
    """Instantiate a seeded random source by backend name."""
    try:
        cls = BACKENDS[name]
    except KeyError:
        raise ValueError(
            f"Unknown random backend '{name}'. Available: {', '.join(sorted(BACKENDS))}"
        ) from None
    return cls(seed)
