"""
Engine Configuration
====================
Explicit values > RVS_SEED / RVS_BACKEND > defaults.
"""

import sys
import os
import pytest

# Setup path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from rvs.config import EngineConfig


def test_defaults():
    config = EngineConfig.from_env({})
    assert config == EngineConfig(seed=0, backend="philox")


def test_environment_overlay():
    config = EngineConfig.from_env({"RVS_SEED": "0x2A", "RVS_BACKEND": " PCG64 "})
    assert config.seed == 42
    assert config.backend == "pcg64"


def test_explicit_values_win():
    config = EngineConfig.from_env({"RVS_SEED": "9"}).override(seed=1, backend="pcg64")
    assert config == EngineConfig(seed=1, backend="pcg64")
    # None means "not given"
    assert EngineConfig(seed=4).override() == EngineConfig(seed=4)


def test_invalid_values():
    with pytest.raises(ValueError, match="RVS_SEED"):
        EngineConfig.from_env({"RVS_SEED": "lots"})
    with pytest.raises(ValueError, match="Unknown random backend"):
        EngineConfig(backend="mt19937")
    with pytest.raises(ValueError):
        EngineConfig(seed=-1)
    with pytest.raises(ValueError):
        EngineConfig(seed=2**64)
