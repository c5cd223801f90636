"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import jax
import pytest

# Ensure src is on the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Models default to float64, which JAX only provides with x64 enabled
jax.config.update("jax_enable_x64", True)

from bwhmm.emissions.discrete import DiscreteEmission  # noqa: E402
from bwhmm.model import make_hmm  # noqa: E402


@pytest.fixture
def two_state_model():
    """2-state model emitting mostly 'a' in state 0 and mostly 'b' in state 1."""
    return make_hmm(
        init=[0.6, 0.4],
        trans=[[0.7, 0.3], [0.4, 0.6]],
        emissions=[
            DiscreteEmission.from_probs([0.9, 0.1]),
            DiscreteEmission.from_probs([0.2, 0.8]),
        ],
    )


@pytest.fixture
def aaba():
    """Sequence a, a, b, a with a = 0, b = 1."""
    return [0, 0, 1, 0]


@pytest.fixture
def alternating_model():
    """Deterministic model: always starts in 0, alternates 0 -> 1 -> 0, state k emits k."""
    return make_hmm(
        init=[1.0, 0.0],
        trans=[[0.0, 1.0], [1.0, 0.0]],
        emissions=[
            DiscreteEmission.from_probs([1.0, 0.0]),
            DiscreteEmission.from_probs([0.0, 1.0]),
        ],
    )
