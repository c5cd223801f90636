"""Categorical emission model over integer symbols 0..M-1."""

from typing import NamedTuple

import jax.numpy as jnp

from bwhmm.config import resolve_dtype
from bwhmm.errors import InvalidObservationError
from bwhmm.types import Array


class DiscreteEmission(NamedTuple):
    """Categorical distribution.

    probs: (M,) probability of each symbol, summing to 1.
    """
    probs: Array

    @classmethod
    def from_probs(cls, probs, dtype=None) -> "DiscreteEmission":
        return cls(probs=jnp.asarray(probs, dtype=resolve_dtype(dtype)))

    @property
    def n_symbols(self) -> int:
        return self.probs.shape[0]

    def _symbols(self, observations: Array) -> Array:
        # JAX clamps out-of-range gathers and drops out-of-range scatters
        symbols = jnp.asarray(observations, dtype=jnp.int32)
        outside = (symbols < 0) | (symbols >= self.n_symbols)
        if bool(jnp.any(outside)):
            bad = sorted({int(s) for s in symbols[outside]})
            raise InvalidObservationError(
                f"Symbols must lie in [0, {self.n_symbols}), got {bad}"
            )
        return symbols

    def probability(self, observations: Array) -> Array:
        return self.probs[self._symbols(observations)]

    def log_probability(self, observations: Array) -> Array:
        return jnp.log(self.probability(observations))

    def fit(self, observations: Array, weights: Array) -> "DiscreteEmission":
        """Weighted symbol frequencies.

        Symbols never observed (or observed only with zero weight) get
        probability zero.
        """
        symbols = self._symbols(observations)
        probs = jnp.zeros_like(self.probs).at[symbols].add(weights)
        return DiscreteEmission(probs=probs)
