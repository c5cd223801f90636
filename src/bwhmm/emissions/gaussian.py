"""Univariate Gaussian emission model."""

from typing import NamedTuple

import jax.numpy as jnp

from bwhmm.config import VARIANCE_FLOOR, resolve_dtype
from bwhmm.types import Array


def gaussian_log_prob(
    obs: Array,
    mean: Array,
    variance: Array,
) -> Array:
    """Compute log densities under a Gaussian.

    Args:
        obs: (T,) observations.
        mean: scalar mean.
        variance: scalar variance.

    Returns:
        (T,) log densities.
    """
    return -0.5 * (
        jnp.log(2.0 * jnp.pi * variance) + (obs - mean) ** 2 / variance
    )


class GaussianEmission(NamedTuple):
    """Normal distribution N(mean, variance)."""
    mean: Array
    variance: Array

    @classmethod
    def from_moments(cls, mean: float, variance: float, dtype=None) -> "GaussianEmission":
        dtype = resolve_dtype(dtype)
        return cls(mean=jnp.asarray(mean, dtype=dtype),
                   variance=jnp.asarray(variance, dtype=dtype))

    def probability(self, observations: Array) -> Array:
        return jnp.exp(self.log_probability(observations))

    def log_probability(self, observations: Array) -> Array:
        obs = jnp.asarray(observations, dtype=self.mean.dtype)
        return gaussian_log_prob(obs, self.mean, self.variance)

    def fit(self, observations: Array, weights: Array) -> "GaussianEmission":
        """Weighted maximum-likelihood mean and variance.

        Variance is floored at VARIANCE_FLOOR so a state fitted to a single
        repeated value keeps a finite density.
        """
        obs = jnp.asarray(observations, dtype=self.mean.dtype)
        mean = jnp.sum(weights * obs)
        variance = jnp.sum(weights * (obs - mean) ** 2)
        return GaussianEmission(
            mean=mean,
            variance=jnp.maximum(variance, VARIANCE_FLOOR),
        )
