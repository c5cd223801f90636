"""Emission distribution capability.

Baum-Welch only needs two things from a per-state emission distribution:
the density of a batch of observations and a weighted re-fit. Any object
providing these methods can be used as an HMM emission; no base class is
required.

A log_probability(observations) method is optional. The log-space
strategy uses it when present and takes log(probability) otherwise.
"""

from typing import Protocol, runtime_checkable

from bwhmm.types import Array


@runtime_checkable
class Emission(Protocol):
    """Per-state observation distribution.

    Observations are stacked on the leading axis, so a sequence of T
    observations yields (T,) probabilities.
    """

    def probability(self, observations: Array) -> Array:
        """(T,) densities of each observation."""
        ...

    def fit(self, observations: Array, weights: Array) -> "Emission":
        """Return a new distribution fitted to weighted observations.

        weights: (T,) non-negative, aligned with observations, summing to 1.
        """
        ...
