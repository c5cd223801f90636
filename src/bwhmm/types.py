"""Type aliases and named tuples for bwhmm."""

from typing import Any, NamedTuple

import jax.numpy as jnp

# Array type alias (JAX arrays)
Array = jnp.ndarray


class HMM(NamedTuple):
    """Full HMM parameter set.

    init: (K,) initial state probabilities
    trans: (K, K) transition probabilities, trans[i, j] = P(j | i)
    emissions: tuple of K emission distributions (see emissions.base.Emission)
    """
    init: Array
    trans: Array
    emissions: tuple[Any, ...]

    @property
    def n_states(self) -> int:
        return self.init.shape[0]


class ForwardBackwardResult(NamedTuple):
    """Results from forward-backward for one sequence.

    alpha: (T, K) forward table (log-valued when computation == "log")
    beta: (T, K) backward table (log-valued when computation == "log")
    probability: scalar sequence probability (may underflow for long sequences)
    log_probability: scalar sequence log-probability
    scales: (T,) per-timestep alpha normalisers ("scaled" only, ones otherwise)
    emission: (T, K) emission matrix the tables were built from (log-valued
        when computation == "log")
    computation: name of the strategy that produced the tables
    """
    alpha: Array
    beta: Array
    probability: Array
    log_probability: Array
    scales: Array
    emission: Array
    computation: str


class SequenceStatistics(NamedTuple):
    """Expected sufficient statistics for one sequence.

    xi: (T-1, K, K) expected transitions per timestep
    gamma: (T, K) state occupancy per timestep
    log_probability: scalar log-likelihood of the sequence
    """
    xi: Array
    gamma: Array
    log_probability: Array


class EMResult(NamedTuple):
    """Results from Baum-Welch EM.

    model: final HMM
    log_likelihoods: per-iteration corpus log-likelihood of the model entering
        that iteration
    converged: bool
    n_iter: int, number of re-estimations applied to the initial model
    """
    model: HMM
    log_likelihoods: Array
    converged: bool
    n_iter: int
