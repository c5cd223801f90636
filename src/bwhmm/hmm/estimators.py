"""Expected sufficient statistics (xi, gamma) for one sequence.

xi[t, i, j] = P(z_t=i, z_{t+1}=j | observations)
gamma[t, i] = P(z_t=i | observations)

Gamma is always obtained by marginalising xi, never from alpha * beta, so
it is the same whichever forward-backward strategy produced the tables.
"""

import jax
import jax.numpy as jnp

from bwhmm.config import DEFAULT_COMPUTATION
from bwhmm.errors import SequenceTooShortError, ZeroProbabilityError
from bwhmm.hmm.forward_backward import forward_backward
from bwhmm.types import Array, ForwardBackwardResult, HMM, SequenceStatistics


def _xi_numerators(alpha: Array, beta: Array, emission: Array, trans: Array) -> Array:
    """alpha[t, i] * A[i, j] * emission[t+1, j] * beta[t+1, j] for every t."""

    def compute_xi_t(inputs):
        alpha_t, beta_tp1, emit_tp1 = inputs
        return (
            alpha_t[:, None]                     # (K, 1)
            * trans                              # (K, K)
            * (emit_tp1 * beta_tp1)[None, :]     # (1, K)
        )

    return jax.vmap(compute_xi_t)((alpha[:-1], beta[1:], emission[1:]))


@jax.jit
def _xi_direct(alpha, beta, emission, trans, probability):
    return _xi_numerators(alpha, beta, emission, trans) / probability


@jax.jit
def _xi_scaled(alpha, beta, emission, trans, scales):
    # alpha[t] * beta[t+1] is missing only the normaliser of step t+1
    return _xi_numerators(alpha, beta, emission, trans) / scales[1:, None, None]


@jax.jit
def _xi_log(log_alpha, log_beta, log_emission, log_trans, log_evidence):
    log_xi = (
        log_alpha[:-1, :, None]                          # (T-1, K, 1)
        + log_trans[None, :, :]                          # (1, K, K)
        + (log_emission[1:] + log_beta[1:])[:, None, :]  # (T-1, 1, K)
        - log_evidence
    )
    return jnp.exp(log_xi)


def estimate_xi(
    sequence: Array,
    result: ForwardBackwardResult,
    model: HMM,
) -> Array:
    """Expected transition counts per timestep.

    Args:
        sequence: (T, ...) observations, T >= 2.
        result: forward-backward tables for this sequence and model; its
            emission matrix is reused rather than re-evaluated.
        model: HMM the tables were computed with.

    Returns:
        xi: (T-1, K, K) in linear space regardless of result.computation.

    Raises:
        SequenceTooShortError: if T < 2.
        ZeroProbabilityError: if the sequence probability is zero or not
            representable under result.computation.
    """
    seq = jnp.asarray(sequence)
    if seq.ndim == 0 or seq.shape[0] < 2:
        raise SequenceTooShortError()
    if not bool(jnp.isfinite(result.log_probability)):
        raise ZeroProbabilityError()

    if result.computation == "log":
        return _xi_log(
            result.alpha, result.beta,
            result.emission, jnp.log(model.trans),
            result.log_probability,
        )

    if result.computation == "scaled":
        return _xi_scaled(
            result.alpha, result.beta, result.emission, model.trans, result.scales
        )
    return _xi_direct(
        result.alpha, result.beta, result.emission, model.trans, result.probability
    )


@jax.jit
def _gamma_from_xi(xi: Array) -> Array:
    # t < T-1: sum over destination; t = T-1: sum over source of the last transition
    return jnp.concatenate([xi.sum(axis=2), xi[-1].sum(axis=0)[None, :]], axis=0)


def estimate_gamma(xi: Array) -> Array:
    """State occupancy from xi.

    Args:
        xi: (T-1, K, K) expected transitions, T >= 2.

    Returns:
        gamma: (T, K).
    """
    xi = jnp.asarray(xi)
    if xi.ndim != 3 or xi.shape[0] == 0:
        raise SequenceTooShortError("xi must cover at least one transition")
    return _gamma_from_xi(xi)


def sequence_statistics(
    model: HMM,
    sequence: Array,
    computation: str = DEFAULT_COMPUTATION,
) -> SequenceStatistics:
    """Forward-backward followed by xi/gamma estimation for one sequence."""
    result = forward_backward(model, sequence, computation)
    xi = estimate_xi(sequence, result, model)
    return SequenceStatistics(
        xi=xi,
        gamma=estimate_gamma(xi),
        log_probability=result.log_probability,
    )
