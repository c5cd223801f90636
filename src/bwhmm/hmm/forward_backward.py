"""Forward-backward algorithm using jax.lax.scan.

Three interchangeable strategies, selected by name:

- direct: plain linear-space recurrences. Alpha decays geometrically with
  sequence length, so this underflows on long sequences.
- scaled: alpha is renormalised to sum to one at every timestep and the
  normaliser is kept in `scales`; beta is divided by the normaliser of the
  following timestep. The sequence probability is prod(scales).
- log: all computation in log-space.

The estimators downstream produce identical xi/gamma whichever strategy
built the tables.
"""

from collections.abc import Sequence

import jax
import jax.numpy as jnp
from jax import lax

from bwhmm.config import DEFAULT_COMPUTATION, check_computation
from bwhmm.model import emission_matrix, log_emission_matrix
from bwhmm.types import Array, ForwardBackwardResult, HMM


def _forward_direct(emission: Array, init: Array, trans: Array) -> Array:
    """Unscaled forward pass.

    Args:
        emission: (T, K) emission probabilities.
        init: (K,) initial state probabilities.
        trans: (K, K) transition matrix.

    Returns:
        alpha: (T, K) forward probabilities.
    """
    # Initialize: alpha_0 = init * emission_0
    alpha_0 = init * emission[0]

    def scan_fn(alpha_prev, emit):
        # sum_i alpha_prev[i] * A[i, j] for each j
        alpha_t = (alpha_prev @ trans) * emit
        return alpha_t, alpha_t

    _, alphas_rest = lax.scan(scan_fn, alpha_0, emission[1:])
    return jnp.concatenate([alpha_0[None, :], alphas_rest], axis=0)


def _backward_direct(emission: Array, trans: Array) -> Array:
    """Unscaled backward pass, returns beta: (T, K)."""
    K = emission.shape[1]
    beta_T = jnp.ones(K, dtype=emission.dtype)

    def scan_fn(beta_next, emit_next):
        # sum_j A[i, j] * emission[t+1, j] * beta[t+1, j] for each i
        beta_t = trans @ (emit_next * beta_next)
        return beta_t, beta_t

    # Scan over t = T-2, ..., 0 (reversed)
    _, betas_rest = lax.scan(scan_fn, beta_T, emission[1:][::-1])
    return jnp.concatenate([betas_rest[::-1], beta_T[None, :]], axis=0)


@jax.jit
def _forward_backward_direct(
    emission: Array,
    init: Array,
    trans: Array,
) -> tuple[Array, Array, Array]:
    alpha = _forward_direct(emission, init, trans)
    beta = _backward_direct(emission, trans)
    probability = alpha[-1].sum()
    return alpha, beta, probability


def _normalise(vec: Array) -> tuple[Array, Array]:
    total = vec.sum()
    # A zero row stays zero; the zero normaliser flags the sequence as impossible.
    return vec / jnp.where(total > 0, total, 1.0), total


def _forward_scaled(emission: Array, init: Array, trans: Array) -> tuple[Array, Array]:
    """Scaled forward pass.

    Returns:
        alpha: (T, K) forward probabilities, each row summing to one.
        scales: (T,) sum of the unnormalised alpha at each timestep.
    """
    alpha_0, scale_0 = _normalise(init * emission[0])

    def scan_fn(alpha_prev, emit):
        alpha_t, scale_t = _normalise((alpha_prev @ trans) * emit)
        return alpha_t, (alpha_t, scale_t)

    _, (alphas_rest, scales_rest) = lax.scan(scan_fn, alpha_0, emission[1:])
    alpha = jnp.concatenate([alpha_0[None, :], alphas_rest], axis=0)
    scales = jnp.concatenate([scale_0[None], scales_rest], axis=0)
    return alpha, scales


def _backward_scaled(emission: Array, trans: Array, scales: Array) -> Array:
    """Scaled backward pass: beta[t] is divided by scales[t+1]."""
    K = emission.shape[1]
    beta_T = jnp.ones(K, dtype=emission.dtype)

    def scan_fn(beta_next, inputs):
        emit_next, scale_next = inputs
        beta_t = trans @ (emit_next * beta_next)
        beta_t = beta_t / jnp.where(scale_next > 0, scale_next, 1.0)
        return beta_t, beta_t

    _, betas_rest = lax.scan(
        scan_fn, beta_T, (emission[1:][::-1], scales[1:][::-1])
    )
    return jnp.concatenate([betas_rest[::-1], beta_T[None, :]], axis=0)


@jax.jit
def _forward_backward_scaled(
    emission: Array,
    init: Array,
    trans: Array,
) -> tuple[Array, Array, Array]:
    alpha, scales = _forward_scaled(emission, init, trans)
    beta = _backward_scaled(emission, trans, scales)
    return alpha, beta, scales


def _forward_log(log_emission: Array, log_init: Array, log_trans: Array) -> tuple[Array, Array]:
    """Log-space forward pass.

    Returns:
        log_alpha: (T, K) forward log-probabilities.
        log_evidence: scalar total log-likelihood.
    """
    log_alpha_0 = log_init + log_emission[0]

    def scan_fn(log_alpha_prev, emit):
        log_alpha_t = (
            jax.nn.logsumexp(log_alpha_prev[:, None] + log_trans, axis=0)
            + emit
        )
        return log_alpha_t, log_alpha_t

    _, log_alphas_rest = lax.scan(scan_fn, log_alpha_0, log_emission[1:])
    log_alpha = jnp.concatenate([log_alpha_0[None, :], log_alphas_rest], axis=0)
    log_evidence = jax.nn.logsumexp(log_alpha[-1])
    return log_alpha, log_evidence


def _backward_log(log_emission: Array, log_trans: Array) -> Array:
    """Log-space backward pass, returns log_beta: (T, K)."""
    K = log_emission.shape[1]
    # Initialize: beta_T = 0 (log(1) = 0)
    log_beta_T = jnp.zeros(K, dtype=log_emission.dtype)

    def scan_fn(log_beta_next, emit_next):
        log_beta_t = jax.nn.logsumexp(
            log_trans + emit_next[None, :] + log_beta_next[None, :],
            axis=1,
        )
        return log_beta_t, log_beta_t

    _, log_betas_rest = lax.scan(scan_fn, log_beta_T, log_emission[1:][::-1])
    return jnp.concatenate([log_betas_rest[::-1], log_beta_T[None, :]], axis=0)


@jax.jit
def _forward_backward_log(
    log_emission: Array,
    log_init: Array,
    log_trans: Array,
) -> tuple[Array, Array, Array]:
    log_alpha, log_evidence = _forward_log(log_emission, log_init, log_trans)
    log_beta = _backward_log(log_emission, log_trans)
    return log_alpha, log_beta, log_evidence


def forward_backward(
    model: HMM,
    sequence: Array,
    computation: str = DEFAULT_COMPUTATION,
) -> ForwardBackwardResult:
    """Forward and backward tables for one observation sequence.

    A sequence with zero probability is not an error here: the result
    carries log_probability == -inf and the estimators reject it.

    Args:
        model: HMM parameters.
        sequence: (T, ...) observations.
        computation: "direct", "scaled" or "log".

    Returns:
        ForwardBackwardResult; alpha/beta are log-valued for "log".
    """
    check_computation(computation)
    seq = jnp.asarray(sequence)
    T = seq.shape[0]

    if computation == "log":
        log_emission = log_emission_matrix(model, seq)
        log_alpha, log_beta, log_evidence = _forward_backward_log(
            log_emission,
            jnp.log(model.init),
            jnp.log(model.trans),
        )
        return ForwardBackwardResult(
            alpha=log_alpha,
            beta=log_beta,
            probability=jnp.exp(log_evidence),
            log_probability=log_evidence,
            scales=jnp.ones(T, dtype=log_alpha.dtype),
            emission=log_emission,
            computation=computation,
        )

    emission = emission_matrix(model, seq)

    if computation == "scaled":
        alpha, beta, scales = _forward_backward_scaled(
            emission, model.init, model.trans
        )
        log_evidence = jnp.sum(jnp.log(scales))
        return ForwardBackwardResult(
            alpha=alpha,
            beta=beta,
            probability=jnp.exp(log_evidence),
            log_probability=log_evidence,
            scales=scales,
            emission=emission,
            computation=computation,
        )

    alpha, beta, probability = _forward_backward_direct(
        emission, model.init, model.trans
    )
    return ForwardBackwardResult(
        alpha=alpha,
        beta=beta,
        probability=probability,
        log_probability=jnp.log(probability),
        scales=jnp.ones(T, dtype=alpha.dtype),
        emission=emission,
        computation=computation,
    )


def backward_log_probability(
    model: HMM,
    result: ForwardBackwardResult,
) -> Array:
    """Sequence log-probability recovered from the backward table.

    sum_i init[i] * emission[0, i] * beta[0, i] must match
    result.log_probability (which comes from the forward table).
    """
    if result.computation == "log":
        return jax.nn.logsumexp(
            jnp.log(model.init) + result.emission[0] + result.beta[0]
        )

    log_p = jnp.log(jnp.sum(model.init * result.emission[0] * result.beta[0]))
    if result.computation == "scaled":
        # beta[0] was divided by scales[1:]
        log_p = log_p + jnp.sum(jnp.log(result.scales[1:]))
    return log_p


def log_likelihood(
    model: HMM,
    sequences: Sequence[Array],
    computation: str = DEFAULT_COMPUTATION,
) -> float:
    """Total log-likelihood of a corpus (sum over sequences)."""
    return float(sum(
        forward_backward(model, seq, computation).log_probability
        for seq in sequences
    ))
