"""M-step for transition and initial-state parameters.

Closed-form from xi / gamma accumulated over the whole corpus.
"""

import logging
from collections.abc import Sequence

import jax.numpy as jnp

from bwhmm.types import Array, SequenceStatistics

log = logging.getLogger(__name__)


def accumulate_transitions(
    stats: Sequence[SequenceStatistics],
) -> tuple[Array, Array]:
    """Corpus-wide expected transition counts.

    numer[i, j] = sum_{n,t} xi[n, t, i, j]
    denom[i]    = sum_{n,t<T_n-1} gamma[n, t, i]

    Sequences are folded in corpus order, so the result does not depend on
    how the per-sequence statistics were scheduled.

    Args:
        stats: per-sequence statistics, one per corpus sequence.

    Returns:
        numer: (K, K), denom: (K,).
    """
    K = stats[0].gamma.shape[1]
    numer = jnp.zeros((K, K), dtype=stats[0].xi.dtype)
    denom = jnp.zeros(K, dtype=stats[0].gamma.dtype)
    for s in stats:
        numer = numer + s.xi.sum(axis=0)
        # Gamma for t=0..T-2 (not the last timestep)
        denom = denom + s.gamma[:-1].sum(axis=0)
    return numer, denom


def mstep_transitions(
    numer: Array,
    denom: Array,
    prev_trans: Array,
) -> Array:
    """Closed-form M-step for the transition matrix.

    A[i, j] = numer[i, j] / denom[i]

    A state with denom[i] == 0 was never occupied before the last timestep
    anywhere in the corpus; its row is copied unchanged from prev_trans.

    Args:
        numer: (K, K) accumulated xi.
        denom: (K,) accumulated gamma.
        prev_trans: (K, K) transition matrix of the previous model.

    Returns:
        (K, K) updated transition matrix.
    """
    unreachable = denom == 0.0
    if bool(jnp.any(unreachable)):
        log.debug(
            f"Keeping prior transition rows for unreachable states "
            f"{jnp.flatnonzero(unreachable).tolist()}"
        )
    safe_denom = jnp.where(unreachable, 1.0, denom)
    return jnp.where(unreachable[:, None], prev_trans, numer / safe_denom[:, None])


def mstep_init(stats: Sequence[SequenceStatistics]) -> Array:
    """Initial distribution: unweighted mean over sequences of gamma[0].

    Returns:
        (K,) updated initial state probabilities.
    """
    gamma_0 = jnp.stack([s.gamma[0] for s in stats])  # (N, K)
    return gamma_0.mean(axis=0)
