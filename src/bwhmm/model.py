"""HMM construction, validation and emission evaluation."""

from collections.abc import Sequence

import jax.numpy as jnp

from bwhmm.config import STOCHASTIC_ATOL, resolve_dtype
from bwhmm.errors import InvalidModelError
from bwhmm.types import Array, HMM


def _is_stochastic(arr: Array, atol: float) -> bool:
    return bool(
        jnp.all(arr >= 0.0)
        and jnp.allclose(arr.sum(axis=-1), 1.0, atol=atol)
    )


def validate_hmm(model: HMM, atol: float = STOCHASTIC_ATOL) -> HMM:
    """Check shapes and stochasticity of an HMM.

    Raises:
        InvalidModelError: if any invariant is violated.
    """
    if model.init.ndim != 1 or model.init.shape[0] == 0:
        raise InvalidModelError(
            f"init must be a non-empty vector, got shape {model.init.shape}"
        )
    K = model.init.shape[0]
    if model.trans.shape != (K, K):
        raise InvalidModelError(
            f"trans must have shape ({K}, {K}), got {model.trans.shape}"
        )
    if len(model.emissions) != K:
        raise InvalidModelError(
            f"Expected {K} emission distributions, got {len(model.emissions)}"
        )
    if not _is_stochastic(model.init, atol):
        raise InvalidModelError(f"init is not a probability vector: {model.init}")
    if not _is_stochastic(model.trans, atol):
        raise InvalidModelError(f"trans rows are not probability vectors: {model.trans}")
    return model


def make_hmm(
    init: Sequence[float] | Array,
    trans: Sequence[Sequence[float]] | Array,
    emissions: Sequence,
    dtype=None,
) -> HMM:
    """Create a validated HMM.

    Args:
        init: K initial state probabilities.
        trans: K x K transition probabilities, rows summing to 1.
        emissions: K emission distributions, one per state.
        dtype: floating dtype of init and trans; float64 by default (see
            config.resolve_dtype).

    Returns:
        HMM with JAX arrays.
    """
    dtype = resolve_dtype(dtype)
    model = HMM(
        init=jnp.asarray(init, dtype=dtype),
        trans=jnp.asarray(trans, dtype=dtype),
        emissions=tuple(emissions),
    )
    return validate_hmm(model)


def emission_matrix(model: HMM, sequence: Array) -> Array:
    """(T, K) emission probabilities of every observation under every state."""
    return jnp.stack(
        [e.probability(sequence) for e in model.emissions], axis=-1
    )


def _log_probability(emission, sequence: Array) -> Array:
    log_probability = getattr(emission, "log_probability", None)
    if log_probability is None:
        return jnp.log(emission.probability(sequence))
    return log_probability(sequence)


def log_emission_matrix(model: HMM, sequence: Array) -> Array:
    """(T, K) log emission probabilities.

    Emissions without a log_probability method fall back to log(probability).
    """
    return jnp.stack(
        [_log_probability(e, sequence) for e in model.emissions], axis=-1
    )
