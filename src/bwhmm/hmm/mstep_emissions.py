"""M-step for emission distributions.

Each state's distribution is re-fitted to every observation in the corpus,
weighted by that state's occupancy at the observation's timestep.
"""

import logging
from collections.abc import Sequence

import jax.numpy as jnp

from bwhmm.corpus import flatten
from bwhmm.types import Array, SequenceStatistics

log = logging.getLogger(__name__)


def emission_weights(stats: Sequence[SequenceStatistics]) -> Array:
    """Gamma of every sequence stacked along time, in corpus order.

    Returns:
        (sum_n T_n, K) unnormalised weights aligned with flatten(sequences).
    """
    return jnp.concatenate([s.gamma for s in stats], axis=0)


def mstep_emissions(
    sequences: Sequence[Array],
    stats: Sequence[SequenceStatistics],
    prev_emissions: Sequence,
) -> tuple:
    """Re-fit every state's emission distribution.

    For state k the weights gamma[:, k] are normalised to sum to one over the
    flattened corpus before calling fit. A state with zero total weight keeps
    its previous distribution.

    Args:
        sequences: corpus, in the same order as stats.
        stats: per-sequence statistics.
        prev_emissions: K distributions of the previous model.

    Returns:
        Tuple of K fitted distributions.
    """
    observations = flatten(sequences)
    weights = emission_weights(stats)

    new_emissions = []
    for k, emission in enumerate(prev_emissions):
        w = weights[:, k]
        total = w.sum()
        if float(total) == 0.0:
            log.debug(f"State {k} has no occupancy; keeping previous emission")
            new_emissions.append(emission)
            continue
        new_emissions.append(emission.fit(observations, w / total))

    return tuple(new_emissions)
