"""Observation corpus validation and flattening."""

from collections.abc import Sequence

import jax.numpy as jnp

from bwhmm.errors import EmptyCorpusError, SequenceTooShortError
from bwhmm.types import Array


def as_corpus(sequences: Sequence) -> list[Array]:
    """Convert each sequence to a JAX array and check it can be learned from.

    Every sequence is checked before any statistics are computed, so a bad
    sequence never leaves partially accumulated state behind.

    Raises:
        EmptyCorpusError: if no sequences are given.
        SequenceTooShortError: if a sequence has fewer than 2 observations.
    """
    corpus = [jnp.asarray(seq) for seq in sequences]
    if not corpus:
        raise EmptyCorpusError("At least one observation sequence is required")

    for idx, seq in enumerate(corpus):
        if seq.ndim == 0 or seq.shape[0] < 2:
            raise SequenceTooShortError(sequence_index=idx)
    return corpus


def flatten(sequences: Sequence[Array]) -> Array:
    """Concatenate sequences along the time axis, preserving corpus order."""
    return jnp.concatenate([jnp.asarray(seq) for seq in sequences], axis=0)
