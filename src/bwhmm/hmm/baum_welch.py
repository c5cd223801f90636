"""Baum-Welch EM algorithm for HMM parameter estimation.

Each iteration is a pure function of (model, corpus): the E-step computes
xi/gamma for every sequence, the M-step builds a new HMM from the
corpus-wide statistics. The input model is never modified.
"""

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

import jax.numpy as jnp

from bwhmm.config import LearnerConfig
from bwhmm.corpus import as_corpus
from bwhmm.errors import InvalidIterationCountError, ZeroProbabilityError
from bwhmm.hmm.estimators import sequence_statistics
from bwhmm.hmm.mstep_emissions import mstep_emissions
from bwhmm.hmm.mstep_transitions import (
    accumulate_transitions,
    mstep_init,
    mstep_transitions,
)
from bwhmm.types import Array, EMResult, HMM, SequenceStatistics

log = logging.getLogger(__name__)


def _estep(
    model: HMM,
    corpus: list[Array],
    config: LearnerConfig,
) -> list[SequenceStatistics]:
    """Per-sequence statistics, returned in corpus order."""

    def run(indexed):
        idx, seq = indexed
        try:
            return sequence_statistics(model, seq, config.computation)
        except ZeroProbabilityError as err:
            raise ZeroProbabilityError(sequence_index=idx) from err

    if config.n_workers > 1 and len(corpus) > 1:
        with ThreadPoolExecutor(max_workers=config.n_workers) as pool:
            # map() yields in submission order
            return list(pool.map(run, enumerate(corpus)))
    return [run(item) for item in enumerate(corpus)]


def _mstep(
    model: HMM,
    corpus: list[Array],
    stats: list[SequenceStatistics],
) -> HMM:
    numer, denom = accumulate_transitions(stats)
    return HMM(
        init=mstep_init(stats),
        trans=mstep_transitions(numer, denom, model.trans),
        emissions=mstep_emissions(corpus, stats, model.emissions),
    )


def _iterate(
    model: HMM,
    corpus: list[Array],
    config: LearnerConfig,
) -> tuple[HMM, float]:
    stats = _estep(model, corpus, config)
    total_ll = float(sum(float(s.log_probability) for s in stats))
    return _mstep(model, corpus, stats), total_ll


def iterate(
    model: HMM,
    sequences: Sequence,
    config: LearnerConfig | None = None,
) -> HMM:
    """One Baum-Welch iteration.

    Args:
        model: previously estimated HMM.
        sequences: observation sequences, each of length >= 2.
        config: learner configuration (computation strategy, workers).

    Returns:
        New, re-estimated HMM.

    Raises:
        EmptyCorpusError, SequenceTooShortError: invalid corpus (checked
            before any statistics are computed).
        ZeroProbabilityError: a sequence is impossible under model.
    """
    if config is None:
        config = LearnerConfig()
    corpus = as_corpus(sequences)
    new_model, _ = _iterate(model, corpus, config)
    return new_model


def baum_welch(
    model: HMM,
    sequences: Sequence,
    config: LearnerConfig | None = None,
) -> EMResult:
    """Run Baum-Welch EM.

    Runs config.n_iterations iterations. If config.tol is set, stops early
    once the relative change in corpus log-likelihood drops below it.

    Args:
        model: initial HMM. Baum-Welch only finds a local maximum, so this
            estimate matters.
        sequences: observation sequences, each of length >= 2.
        config: learner configuration.

    Returns:
        EMResult with the final model and per-iteration log-likelihoods.
    """
    if config is None:
        config = LearnerConfig()
    corpus = as_corpus(sequences)
    log_likelihoods = []

    for iteration in range(config.n_iterations):
        new_model, total_ll = _iterate(model, corpus, config)
        log_likelihoods.append(total_ll)
        log.info(f"EM iter {iteration}: log-likelihood = {total_ll:.4f}")

        if config.tol is not None and iteration > 0:
            prev_ll = log_likelihoods[-2]
            rel_change = abs(total_ll - prev_ll) / max(abs(prev_ll), 1.0)
            if rel_change < config.tol:
                log.info(
                    f"Converged at iteration {iteration} "
                    f"(rel_change={rel_change:.2e} < tol={config.tol:.2e})"
                )
                # model already produced total_ll; its update is discarded
                return EMResult(
                    model=model,
                    log_likelihoods=jnp.array(log_likelihoods),
                    converged=True,
                    n_iter=iteration,
                )

        model = new_model

    return EMResult(
        model=model,
        log_likelihoods=jnp.array(log_likelihoods),
        converged=False,
        n_iter=config.n_iterations,
    )


def learn(
    model: HMM,
    sequences: Sequence,
    n_iterations: int | None = None,
    config: LearnerConfig | None = None,
) -> HMM:
    """Apply a fixed number of Baum-Welch iterations.

    Args:
        model: initial HMM.
        sequences: observation sequences, each of length >= 2.
        n_iterations: number of iterations (>= 0); overrides
            config.n_iterations when given.
        config: learner configuration. Any tol is ignored here.

    Returns:
        HMM after exactly n_iterations iterations (model itself for 0).
    """
    if config is None:
        config = LearnerConfig()
    if n_iterations is None:
        n_iterations = config.n_iterations
    if n_iterations < 0:
        raise InvalidIterationCountError(
            f"Positive number of iterations expected, got {n_iterations}"
        )

    corpus = as_corpus(sequences)
    for iteration in range(n_iterations):
        model, total_ll = _iterate(model, corpus, config)
        log.info(f"EM iter {iteration}: log-likelihood = {total_ll:.4f}")
    return model
