"""Tests for xi / gamma estimation."""

import jax.numpy as jnp
import numpy as np
import pytest

from bwhmm.config import COMPUTATION_TYPES
from bwhmm.emissions.discrete import DiscreteEmission
from bwhmm.emissions.gaussian import GaussianEmission
from bwhmm.errors import SequenceTooShortError, ZeroProbabilityError
from bwhmm.hmm.estimators import (
    estimate_gamma,
    estimate_xi,
    sequence_statistics,
)
from bwhmm.hmm.forward_backward import forward_backward
from bwhmm.model import make_hmm


def _make_gaussian_hmm():
    return make_hmm(
        init=[0.5, 0.3, 0.2],
        trans=[[0.8, 0.1, 0.1], [0.2, 0.7, 0.1], [0.1, 0.2, 0.7]],
        emissions=[
            GaussianEmission.from_moments(0.0, 1.0),
            GaussianEmission.from_moments(3.0, 0.5),
            GaussianEmission.from_moments(-2.0, 2.0),
        ],
    )


class TestEstimateXi:
    def test_output_shape(self, two_state_model, aaba):
        result = forward_backward(two_state_model, aaba)
        xi = estimate_xi(aaba, result, two_state_model)
        assert xi.shape == (3, 2, 2)

    @pytest.mark.parametrize("computation", COMPUTATION_TYPES)
    def test_uses_emission_matrix_from_result(self, two_state_model, aaba, computation):
        """Xi depends on the emissions only through the forward-backward result."""
        result = forward_backward(two_state_model, aaba, computation)
        swapped = two_state_model._replace(
            emissions=two_state_model.emissions[::-1]
        )
        np.testing.assert_allclose(
            np.asarray(estimate_xi(aaba, result, swapped)),
            np.asarray(estimate_xi(aaba, result, two_state_model)),
        )

    def test_each_timestep_sums_to_one(self):
        model = _make_gaussian_hmm()
        obs = np.random.default_rng(0).normal(0.0, 2.0, size=30)
        result = forward_backward(model, obs, "direct")
        xi = estimate_xi(obs, result, model)
        np.testing.assert_allclose(xi.sum(axis=(1, 2)), 1.0, atol=1e-9)

    def test_strategy_independent(self):
        """Xi is the same whichever strategy built alpha/beta."""
        model = _make_gaussian_hmm()
        obs = np.random.default_rng(1).normal(0.0, 2.0, size=40)

        xis = [
            estimate_xi(obs, forward_backward(model, obs, c), model)
            for c in COMPUTATION_TYPES
        ]
        for xi in xis[1:]:
            np.testing.assert_allclose(np.asarray(xi), np.asarray(xis[0]), atol=1e-10)

    def test_matches_alpha_beta_posterior(self, two_state_model, aaba):
        """Sum of xi over j equals alpha * beta / P for t < T-1."""
        result = forward_backward(two_state_model, aaba, "direct")
        xi = estimate_xi(aaba, result, two_state_model)

        posterior = result.alpha * result.beta / result.probability
        np.testing.assert_allclose(xi.sum(axis=2), posterior[:-1], atol=1e-12)

    @pytest.mark.parametrize("computation", COMPUTATION_TYPES)
    def test_length_one_sequence_rejected(self, two_state_model, computation):
        result = forward_backward(two_state_model, [0], computation)
        with pytest.raises(SequenceTooShortError, match="too short"):
            estimate_xi([0], result, two_state_model)

    @pytest.mark.parametrize("computation", COMPUTATION_TYPES)
    def test_zero_probability_rejected(self, computation):
        model = make_hmm(
            init=[0.5, 0.5],
            trans=[[0.9, 0.1], [0.1, 0.9]],
            emissions=[
                DiscreteEmission.from_probs([1.0, 0.0]),
                DiscreteEmission.from_probs([1.0, 0.0]),
            ],
        )
        result = forward_backward(model, [0, 1], computation)
        with pytest.raises(ZeroProbabilityError):
            estimate_xi([0, 1], result, model)


class TestEstimateGamma:
    def test_output_shape(self):
        xi = jnp.ones((5, 3, 3)) / 9.0
        assert estimate_gamma(xi).shape == (6, 3)

    def test_marginalises_xi(self):
        """Rows t < T-1 sum xi over destination, the last row over source."""
        rng = np.random.default_rng(3)
        xi = rng.dirichlet(np.ones(4), size=3).reshape(3, 2, 2)
        gamma = np.asarray(estimate_gamma(jnp.asarray(xi)))

        np.testing.assert_allclose(gamma[:3], xi.sum(axis=2))
        np.testing.assert_allclose(gamma[3], xi[2].sum(axis=0))

    @pytest.mark.parametrize("computation", COMPUTATION_TYPES)
    def test_gamma_is_distribution(self, computation):
        model = _make_gaussian_hmm()
        obs = np.random.default_rng(4).normal(1.0, 2.0, size=50)
        stats = sequence_statistics(model, obs, computation)

        assert stats.gamma.shape == (50, 3)
        assert jnp.all(stats.gamma >= 0)
        np.testing.assert_allclose(stats.gamma.sum(axis=1), 1.0, atol=1e-9)

    def test_last_step_matches_forward_posterior(self, two_state_model, aaba):
        """The synthesised final step equals alpha[T-1] / P."""
        result = forward_backward(two_state_model, aaba, "direct")
        gamma = estimate_gamma(estimate_xi(aaba, result, two_state_model))
        np.testing.assert_allclose(
            gamma[-1], result.alpha[-1] / result.probability, atol=1e-12
        )

    def test_empty_xi_rejected(self):
        with pytest.raises(SequenceTooShortError):
            estimate_gamma(jnp.zeros((0, 2, 2)))


class TestSequenceStatistics:
    def test_hand_computed_gamma(self, two_state_model, aaba):
        """Occupancy of state 0 for a, a, b, a (worked out by hand)."""
        stats = sequence_statistics(two_state_model, aaba)
        np.testing.assert_allclose(
            stats.gamma[:, 0], [0.8990, 0.8477, 0.2667, 0.7935], atol=1e-3
        )
        assert float(stats.log_probability) == pytest.approx(np.log(0.0711675), rel=1e-9)
