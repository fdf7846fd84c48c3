"""
Unit tests for the genehmm inference engine.

Tests cover:
- Scaled forward pass and likelihood recovery
- Scaled backward pass
- Viterbi decoding, tie-breaking and zero-probability handling
- Dense and sparse models giving identical results
"""
import pytest
import numpy as np

from genehmm.core.errors import DegenerateComputationWarning, ShapeError
from genehmm.core.model import Model
from genehmm.inference.solve import (
    backward,
    forward,
    likelihood,
    log_likelihood,
    viterbi,
    viterbi_with_score,
)


def _raw_forward_backward(obs, start, trans, emit):
    """Unscaled forward and backward probabilities, for short sequences only."""
    T, n = len(obs), len(start)
    alpha = np.zeros((T, n))
    beta = np.ones((T, n))
    alpha[0] = start * emit[:, obs[0]]
    for t in range(1, T):
        alpha[t] = (alpha[t - 1] @ trans) * emit[:, obs[t]]
    for t in range(T - 2, -1, -1):
        beta[t] = trans @ (emit[:, obs[t + 1]] * beta[t + 1])
    return alpha, beta


class TestForward:
    """Test the scaled forward pass."""

    @pytest.mark.parametrize('obs, expected', [
        ([0, 0], 0.1456),
        ([1, 0], 0.104),
    ])
    def test_hand_computed_likelihood(self, canonical_model, obs, expected):
        _, coefs = forward(obs, canonical_model)
        p = likelihood(coefs)
        np.testing.assert_allclose(p, expected, rtol=1e-12)
        assert canonical_model.tolerance.approx_eq(p, expected)

    def test_rows_are_normalized(self, sticky_model, island_observations):
        alpha, coefs = forward(island_observations, sticky_model)

        assert alpha.dims() == (len(island_observations), 2)
        assert coefs.shape == (len(island_observations),)
        np.testing.assert_allclose(alpha.values.sum(axis=1), 1.0, rtol=1e-12)
        assert alpha.row_stochastic()

    def test_matches_unscaled_forward(self, three_state_model):
        obs = [0, 3, 2, 2, 1, 0]
        alpha, coefs = forward(obs, three_state_model)
        raw, _ = _raw_forward_backward(
            obs,
            three_state_model.start_array(),
            three_state_model.transition_array(),
            three_state_model.emitter.probs,
        )

        np.testing.assert_allclose(alpha.values, raw / raw.sum(axis=1, keepdims=True), rtol=1e-12)
        np.testing.assert_allclose(likelihood(coefs), raw[-1].sum(), rtol=1e-12)

    def test_log_likelihood(self, canonical_model):
        _, coefs = forward([0, 0], canonical_model)
        np.testing.assert_allclose(log_likelihood(coefs), np.log(0.1456), rtol=1e-12)

    def test_long_sequence_does_not_underflow(self, sticky_model):
        np.random.seed(42)
        obs = np.random.randint(0, 4, size=5000)
        alpha, coefs = forward(obs, sticky_model)

        assert np.all(np.isfinite(alpha.values))
        assert np.all(np.isfinite(coefs))
        assert likelihood(coefs) == 0.0  # the raw probability is below float range
        assert np.isfinite(log_likelihood(coefs))
        assert log_likelihood(coefs) < 0

    def test_single_observation(self, canonical_model):
        alpha, coefs = forward([2], canonical_model)
        np.testing.assert_allclose(alpha.values, [[0.3 / 0.34, 0.04 / 0.34]])
        np.testing.assert_allclose(likelihood(coefs), 0.34)

    def test_empty_observations(self, canonical_model):
        with pytest.raises(ValueError, match="at least one observation"):
            forward([], canonical_model)

    def test_unknown_observation_propagates(self, canonical_model):
        from genehmm.core.errors import UnknownObservationError

        with pytest.raises(UnknownObservationError):
            forward([0, 7], canonical_model)

    def test_impossible_observation_warns(self):
        model = Model.from_arrays([0.5, 0.5], [[0.5, 0.5], [0.5, 0.5]],
                                  [[1.0, 0.0], [1.0, 0.0]])
        with pytest.warns(DegenerateComputationWarning, match="t=1"):
            _, coefs = forward([0, 1], model)
        assert np.isinf(coefs[1])
        assert likelihood(coefs) == 0.0


class TestBackward:
    """Test the scaled backward pass."""

    def test_last_row_is_last_coefficient(self, canonical_model):
        obs = [0, 1, 0, 2]
        _, coefs = forward(obs, canonical_model)
        beta = backward(obs, canonical_model, coefs)

        assert beta.dims() == (4, 2)
        np.testing.assert_allclose(beta[3], [coefs[3], coefs[3]])

    def test_matches_unscaled_backward(self, three_state_model):
        obs = [1, 1, 3, 0, 2]
        _, coefs = forward(obs, three_state_model)
        beta = backward(obs, three_state_model, coefs)
        _, raw = _raw_forward_backward(
            obs,
            three_state_model.start_array(),
            three_state_model.transition_array(),
            three_state_model.emitter.probs,
        )

        # beta_hat[t] = beta[t] * prod(coefs[t:])
        scale = np.cumprod(coefs[::-1])[::-1]
        np.testing.assert_allclose(beta.values, raw * scale[:, np.newaxis], rtol=1e-12)

    def test_posteriors_sum_to_one(self, sticky_model, island_observations):
        alpha, coefs = forward(island_observations, sticky_model)
        beta = backward(island_observations, sticky_model, coefs)

        # alpha_hat * beta_hat / coef = P(state_t | observations)
        posteriors = alpha.values * beta.values / coefs[:, np.newaxis]
        np.testing.assert_allclose(posteriors.sum(axis=1), 1.0, rtol=1e-10)

    def test_coefficient_length_mismatch(self, canonical_model):
        with pytest.raises(ShapeError, match="got 2 coefficients for 3 observations"):
            backward([0, 1, 2], canonical_model, [1.0, 1.0])


class TestViterbi:
    """Test Viterbi decoding."""

    def test_hand_computed_path(self, canonical_model):
        assert viterbi([0, 1, 0, 2], canonical_model) == [1, 1, 1, 0]

    def test_score(self, canonical_model):
        path, log2_prob = viterbi_with_score([0, 1, 0, 2], canonical_model)
        # 0.4*0.7 * 0.6*0.2 * 0.6*0.7 * 0.4*0.5
        np.testing.assert_allclose(2 ** log2_prob, 0.0028224, rtol=1e-12)
        assert path == [1, 1, 1, 0]

    def test_sparse_path_uses_state_labels(self, sparse_canonical_model, to_sparse_obs):
        path = viterbi(to_sparse_obs([0, 1, 0, 2]), sparse_canonical_model)
        assert path == ['C', 'C', 'C', 'H']

    def test_ties_go_to_first_state(self):
        model = Model.from_arrays([0.5, 0.5], [[0.5, 0.5], [0.5, 0.5]],
                                  [[0.5, 0.5], [0.5, 0.5]])
        path, log2_prob = viterbi_with_score([0, 1, 1, 0], model)
        assert path == [0, 0, 0, 0]
        assert log2_prob == -8.0

    def test_zero_emission_disqualifies_state(self):
        model = Model.from_arrays([0.5, 0.5], [[0.9, 0.1], [0.1, 0.9]],
                                  [[1.0, 0.0], [0.0, 1.0]])
        path, log2_prob = viterbi_with_score([0, 0, 1, 1], model)
        assert path == [0, 0, 1, 1]
        assert np.isfinite(log2_prob)

    def test_impossible_sequence_gives_no_nan(self):
        model = Model.from_arrays([0.5, 0.5], [[0.5, 0.5], [0.5, 0.5]],
                                  [[1.0, 0.0], [1.0, 0.0]])
        path, log2_prob = viterbi_with_score([0, 1, 0], model)
        assert path == [0, 0, 0]
        assert log2_prob == -np.inf

    def test_history_is_copied_not_shared(self, three_state_model):
        obs = [0, 0, 3, 3, 2, 0, 0, 1, 3, 3, 0]
        first = viterbi(obs, three_state_model)
        second = viterbi(obs, three_state_model)
        assert first == second
        assert len(first) == len(obs)

    def test_matches_brute_force(self, three_state_model):
        import itertools

        obs = [0, 3, 2, 0, 1]
        start = three_state_model.start_array()
        trans = three_state_model.transition_array()
        emit = three_state_model.emitter.probs

        def score(states):
            p = start[states[0]] * emit[states[0], obs[0]]
            for t in range(1, len(obs)):
                p *= trans[states[t - 1], states[t]] * emit[states[t], obs[t]]
            return p

        best = max(itertools.product(range(3), repeat=len(obs)), key=score)
        path, log2_prob = viterbi_with_score(obs, three_state_model)

        assert path == list(best)
        np.testing.assert_allclose(2 ** log2_prob, score(best), rtol=1e-12)

    def test_single_observation(self, canonical_model):
        assert viterbi([0], canonical_model) == [1]
        assert viterbi([2], canonical_model) == [0]

    def test_long_sequence(self, sticky_model):
        np.random.seed(42)
        obs = np.random.randint(0, 4, size=2000)
        path, log2_prob = viterbi_with_score(obs, sticky_model)

        assert len(path) == 2000
        assert all(s in (0, 1) for s in path)
        assert np.isfinite(log2_prob)

    def test_empty_observations(self, canonical_model):
        with pytest.raises(ValueError):
            viterbi([], canonical_model)


class TestDenseSparseEquivalence:
    """The same model in either representation gives the same numbers."""

    OBS = [0, 2, 1, 1, 0, 2, 2, 0]

    def test_forward(self, canonical_model, sparse_canonical_model, to_sparse_obs):
        dense_alpha, dense_coefs = forward(self.OBS, canonical_model)
        sparse_alpha, sparse_coefs = forward(to_sparse_obs(self.OBS), sparse_canonical_model)

        np.testing.assert_allclose(dense_alpha.values, sparse_alpha.values)
        np.testing.assert_allclose(dense_coefs, sparse_coefs)

    def test_backward(self, canonical_model, sparse_canonical_model, to_sparse_obs):
        _, coefs = forward(self.OBS, canonical_model)
        dense = backward(self.OBS, canonical_model, coefs)
        sparse = backward(to_sparse_obs(self.OBS), sparse_canonical_model, coefs)
        np.testing.assert_allclose(dense.values, sparse.values)

    def test_viterbi(self, canonical_model, sparse_canonical_model, to_sparse_obs):
        dense = viterbi(self.OBS, canonical_model)
        sparse = viterbi(to_sparse_obs(self.OBS), sparse_canonical_model)
        assert [('H', 'C')[s] for s in dense] == sparse


class TestAgainstHmmlearn:
    """Cross-check against hmmlearn's CategoricalHMM, when installed."""

    @pytest.fixture
    def reference(self, three_state_model):
        hmm = pytest.importorskip("hmmlearn.hmm")
        ref = hmm.CategoricalHMM(n_components=3, init_params='', params='')
        ref.startprob_ = np.array(three_state_model.start_array())
        ref.transmat_ = np.array(three_state_model.transition_array())
        ref.emissionprob_ = np.array(three_state_model.emitter.probs)
        ref.n_features = 4
        return ref

    def test_log_likelihood(self, reference, three_state_model):
        np.random.seed(7)
        obs = np.random.randint(0, 4, size=300)
        _, coefs = forward(obs, three_state_model)

        expected = reference.score(obs.reshape(-1, 1))
        np.testing.assert_allclose(log_likelihood(coefs), expected, rtol=1e-9)

    def test_viterbi(self, reference, three_state_model):
        np.random.seed(11)
        obs = np.random.randint(0, 4, size=300)
        path, log2_prob = viterbi_with_score(obs, three_state_model)

        log_prob, states = reference.decode(obs.reshape(-1, 1), algorithm='viterbi')
        np.testing.assert_allclose(log2_prob * np.log(2), log_prob, rtol=1e-9)
        assert path == states.tolist()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
