"""
Tests for the t-SNE embedder.
"""

import numpy as np
import pytest

from cubemodel.core.errors import CancelledError, InvalidParameterError
from cubemodel.reduction.affinity import AffinityModel
from cubemodel.reduction.tsne import (
    TSNEEmbedder,
    kl_divergence,
    student_t_kernel,
    tsne_gradient,
)


@pytest.fixture
def small_problem():
    """Random symmetric affinities over six points and a random embedding."""
    rng = np.random.default_rng(5)
    raw = rng.uniform(0.1, 1.0, size=(6, 6))
    joint = raw + raw.T
    np.fill_diagonal(joint, 0.0)
    joint /= joint.sum()
    embedding = rng.standard_normal((6, 2))
    return joint, embedding


def test_student_t_kernel():
    """Kernel values follow (1 + d^2)^-1 with a zero diagonal."""
    embedding = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 2.0]])
    kernel = student_t_kernel(embedding)
    expected = np.array(
        [
            [0.0, 0.5, 0.2],
            [0.5, 0.0, 1.0 / 6.0],
            [0.2, 1.0 / 6.0, 0.0],
        ]
    )
    np.testing.assert_allclose(kernel, expected)


def test_gradient_matches_finite_differences(small_problem):
    """The analytic gradient is the derivative of the KL divergence."""
    joint, embedding = small_problem
    gradient = tsne_gradient(joint, embedding)

    eps = 1e-6
    numeric = np.zeros_like(embedding)
    for i in range(embedding.shape[0]):
        for k in range(embedding.shape[1]):
            plus = embedding.copy()
            minus = embedding.copy()
            plus[i, k] += eps
            minus[i, k] -= eps
            numeric[i, k] = (kl_divergence(joint, plus) - kl_divergence(joint, minus)) / (2 * eps)

    np.testing.assert_allclose(gradient, numeric, rtol=1e-4, atol=1e-7)


def test_kl_divergence_non_negative(small_problem):
    joint, embedding = small_problem
    assert kl_divergence(joint, embedding) > 0


class TestTSNEEmbedder:
    """Tests for TSNEEmbedder."""

    @pytest.fixture
    def joint(self, cluster_presets):
        return AffinityModel(perplexity=5.0).compute(cluster_presets).joint

    def test_exaggeration_iterations(self):
        assert TSNEEmbedder(iterations=1000).exaggeration_iterations == 250
        assert TSNEEmbedder(iterations=100, exaggeration_fraction=0.0).exaggeration_iterations == 0

    def test_embedding_shape_and_centering(self, joint):
        result = TSNEEmbedder(n_components=3, iterations=200, seed=2).embed(joint)

        assert result.embedding.shape == (60, 3)
        assert np.all(np.isfinite(result.embedding))
        np.testing.assert_allclose(result.embedding.mean(axis=0), 0.0, atol=1e-10)
        assert result.iterations == 200
        assert len(result.kl_history) == 2

    def test_kl_decreases(self, joint):
        """Optimisation improves on the random initial embedding."""
        initial = 1e-2 * np.random.default_rng(2).standard_normal((60, 2))
        result = TSNEEmbedder(n_components=2, iterations=300, seed=2).embed(joint)
        assert result.kl_divergence < kl_divergence(joint, initial)

    def test_deterministic_for_seed(self, joint):
        first = TSNEEmbedder(iterations=50, seed=9).embed(joint)
        second = TSNEEmbedder(iterations=50, seed=9).embed(joint)
        np.testing.assert_array_equal(first.embedding, second.embedding)

    def test_progress_messages(self, joint, progress):
        TSNEEmbedder(iterations=200, seed=0).embed(joint, progress)

        assert len(progress.messages) == 2
        assert progress.messages[0].startswith("t-SNE iteration 100 of 200: KL divergence ")
        assert progress.messages[1].startswith("t-SNE iteration 200 of 200")
        assert progress.checks == 200

    def test_cancellation(self, joint, progress_factory):
        """A stop request is honoured at the next iteration boundary."""
        stopper = progress_factory(cancel_after=10)
        with pytest.raises(CancelledError):
            TSNEEmbedder(iterations=1000, seed=0).embed(joint, stopper)
        assert stopper.checks == 11

    def test_non_square_rejected(self):
        with pytest.raises(InvalidParameterError):
            TSNEEmbedder().embed(np.ones((3, 4)))

    def test_invalid_arguments(self):
        with pytest.raises(InvalidParameterError):
            TSNEEmbedder(n_components=0)
        with pytest.raises(InvalidParameterError):
            TSNEEmbedder(iterations=0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
