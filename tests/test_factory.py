"""
Tests for the reduction strategy registry.
"""

import numpy as np
import pytest

from cubemodel.core.constants import ReductionMethod
from cubemodel.core.errors import InvalidParameterError
from cubemodel.reduction.factory import (
    ReducerFactory,
    reduce_linear,
    reduce_nonlinear,
    standardize_embedding,
)


def test_standardize_embedding():
    rng = np.random.default_rng(0)
    raw = rng.normal(loc=[3.0, -1.0], scale=[5.0, 0.2], size=(500, 2))
    standardized, mean, scale = standardize_embedding(raw)

    np.testing.assert_allclose(standardized.mean(axis=0), 0.0, atol=1e-12)
    np.testing.assert_allclose(standardized.std(axis=0), 1.0)
    np.testing.assert_allclose(standardized * scale + mean, raw)


def test_standardize_constant_axis():
    """A collapsed axis is centred without dividing by zero."""
    raw = np.column_stack([np.arange(5.0), np.full(5, 2.0)])
    standardized, _, _ = standardize_embedding(raw)
    assert np.all(np.isfinite(standardized))
    np.testing.assert_allclose(standardized[:, 1], 0.0)


class TestReducerFactory:
    """Tests for ReducerFactory."""

    def test_list_methods(self):
        methods = ReducerFactory.list_methods()
        assert ReductionMethod.LINEAR in methods
        assert ReductionMethod.NONLINEAR in methods

    @pytest.mark.parametrize(
        "method, expected",
        [
            (ReductionMethod.LINEAR, reduce_linear),
            (0, reduce_linear),
            ("ica", reduce_linear),
            (1, reduce_nonlinear),
            ("tsne", reduce_nonlinear),
            ("t-SNE", reduce_nonlinear),
        ],
    )
    def test_create(self, method, expected):
        assert ReducerFactory.create(method) is expected

    @pytest.mark.parametrize("method", [2, -1, "pca"])
    def test_unknown_method(self, method):
        with pytest.raises(InvalidParameterError):
            ReducerFactory.create(method)


class TestReducers:
    """End-to-end forward reductions on small inputs."""

    def test_linear_projector_reproduces_embedding(self, mixed_sources, fast_config, progress):
        """The stored projector maps presets onto the standardised embedding."""
        _, observed = mixed_sources
        outcome = reduce_linear(observed, 2, fast_config, progress)

        assert outcome.embedding.shape == (2000, 2)
        np.testing.assert_allclose(outcome.embedding.mean(axis=0), 0.0, atol=1e-10)
        np.testing.assert_allclose(outcome.embedding.std(axis=0), 1.0)
        np.testing.assert_allclose(
            outcome.projector.project(observed), outcome.embedding, atol=1e-8
        )
        assert progress.messages[0] == "computing independent components"

    def test_nonlinear_outcome(self, cluster_presets, fast_config, progress):
        outcome = reduce_nonlinear(cluster_presets, 3, fast_config, progress)

        assert outcome.projector is None
        assert outcome.embedding.shape == (60, 3)
        np.testing.assert_allclose(outcome.embedding.mean(axis=0), 0.0, atol=1e-10)
        np.testing.assert_allclose(outcome.embedding.std(axis=0), 1.0)
        assert progress.messages[0] == "computing affinities (perplexity 5)"
        assert progress.messages[-1].startswith("t-SNE finished with KL divergence ")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
