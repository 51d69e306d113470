"""
Tests for whitening and FastICA.
"""

import numpy as np
import pytest

from cubemodel.core.errors import CancelledError, InvalidParameterError, NumericalError
from cubemodel.reduction.ica import FastICAProjector, ProjectionResult, check_covariance


class TestCheckCovariance:
    """Singular covariance detection."""

    def test_too_few_presets(self):
        centered = np.random.default_rng(0).standard_normal((4, 4))
        with pytest.raises(NumericalError, match="Singular covariance"):
            check_covariance(centered - centered.mean(axis=0))

    def test_duplicated_feature(self):
        rng = np.random.default_rng(0)
        samples = rng.standard_normal((50, 3))
        samples = np.column_stack([samples, samples[:, 0]])
        with pytest.raises(NumericalError, match="Singular covariance"):
            check_covariance(samples - samples.mean(axis=0))

    def test_constant_feature(self):
        rng = np.random.default_rng(0)
        samples = np.column_stack([rng.standard_normal((50, 2)), np.full(50, 0.5)])
        with pytest.raises(NumericalError):
            check_covariance(samples - samples.mean(axis=0))

    def test_regular_covariance(self):
        samples = np.random.default_rng(0).standard_normal((100, 3))
        centered = samples - samples.mean(axis=0)
        np.testing.assert_allclose(check_covariance(centered), np.cov(samples, rowvar=False))


class TestFastICAProjector:
    """Tests for FastICAProjector."""

    def test_projection_shape(self, mixed_sources):
        _, observed = mixed_sources
        result = FastICAProjector(n_components=2).fit(observed)

        assert isinstance(result, ProjectionResult)
        assert result.matrix.shape == (4, 2)
        assert result.input_dim == 4
        assert result.n_components == 2
        assert result.mean.shape == (4,)
        assert len(result.converged) == 2
        assert len(result.iterations) == 2

    def test_components_are_white(self, mixed_sources):
        """Projected components are uncorrelated with unit variance."""
        _, observed = mixed_sources
        latent = FastICAProjector(n_components=2).fit(observed).project(observed)

        np.testing.assert_allclose(latent.mean(axis=0), 0.0, atol=1e-10)
        np.testing.assert_allclose(np.cov(latent, rowvar=False), np.eye(2), atol=1e-8)

    def test_recovers_sources(self, mixed_sources):
        """Each recovered component matches one source up to scale and sign."""
        sources, observed = mixed_sources
        result = FastICAProjector(n_components=2, seed=1).fit(observed)
        latent = result.project(observed)

        correlation = np.corrcoef(latent.T, sources.T)[:2, 2:]
        assert all(result.converged)
        assert np.all(np.max(np.abs(correlation), axis=1) > 0.95)

    def test_positive_skew(self, mixed_sources):
        """Component signs are chosen so each has positive skew."""
        _, observed = mixed_sources
        latent = FastICAProjector(n_components=2).fit(observed).project(observed)
        assert np.all(np.mean(latent**3, axis=0) > 0)

    def test_progress_messages(self, mixed_sources, progress):
        _, observed = mixed_sources
        FastICAProjector(n_components=2).fit(observed, progress)

        assert len(progress.messages) == 2
        assert progress.messages[0].startswith("ICA component 1 of 2 converged after ")

    def test_non_convergence_warning(self, mixed_sources, progress):
        _, observed = mixed_sources
        result = FastICAProjector(n_components=2, max_iterations=1, tolerance=1e-15).fit(
            observed, progress
        )
        assert not any(result.converged)
        assert progress.messages[0].startswith("WARNING: ICA component 1 of 2 did not converge")

    def test_singular_samples(self):
        with pytest.raises(NumericalError):
            FastICAProjector(n_components=2).fit(np.random.default_rng(0).random((5, 8)))

    def test_too_many_components(self, mixed_sources):
        _, observed = mixed_sources
        with pytest.raises(InvalidParameterError):
            FastICAProjector(n_components=5).fit(observed)

    def test_cancellation(self, mixed_sources, cancelling_progress):
        _, observed = mixed_sources
        with pytest.raises(CancelledError):
            FastICAProjector(n_components=2).fit(observed, cancelling_progress)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
