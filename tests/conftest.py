"""
Pytest configuration and shared fixtures for cubemodel tests.

This module provides:
- Small clustered preset tables and a mixed-source table for FastICA
- Fast cube configurations so training jobs finish in well under a second
- A recording progress reporter with optional cancellation
"""

import pytest
import numpy as np

from cubemodel.core.config import CubeConfig
from cubemodel.core.errors import CancelledError
from cubemodel.cube.registry import reset_registry
from cubemodel.validation.round_trip import generate_cluster_presets


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: full-size training runs (deselect with -m \"not slow\")")


class RecordingProgress:
    """Progress reporter that keeps every message and can request a stop."""

    def __init__(self, cancel_after=None):
        self.messages = []
        self.checks = 0
        self.cancel_after = cancel_after

    def report(self, message):
        self.messages.append(message)

    def check_cancelled(self):
        self.checks += 1
        if self.cancel_after is not None and self.checks > self.cancel_after:
            raise CancelledError("computation stopped before completion")


@pytest.fixture
def progress():
    """Recording progress reporter that never cancels."""
    return RecordingProgress()


@pytest.fixture
def cancelling_progress():
    """Reporter that requests a stop at the first cancellation check."""
    return RecordingProgress(cancel_after=0)


@pytest.fixture
def cluster_presets():
    """60 presets of dimension 8 in 4 clusters, jittered so no feature is constant."""
    presets = generate_cluster_presets(n_samples=60, dim=8, clusters=4, seed=7).presets
    jitter = 1e-3 * np.random.default_rng(8).standard_normal(presets.shape)
    return presets + jitter


@pytest.fixture
def mixed_sources():
    """Two skewed independent sources linearly mixed into 4 observed features."""
    rng = np.random.default_rng(3)
    sources = rng.exponential(size=(2000, 2)) - 1.0
    mixing = np.array([[1.0, 0.5, -0.3, 0.8], [0.2, -1.0, 0.7, 0.4]])
    observed = sources @ mixing + 0.01 * rng.standard_normal((2000, 4))
    return sources, observed


@pytest.fixture
def fast_config():
    """Configuration small enough for unit tests."""
    return CubeConfig(
        perplexity=5.0,
        tsne_iterations=100,
        ica_max_iterations=200,
        regressor_hidden=(16, 16),
        regressor_epochs=20,
        regressor_batch_size=32,
        regressor_learning_rate=5e-3,
        seed=1,
    )


@pytest.fixture
def slow_config():
    """Configuration whose t-SNE runs long enough to be interrupted."""
    return CubeConfig(
        perplexity=5.0,
        tsne_iterations=1000000,
        regressor_hidden=(16, 16),
        regressor_epochs=20,
        seed=1,
    )


@pytest.fixture
def fresh_registry(fast_config):
    """Process-wide registry reset to the fast configuration."""
    registry = reset_registry(fast_config)
    yield registry
    registry.clear()


@pytest.fixture
def progress_factory():
    """Build reporters that cancel after a given number of checks."""
    return RecordingProgress
