"""
Tests for training jobs and request validation.
"""

import threading

import numpy as np
import pytest

from cubemodel.core.constants import ReductionMethod
from cubemodel.core.errors import (
    CancelledError,
    ConflictError,
    DimensionMismatchError,
    InvalidParameterError,
    NumericalError,
)
from cubemodel.training.job import (
    JobContext,
    JobState,
    TrainingJob,
    prepare_samples,
    validate_request,
)
from cubemodel.training.messages import MessageQueue
from cubemodel.training.model import TrainedModel


class TestPrepareSamples:
    """Tests for the private sample copy."""

    def test_copy_is_private(self):
        samples = np.ones((4, 3), dtype=np.float32)
        matrix = prepare_samples(samples)
        samples[0, 0] = 99.0

        assert matrix.dtype == np.float64
        assert matrix[0, 0] == 1.0

    def test_accepts_nested_lists(self):
        matrix = prepare_samples([[0.1, 0.2], [0.3, 0.4]])
        assert matrix.shape == (2, 2)

    @pytest.mark.parametrize(
        "samples",
        [
            None,
            [],
            [[0.1, 0.2], [0.3]],
            [0.1, 0.2, 0.3],
            [[0.1, float("nan")], [0.3, 0.4]],
            [["a", "b"], ["c", "d"]],
        ],
    )
    def test_rejects_invalid(self, samples):
        with pytest.raises(InvalidParameterError):
            prepare_samples(samples)

    def test_dimension_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            prepare_samples(np.ones((5, 3)), expected_dim=4)


class TestValidateRequest:
    """Synchronous rejection of bad training requests."""

    def test_valid_request(self, cluster_presets, fast_config):
        matrix, method, latent_dim = validate_request(cluster_presets, "tsne", 3, fast_config)
        assert matrix.shape == (60, 8)
        assert method == ReductionMethod.NONLINEAR
        assert latent_dim == 3

    @pytest.mark.parametrize("latent_dim", [1, 4, "two"])
    def test_latent_dim(self, cluster_presets, fast_config, latent_dim):
        with pytest.raises(InvalidParameterError):
            validate_request(cluster_presets, 0, latent_dim, fast_config)

    def test_unknown_method(self, cluster_presets, fast_config):
        with pytest.raises(InvalidParameterError, match="Unsupported reduction method"):
            validate_request(cluster_presets, 5, 2, fast_config)

    def test_single_preset(self, fast_config):
        with pytest.raises(InvalidParameterError):
            validate_request(np.ones((1, 4)), "ica", 2, fast_config)

    def test_fewer_features_than_latent_dims(self, fast_config):
        samples = np.random.default_rng(0).random((30, 2))
        with pytest.raises(InvalidParameterError):
            validate_request(samples, "ica", 3, fast_config)

    def test_perplexity_too_large(self, cluster_presets, fast_config):
        """The nonlinear method needs N >= 3 * perplexity + 1 presets."""
        with pytest.raises(InvalidParameterError, match="Too few presets"):
            validate_request(cluster_presets[:15], "tsne", 2, fast_config)
        # the linear method has no such bound
        validate_request(cluster_presets[:15], "ica", 2, fast_config)


def test_job_context():
    messages = MessageQueue()
    event = threading.Event()
    context = JobContext(messages, event, "test")

    context.report("hello")
    context.check_cancelled()
    event.set()
    with pytest.raises(CancelledError, match="computation stopped before completion"):
        context.check_cancelled()
    assert messages.drain() == ["hello"]


class TestTrainingJob:
    """Tests for TrainingJob."""

    def test_run_synchronously(self, mixed_sources, fast_config):
        _, observed = mixed_sources
        job = TrainingJob(observed[:400], ReductionMethod.LINEAR, 2, fast_config)
        model = job.run()

        assert isinstance(model, TrainedModel)
        assert model.input_dim == 4
        assert model.latent_dim == 2
        assert model.projector is not None

        messages = job.messages.drain()
        assert messages[0] == "training started: 400 presets, 4 -> 2 dims, method linear"
        assert "training inverse model" in messages
        assert messages[-1].startswith("inverse model final mse ")

    def test_worker_completes(self, cluster_presets, fast_config):
        installed = []
        job = TrainingJob(
            cluster_presets, "tsne", 3, fast_config, on_complete=installed.append, name="t"
        )
        job.start()
        assert job.join(timeout=60)

        assert job.state == JobState.COMPLETED
        assert not job.is_running
        assert len(installed) == 1 and installed[0] is job.model
        assert job.samples is None
        assert job.elapsed_s is not None
        assert job.messages.drain()[-1].startswith("model ready (")

    def test_start_twice(self, cluster_presets, fast_config):
        job = TrainingJob(cluster_presets, "ica", 2, fast_config)
        job.start()
        with pytest.raises(ConflictError):
            job.start()
        job.join(timeout=60)

    def test_stop_before_first_iteration(self, cluster_presets, fast_config):
        installed = []
        job = TrainingJob(cluster_presets, "tsne", 2, fast_config, on_complete=installed.append)
        job.stop()
        job.start()
        assert job.join(timeout=60)

        assert job.state == JobState.CANCELLED
        assert job.cancel_requested
        assert job.model is None
        assert installed == []
        assert job.messages.drain()[-1] == "computation stopped before completion"

    def test_stop_running_job(self, cluster_presets, slow_config):
        job = TrainingJob(cluster_presets, "tsne", 2, slow_config)
        job.start()
        assert job.is_running
        job.stop()
        assert job.join(timeout=60)
        assert job.state == JobState.CANCELLED

    def test_failure_is_reported(self, fast_config):
        """Errors inside the worker move the job to FAILED."""
        samples = np.random.default_rng(0).random((5, 8))
        job = TrainingJob(samples, "ica", 2, fast_config)
        job.start()
        assert job.join(timeout=60)

        assert job.state == JobState.FAILED
        assert isinstance(job.error, NumericalError)
        assert job.messages.drain()[-1].startswith("ERROR: training failed: Singular covariance")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
