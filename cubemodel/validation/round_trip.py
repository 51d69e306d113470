"""
Round-trip validation for cube models.

This module provides tools for validating the complete cube pipeline:
1. Generate clustered synthetic presets with known structure
2. Train a cube (forward reduction + inverse network)
3. Restore a preset from a random latent coordinate
4. Export the model into a fresh cube, restore again and compare
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional
import time

import numpy as np

from cubemodel.core.config import CubeConfig
from cubemodel.core.constants import ReductionMethod
from cubemodel.core.errors import NotReadyError
from cubemodel.core.logging_config import get_logger
from cubemodel.cube.instance import CubeInstance

logger = get_logger("validation.round_trip")


@dataclass
class ClusteredPresets:
    """
    Synthetic presets drawn around cluster means.

    Attributes
    ----------
    presets : np.ndarray
        N x D presets in [0, 1]
    labels : np.ndarray
        Cluster index of each preset
    means : np.ndarray
        C x D cluster means
    seed : int
        Random seed used for reproducibility
    """

    presets: np.ndarray
    labels: np.ndarray
    means: np.ndarray
    seed: int = 42

    @property
    def n_clusters(self) -> int:
        return self.means.shape[0]


def generate_cluster_presets(
    n_samples: int = 1000,
    dim: int = 50,
    clusters: int = 10,
    spread: float = 0.1,
    seed: int = 42,
) -> ClusteredPresets:
    """
    Generate presets in uniform-noise clusters inside [0, 1]^dim.

    Cluster means are ``0.8 * U(-1, 1) + 0.1`` per coordinate and each
    preset is ``mean + spread * U(-1, 1)``, clipped to [0, 1].

    Parameters
    ----------
    n_samples : int
        Total presets (split evenly over clusters, remainder dropped)
    dim : int
        Preset dimension D
    clusters : int
        Number of clusters
    spread : float
        Half-width of the uniform noise around each mean
    seed : int
        Random seed

    Returns
    -------
    ClusteredPresets
    """
    if clusters < 1 or n_samples < clusters:
        raise ValueError("Need at least one preset per cluster")

    rng = np.random.default_rng(seed)
    per_cluster = n_samples // clusters

    means = 0.8 * rng.uniform(-1.0, 1.0, size=(clusters, dim)) + 0.1
    noise = spread * rng.uniform(-1.0, 1.0, size=(clusters, per_cluster, dim))
    presets = np.clip(means[:, None, :] + noise, 0.0, 1.0).reshape(-1, dim)
    labels = np.repeat(np.arange(clusters), per_cluster)

    return ClusteredPresets(presets=presets, labels=labels, means=means, seed=seed)


@dataclass
class RoundTripResult:
    """
    Result of a round-trip validation.

    Attributes
    ----------
    latent : np.ndarray
        Latent coordinate used for both restores
    restored : np.ndarray
        Preset restored by the trained cube
    restored_copy : np.ndarray
        Preset restored by the cube that imported the exported model
    mean_abs_difference : float
        Mean absolute difference between the two restores
    n_parameters : int
        Length of the exported parameter vector
    training_time_s : float
        Wall time spent training
    passed : bool
        Whether the difference is within tolerance
    tolerance : float
        Tolerance used for validation
    messages : List[str]
        Messages drained from the trained cube
    """

    latent: np.ndarray
    restored: np.ndarray
    restored_copy: np.ndarray
    mean_abs_difference: float
    n_parameters: int
    training_time_s: float
    passed: bool
    tolerance: float
    messages: List[str] = field(default_factory=list)

    def summary(self) -> str:
        """Generate a human-readable summary of the result."""
        status = "PASSED" if self.passed else "FAILED"
        latent = " ".join(f"{v:+.3f}" for v in self.latent)
        return "\n".join(
            [
                f"Round-Trip Validation: {status}",
                f"  Latent: [{latent}]",
                f"  Restored dimensions: {self.restored.size}",
                f"  Exported parameters: {self.n_parameters}",
                f"  Mean |restore - restore_copy|: {self.mean_abs_difference:.3e} "
                f"(tolerance {self.tolerance:.0e})",
                f"  Training time: {self.training_time_s:.1f} s",
            ]
        )


class RoundTripValidator:
    """
    Train a cube, then check that exported parameters reproduce its restores.

    Parameters
    ----------
    config : CubeConfig, optional
        Hyperparameters for the trained cube
    tolerance : float
        Maximum mean absolute difference between the two restores
    poll_interval_s : float
        Sleep between message polls while training
    """

    def __init__(
        self,
        config: Optional[CubeConfig] = None,
        tolerance: float = 1e-5,
        poll_interval_s: float = 0.1,
    ):
        self.config = config or CubeConfig()
        self.tolerance = tolerance
        self.poll_interval_s = poll_interval_s

    def train(
        self,
        cube: CubeInstance,
        presets: np.ndarray,
        method=ReductionMethod.NONLINEAR,
        latent_dim: int = 3,
        on_message: Optional[Callable[[str], None]] = None,
    ) -> List[str]:
        """Train ``cube`` and wait, returning every drained message."""
        cube.start_training(presets, method, latent_dim, quality=1.0)
        messages: List[str] = []
        while cube.is_training:
            for message in cube.poll_messages():
                messages.append(message)
                if on_message is not None:
                    on_message(message)
            time.sleep(self.poll_interval_s)
        for message in cube.poll_messages():
            messages.append(message)
            if on_message is not None:
                on_message(message)
        return messages

    def validate(
        self,
        presets: np.ndarray,
        method=ReductionMethod.NONLINEAR,
        latent_dim: int = 3,
        latent_scale: float = 0.25,
        seed: int = 42,
        on_message: Optional[Callable[[str], None]] = None,
    ) -> RoundTripResult:
        """
        Run one round trip.

        Parameters
        ----------
        presets : np.ndarray
            Training presets
        method : ReductionMethod, int or str
            Forward method
        latent_dim : int
            2 or 3
        latent_scale : float
            Latent coordinate drawn from U(-latent_scale, latent_scale)^L
        seed : int
            Seed for the latent coordinate
        on_message : callable, optional
            Called with each training message as it is drained

        Returns
        -------
        RoundTripResult

        Raises
        ------
        NotReadyError
            If training finished without a model
        """
        cube = CubeInstance(0, self.config)
        copy = CubeInstance(1, self.config)
        try:
            started = time.perf_counter()
            messages = self.train(cube, presets, method, latent_dim, on_message)
            training_time = time.perf_counter() - started

            if not cube.has_model:
                raise NotReadyError(f"Training ended in state {cube.state.value}")

            rng = np.random.default_rng(seed)
            latent = latent_scale * rng.uniform(-1.0, 1.0, size=latent_dim)
            restored = cube.restore(latent)

            params = cube.export_model()
            copy.import_model(params)
            restored_copy = copy.restore(latent)

            difference = float(np.mean(np.abs(restored - restored_copy)))
            result = RoundTripResult(
                latent=latent,
                restored=restored,
                restored_copy=restored_copy,
                mean_abs_difference=difference,
                n_parameters=int(params.size),
                training_time_s=training_time,
                passed=difference <= self.tolerance,
                tolerance=self.tolerance,
                messages=messages,
            )
            logger.info(result.summary())
            return result
        finally:
            cube.close()
            copy.close()
