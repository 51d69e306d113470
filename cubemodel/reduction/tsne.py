"""
t-SNE embedding of preset affinities.

Minimises KL(P || Q) between the high-dimensional joint affinities P and a
Student-t similarity Q of the latent coordinates, using gradient descent
with momentum and per-coordinate adaptive gains. The first part of the run
uses exaggerated affinities to separate clusters early.

References:
- van der Maaten & Hinton, "Visualizing Data using t-SNE" (JMLR 2008)
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from cubemodel.core.abc import ProgressReporter, check_cancelled, report
from cubemodel.core.constants import MIN_PROBABILITY
from cubemodel.core.errors import InvalidParameterError, NumericalError
from cubemodel.core.logging_config import get_logger

logger = get_logger("reduction.tsne")

MOMENTUM_SWITCH_ITERATION = 250
REPORT_EVERY = 100


@dataclass
class EmbeddingResult:
    """
    Output of a t-SNE run.

    Attributes
    ----------
    embedding : np.ndarray
        N x L latent coordinates
    kl_divergence : float
        Final KL(P || Q) (without exaggeration)
    iterations : int
        Number of gradient steps taken
    kl_history : List[float]
        KL divergence sampled every REPORT_EVERY iterations
    """

    embedding: np.ndarray
    kl_divergence: float
    iterations: int
    kl_history: List[float] = field(default_factory=list)


def student_t_kernel(embedding: np.ndarray) -> np.ndarray:
    """Unnormalised Student-t similarities (1 + |y_i - y_j|^2)^-1, zero diagonal."""
    sq_norms = np.sum(embedding * embedding, axis=1)
    sq_dist = sq_norms[:, None] + sq_norms[None, :] - 2.0 * (embedding @ embedding.T)
    kernel = 1.0 / (1.0 + np.maximum(sq_dist, 0.0))
    np.fill_diagonal(kernel, 0.0)
    return kernel


def kl_divergence(joint: np.ndarray, embedding: np.ndarray) -> float:
    """KL(P || Q) of an embedding."""
    kernel = student_t_kernel(embedding)
    q = np.maximum(kernel / kernel.sum(), MIN_PROBABILITY)
    p = np.maximum(joint, MIN_PROBABILITY)
    mask = joint > 0
    return float(np.sum(joint[mask] * np.log(p[mask] / q[mask])))


def tsne_gradient(joint: np.ndarray, embedding: np.ndarray) -> np.ndarray:
    """
    Exact t-SNE gradient.

    dC/dy_i = 4 * sum_j (p_ij - q_ij) (1 + |y_i - y_j|^2)^-1 (y_i - y_j)
    """
    kernel = student_t_kernel(embedding)
    q = np.maximum(kernel / kernel.sum(), MIN_PROBABILITY)
    weights = (joint - q) * kernel
    return 4.0 * (weights.sum(axis=1)[:, None] * embedding - weights @ embedding)


class TSNEEmbedder:
    """
    Gradient-descent t-SNE optimiser.

    Parameters
    ----------
    n_components : int
        Latent dimension L
    iterations : int
        Number of gradient steps
    learning_rate : float
        Step size
    early_exaggeration : float
        Affinity multiplier during the exaggeration phase
    exaggeration_fraction : float
        Fraction of iterations run with exaggerated affinities
    initial_momentum, final_momentum : float
        Momentum before and after MOMENTUM_SWITCH_ITERATION
    min_gain : float
        Lower bound for the adaptive gains
    seed : int
        Seed for the initial embedding
    """

    def __init__(
        self,
        n_components: int = 2,
        iterations: int = 1000,
        learning_rate: float = 200.0,
        early_exaggeration: float = 12.0,
        exaggeration_fraction: float = 0.25,
        initial_momentum: float = 0.5,
        final_momentum: float = 0.8,
        min_gain: float = 0.01,
        seed: int = 0,
    ):
        if n_components < 1:
            raise InvalidParameterError("n_components must be >= 1")
        if iterations < 1:
            raise InvalidParameterError("iterations must be >= 1")

        self.n_components = n_components
        self.iterations = iterations
        self.learning_rate = learning_rate
        self.early_exaggeration = early_exaggeration
        self.exaggeration_fraction = exaggeration_fraction
        self.initial_momentum = initial_momentum
        self.final_momentum = final_momentum
        self.min_gain = min_gain
        self.seed = seed

    @property
    def exaggeration_iterations(self) -> int:
        """Number of leading iterations with exaggerated affinities."""
        return int(self.exaggeration_fraction * self.iterations)

    def embed(
        self, joint: np.ndarray, progress: Optional[ProgressReporter] = None
    ) -> EmbeddingResult:
        """
        Optimise an embedding for the given joint affinities.

        Parameters
        ----------
        joint : np.ndarray
            Symmetric N x N affinities summing to 1
        progress : ProgressReporter, optional
            Receives progress messages; a stop request raises CancelledError
            at the next iteration boundary and the partial embedding is dropped

        Returns
        -------
        EmbeddingResult
        """
        joint = np.asarray(joint, dtype=np.float64)
        if joint.ndim != 2 or joint.shape[0] != joint.shape[1]:
            raise InvalidParameterError("Affinity matrix must be square")

        n = joint.shape[0]
        rng = np.random.default_rng(self.seed)
        embedding = 1e-2 * rng.standard_normal((n, self.n_components))
        update = np.zeros_like(embedding)
        gains = np.ones_like(embedding)

        exaggerated = joint * self.early_exaggeration
        stop_exaggeration = self.exaggeration_iterations
        history: List[float] = []

        logger.info(
            f"Starting t-SNE: {n} presets -> {self.n_components} dims, "
            f"{self.iterations} iterations"
        )

        for iteration in range(self.iterations):
            check_cancelled(progress)

            p = exaggerated if iteration < stop_exaggeration else joint
            momentum = (
                self.initial_momentum
                if iteration < MOMENTUM_SWITCH_ITERATION
                else self.final_momentum
            )

            gradient = tsne_gradient(p, embedding)
            if not np.all(np.isfinite(gradient)):
                raise NumericalError(f"Non-finite t-SNE gradient at iteration {iteration + 1}")

            same_sign = (gradient > 0) == (update > 0)
            gains = np.where(same_sign, gains * 0.8, gains + 0.2)
            np.maximum(gains, self.min_gain, out=gains)

            update = momentum * update - self.learning_rate * gains * gradient
            embedding = embedding + update
            embedding -= embedding.mean(axis=0)

            if (iteration + 1) % REPORT_EVERY == 0:
                kl = kl_divergence(joint, embedding)
                history.append(kl)
                report(
                    progress,
                    f"t-SNE iteration {iteration + 1} of {self.iterations}: "
                    f"KL divergence {kl:.4f}",
                )
                logger.debug(f"t-SNE iteration {iteration + 1}: KL={kl:.6f}")

        final_kl = kl_divergence(joint, embedding)
        logger.info(f"t-SNE finished: KL divergence {final_kl:.4f}")

        return EmbeddingResult(
            embedding=embedding,
            kl_divergence=final_kl,
            iterations=self.iterations,
            kl_history=history,
        )
