"""
High-dimensional affinities for t-SNE.

For every preset a Gaussian kernel bandwidth is calibrated by binary search
so that the entropy of its conditional neighbour distribution matches the
target perplexity. The conditional distributions are then symmetrised into
the joint affinity matrix consumed by :mod:`cubemodel.reduction.tsne`.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
from scipy.spatial.distance import pdist, squareform

from cubemodel.core.abc import ProgressReporter, check_cancelled, report
from cubemodel.core.constants import MIN_PROBABILITY
from cubemodel.core.errors import InvalidParameterError, NumericalError
from cubemodel.core.logging_config import get_logger

logger = get_logger("reduction.affinity")

# Individual "adjusted" warnings published before switching to a summary
MAX_LISTED_ADJUSTMENTS = 10


@dataclass
class AffinityResult:
    """
    Joint affinities of a sample matrix.

    Attributes
    ----------
    joint : np.ndarray
        Symmetric N x N affinity matrix, non-negative, summing to 1
    beta : np.ndarray
        Calibrated kernel precisions 1 / (2 sigma^2), one per preset
    perplexity : float
        Target perplexity used for calibration
    adjusted_points : List[int]
        Presets whose bandwidth search stopped before reaching tolerance
    """

    joint: np.ndarray
    beta: np.ndarray
    perplexity: float
    adjusted_points: List[int] = field(default_factory=list)

    @property
    def sigma(self) -> np.ndarray:
        """Kernel bandwidths."""
        return np.sqrt(1.0 / (2.0 * self.beta))


def max_perplexity(n_samples: int) -> float:
    """Largest perplexity supported by ``n_samples`` presets."""
    return (n_samples - 1) / 3.0


def validate_perplexity(n_samples: int, perplexity: float) -> None:
    """
    Check that there are enough presets for the target perplexity.

    Raises
    ------
    InvalidParameterError
        If perplexity is not positive or ``n_samples < 3 * perplexity + 1``
    """
    if not np.isfinite(perplexity) or perplexity <= 0:
        raise InvalidParameterError(f"Perplexity must be positive, got {perplexity}")
    if perplexity > max_perplexity(n_samples):
        raise InvalidParameterError(
            f"Too few presets for perplexity {perplexity:g}: need at least "
            f"{int(np.ceil(3 * perplexity + 1))}, got {n_samples}"
        )


def _conditional_row(distances: np.ndarray, beta: float) -> Tuple[float, np.ndarray]:
    """Entropy (nats) and normalised Gaussian kernel for one row."""
    shifted = distances - distances.min()
    weights = np.exp(-shifted * beta)
    total = weights.sum()
    entropy = np.log(total) + beta * np.sum(shifted * weights) / total
    return entropy, weights / total


def calibrate_row(
    distances: np.ndarray,
    perplexity: float,
    tolerance: float = 1e-5,
    max_steps: int = 50,
) -> Tuple[np.ndarray, float, bool]:
    """
    Binary search a kernel precision matching the target perplexity.

    Parameters
    ----------
    distances : np.ndarray
        Squared distances from one preset to all others (self excluded)
    perplexity : float
        Target perplexity
    tolerance : float
        Allowed absolute entropy error in nats
    max_steps : int
        Upper bound on bisection steps

    Returns
    -------
    probabilities : np.ndarray
        Conditional distribution over the other presets
    beta : float
        Calibrated precision
    converged : bool
        Whether the entropy tolerance was reached
    """
    target = np.log(perplexity)
    beta = 1.0
    beta_min = -np.inf
    beta_max = np.inf

    entropy, probabilities = _conditional_row(distances, beta)
    for _ in range(max_steps):
        diff = entropy - target
        if abs(diff) < tolerance:
            return probabilities, beta, True
        if diff > 0:
            beta_min = beta
            beta = beta * 2.0 if beta_max == np.inf else (beta + beta_max) / 2.0
        else:
            beta_max = beta
            beta = beta / 2.0 if beta_min == -np.inf else (beta + beta_min) / 2.0
        entropy, probabilities = _conditional_row(distances, beta)

    return probabilities, beta, abs(entropy - target) < tolerance


class AffinityModel:
    """
    Perplexity-calibrated Gaussian affinities.

    Parameters
    ----------
    perplexity : float
        Target effective number of neighbours
    tolerance : float
        Entropy tolerance of the bandwidth search
    max_steps : int
        Bisection step limit per preset
    """

    def __init__(self, perplexity: float = 30.0, tolerance: float = 1e-5, max_steps: int = 50):
        self.perplexity = perplexity
        self.tolerance = tolerance
        self.max_steps = max_steps

    def compute(
        self, samples: np.ndarray, progress: Optional[ProgressReporter] = None
    ) -> AffinityResult:
        """
        Compute the joint affinity matrix.

        Parameters
        ----------
        samples : np.ndarray
            N x D sample matrix
        progress : ProgressReporter, optional
            Receives adjustment warnings and honours stop requests

        Returns
        -------
        AffinityResult
        """
        samples = np.asarray(samples, dtype=np.float64)
        if samples.ndim != 2 or samples.shape[0] < 2:
            raise InvalidParameterError("Affinities need a 2-D matrix of at least two presets")

        n = samples.shape[0]
        validate_perplexity(n, self.perplexity)

        distances = squareform(pdist(samples, "sqeuclidean"))
        if not np.all(np.isfinite(distances)):
            raise NumericalError("Non-finite distances between presets")

        conditional = np.zeros((n, n))
        beta = np.ones(n)
        adjusted: List[int] = []
        others = ~np.eye(n, dtype=bool)

        for i in range(n):
            if i % 250 == 0:
                check_cancelled(progress)
                logger.debug(f"Calibrating bandwidth for point {i} of {n}")

            row, beta[i], converged = calibrate_row(
                distances[i, others[i]], self.perplexity, self.tolerance, self.max_steps
            )
            conditional[i, others[i]] = row

            if not converged:
                adjusted.append(i)
                if len(adjusted) <= MAX_LISTED_ADJUSTMENTS:
                    report(progress, f"perplexity search adjusted for point {i}")

        if len(adjusted) > MAX_LISTED_ADJUSTMENTS:
            report(
                progress,
                f"perplexity search adjusted for {len(adjusted)} points in total",
            )

        joint = (conditional + conditional.T) / (2.0 * n)
        joint = np.maximum(joint, MIN_PROBABILITY)
        np.fill_diagonal(joint, 0.0)
        joint /= joint.sum()

        sigma_mean = float(np.mean(np.sqrt(1.0 / (2.0 * beta))))
        logger.info(
            f"Computed affinities for {n} presets (perplexity={self.perplexity:g}, "
            f"mean sigma={sigma_mean:.4f}, adjusted={len(adjusted)})"
        )

        return AffinityResult(
            joint=joint, beta=beta, perplexity=self.perplexity, adjusted_points=adjusted
        )
