"""
Linear projection by whitening and FastICA.

Presets are centred and whitened through an eigendecomposition of their
covariance (keeping the L leading directions), then L maximally
non-Gaussian directions are found one at a time with the logcosh
fixed-point update and Gram-Schmidt deflation.

References:
- Hyvarinen & Oja, "Independent Component Analysis: Algorithms and
  Applications" (Neural Networks 2000)
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from scipy import linalg

from cubemodel.core.abc import ProgressReporter, check_cancelled, report
from cubemodel.core.errors import InvalidParameterError, NumericalError
from cubemodel.core.logging_config import get_logger

logger = get_logger("reduction.ica")

# Smallest admissible covariance eigenvalue relative to the largest one
SINGULAR_RCOND = 1e-10


@dataclass
class ProjectionResult:
    """
    Learned linear projection.

    Attributes
    ----------
    mean : np.ndarray
        Per-feature means (D,)
    matrix : np.ndarray
        D x L projection; latent = (x - mean) @ matrix
    converged : List[bool]
        Convergence flag of each independent component
    iterations : List[int]
        Fixed-point iterations spent on each component
    """

    mean: np.ndarray
    matrix: np.ndarray
    converged: List[bool] = field(default_factory=list)
    iterations: List[int] = field(default_factory=list)

    @property
    def input_dim(self) -> int:
        return self.matrix.shape[0]

    @property
    def n_components(self) -> int:
        return self.matrix.shape[1]

    def project(self, samples: np.ndarray) -> np.ndarray:
        """Map presets (N x D or D,) to latent coordinates."""
        samples = np.asarray(samples, dtype=np.float64)
        return (samples - self.mean) @ self.matrix


def check_covariance(centered: np.ndarray) -> np.ndarray:
    """
    Covariance of centred presets, rejecting singular cases up front.

    Parameters
    ----------
    centered : np.ndarray
        N x D zero-mean sample matrix

    Returns
    -------
    np.ndarray
        D x D covariance

    Raises
    ------
    NumericalError
        If there are not more presets than features or the covariance
        is (numerically) rank deficient
    """
    n, d = centered.shape
    if n <= d:
        raise NumericalError(
            f"Singular covariance: {n} presets cannot span {d} dimensions (need more than {d})"
        )

    rank = np.linalg.matrix_rank(centered)
    if rank < d:
        raise NumericalError(f"Singular covariance: rank {rank} < {d} features")

    covariance = centered.T @ centered / (n - 1)
    eigenvalues = linalg.eigvalsh(covariance)
    if eigenvalues[0] <= SINGULAR_RCOND * eigenvalues[-1]:
        raise NumericalError(
            f"Singular covariance: eigenvalue ratio {eigenvalues[0] / eigenvalues[-1]:.3e}"
        )
    return covariance


def _logcosh(values: np.ndarray):
    g = np.tanh(values)
    return g, 1.0 - g * g


class FastICAProjector:
    """
    Deflationary FastICA.

    Parameters
    ----------
    n_components : int
        Latent dimension L
    max_iterations : int
        Fixed-point iteration cap per component
    tolerance : float
        Convergence tolerance on |<w_new, w_old>| - 1
    seed : int
        Seed for the initial directions
    """

    def __init__(
        self,
        n_components: int = 2,
        max_iterations: int = 1000,
        tolerance: float = 1e-6,
        seed: int = 0,
    ):
        if n_components < 1:
            raise InvalidParameterError("n_components must be >= 1")
        self.n_components = n_components
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.seed = seed

    def fit(
        self, samples: np.ndarray, progress: Optional[ProgressReporter] = None
    ) -> ProjectionResult:
        """
        Learn the projection.

        Parameters
        ----------
        samples : np.ndarray
            N x D sample matrix
        progress : ProgressReporter, optional
            Receives per-component messages and honours stop requests

        Returns
        -------
        ProjectionResult
        """
        samples = np.asarray(samples, dtype=np.float64)
        if samples.ndim != 2:
            raise InvalidParameterError("FastICA needs a 2-D sample matrix")

        n, d = samples.shape
        if self.n_components > d:
            raise InvalidParameterError(
                f"Cannot extract {self.n_components} components from {d} features"
            )

        mean = samples.mean(axis=0)
        centered = samples - mean
        covariance = check_covariance(centered)

        eigenvalues, eigenvectors = linalg.eigh(covariance)
        order = np.argsort(eigenvalues)[::-1][: self.n_components]
        whitening = eigenvectors[:, order] / np.sqrt(eigenvalues[order])
        whitened = centered @ whitening

        explained = eigenvalues[order].sum() / eigenvalues.sum()
        logger.debug(f"Whitened {n} presets, {explained:.1%} variance in {self.n_components} dims")

        rng = np.random.default_rng(self.seed)
        unmixing = np.zeros((self.n_components, self.n_components))
        converged: List[bool] = []
        spent: List[int] = []

        for p in range(self.n_components):
            w = rng.standard_normal(self.n_components)
            w /= np.linalg.norm(w)
            done = False

            for iteration in range(1, self.max_iterations + 1):
                check_cancelled(progress)

                g, g_prime = _logcosh(whitened @ w)
                w_new = (whitened * g[:, None]).mean(axis=0) - g_prime.mean() * w
                w_new -= unmixing[:p].T @ (unmixing[:p] @ w_new)
                norm = np.linalg.norm(w_new)
                if not np.isfinite(norm) or norm == 0.0:
                    raise NumericalError(f"FastICA update collapsed for component {p + 1}")
                w_new /= norm

                change = abs(abs(float(w_new @ w)) - 1.0)
                w = w_new
                if change < self.tolerance:
                    done = True
                    break

            # sign convention: positive skew of the recovered source
            source = whitened @ w
            if np.mean(source**3) < 0:
                w = -w

            unmixing[p] = w
            converged.append(done)
            spent.append(iteration)

            if done:
                report(
                    progress,
                    f"ICA component {p + 1} of {self.n_components} converged "
                    f"after {iteration} iterations",
                )
            else:
                report(
                    progress,
                    f"WARNING: ICA component {p + 1} of {self.n_components} did not "
                    f"converge within {self.max_iterations} iterations",
                )

        matrix = whitening @ unmixing.T
        logger.info(
            f"FastICA: {d} -> {self.n_components} dims, "
            f"{sum(converged)}/{self.n_components} components converged"
        )

        return ProjectionResult(mean=mean, matrix=matrix, converged=converged, iterations=spent)
