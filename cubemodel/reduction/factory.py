"""
Forward reduction strategies.

Each strategy maps a sample matrix to latent coordinates. The method is
chosen once, when a training job starts; both strategies return the same
:class:`ReductionOutcome` shape so the inverse regressor consumes them
uniformly.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np

from cubemodel.core.abc import ProgressReporter, report
from cubemodel.core.config import CubeConfig
from cubemodel.core.constants import MIN_FEATURE_SCALE, ReductionMethod
from cubemodel.core.errors import InvalidParameterError
from cubemodel.core.logging_config import get_logger
from cubemodel.reduction.affinity import AffinityModel
from cubemodel.reduction.ica import FastICAProjector, ProjectionResult
from cubemodel.reduction.tsne import TSNEEmbedder

logger = get_logger("reduction.factory")


@dataclass
class ReductionOutcome:
    """
    Result of a forward reduction.

    Attributes
    ----------
    embedding : np.ndarray
        N x L standardised latent coordinates, row-aligned with the presets
    projector : ProjectionResult, optional
        Linear projection into the same standardised space (linear method only)
    """

    embedding: np.ndarray
    projector: Optional[ProjectionResult] = None


ReducerFn = Callable[[np.ndarray, int, CubeConfig, Optional[ProgressReporter]], ReductionOutcome]


def standardize_embedding(embedding: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Shift and scale each latent axis to zero mean and unit variance.

    Returns
    -------
    standardized : np.ndarray
        Standardised embedding
    mean : np.ndarray
        Per-axis means removed
    scale : np.ndarray
        Per-axis standard deviations divided out
    """
    mean = embedding.mean(axis=0)
    scale = np.maximum(embedding.std(axis=0), MIN_FEATURE_SCALE)
    return (embedding - mean) / scale, mean, scale


def reduce_nonlinear(
    samples: np.ndarray,
    n_components: int,
    config: CubeConfig,
    progress: Optional[ProgressReporter] = None,
) -> ReductionOutcome:
    """Affinities followed by t-SNE."""
    report(progress, f"computing affinities (perplexity {config.perplexity:g})")
    affinities = AffinityModel(perplexity=config.perplexity).compute(samples, progress)

    embedder = TSNEEmbedder(
        n_components=n_components,
        iterations=config.tsne_iterations,
        learning_rate=config.tsne_learning_rate,
        early_exaggeration=config.early_exaggeration,
        exaggeration_fraction=config.exaggeration_fraction,
        initial_momentum=config.initial_momentum,
        final_momentum=config.final_momentum,
        seed=config.seed,
    )
    result = embedder.embed(affinities.joint, progress)
    report(progress, f"t-SNE finished with KL divergence {result.kl_divergence:.4f}")

    embedding, _, _ = standardize_embedding(result.embedding)
    return ReductionOutcome(embedding=embedding)


def reduce_linear(
    samples: np.ndarray,
    n_components: int,
    config: CubeConfig,
    progress: Optional[ProgressReporter] = None,
) -> ReductionOutcome:
    """Whitening followed by FastICA."""
    report(progress, "computing independent components")
    projector = FastICAProjector(
        n_components=n_components,
        max_iterations=config.ica_max_iterations,
        tolerance=config.ica_tolerance,
        seed=config.seed,
    ).fit(samples, progress)

    raw = projector.project(samples)
    embedding, shift, scale = standardize_embedding(raw)

    # fold the standardisation into the projection
    matrix = projector.matrix / scale
    mean = projector.mean + np.linalg.lstsq(matrix.T, shift / scale, rcond=None)[0]
    folded = ProjectionResult(
        mean=mean,
        matrix=matrix,
        converged=projector.converged,
        iterations=projector.iterations,
    )
    return ReductionOutcome(embedding=embedding, projector=folded)


class ReducerFactory:
    """Registry of forward reduction strategies keyed by method."""

    _reducers: Dict[ReductionMethod, ReducerFn] = {}

    @classmethod
    def register(cls, method: ReductionMethod, reducer: ReducerFn) -> None:
        """
        Register a reduction strategy.

        Parameters
        ----------
        method : ReductionMethod
            Method tag
        reducer : callable
            ``reducer(samples, n_components, config, progress) -> ReductionOutcome``
        """
        cls._reducers[method] = reducer
        logger.debug(f"Registered reducer: {method.name}")

    @classmethod
    def create(cls, method) -> ReducerFn:
        """
        Look up the strategy for a method.

        Raises
        ------
        InvalidParameterError
            If the method is unknown or not registered
        """
        try:
            method = ReductionMethod.parse(method)
        except ValueError as e:
            raise InvalidParameterError(f"Unsupported reduction method: {method}") from e

        if method not in cls._reducers:
            available = ", ".join(m.name for m in cls._reducers)
            raise InvalidParameterError(f"Unknown reducer: {method.name}. Available: {available}")
        return cls._reducers[method]

    @classmethod
    def list_methods(cls) -> list:
        """List registered methods."""
        return list(cls._reducers.keys())


ReducerFactory.register(ReductionMethod.LINEAR, reduce_linear)
ReducerFactory.register(ReductionMethod.NONLINEAR, reduce_nonlinear)
