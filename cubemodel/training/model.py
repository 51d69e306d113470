"""
The trained cube model: everything needed to answer restore queries.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from cubemodel.core.constants import ReductionMethod
from cubemodel.core.errors import DimensionMismatchError, InvalidParameterError, NotReadyError
from cubemodel.reduction.ica import ProjectionResult
from cubemodel.regression.network import InverseRegressor


@dataclass
class TrainedModel:
    """
    Immutable-by-convention result of a training job or an import.

    Attributes
    ----------
    method : ReductionMethod
        Forward method the model was trained with
    regressor : InverseRegressor
        Latent -> preset network
    projector : ProjectionResult, optional
        Preset -> latent projection (linear method only)
    """

    method: ReductionMethod
    regressor: InverseRegressor
    projector: Optional[ProjectionResult] = None

    @property
    def input_dim(self) -> int:
        """Preset dimension D."""
        return self.regressor.output_dim

    @property
    def latent_dim(self) -> int:
        """Latent dimension L."""
        return self.regressor.input_dim

    def restore(self, latent) -> np.ndarray:
        """
        Reconstruct a preset from a latent coordinate.

        Parameters
        ----------
        latent : array-like
            L-vector (values roughly in [-2, 2]; larger values extrapolate) or
            N x L batch

        Returns
        -------
        np.ndarray
            D-vector or N x D batch
        """
        try:
            latent = np.asarray(latent, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidParameterError(f"Latent vector is not numeric: {e}") from e
        if latent.shape[-1:] != (self.latent_dim,) or latent.ndim > 2:
            raise DimensionMismatchError(
                f"Expected latent vector of length {self.latent_dim}, got shape {latent.shape}"
            )
        if not np.all(np.isfinite(latent)):
            raise InvalidParameterError("Latent vector contains non-finite values")
        return self.regressor.predict(latent)

    def project(self, presets) -> np.ndarray:
        """Map presets to latent coordinates (linear method only)."""
        if self.projector is None:
            raise NotReadyError(
                f"Model trained with {self.method.name.lower()} method has no forward projection"
            )
        try:
            presets = np.asarray(presets, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidParameterError(f"Presets are not numeric: {e}") from e
        if presets.shape[-1:] != (self.input_dim,) or presets.ndim > 2:
            raise DimensionMismatchError(
                f"Expected presets of length {self.input_dim}, got shape {presets.shape}"
            )
        return self.projector.project(presets)
