"""
Inverse regression network.

A small fully connected network (tanh hidden layers, linear output) maps
latent coordinates back to presets. It is trained with Adam on mini-batches
to minimise the mean squared reconstruction error of standardised presets.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from cubemodel.core.abc import ProgressReporter, check_cancelled, report
from cubemodel.core.constants import MIN_FEATURE_SCALE
from cubemodel.core.errors import DimensionMismatchError, InvalidParameterError, NumericalError
from cubemodel.core.logging_config import get_logger

logger = get_logger("regression.network")

Layer = Tuple[np.ndarray, np.ndarray]


@dataclass
class FitHistory:
    """Per-pass training losses of an inverse fit."""

    losses: List[float] = field(default_factory=list)
    epochs: int = 0

    @property
    def final_loss(self) -> float:
        return self.losses[-1] if self.losses else float("nan")


class AdamOptimizer:
    """Adam update rule over a list of parameter arrays (updated in place)."""

    def __init__(
        self,
        parameters: Sequence[np.ndarray],
        learning_rate: float = 1e-3,
        beta1: float = 0.9,
        beta2: float = 0.999,
        eps: float = 1e-8,
    ):
        self.parameters = list(parameters)
        self.learning_rate = learning_rate
        self.beta1 = beta1
        self.beta2 = beta2
        self.eps = eps
        self.step_count = 0
        self._m = [np.zeros_like(p) for p in self.parameters]
        self._v = [np.zeros_like(p) for p in self.parameters]

    def step(self, gradients: Sequence[np.ndarray]) -> None:
        self.step_count += 1
        t = self.step_count
        correction1 = 1.0 - self.beta1**t
        correction2 = 1.0 - self.beta2**t
        for param, grad, m, v in zip(self.parameters, gradients, self._m, self._v):
            m *= self.beta1
            m += (1.0 - self.beta1) * grad
            v *= self.beta2
            v += (1.0 - self.beta2) * grad * grad
            param -= self.learning_rate * (m / correction1) / (np.sqrt(v / correction2) + self.eps)


class InverseRegressor:
    """
    Feed-forward network from latent space (L) to preset space (D).

    Parameters
    ----------
    input_dim : int
        Latent dimension L
    output_dim : int
        Preset dimension D
    hidden : Sequence[int]
        Hidden layer widths
    seed : int
        Seed for weight initialisation and batch shuffling
    """

    def __init__(
        self,
        input_dim: int,
        output_dim: int,
        hidden: Sequence[int] = (64, 64),
        seed: int = 0,
    ):
        if input_dim < 1 or output_dim < 1:
            raise InvalidParameterError("Network dimensions must be positive")
        if any(h < 1 for h in hidden):
            raise InvalidParameterError("Hidden layer widths must be positive")

        self.input_dim = int(input_dim)
        self.output_dim = int(output_dim)
        self.hidden = tuple(int(h) for h in hidden)
        self.seed = seed

        rng = np.random.default_rng(seed)
        self.layers: List[Layer] = []
        for fan_in, fan_out in zip(self.layer_sizes[:-1], self.layer_sizes[1:]):
            limit = np.sqrt(6.0 / (fan_in + fan_out))
            weights = rng.uniform(-limit, limit, size=(fan_in, fan_out))
            self.layers.append((weights, np.zeros(fan_out)))

        self.output_mean = np.zeros(self.output_dim)
        self.output_scale = np.ones(self.output_dim)

    @classmethod
    def from_parameters(
        cls,
        layers: Sequence[Layer],
        output_mean: np.ndarray,
        output_scale: np.ndarray,
    ) -> "InverseRegressor":
        """
        Rebuild a network from stored weights.

        Parameters
        ----------
        layers : sequence of (weights, biases)
            Weights are (fan_in, fan_out), biases (fan_out,)
        output_mean, output_scale : np.ndarray
            Preset standardisation (D,)
        """
        if len(layers) < 2:
            raise InvalidParameterError("A network needs at least one hidden layer")

        sizes = [layers[0][0].shape[0]] + [w.shape[1] for w, _ in layers]
        network = cls.__new__(cls)
        network.input_dim = sizes[0]
        network.output_dim = sizes[-1]
        network.hidden = tuple(sizes[1:-1])
        network.seed = None
        network.layers = []
        for (weights, biases), fan_in, fan_out in zip(layers, sizes[:-1], sizes[1:]):
            weights = np.array(weights, dtype=np.float64).reshape(fan_in, fan_out)
            biases = np.array(biases, dtype=np.float64).reshape(fan_out)
            network.layers.append((weights, biases))
        network.output_mean = np.array(output_mean, dtype=np.float64).reshape(network.output_dim)
        network.output_scale = np.array(output_scale, dtype=np.float64).reshape(
            network.output_dim
        )
        return network

    @property
    def layer_sizes(self) -> Tuple[int, ...]:
        return (self.input_dim,) + self.hidden + (self.output_dim,)

    @property
    def n_parameters(self) -> int:
        return sum(w.size + b.size for w, b in self.layers)

    def _forward(self, latent: np.ndarray) -> Tuple[np.ndarray, List[np.ndarray]]:
        activations = [latent]
        h = latent
        for weights, biases in self.layers[:-1]:
            h = np.tanh(h @ weights + biases)
            activations.append(h)
        weights, biases = self.layers[-1]
        return h @ weights + biases, activations

    def _backward(
        self, activations: List[np.ndarray], residual: np.ndarray
    ) -> List[np.ndarray]:
        """Gradients of the mean squared error, ordered like the flat parameter list."""
        batch = residual.shape[0]
        delta = 2.0 * residual / (batch * self.output_dim)
        grads: List[np.ndarray] = []
        for index in range(len(self.layers) - 1, -1, -1):
            weights, _ = self.layers[index]
            inputs = activations[index]
            grads.append(delta.sum(axis=0))
            grads.append(inputs.T @ delta)
            if index > 0:
                delta = (delta @ weights.T) * (1.0 - inputs * inputs)
        grads.reverse()
        return grads

    def _flat_parameters(self) -> List[np.ndarray]:
        flat: List[np.ndarray] = []
        for weights, biases in self.layers:
            flat.extend([weights, biases])
        return flat

    def fit(
        self,
        latent: np.ndarray,
        presets: np.ndarray,
        epochs: int = 300,
        batch_size: int = 64,
        learning_rate: float = 1e-3,
        progress: Optional[ProgressReporter] = None,
    ) -> FitHistory:
        """
        Train on (latent, preset) pairs.

        Parameters
        ----------
        latent : np.ndarray
            N x L inputs
        presets : np.ndarray
            N x D targets
        epochs : int
            Passes over the training pairs; a stop request is honoured once per pass
        batch_size : int
            Mini-batch size
        learning_rate : float
            Adam step size
        progress : ProgressReporter, optional
            Receives pass messages and honours stop requests

        Returns
        -------
        FitHistory
        """
        latent = np.asarray(latent, dtype=np.float64)
        presets = np.asarray(presets, dtype=np.float64)
        if latent.ndim != 2 or latent.shape[1] != self.input_dim:
            raise DimensionMismatchError(
                f"Latent inputs must be N x {self.input_dim}, got {latent.shape}"
            )
        if presets.ndim != 2 or presets.shape[1] != self.output_dim:
            raise DimensionMismatchError(
                f"Preset targets must be N x {self.output_dim}, got {presets.shape}"
            )
        if latent.shape[0] != presets.shape[0]:
            raise DimensionMismatchError("Latent inputs and presets must have the same rows")

        n = latent.shape[0]
        self.output_mean = presets.mean(axis=0)
        self.output_scale = np.maximum(presets.std(axis=0), MIN_FEATURE_SCALE)
        targets = (presets - self.output_mean) / self.output_scale

        rng = np.random.default_rng(self.seed)
        optimizer = AdamOptimizer(self._flat_parameters(), learning_rate=learning_rate)
        history = FitHistory()
        report_every = max(1, epochs // 10)

        logger.info(
            f"Training inverse network {self.layer_sizes} on {n} pairs for {epochs} passes"
        )

        for epoch in range(1, epochs + 1):
            check_cancelled(progress)

            order = rng.permutation(n)
            total = 0.0
            for start in range(0, n, batch_size):
                batch = order[start : start + batch_size]
                output, activations = self._forward(latent[batch])
                residual = output - targets[batch]
                total += float(np.sum(residual * residual))
                optimizer.step(self._backward(activations, residual))

            loss = total / (n * self.output_dim)
            if not np.isfinite(loss):
                raise NumericalError(f"Inverse model loss diverged at pass {epoch}")
            history.losses.append(loss)
            history.epochs = epoch

            if epoch % report_every == 0 or epoch == epochs:
                report(progress, f"inverse model training pass {epoch} of {epochs} (mse {loss:.6f})")
                logger.debug(f"Inverse pass {epoch}/{epochs}: mse={loss:.6f}")

        return history

    def predict(self, latent: np.ndarray) -> np.ndarray:
        """
        Restore presets from latent coordinates.

        Parameters
        ----------
        latent : np.ndarray
            A single L-vector or an N x L batch

        Returns
        -------
        np.ndarray
            D-vector or N x D batch, in original preset units
        """
        latent = np.asarray(latent, dtype=np.float64)
        single = latent.ndim == 1
        batch = latent.reshape(1, -1) if single else latent
        if batch.ndim != 2 or batch.shape[1] != self.input_dim:
            raise DimensionMismatchError(
                f"Expected latent vectors of length {self.input_dim}, got shape {latent.shape}"
            )

        output, _ = self._forward(batch)
        restored = output * self.output_scale + self.output_mean
        return restored[0] if single else restored
