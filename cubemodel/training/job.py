"""
Training job: forward reduction plus inverse fit as one asynchronous unit.

A job runs on its own worker thread. Progress goes to a
:class:`~cubemodel.training.messages.MessageQueue`; stop requests are
cooperative and observed once per t-SNE iteration, FastICA iteration or
inverse training pass. Errors never leave the worker: they move the job to
FAILED and are published as ``"ERROR: ..."`` messages.
"""

from enum import Enum
from typing import Callable, Optional, Tuple
import threading
import time

import numpy as np

from cubemodel.core.config import CubeConfig
from cubemodel.core.constants import SUPPORTED_LATENT_DIMS, ReductionMethod
from cubemodel.core.errors import (
    CancelledError,
    ConflictError,
    DimensionMismatchError,
    InvalidParameterError,
    ResourceExhaustionError,
)
from cubemodel.core.logging_config import get_logger
from cubemodel.reduction.affinity import validate_perplexity
from cubemodel.reduction.factory import ReducerFactory
from cubemodel.regression.network import InverseRegressor
from cubemodel.training.messages import MessageQueue
from cubemodel.training.model import TrainedModel

logger = get_logger("training.job")


class JobState(Enum):
    """Lifecycle of a training job."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


def prepare_samples(samples, expected_dim: Optional[int] = None) -> np.ndarray:
    """
    Copy and validate a preset matrix.

    Parameters
    ----------
    samples : array-like
        N presets of D values each
    expected_dim : int, optional
        Required D (fixed after the first successful training)

    Returns
    -------
    np.ndarray
        Private float64 N x D copy owned by the job

    Raises
    ------
    InvalidParameterError
        Empty, ragged or non-finite presets
    DimensionMismatchError
        D differs from ``expected_dim``
    ResourceExhaustionError
        The copy could not be allocated
    """
    if samples is None:
        raise InvalidParameterError("No presets given")

    try:
        matrix = np.array(samples, dtype=np.float64, copy=True)
    except MemoryError as e:
        raise ResourceExhaustionError(f"Cannot allocate preset matrix: {e}") from e
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(f"Presets must be a uniform numeric table: {e}") from e

    if matrix.size == 0:
        raise InvalidParameterError("Preset table is empty")
    if matrix.ndim != 2:
        raise InvalidParameterError(
            f"Presets must form an N x D table with uniform D, got shape {matrix.shape}"
        )
    if not np.all(np.isfinite(matrix)):
        raise InvalidParameterError("Presets contain non-finite values")
    if expected_dim is not None and matrix.shape[1] != expected_dim:
        raise DimensionMismatchError(
            f"Presets have {matrix.shape[1]} dimensions, cube expects {expected_dim}"
        )
    return matrix


def validate_request(
    samples, method, latent_dim, config: CubeConfig, expected_dim: Optional[int] = None
) -> Tuple[np.ndarray, ReductionMethod, int]:
    """
    Synchronous validation of a training request.

    Returns the owned sample copy, the parsed method and the latent dimension.
    """
    try:
        latent_dim = int(latent_dim)
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(f"Latent dimension must be an integer: {latent_dim}") from e
    if latent_dim not in SUPPORTED_LATENT_DIMS:
        raise InvalidParameterError(
            f"Latent dimension must be one of {SUPPORTED_LATENT_DIMS}, got {latent_dim}"
        )

    try:
        method = ReductionMethod.parse(method)
    except (TypeError, ValueError) as e:
        raise InvalidParameterError(f"Unsupported reduction method: {method}") from e

    matrix = prepare_samples(samples, expected_dim)

    if matrix.shape[0] < 2:
        raise InvalidParameterError("At least two presets are needed for training")
    if matrix.shape[1] < latent_dim:
        raise InvalidParameterError(
            f"Cannot reduce {matrix.shape[1]} dimensions to {latent_dim}"
        )
    if method == ReductionMethod.NONLINEAR:
        validate_perplexity(matrix.shape[0], config.perplexity)

    return matrix, method, latent_dim


class JobContext:
    """Progress reporter handed to the algorithms of one job."""

    def __init__(self, messages: MessageQueue, cancel_event: threading.Event, name: str):
        self.messages = messages
        self.cancel_event = cancel_event
        self.name = name

    def report(self, message: str) -> None:
        self.messages.put(message)
        logger.info(f"[{self.name}] {message}")

    def check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise CancelledError("computation stopped before completion")


class TrainingJob:
    """
    One forward reduction + inverse fit.

    Parameters
    ----------
    samples : np.ndarray
        Validated N x D presets, owned by the job
    method : ReductionMethod
        Forward method
    latent_dim : int
        Target latent dimension L
    config : CubeConfig
        Hyperparameters snapshot
    messages : MessageQueue, optional
        Destination of progress messages
    on_complete : callable, optional
        Called with the TrainedModel on the worker thread before the job is
        marked COMPLETED; used to install the model atomically
    quality : float
        Reserved; currently has no effect on the model
    name : str
        Label used in log records
    """

    def __init__(
        self,
        samples: np.ndarray,
        method: ReductionMethod,
        latent_dim: int,
        config: CubeConfig,
        messages: Optional[MessageQueue] = None,
        on_complete: Optional[Callable[[TrainedModel], None]] = None,
        quality: float = 1.0,
        name: str = "job",
    ):
        self.samples = samples
        self.method = ReductionMethod.parse(method)
        self.latent_dim = latent_dim
        self.config = config
        self.messages = messages if messages is not None else MessageQueue()
        self.on_complete = on_complete
        self.quality = quality
        self.name = name

        self._cancel = threading.Event()
        self._state_lock = threading.Lock()
        self._state = JobState.IDLE
        self._thread: Optional[threading.Thread] = None
        self.context = JobContext(self.messages, self._cancel, name)
        self.model: Optional[TrainedModel] = None
        self.error: Optional[BaseException] = None
        self.elapsed_s: Optional[float] = None

    @property
    def state(self) -> JobState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: JobState) -> None:
        with self._state_lock:
            self._state = state

    @property
    def is_running(self) -> bool:
        return self.state == JobState.RUNNING

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def run(self) -> TrainedModel:
        """
        Execute the pipeline on the calling thread.

        Raises
        ------
        CancelledError
            If a stop request was observed
        CubeError
            On numerical or resource failures
        """
        n, d = self.samples.shape
        self.context.report(
            f"training started: {n} presets, {d} -> {self.latent_dim} dims, "
            f"method {self.method.name.lower()}"
        )

        reducer = ReducerFactory.create(self.method)
        outcome = reducer(self.samples, self.latent_dim, self.config, self.context)

        self.context.report("training inverse model")
        regressor = InverseRegressor(
            input_dim=self.latent_dim,
            output_dim=d,
            hidden=self.config.regressor_hidden,
            seed=self.config.seed,
        )
        history = regressor.fit(
            outcome.embedding,
            self.samples,
            epochs=self.config.regressor_epochs,
            batch_size=self.config.regressor_batch_size,
            learning_rate=self.config.regressor_learning_rate,
            progress=self.context,
        )

        # last chance to honour a stop request before the model is handed out
        self.context.check_cancelled()

        self.context.report(f"inverse model final mse {history.final_loss:.6f}")
        return TrainedModel(method=self.method, regressor=regressor, projector=outcome.projector)

    def start(self) -> None:
        """
        Launch the worker thread.

        Raises
        ------
        ConflictError
            If this job was already started
        """
        with self._state_lock:
            if self._state != JobState.IDLE:
                raise ConflictError(f"Job {self.name} already started ({self._state.value})")
            self._state = JobState.RUNNING

        self._thread = threading.Thread(target=self._worker, name=f"cube-{self.name}", daemon=True)
        self._thread.start()

    def _worker(self) -> None:
        started = time.perf_counter()
        try:
            model = self.run()
            if self.on_complete is not None:
                self.on_complete(model)
            self.model = model
            self.elapsed_s = time.perf_counter() - started
            self.context.report(f"model ready ({self.elapsed_s:.1f} s)")
            self._set_state(JobState.COMPLETED)
        except CancelledError:
            self.elapsed_s = time.perf_counter() - started
            self.context.report("computation stopped before completion")
            self._set_state(JobState.CANCELLED)
        except Exception as e:
            self.error = e
            self.elapsed_s = time.perf_counter() - started
            logger.error(f"[{self.name}] training failed: {e}", exc_info=True)
            self.messages.put(f"ERROR: training failed: {e}")
            self._set_state(JobState.FAILED)
        finally:
            # the job no longer needs its private copy
            self.samples = None

    def stop(self) -> None:
        """Request cooperative cancellation."""
        if not self._cancel.is_set():
            logger.debug(f"[{self.name}] stop requested")
        self._cancel.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the worker.

        Returns
        -------
        bool
            True if the worker has finished (or never started)
        """
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()
