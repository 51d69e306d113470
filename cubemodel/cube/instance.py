"""
Cube instance: one addressable model with its training lifecycle.
"""

from dataclasses import replace
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union
import threading

import numpy as np

from cubemodel.core.config import CubeConfig
from cubemodel.core.errors import (
    ConflictError,
    DimensionMismatchError,
    NotReadyError,
)
from cubemodel.core.logging_config import get_logger
from cubemodel.io.model_store import (
    export_parameters,
    import_parameters,
    load_parameters,
    save_parameters,
)
from cubemodel.training.job import JobState, TrainingJob, validate_request
from cubemodel.training.messages import MessageQueue
from cubemodel.training.model import TrainedModel

logger = get_logger("cube.instance")


class CubeState(Enum):
    """Instance lifecycle."""

    EMPTY = "empty"
    TRAINING = "training"
    READY = "ready"
    STOPPED = "stopped"
    FAILED = "failed"


_JOB_OUTCOME = {
    JobState.CANCELLED: CubeState.STOPPED,
    JobState.FAILED: CubeState.FAILED,
}


class CubeInstance:
    """
    A cube model instance.

    Owns its message queue, the running training job (if any) and the
    installed model. Readers (``restore``, ``export_model``, dimension
    queries) never wait for a running job; they see the previously
    installed model until the job installs a new one.

    Parameters
    ----------
    cube_id : int
        Registry id
    config : CubeConfig, optional
        Hyperparameters for training jobs
    """

    def __init__(self, cube_id: int = 0, config: Optional[CubeConfig] = None):
        self.cube_id = cube_id
        self.config = config or CubeConfig()
        self.config.validate()
        self.messages = MessageQueue()

        self._lock = threading.RLock()
        self._model: Optional[TrainedModel] = None
        self._input_dim: Optional[int] = None
        self._job: Optional[TrainingJob] = None
        self._state = CubeState.EMPTY
        self._closed = False

    def __repr__(self) -> str:
        return f"CubeInstance(id={self.cube_id}, state={self.state.value})"

    # --- state -------------------------------------------------------------

    @property
    def state(self) -> CubeState:
        with self._lock:
            job = self._job
            if job is not None:
                job_state = job.state
                if job_state == JobState.RUNNING:
                    return CubeState.TRAINING
                if job_state in _JOB_OUTCOME:
                    return _JOB_OUTCOME[job_state]
            return self._state

    @property
    def is_training(self) -> bool:
        with self._lock:
            return self._job is not None and self._job.is_running

    @property
    def has_model(self) -> bool:
        with self._lock:
            return self._model is not None

    @property
    def model(self) -> Optional[TrainedModel]:
        with self._lock:
            return self._model

    def poll_messages(self) -> List[str]:
        """Drain pending messages (each is returned exactly once)."""
        return self.messages.drain()

    # --- training ----------------------------------------------------------

    def start_training(self, samples, method, latent_dim: int, quality: float = 1.0) -> None:
        """
        Validate and launch a training job.

        Parameters
        ----------
        samples : array-like
            N x D presets (copied; the caller keeps ownership of its buffer)
        method : ReductionMethod, int or str
            Forward method
        latent_dim : int
            2 or 3
        quality : float
            Reserved; currently has no effect

        Raises
        ------
        ConflictError
            A job is already running
        InvalidParameterError, DimensionMismatchError
            Rejected request
        """
        with self._lock:
            if self._closed:
                raise NotReadyError(f"Cube {self.cube_id} has been released")
            if self._job is not None and self._job.is_running:
                raise ConflictError(f"Cube {self.cube_id} is already training")

            matrix, method, latent_dim = validate_request(
                samples, method, latent_dim, self.config, expected_dim=self._input_dim
            )

            if quality != 1.0:
                logger.debug(f"Cube {self.cube_id}: quality={quality} is reserved and ignored")

            job = TrainingJob(
                matrix,
                method,
                latent_dim,
                replace(self.config),
                messages=self.messages,
                on_complete=self._install_trained,
                quality=quality,
                name=f"cube{self.cube_id}",
            )
            self._job = job
            job.start()

        logger.info(
            f"Cube {self.cube_id}: started {method.name.lower()} training "
            f"({matrix.shape[0]} x {matrix.shape[1]} -> {latent_dim})"
        )

    def _install_trained(self, model: TrainedModel) -> None:
        with self._lock:
            self._model = model
            self._input_dim = model.input_dim
            self._state = CubeState.READY
        logger.info(f"Cube {self.cube_id}: installed model D={model.input_dim}, L={model.latent_dim}")

    def stop_training(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Request cancellation of the running job.

        Parameters
        ----------
        wait : bool
            Join the worker before returning
        timeout : float, optional
            Join timeout in seconds

        Returns
        -------
        bool
            True if no worker is left running
        """
        with self._lock:
            job = self._job
        if job is None:
            return True
        job.stop()
        if not wait:
            return not job.is_running
        return job.join(timeout)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current job (if any) finishes."""
        with self._lock:
            job = self._job
        return True if job is None else job.join(timeout)

    @property
    def last_job(self) -> Optional[TrainingJob]:
        with self._lock:
            return self._job

    # --- queries -----------------------------------------------------------

    def _require_model(self) -> TrainedModel:
        model = self.model
        if model is None:
            raise NotReadyError(f"Cube {self.cube_id} has no model")
        return model

    def restore(self, latent) -> np.ndarray:
        """
        Restore a preset from a latent coordinate.

        Raises
        ------
        NotReadyError
            No model is installed
        DimensionMismatchError
            Wrong latent vector length
        """
        return self._require_model().restore(latent)

    def project(self, presets) -> np.ndarray:
        """Project presets into latent space (linear models only)."""
        return self._require_model().project(presets)

    def get_input_dimensions(self) -> int:
        """Latent dimension L accepted by :meth:`restore`."""
        return self._require_model().latent_dim

    def get_restored_dimensions(self) -> int:
        """Preset dimension D returned by :meth:`restore`."""
        return self._require_model().input_dim

    # --- persistence -------------------------------------------------------

    def export_model(self) -> np.ndarray:
        """Export the installed model as a flat parameter vector."""
        return export_parameters(self._require_model())

    def import_model(self, params) -> None:
        """
        Install a model from exported parameters without training.

        Raises
        ------
        SerializationError
            Corrupt or unsupported parameters
        DimensionMismatchError
            D or L differ from the model this cube already holds
        ConflictError
            A job is running
        """
        model = import_parameters(params)
        with self._lock:
            if self._job is not None and self._job.is_running:
                raise ConflictError(f"Cube {self.cube_id} is training; stop it before importing")
            current = self._model
            if current is not None and (
                current.input_dim != model.input_dim or current.latent_dim != model.latent_dim
            ):
                raise DimensionMismatchError(
                    f"Imported model is {model.input_dim} -> {model.latent_dim}, cube holds "
                    f"{current.input_dim} -> {current.latent_dim}"
                )
            if self._input_dim is not None and self._input_dim != model.input_dim:
                raise DimensionMismatchError(
                    f"Imported model restores {model.input_dim} dimensions, "
                    f"cube expects {self._input_dim}"
                )
            self._model = model
            self._input_dim = model.input_dim
            self._state = CubeState.READY
            self._job = None
        self.messages.put(
            f"model imported: {model.input_dim} -> {model.latent_dim} dims, "
            f"method {model.method.name.lower()}"
        )

    def save_model(self, path: Union[str, Path]) -> Path:
        return save_parameters(self.export_model(), path)

    def load_model(self, path: Union[str, Path]) -> None:
        self.import_model(load_parameters(path))

    # --- teardown ----------------------------------------------------------

    def close(self) -> None:
        """Cancel and join any worker, then release owned buffers."""
        with self._lock:
            self._closed = True
            job = self._job
        if job is not None:
            job.stop()
            job.join()
        with self._lock:
            self._job = None
            self._model = None
            self._state = CubeState.EMPTY
        self.messages.clear()
        logger.debug(f"Cube {self.cube_id} released")
