"""
Handle-based cube API.

Functions address cubes by integer id through the process-wide
:class:`~cubemodel.cube.registry.CubeRegistry` and never raise for cube
errors: status calls return ``1`` on success and ``-1`` on failure, buffer
calls return ``None`` on failure. :func:`last_error` tells which
:class:`~cubemodel.core.errors.ErrorKind` caused the latest failure.

Example
-------
>>> from cubemodel.cube import api
>>> cube = api.create_instance()
>>> api.start_training(cube, presets, api.CUBE_METHOD_TSNE, 3)
1
>>> while api.is_training(cube):
...     for message in api.poll_messages(cube):
...         print(message)
>>> api.restore(cube, [0.1, -0.2, 0.05])
"""

from functools import wraps
from pathlib import Path
from typing import Callable, List, Optional, Union

import numpy as np

from cubemodel.core.constants import CUBE_METHOD_ICA, CUBE_METHOD_TSNE, FAILURE
from cubemodel.core.errors import ErrorKind, error_kind
from cubemodel.core.logging_config import get_logger
from cubemodel.cube.registry import get_registry
from cubemodel.io.model_store import ModelStore

logger = get_logger("cube.api")

OK = 1

__all__ = [
    "CUBE_METHOD_ICA",
    "CUBE_METHOD_TSNE",
    "OK",
    "FAILURE",
    "create_instance",
    "delete_instance",
    "poll_messages",
    "start_training",
    "is_training",
    "stop_training",
    "has_model",
    "restore",
    "get_input_dimensions",
    "get_restored_dimensions",
    "export_model",
    "import_model",
    "save_model",
    "load_model",
    "last_error",
]


def _guarded(failure):
    """Turn exceptions of a handle call into ``failure`` and record the error kind."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(cube_id, *args, **kwargs):
            registry = get_registry()
            try:
                result = func(cube_id, *args, **kwargs)
            except Exception as e:
                kind = error_kind(e)
                if kind == ErrorKind.INTERNAL:
                    logger.error(f"{func.__name__}({cube_id}) failed: {e}", exc_info=True)
                else:
                    logger.warning(f"{func.__name__}({cube_id}) failed [{kind.value}]: {e}")
                registry.record_error(cube_id, kind)
                return failure
            registry.record_error(cube_id, ErrorKind.NONE)
            return result

        return wrapper

    return decorator


def create_instance() -> int:
    """Create an empty cube; returns its id or -1."""
    try:
        return get_registry().create()
    except Exception as e:
        logger.error(f"create_instance failed: {e}", exc_info=True)
        return FAILURE


def delete_instance(cube_id: int) -> int:
    """Stop any job, join its worker and release the cube."""
    try:
        get_registry().delete(cube_id)
    except Exception as e:
        logger.warning(f"delete_instance({cube_id}) failed: {e}")
        return FAILURE
    return OK


def poll_messages(cube_id: int) -> List[str]:
    """Drain pending messages; empty list if none or on unknown id."""
    try:
        return get_registry().get(cube_id).poll_messages()
    except Exception as e:
        logger.warning(f"poll_messages({cube_id}) failed: {e}")
        return []


@_guarded(FAILURE)
def start_training(
    cube_id: int, presets, method: int, reduced_dimensions: int, quality: float = 1.0
) -> int:
    """Start asynchronous training; 1 if started, -1 if rejected."""
    get_registry().get(cube_id).start_training(presets, method, reduced_dimensions, quality)
    return OK


def is_training(cube_id: int) -> bool:
    """True while a training job runs on the cube."""
    try:
        return get_registry().get(cube_id).is_training
    except Exception:
        return False


@_guarded(FAILURE)
def stop_training(cube_id: int) -> int:
    """Cancel the running job (if any) and wait for its worker."""
    get_registry().get(cube_id).stop_training(wait=True)
    return OK


def has_model(cube_id: int) -> bool:
    """True if the cube has an installed model."""
    try:
        return get_registry().get(cube_id).has_model
    except Exception:
        return False


@_guarded(None)
def restore(cube_id: int, latent) -> Optional[np.ndarray]:
    """Restore a D-dim preset from an L-dim latent vector; None on failure."""
    return get_registry().get(cube_id).restore(latent)


@_guarded(FAILURE)
def get_input_dimensions(cube_id: int) -> int:
    """Latent dimension L, or -1."""
    return get_registry().get(cube_id).get_input_dimensions()


@_guarded(FAILURE)
def get_restored_dimensions(cube_id: int) -> int:
    """Preset dimension D, or -1."""
    return get_registry().get(cube_id).get_restored_dimensions()


@_guarded(None)
def export_model(cube_id: int) -> Optional[np.ndarray]:
    """Flat float64 model parameters, or None."""
    return ModelStore.export(get_registry().get(cube_id))


@_guarded(FAILURE)
def import_model(cube_id: int, params) -> int:
    """Install exported parameters into the cube."""
    ModelStore.import_(get_registry().get(cube_id), params)
    return OK


@_guarded(FAILURE)
def save_model(cube_id: int, path: Union[str, Path]) -> int:
    """Save the cube's model to a file."""
    ModelStore.save(get_registry().get(cube_id), path)
    return OK


@_guarded(FAILURE)
def load_model(cube_id: int, path: Union[str, Path]) -> int:
    """Load a model file into the cube."""
    ModelStore.load(get_registry().get(cube_id), path)
    return OK


def last_error(cube_id: int) -> ErrorKind:
    """Kind of the latest failed call on ``cube_id`` (NONE after a success)."""
    return get_registry().last_error(cube_id)
