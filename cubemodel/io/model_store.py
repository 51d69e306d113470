"""
Model parameter export/import and file persistence.

Parameter layout (format version 1), one flat float64 sequence::

    [0] magic 0x43554245 ("CUBE")       [1] format version
    [2] method tag                       [3] D        [4] L
    [5] H = number of hidden layers      [6 .. 6+H) hidden widths
    [6+H] projector flag (0 or 1)
    output_mean (D), output_scale (D)
    per layer: weights (fan_in x fan_out, row-major), biases (fan_out)
    if projector flag: projector mean (D), projector matrix (D x L, row-major)

Model files are HDF5: the vector is the ``parameters`` dataset (Fletcher-32
filtered) and the root attributes carry ``magic`` ("CUBEMDL"),
``format_version`` and ``length``.
"""

from pathlib import Path
from typing import List, Tuple, Union

import numpy as np

from cubemodel.core.constants import (
    FILE_DATASET,
    FILE_FORMAT_VERSION,
    FILE_MAGIC,
    MODEL_FORMAT_VERSION,
    MODEL_MAGIC,
    SUPPORTED_MODEL_VERSIONS,
    ReductionMethod,
)
from cubemodel.core.errors import SerializationError
from cubemodel.core.logging_config import get_logger
from cubemodel.reduction.ica import ProjectionResult
from cubemodel.regression.network import InverseRegressor
from cubemodel.training.model import TrainedModel

logger = get_logger("io.model_store")

PathLike = Union[str, Path]


def export_parameters(model: TrainedModel) -> np.ndarray:
    """
    Serialise a trained model into one flat parameter vector.

    Parameters
    ----------
    model : TrainedModel
        Model to export

    Returns
    -------
    np.ndarray
        1-D float64 parameter sequence
    """
    regressor = model.regressor
    d, l = model.input_dim, model.latent_dim
    header = [
        MODEL_MAGIC,
        float(MODEL_FORMAT_VERSION),
        float(int(model.method)),
        float(d),
        float(l),
        float(len(regressor.hidden)),
    ]
    header.extend(float(h) for h in regressor.hidden)
    header.append(1.0 if model.projector is not None else 0.0)

    blocks = [np.array(header), regressor.output_mean, regressor.output_scale]
    for weights, biases in regressor.layers:
        blocks.append(weights.ravel(order="C"))
        blocks.append(biases)
    if model.projector is not None:
        blocks.append(model.projector.mean)
        blocks.append(model.projector.matrix.ravel(order="C"))

    params = np.concatenate([np.asarray(b, dtype=np.float64).ravel() for b in blocks])
    logger.debug(f"Exported {params.size} parameters (D={d}, L={l}, {model.method.name})")
    return params


def expected_length(d: int, l: int, hidden: Tuple[int, ...], has_projector: bool) -> int:
    """Number of values in a version-1 parameter vector."""
    sizes = (l,) + tuple(hidden) + (d,)
    total = 7 + len(hidden) + 2 * d
    total += sum(a * b + b for a, b in zip(sizes[:-1], sizes[1:]))
    if has_projector:
        total += d + d * l
    return total


def _as_count(value: float, name: str, minimum: int = 0) -> int:
    if not np.isfinite(value) or value != int(value) or value < minimum:
        raise SerializationError(f"Invalid {name} in model header: {value}")
    return int(value)


def import_parameters(params) -> TrainedModel:
    """
    Rebuild a model from a parameter vector produced by :func:`export_parameters`.

    Raises
    ------
    SerializationError
        Unknown magic or version, inconsistent header or wrong length
    """
    try:
        params = np.asarray(params, dtype=np.float64).ravel()
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Model parameters are not numeric: {e}") from e

    if params.size < 7:
        raise SerializationError(f"Model parameters too short ({params.size} values)")
    if params[0] != MODEL_MAGIC:
        raise SerializationError("Not a cube model parameter vector (bad magic)")

    version = _as_count(params[1], "format version", 1)
    if version not in SUPPORTED_MODEL_VERSIONS:
        raise SerializationError(
            f"Unsupported model format version {version} "
            f"(supported: {list(SUPPORTED_MODEL_VERSIONS)})"
        )

    try:
        method = ReductionMethod(_as_count(params[2], "method tag"))
    except ValueError as e:
        raise SerializationError(f"Unknown method tag {params[2]}") from e

    d = _as_count(params[3], "input dimension", 1)
    l = _as_count(params[4], "latent dimension", 1)
    n_hidden = _as_count(params[5], "hidden layer count", 1)
    if params.size < 7 + n_hidden:
        raise SerializationError("Model parameters truncated inside header")
    hidden = tuple(_as_count(h, "hidden width", 1) for h in params[6 : 6 + n_hidden])
    flag = params[6 + n_hidden]
    if flag not in (0.0, 1.0):
        raise SerializationError(f"Invalid projector flag {flag}")
    has_projector = flag == 1.0

    expected = expected_length(d, l, hidden, has_projector)
    if params.size != expected:
        raise SerializationError(
            f"Model parameter length {params.size} does not match layout ({expected} expected)"
        )
    if not np.all(np.isfinite(params)):
        raise SerializationError("Model parameters contain non-finite values")

    offset = 7 + n_hidden

    def take(count: int) -> np.ndarray:
        nonlocal offset
        block = params[offset : offset + count].copy()
        offset += count
        return block

    output_mean = take(d)
    output_scale = take(d)

    sizes = (l,) + hidden + (d,)
    layers: List[Tuple[np.ndarray, np.ndarray]] = []
    for fan_in, fan_out in zip(sizes[:-1], sizes[1:]):
        weights = take(fan_in * fan_out).reshape(fan_in, fan_out)
        biases = take(fan_out)
        layers.append((weights, biases))

    projector = None
    if has_projector:
        mean = take(d)
        matrix = take(d * l).reshape(d, l)
        projector = ProjectionResult(mean=mean, matrix=matrix)

    regressor = InverseRegressor.from_parameters(layers, output_mean, output_scale)
    logger.debug(f"Imported model: D={d}, L={l}, hidden={hidden}, method={method.name}")
    return TrainedModel(method=method, regressor=regressor, projector=projector)


def _import_h5py():
    """Lazy import h5py."""
    try:
        import h5py
    except ImportError:
        raise ImportError("h5py required for model files. Install with: pip install h5py")
    return h5py


def save_parameters(params, path: PathLike) -> Path:
    """
    Write a parameter vector to an HDF5 model file.

    The vector is stored as the ``parameters`` dataset with a Fletcher-32
    checksum; ``magic``, ``format_version`` and ``length`` are file attributes.

    Parameters
    ----------
    params : array-like
        Flat float64 parameters
    path : str or Path
        Destination file

    Returns
    -------
    Path
        The written path
    """
    h5py = _import_h5py()
    path = Path(path)
    data = np.ascontiguousarray(params, dtype=np.float64).ravel()

    with h5py.File(path, "w") as f:
        f.attrs["magic"] = FILE_MAGIC
        f.attrs["format_version"] = FILE_FORMAT_VERSION
        f.attrs["length"] = data.size
        f.create_dataset(FILE_DATASET, data=data, dtype="f8", fletcher32=True)

    logger.info(f"Saved {data.size} model parameters to {path}")
    return path


def load_parameters(path: PathLike) -> np.ndarray:
    """
    Read a parameter vector written by :func:`save_parameters`.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    SerializationError
        Not an HDF5 model file, unsupported format version, length mismatch
        or checksum failure
    """
    h5py = _import_h5py()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model file not found: {path}")

    try:
        f = h5py.File(path, "r")
    except OSError as e:
        raise SerializationError(f"Not a cube model file: {path}") from e

    with f:
        magic = f.attrs.get("magic")
        if isinstance(magic, bytes):
            magic = magic.decode("ascii", errors="replace")
        if magic != FILE_MAGIC or FILE_DATASET not in f:
            raise SerializationError(f"Not a cube model file: {path}")

        version = int(f.attrs.get("format_version", -1))
        if version != FILE_FORMAT_VERSION:
            raise SerializationError(f"Unsupported model file version {version}: {path}")

        dataset = f[FILE_DATASET]
        count = int(f.attrs.get("length", -1))
        if dataset.ndim != 1 or dataset.shape[0] != count:
            raise SerializationError(
                f"Model file payload has shape {dataset.shape}, header announces {count} values"
            )
        try:
            params = np.asarray(dataset[()], dtype=np.float64)
        except OSError as e:
            raise SerializationError(f"Model file checksum mismatch: {path}") from e

    logger.info(f"Loaded {count} model parameters from {path}")
    return params


class ModelStore:
    """
    Export/import and save/load for cube instances.

    Works on any object exposing ``export_model()`` and ``import_model(params)``
    (see :class:`cubemodel.cube.instance.CubeInstance`).
    """

    @staticmethod
    def export(instance) -> np.ndarray:
        return instance.export_model()

    @staticmethod
    def import_(instance, params) -> None:
        instance.import_model(params)

    @staticmethod
    def save(instance, path: PathLike) -> Path:
        return save_parameters(instance.export_model(), path)

    @staticmethod
    def load(instance, path: PathLike) -> None:
        instance.import_model(load_parameters(path))
