"""
Preset table I/O.

Presets are stored as CSV tables with one preset per row and a header row
of parameter names.
"""

from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd

from cubemodel.core.errors import InvalidParameterError
from cubemodel.core.logging_config import get_logger

logger = get_logger("io.presets")


def load_presets(path: Union[str, Path]) -> np.ndarray:
    """
    Load a preset table from CSV.

    Parameters
    ----------
    path : str or Path
        CSV file with a header row

    Returns
    -------
    np.ndarray
        N x D float64 preset matrix

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    InvalidParameterError
        If the table is empty, ragged or contains non-numeric cells
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Preset file not found: {path}")

    df = pd.read_csv(path, comment="#")
    if df.empty:
        raise InvalidParameterError(f"Preset table is empty: {path}")

    numeric = df.apply(pd.to_numeric, errors="coerce")
    bad = numeric.isna() & ~df.isna()
    if bad.any().any():
        columns = list(df.columns[bad.any()])
        raise InvalidParameterError(f"Non-numeric preset values in columns {columns}")
    if numeric.isna().any().any():
        raise InvalidParameterError("Preset table has missing values (ragged rows)")

    presets = numeric.to_numpy(dtype=np.float64)
    logger.info(f"Loaded {presets.shape[0]} presets of dimension {presets.shape[1]} from {path}")
    return presets


def save_presets(
    presets,
    path: Union[str, Path],
    columns: Optional[Sequence[str]] = None,
) -> Path:
    """
    Save a preset matrix to CSV.

    Parameters
    ----------
    presets : array-like
        N x D preset matrix
    path : str or Path
        Output file
    columns : sequence of str, optional
        Column names; defaults to p0, p1, ...

    Returns
    -------
    Path
        The written path
    """
    presets = np.asarray(presets, dtype=np.float64)
    if presets.ndim != 2:
        raise InvalidParameterError(f"Presets must be a 2-D table, got shape {presets.shape}")

    if columns is None:
        columns = [f"p{i}" for i in range(presets.shape[1])]
    elif len(columns) != presets.shape[1]:
        raise InvalidParameterError(
            f"{len(columns)} column names given for {presets.shape[1]} preset dimensions"
        )

    path = Path(path)
    pd.DataFrame(presets, columns=list(columns)).to_csv(path, index=False, float_format="%.9g")
    logger.info(f"Saved {presets.shape[0]} presets to {path}")
    return path
