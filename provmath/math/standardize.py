"""
Column standardization (z-scores) ahead of PCA.

PCA on raw indicators is dominated by whichever column has the largest scale
(population, output). Scaling every column to unit variance makes the
decomposition equivalent to one on the correlation matrix.
"""

import logging
import numpy as np
from typing import List, NamedTuple, Optional

from provmath.errors import DegenerateColumnError, InvalidParameterError, MalformedInputError
from provmath.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)


class Standardization(NamedTuple):
    """Standardized data with the column statistics used to produce it."""
    values: np.ndarray
    mean: np.ndarray
    std: np.ndarray


def standardize(data: np.ndarray, colnames: Optional[List[str]] = None) -> Standardization:
    """
    Scale each column to zero mean and unit sample variance.

    Args:
        data: Matrix with observations in rows, at least 2 rows and 1 column
        colnames: Optional column names, used in error messages

    Returns:
        Standardization with the scaled matrix, column means and column
        sample standard deviations (ddof=1)

    Raises:
        InvalidParameterError: if the matrix is too small
        MalformedInputError: if it contains NaN or infinite values
        DegenerateColumnError: if any column has zero variance
    """
    data = np.asarray(data, dtype=float)
    if data.ndim != 2 or data.shape[0] < 2 or data.shape[1] < 1:
        raise InvalidParameterError(
            f"Standardization needs at least 2 rows and 1 column, got shape {data.shape}"
        )
    if not np.all(np.isfinite(data)):
        raise MalformedInputError("Cannot standardize a matrix with missing or infinite values")

    names = colnames if colnames is not None else [str(i) for i in range(data.shape[1])]

    mean = data.mean(axis=0)
    std = data.std(axis=0, ddof=1)

    # Identical values can still leave a rounding residue in the mean
    constant = (np.ptp(data, axis=0) == 0) | (std == 0)
    degenerate = [names[i] for i in np.flatnonzero(constant)]
    if degenerate:
        raise DegenerateColumnError(
            f"Zero-variance column(s) cannot be standardized: {', '.join(map(str, degenerate))}"
        )

    return Standardization((data - mean) / std, mean, std)


def standardize_named_matrix(nmat: NamedMatrix) -> NamedMatrix:
    """
    Standardize every column of a NamedMatrix.

    Args:
        nmat: Numeric matrix

    Returns:
        A new NamedMatrix with the same row and column names
    """
    result = standardize(nmat.values, nmat.colnames())
    logger.debug(f"Standardized {nmat.shape[1]} columns over {nmat.shape[0]} rows")
    return NamedMatrix(result.values, nmat.rownames(), nmat.colnames())
