"""
convolution.py - Zero-padded 2D kernel convolution.

Each output cell is the weighted sum of the input cells under the kernel
when the kernel centre sits on that cell:

    out[i][j] = sum_m sum_n  matrix[i + m - cy][j + n - cx] * kernel[m][n]

with cy = Kr // 2 and cx = Kc // 2.  Input positions that fall outside
the grid contribute zero (implicit zero padding: no clamping, no
wraparound).

No normalisation is applied.  Edge-detection kernels sum to zero, so the
result routinely contains negative values and values beyond the input
range; they are returned exactly as computed.

Strictly speaking this is correlation (the kernel is not flipped), which
is the convention image-processing filters use.  For the symmetric
preset kernels the two coincide.
"""

import logging
from typing import Sequence, Union

import numpy as np

from edgeview.errors import InvalidArgument

logger = logging.getLogger(__name__)

Grid = Union[np.ndarray, Sequence[Sequence[float]]]


def as_grid(values: Grid, name: str = "grid") -> np.ndarray:
    """
    Coerce *values* to a non-empty 2-D numeric array.

    Parameters
    ----------
    values : array-like
        Nested sequence or ndarray, one inner sequence per row.
    name : str
        Used in error messages ("kernel", "matrix", ...).

    Returns
    -------
    np.ndarray
        2-D array.  Ndarray input is returned without copying.

    Raises
    ------
    InvalidArgument
        If *values* is empty, ragged, not two-dimensional, or not numeric.
    """
    if not isinstance(values, np.ndarray):
        rows = list(values)
        if not rows:
            raise InvalidArgument(f"{name} must have at least one row.")
        try:
            widths = {len(row) for row in rows}
        except TypeError as exc:
            raise InvalidArgument(f"{name} rows must be sequences: {exc}") from exc
        if len(widths) != 1:
            raise InvalidArgument(
                f"{name} rows must all have the same length, got lengths {sorted(widths)}."
            )
        try:
            values = np.array(rows)
        except (TypeError, ValueError) as exc:
            raise InvalidArgument(f"{name} could not be read as a numeric grid: {exc}") from exc

    if values.ndim != 2:
        raise InvalidArgument(f"{name} must be two-dimensional, got shape {values.shape}.")
    if values.shape[0] == 0 or values.shape[1] == 0:
        raise InvalidArgument(f"{name} must not be empty, got shape {values.shape}.")
    if values.dtype.kind not in "biuf":
        raise InvalidArgument(f"{name} must be numeric, got dtype {values.dtype}.")
    return values


def _accumulator_dtype(matrix: np.ndarray, kernel: np.ndarray) -> np.dtype:
    # Signed accumulation so that negative responses survive unsigned pixel data.
    if matrix.dtype.kind == "f" or kernel.dtype.kind == "f":
        return np.dtype(np.float64)
    return np.dtype(np.int64)


def convolve(kernel: Grid, matrix: Grid) -> np.ndarray:
    """
    Apply *kernel* to *matrix* with implicit zero padding.

    Parameters
    ----------
    kernel : array-like
        Kr x Kc weights.  Odd sizes are typical; even sizes follow the same
        centre rule (centre = size // 2).
    matrix : array-like
        R x C input grid.

    Returns
    -------
    np.ndarray
        New R x C grid.  int64 when both inputs are integer, else float64.
        The inputs are never modified.

    Raises
    ------
    InvalidArgument
        If either grid is empty or has ragged rows.
    """
    k = as_grid(kernel, "kernel")
    m = as_grid(matrix, "matrix")

    rows, cols = m.shape
    k_rows, k_cols = k.shape
    center_y = k_rows // 2
    center_x = k_cols // 2

    dtype = _accumulator_dtype(m, k)
    padded = np.pad(
        m.astype(dtype, copy=False),
        ((center_y, k_rows - 1 - center_y), (center_x, k_cols - 1 - center_x)),
        mode="constant",
        constant_values=0,
    )

    # padded[i + a][j + b] == matrix[i + a - cy][j + b - cx], or 0 outside the grid.
    result = np.zeros((rows, cols), dtype=dtype)
    for a in range(k_rows):
        for b in range(k_cols):
            result += padded[a : a + rows, b : b + cols] * k[a, b]

    logger.debug("Convolved %dx%d grid with %dx%d kernel.", rows, cols, k_rows, k_cols)
    return result
