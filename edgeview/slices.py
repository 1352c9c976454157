"""
slices.py - Bridge between the flat voxel buffer and 2D slice grids.

The convolution engine works on a height x width grid; the decoded
image keeps every voxel in one flat buffer.  Slice k occupies the
half-open range [k*w*h, (k+1)*w*h) of that buffer, filled row-major:
the first ``width`` values are row 0, the next ``width`` values row 1,
and so on.

Filtering slice k reads and writes only that range.  Nothing is
resampled, rescaled or converted on the way in or out; bounds are
checked before anything is written, so a rejected request leaves the
buffer untouched.
"""

import logging

import numpy as np

from edgeview.convolution import Grid, convolve
from edgeview.errors import InvalidArgument, OutOfBounds
from edgeview.volume import VolumetricImage

logger = logging.getLogger(__name__)


def slice_range(width: int, height: int, slice_index: int) -> tuple[int, int]:
    """Return the (start, stop) buffer offsets of *slice_index*."""
    size = width * height
    return slice_index * size, (slice_index + 1) * size


def check_slice_bounds(
    buffer_length: int,
    width: int,
    height: int,
    slice_index: int,
) -> None:
    """
    Validate that slice *slice_index* fits inside a buffer of *buffer_length*.

    Raises
    ------
    InvalidArgument
        If width or height is not positive.
    OutOfBounds
        If the slice index is negative or the slice extends past the buffer.
    """
    if width <= 0 or height <= 0:
        raise InvalidArgument(
            f"Slice width and height must be positive, got {width}x{height}."
        )
    start, stop = slice_range(width, height, slice_index)
    if slice_index < 0 or stop > buffer_length:
        raise OutOfBounds(
            f"Slice {slice_index} ({width}x{height}) needs buffer range "
            f"[{start}, {stop}) but the buffer holds {buffer_length} values."
        )


def extract_slice(
    buffer: np.ndarray,
    width: int,
    height: int,
    slice_index: int,
) -> np.ndarray:
    """
    Copy one slice out of the flat *buffer* as a height x width grid.

    Returns
    -------
    np.ndarray
        New array of shape (height, width); modifying it does not touch
        *buffer*.
    """
    check_slice_bounds(len(buffer), width, height, slice_index)
    start, stop = slice_range(width, height, slice_index)
    return np.array(buffer[start:stop]).reshape(height, width)


def insert_slice(
    buffer: np.ndarray,
    grid: np.ndarray,
    width: int,
    height: int,
    slice_index: int,
) -> None:
    """
    Write *grid* back into *buffer* in place, row-major, at *slice_index*.

    Raises
    ------
    InvalidArgument
        If *grid* is not height x width, or a value would not be stored
        exactly in the buffer's dtype (negative into unsigned, fractional
        into integer, out of range).
    OutOfBounds
        If the slice does not fit in *buffer*.
    """
    check_slice_bounds(len(buffer), width, height, slice_index)
    grid = np.asarray(grid)
    if grid.shape != (height, width):
        raise InvalidArgument(
            f"Grid shape {grid.shape} does not match slice shape ({height}, {width})."
        )
    with np.errstate(invalid="ignore", over="ignore"):
        stored = grid.astype(buffer.dtype)
    if not np.array_equal(stored, grid, equal_nan=stored.dtype.kind in "fc"):
        raise InvalidArgument(
            f"Grid values ({grid.dtype}, range [{grid.min()}, {grid.max()}]) "
            f"cannot be stored exactly in a {buffer.dtype} buffer."
        )
    start, stop = slice_range(width, height, slice_index)
    buffer[start:stop] = stored.reshape(-1)


def filter_slice(
    buffer: np.ndarray,
    width: int,
    height: int,
    kernel: Grid,
    slice_index: int = 0,
) -> np.ndarray:
    """
    Convolve one slice of *buffer* with *kernel* and overwrite it in place.

    Returns
    -------
    np.ndarray
        The filtered (height, width) grid that was written back.
    """
    matrix = extract_slice(buffer, width, height, slice_index)
    result = convolve(kernel, matrix)
    insert_slice(buffer, result, width, height, slice_index)
    logger.debug("Filtered slice %d (%dx%d).", slice_index, width, height)
    return result


def filter_image(
    image: VolumetricImage,
    kernel: Grid,
    slice_index: int = 0,
) -> np.ndarray:
    """Filter slice *slice_index* of *image* in place; dimensions never change."""
    return filter_slice(
        image.scalars, image.width, image.height, kernel, slice_index=slice_index
    )
