"""
kernels.py - Named 3x3 filter kernels and kernel selection.

The viewer applies exactly one kernel to the displayed slice.  Which one
is a configuration choice (``filter.kernel`` / ``filter.custom_kernel`` in
config.yaml), not a constant baked into the viewer.

Presets
-------
edge_detection  Discrete Laplacian.  Flat regions go to 0, edges light up
                (and go negative on the other side of the edge).
sharpen         Identity plus a negated Laplacian.
blur            3x3 box mean.
emboss          Directional relief, top-left to bottom-right.
"""

import logging
from typing import Optional

import numpy as np

from edgeview.convolution import Grid, as_grid
from edgeview.errors import InvalidArgument

logger = logging.getLogger(__name__)

DEFAULT_KERNEL = "edge_detection"

KERNEL_PRESETS: dict[str, tuple[tuple[float, ...], ...]] = {
    "edge_detection": (
        (0, 1, 0),
        (1, -4, 1),
        (0, 1, 0),
    ),
    "sharpen": (
        (0, -1, 0),
        (-1, 5, -1),
        (0, -1, 0),
    ),
    "blur": (
        (1 / 9, 1 / 9, 1 / 9),
        (1 / 9, 1 / 9, 1 / 9),
        (1 / 9, 1 / 9, 1 / 9),
    ),
    "emboss": (
        (-2, -1, 0),
        (-1, 1, 1),
        (0, 1, 2),
    ),
}


def validate_kernel(kernel: Grid) -> np.ndarray:
    """
    Check *kernel* and return a read-only float64 copy.

    Raises
    ------
    InvalidArgument
        If the kernel is empty, ragged, non-numeric, or holds NaN / inf.
    """
    grid = as_grid(kernel, "kernel")
    weights = np.array(grid, dtype=np.float64)
    if not np.all(np.isfinite(weights)):
        raise InvalidArgument("kernel weights must be finite numbers.")
    weights.flags.writeable = False
    return weights


def resolve_kernel(
    preset: Optional[str] = None,
    custom: Optional[Grid] = None,
) -> np.ndarray:
    """
    Pick the kernel to apply.

    Priority:
    1. An explicit *custom* grid.
    2. A named *preset* from KERNEL_PRESETS.
    3. DEFAULT_KERNEL.

    Returns
    -------
    np.ndarray
        Read-only float64 kernel.
    """
    if custom is not None:
        logger.debug("Using custom kernel.")
        return validate_kernel(custom)

    name = preset or DEFAULT_KERNEL
    if name not in KERNEL_PRESETS:
        raise InvalidArgument(
            f"Unknown kernel preset '{name}'. "
            f"Choose from: {list(KERNEL_PRESETS.keys())}"
        )
    logger.debug("Using kernel preset '%s'.", name)
    return validate_kernel(KERNEL_PRESETS[name])
