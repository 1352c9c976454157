"""
snapshot.py - Static matplotlib export of a filtered slice.

Decodes a selection, filters the configured slice and writes a PNG
showing the original and filtered slice side by side.  No window or
render context is created, so this works on headless machines.
"""

import asyncio
import logging
import os
from typing import Optional, Sequence

import matplotlib

matplotlib.use("Agg")  # non-interactive backend; works without a display

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

from edgeview.acquisition import DecoderConfig, PathLike, decode_files
from edgeview.convolution import Grid
from edgeview.slices import extract_slice, filter_image
from edgeview.windowing import apply_window, display_window

logger = logging.getLogger(__name__)

# Consistent figure style across all plots
plt.rcParams.update({"figure.dpi": 100, "axes.titlesize": 11})


def plot_filtered_slice(
    original: np.ndarray,
    filtered: np.ndarray,
    kernel_name: str = "kernel",
    window: Optional[tuple[float, float]] = None,
) -> plt.Figure:
    """
    Show a slice before and after filtering.

    Parameters
    ----------
    original : np.ndarray
        (height, width) slice before filtering.
    filtered : np.ndarray
        (height, width) filter output.  Shown unclamped with a colour bar,
        so negative responses stay visible.
    kernel_name : str
        Used in the panel title.
    window : (centre, width), optional
        Display window for the original slice.

    Returns
    -------
    plt.Figure
    """
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(12, 5))

    if window is not None:
        ax1.imshow(apply_window(original, *window), cmap="gray", vmin=0.0, vmax=1.0)
        ax1.set_title(f"Original\n(C={window[0]:.0f}, W={window[1]:.0f})")
    else:
        ax1.imshow(original, cmap="gray")
        ax1.set_title("Original")
    ax1.axis("off")

    shown = ax2.imshow(filtered, cmap="gray")
    ax2.set_title(
        f"Filtered ({kernel_name.replace('_', ' ')})\n"
        f"range [{filtered.min():.1f}, {filtered.max():.1f}]"
    )
    ax2.axis("off")
    fig.colorbar(shown, ax=ax2, fraction=0.046, pad=0.04)

    fig.tight_layout()
    return fig


async def _filtered_pair(
    paths: Sequence[PathLike],
    kernel: Grid,
    slice_index: int,
    config: DecoderConfig,
) -> tuple[np.ndarray, np.ndarray, tuple[float, float]]:
    result = await decode_files(paths, config)
    result.worker.terminate()

    image = result.image
    original = extract_slice(image.scalars, image.width, image.height, slice_index)
    window = display_window(image, slice_index=slice_index)
    filtered = filter_image(image, kernel, slice_index=slice_index)
    return original, filtered, window


def save_snapshot(
    paths: Sequence[PathLike],
    output: str,
    kernel: Grid,
    kernel_name: str = "kernel",
    slice_index: int = 0,
    config: DecoderConfig = DecoderConfig(),
) -> str:
    """
    Decode *paths*, filter *slice_index* and save the comparison to *output*.

    Raises
    ------
    DecodeFailure
        If the selection cannot be decoded.
    OutOfBounds
        If *slice_index* is not in the decoded image.

    Returns
    -------
    str
        The path written.
    """
    original, filtered, window = asyncio.run(
        _filtered_pair(paths, kernel, slice_index, config)
    )

    fig = plot_filtered_slice(original, filtered, kernel_name=kernel_name, window=window)
    out_dir = os.path.dirname(os.path.abspath(output))
    os.makedirs(out_dir, exist_ok=True)
    fig.savefig(output, dpi=100, bbox_inches="tight")
    plt.close(fig)
    logger.info("Saved snapshot: %s", output)
    return output
