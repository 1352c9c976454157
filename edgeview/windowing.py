"""
windowing.py - Modality rescale and window/level display.

Stored DICOM pixel values are integers.  The modality value (Hounsfield
Units for CT) is

    value = stored * RescaleSlope + RescaleIntercept

Every decoded buffer goes through this conversion, which also makes it
float64.  The filter writes its unclamped results back into that buffer,
so negative and out-of-range responses are stored exactly.

For display, a *window* (centre, width) maps a value range to [0, 1].
The filtered slice has a very different range from the raw data, so the
window is chosen per image rather than fixed.

References
----------
- DICOM PS3.3, attribute (0028,1050)/(0028,1051): WindowCenter/WindowWidth
- Radiopaedia HU reference: https://radiopaedia.org/articles/hounsfield-unit
"""

import logging
from typing import Optional

import numpy as np

from edgeview.errors import InvalidArgument
from edgeview.volume import VolumetricImage

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Window presets (centre, width) commonly used in radiology
# ---------------------------------------------------------------------------
WINDOW_PRESETS: dict[str, tuple[float, float]] = {
    "brain": (40.0, 80.0),
    "bone": (400.0, 1800.0),
    "lung": (-600.0, 1500.0),
    "soft_tissue": (50.0, 400.0),
}


def to_hounsfield(
    pixel_array: np.ndarray,
    slope: float = 1.0,
    intercept: float = 0.0,
) -> np.ndarray:
    """
    Convert raw stored pixel values to modality (HU) values.

    Parameters
    ----------
    pixel_array : np.ndarray
        Raw pixel data as returned by ``ds.pixel_array``.
    slope : float
        RescaleSlope from the DICOM header (default 1.0).
    intercept : float
        RescaleIntercept from the DICOM header (default 0.0).

    Returns
    -------
    np.ndarray
        Float64 array, same shape as *pixel_array*.
    """
    return pixel_array.astype(np.float64) * slope + intercept


def apply_window(
    values: np.ndarray,
    center: float,
    width: float,
) -> np.ndarray:
    """
    Apply window/level and return values normalised to [0, 1].

    Values below (center - width/2) map to 0, values above
    (center + width/2) map to 1, everything in between is linearly scaled.

    Raises
    ------
    InvalidArgument
        If *width* is not positive.
    """
    if width <= 0:
        raise InvalidArgument(
            f"Window width must be > 0, got width={width}."
        )
    lower = center - width / 2.0
    upper = center + width / 2.0
    windowed = np.clip(values, lower, upper)
    return (windowed - lower) / (upper - lower)


def robust_window(values: np.ndarray) -> tuple[float, float]:
    """Centre/width spanning the 1st..99th percentile of *values*."""
    p1, p99 = np.percentile(values, [1, 99])
    center = float((p1 + p99) / 2.0)
    width = float(max(p99 - p1, 1.0))
    return center, width


def display_window(
    image: VolumetricImage,
    preset: Optional[str] = None,
    slice_index: Optional[int] = None,
    use_header: bool = True,
) -> tuple[float, float]:
    """
    Choose the (centre, width) used to display *image*.

    Priority:
    1. Named *preset* from WINDOW_PRESETS.
    2. WindowCenter / WindowWidth carried over from the DICOM header, unless
       *use_header* is False (the header window describes the raw data,
       not a filtered slice).
    3. Robust percentile range of the displayed slice (or whole volume).
    """
    if preset is not None:
        if preset not in WINDOW_PRESETS:
            raise InvalidArgument(
                f"Unknown preset '{preset}'. "
                f"Choose from: {list(WINDOW_PRESETS.keys())}"
            )
        return WINDOW_PRESETS[preset]

    if (
        use_header
        and image.window_center is not None
        and image.window_width is not None
        and image.window_width > 0
    ):
        return image.window_center, image.window_width

    if slice_index is not None and 0 <= slice_index < image.depth:
        values = image.as_array()[slice_index]
    else:
        values = image.scalars
    center, width = robust_window(values)
    logger.debug("No window parameters given; using percentile window C=%.1f W=%.1f.", center, width)
    return center, width
