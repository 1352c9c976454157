"""
volume.py - The decoded volumetric image.

Voxel intensities live in one flat buffer ordered x fastest, then y,
then z: row-major within each slice, slices stored back to back.  This
is the same ordering vtkImageData uses for point scalars, so the buffer
can be handed to the render pipeline without reshuffling.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from edgeview.errors import InvalidArgument


@dataclass
class VolumetricImage:
    """A width x height x depth intensity volume with a flat scalar buffer."""
    width: int
    height: int
    depth: int
    scalars: np.ndarray
    spacing: tuple[float, float, float] = (1.0, 1.0, 1.0)   # (x, y, z) in mm
    origin: tuple[float, float, float] = (0.0, 0.0, 0.0)
    window_center: Optional[float] = None                    # display hints from the header
    window_width: Optional[float] = None

    def __post_init__(self) -> None:
        if min(self.width, self.height, self.depth) <= 0:
            raise InvalidArgument(
                f"Image dimensions must be positive, got "
                f"{self.width}x{self.height}x{self.depth}."
            )
        if self.scalars.ndim != 1:
            raise InvalidArgument(
                f"scalars must be a flat buffer, got shape {self.scalars.shape}."
            )
        expected = self.width * self.height * self.depth
        if self.scalars.size != expected:
            raise InvalidArgument(
                f"scalars holds {self.scalars.size} values, expected "
                f"{self.width}*{self.height}*{self.depth} = {expected}."
            )

    @property
    def dimensions(self) -> tuple[int, int, int]:
        return self.width, self.height, self.depth

    @property
    def slice_size(self) -> int:
        return self.width * self.height

    @classmethod
    def from_array(cls, volume: np.ndarray, **kwargs) -> "VolumetricImage":
        """
        Build an image from a (depth, height, width) or (height, width) array.

        The array is copied into a new contiguous flat buffer.
        """
        if volume.ndim == 2:
            volume = volume[np.newaxis, :, :]
        if volume.ndim != 3:
            raise InvalidArgument(
                f"Expected a 2-D or 3-D array, got shape {volume.shape}."
            )
        depth, height, width = volume.shape
        scalars = np.ascontiguousarray(volume).reshape(-1).copy()
        return cls(width=width, height=height, depth=depth, scalars=scalars, **kwargs)

    def as_array(self) -> np.ndarray:
        """(depth, height, width) view sharing memory with ``scalars``."""
        return self.scalars.reshape(self.depth, self.height, self.width)
