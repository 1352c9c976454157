"""
acquisition.py - Decode selected DICOM file(s) into a VolumetricImage.

Two decode paths produce the same normalised output:

- a single file, which may be multi-frame (depth = NumberOfFrames);
- a series of two or more single-frame files, stacked in patient order.

Decoding runs on a dedicated one-worker executor (a separate process by
default) so the UI thread never blocks.  The coroutines resolve to a
DecodeResult holding the image *and* the worker; the caller owns the
worker from then on and must terminate it.  When decoding fails, the
coroutine terminates the worker itself and raises DecodeFailure.  Errors
are always delivered through the awaitable, never raised at call time.

Pixel values are converted to float64 modality values (see
windowing.to_hounsfield) so that the filter can write negative or large
results back into the buffer.
"""

import asyncio
import logging
import os
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
import pydicom
from pydicom.dataset import Dataset
from pydicom.multival import MultiValue

from edgeview.errors import DecodeFailure, InvalidArgument
from edgeview.volume import VolumetricImage
from edgeview.windowing import to_hounsfield

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

EXECUTOR_KINDS = ("process", "thread")


# ---------------------------------------------------------------------------
# Configuration and worker handle
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DecoderConfig:
    """Process-wide decoder settings, built once at startup."""
    data_root: str = "."      # relative selections are resolved against this
    executor: str = "process"  # "process" or "thread"
    force: bool = True         # read files that lack the 128-byte preamble

    def resolve(self, path: PathLike) -> str:
        path = os.fspath(path)
        if os.path.isabs(path):
            return path
        return os.path.join(self.data_root, path)


class DecodeWorker:
    """Disposable one-worker executor used for a single decode."""

    def __init__(self, kind: str = "process"):
        if kind not in EXECUTOR_KINDS:
            raise InvalidArgument(
                f"Unknown executor kind '{kind}'. Choose from: {list(EXECUTOR_KINDS)}"
            )
        self.kind = kind
        if kind == "process":
            self._executor: Optional[Executor] = ProcessPoolExecutor(max_workers=1)
        else:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="dicom-decode")

    @property
    def terminated(self) -> bool:
        return self._executor is None

    @property
    def executor(self) -> Executor:
        if self._executor is None:
            raise RuntimeError("Decode worker has already been terminated.")
        return self._executor

    def terminate(self) -> None:
        """Shut the executor down without waiting.  Safe to call repeatedly."""
        if self._executor is None:
            return
        executor, self._executor = self._executor, None
        executor.shutdown(wait=False, cancel_futures=True)
        logger.debug("Terminated %s decode worker.", self.kind)

    def __enter__(self) -> "DecodeWorker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.terminate()


@dataclass
class DecodeResult:
    image: VolumetricImage
    worker: DecodeWorker


# ---------------------------------------------------------------------------
# Worker-side decoding (runs inside the executor; must stay picklable)
# ---------------------------------------------------------------------------

@dataclass
class _Decoded:
    volume: np.ndarray                        # (depth, height, width) float64
    spacing: tuple[float, float, float]
    origin: tuple[float, float, float]
    window_center: Optional[float] = None
    window_width: Optional[float] = None

    def to_image(self) -> VolumetricImage:
        return VolumetricImage.from_array(
            self.volume,
            spacing=self.spacing,
            origin=self.origin,
            window_center=self.window_center,
            window_width=self.window_width,
        )


def _first_float(value) -> Optional[float]:
    """Float from a possibly multi-valued header element, or None."""
    if value is None or value == "":
        return None
    if isinstance(value, (MultiValue, list, tuple)):
        if len(value) == 0:
            return None
        value = value[0]
    return float(value)


def _pixel_spacing(ds: Dataset) -> tuple[float, float]:
    """(x, y) spacing; PixelSpacing is stored as (row spacing, column spacing)."""
    spacing = getattr(ds, "PixelSpacing", None)
    if spacing is None or len(spacing) != 2:
        return 1.0, 1.0
    return float(spacing[1]), float(spacing[0])


def _slice_thickness(ds: Dataset) -> float:
    for keyword in ("SpacingBetweenSlices", "SliceThickness"):
        value = _first_float(getattr(ds, keyword, None))
        if value:
            return abs(value)
    return 1.0


def _position(ds: Dataset) -> Optional[tuple[float, float, float]]:
    ipp = getattr(ds, "ImagePositionPatient", None)
    if ipp is None or len(ipp) != 3:
        return None
    return float(ipp[0]), float(ipp[1]), float(ipp[2])


def _modality_pixels(ds: Dataset) -> np.ndarray:
    if "PixelData" not in ds:
        raise ValueError("file contains no pixel data")
    if int(getattr(ds, "SamplesPerPixel", 1)) != 1:
        raise ValueError(
            f"only single-channel images are supported "
            f"(SamplesPerPixel={ds.SamplesPerPixel})"
        )
    slope = float(getattr(ds, "RescaleSlope", 1.0))
    intercept = float(getattr(ds, "RescaleIntercept", 0.0))
    return to_hounsfield(ds.pixel_array, slope=slope, intercept=intercept)


def _read_single(path: str, force: bool) -> _Decoded:
    ds = pydicom.dcmread(path, force=force)
    pixels = _modality_pixels(ds)

    frames = int(getattr(ds, "NumberOfFrames", 1) or 1)
    rows, cols = int(ds.Rows), int(ds.Columns)
    volume = pixels.reshape(frames, rows, cols)

    x_spacing, y_spacing = _pixel_spacing(ds)
    return _Decoded(
        volume=volume,
        spacing=(x_spacing, y_spacing, _slice_thickness(ds)),
        origin=_position(ds) or (0.0, 0.0, 0.0),
        window_center=_first_float(getattr(ds, "WindowCenter", None)),
        window_width=_first_float(getattr(ds, "WindowWidth", None)),
    )


def _series_order(datasets: list[Dataset]) -> list[int]:
    """
    Indices of *datasets* in stacking order.

    Sorted by ImagePositionPatient z when every slice has one, else by
    SliceLocation, else by InstanceNumber, else selection order.
    """
    indices = list(range(len(datasets)))

    positions = [_position(ds) for ds in datasets]
    if all(p is not None for p in positions):
        return sorted(indices, key=lambda i: positions[i][2])

    locations = [_first_float(getattr(ds, "SliceLocation", None)) for ds in datasets]
    if all(loc is not None for loc in locations):
        return sorted(indices, key=lambda i: locations[i])

    numbers = [getattr(ds, "InstanceNumber", None) for ds in datasets]
    if all(n is not None for n in numbers):
        return sorted(indices, key=lambda i: int(numbers[i]))

    return indices


def _read_series(paths: Sequence[str], force: bool) -> _Decoded:
    datasets = [pydicom.dcmread(p, force=force) for p in paths]
    order = _series_order(datasets)
    datasets = [datasets[i] for i in order]
    names = [paths[i] for i in order]

    first = datasets[0]
    shape = (int(first.Rows), int(first.Columns))
    slices = []
    for name, ds in zip(names, datasets):
        if (int(ds.Rows), int(ds.Columns)) != shape:
            raise ValueError(
                f"{os.path.basename(name)} is {ds.Rows}x{ds.Columns}, "
                f"expected {shape[0]}x{shape[1]} like the rest of the series"
            )
        if int(getattr(ds, "NumberOfFrames", 1) or 1) != 1:
            raise ValueError(f"{os.path.basename(name)} is multi-frame; series slices must be single-frame")
        slices.append(_modality_pixels(ds).reshape(shape))

    volume = np.stack(slices, axis=0)

    z_spacing = _slice_thickness(first)
    p0, p1 = _position(datasets[0]), _position(datasets[1])
    if p0 is not None and p1 is not None and p1[2] != p0[2]:
        z_spacing = abs(p1[2] - p0[2])

    x_spacing, y_spacing = _pixel_spacing(first)
    return _Decoded(
        volume=volume,
        spacing=(x_spacing, y_spacing, z_spacing),
        origin=p0 or (0.0, 0.0, 0.0),
        window_center=_first_float(getattr(first, "WindowCenter", None)),
        window_width=_first_float(getattr(first, "WindowWidth", None)),
    )


# ---------------------------------------------------------------------------
# Public coroutines
# ---------------------------------------------------------------------------

async def _decode(func, args: tuple, label: str, config: DecoderConfig) -> DecodeResult:
    worker = DecodeWorker(config.executor)
    loop = asyncio.get_running_loop()
    try:
        decoded = await loop.run_in_executor(worker.executor, func, *args)
        image = decoded.to_image()
    except Exception as exc:
        worker.terminate()
        raise DecodeFailure(f"Could not decode {label}: {exc}") from exc
    except BaseException:
        # cancellation: release the worker, keep the original exception
        worker.terminate()
        raise

    logger.info(
        "Decoded %s: %dx%dx%d.", label, image.width, image.height, image.depth,
    )
    return DecodeResult(image=image, worker=worker)


async def decode_single_file(
    path: PathLike,
    config: DecoderConfig = DecoderConfig(),
) -> DecodeResult:
    """Decode one (possibly multi-frame) DICOM file."""
    resolved = config.resolve(path)
    return await _decode(_read_single, (resolved, config.force), os.path.basename(resolved), config)


async def decode_file_series(
    paths: Sequence[PathLike],
    config: DecoderConfig = DecoderConfig(),
) -> DecodeResult:
    """Decode two or more single-frame DICOM files as one volume."""
    resolved = [config.resolve(p) for p in paths]
    if len(resolved) < 2:
        raise InvalidArgument(f"A series needs at least 2 files, got {len(resolved)}.")
    label = f"series of {len(resolved)} files"
    return await _decode(_read_series, (resolved, config.force), label, config)


async def decode_files(
    paths: Sequence[PathLike],
    config: DecoderConfig = DecoderConfig(),
) -> DecodeResult:
    """Decode a selection: one file takes the single-file path, more take the series path."""
    paths = list(paths)
    if not paths:
        raise InvalidArgument("No files selected.")
    if len(paths) == 1:
        return await decode_single_file(paths[0], config)
    return await decode_file_series(paths, config)
