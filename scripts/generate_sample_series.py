"""
generate_sample_series.py - Create a synthetic CT series for the viewer.

Writes a small stack of single-frame DICOM slices to data/sample_series/
so the viewer can be tried without real patient data.  Each slice has
a noisy soft-tissue background and a bright square ("bone") whose size
changes from slice to slice, which gives the edge filter something to
find.

Usage
-----
    python scripts/generate_sample_series.py                 # default folder
    python scripts/generate_sample_series.py path/to/folder  # custom folder

Then open the folder's files in the viewer:
    python scripts/view_dicom.py data/sample_series/*.dcm
"""

import logging
import os
import sys

import numpy as np
import pydicom
from pydicom.dataset import FileDataset
from pydicom.uid import ExplicitVRLittleEndian

# Make sure repo root is on the path when run as a script
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

from edgeview.config import CONFIG, decoder_config_from  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(levelname)-8s %(message)s")
logger = logging.getLogger(__name__)

OUTPUT_FOLDER = os.path.join(decoder_config_from(CONFIG).data_root, "sample_series")


def make_slice(
    path: str,
    index: int,
    series_uid: str,
    size: int = 128,
    slice_thickness: float = 2.5,
    seed: int = 42,
) -> None:
    """
    Write slice *index* of the synthetic series to *path*.

    RescaleSlope=1 and RescaleIntercept=-1024 bring the stored integers
    into HU range; the square is roughly +800 HU.
    """
    rng = np.random.default_rng(seed + index)

    pixels = rng.normal(1064, 20, size=(size, size)).clip(0, 4095).astype(np.uint16)
    half = size // 8 + index * 2
    c = size // 2
    pixels[c - half : c + half, c - half : c + half] = 1824

    file_meta = pydicom.Dataset()
    file_meta.MediaStorageSOPClassUID = pydicom.uid.UID("1.2.840.10008.5.1.4.1.1.2")
    file_meta.MediaStorageSOPInstanceUID = pydicom.uid.generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(path, {}, file_meta=file_meta, preamble=b"\0" * 128)
    ds.SOPClassUID = file_meta.MediaStorageSOPClassUID
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    ds.SeriesInstanceUID = series_uid
    ds.PatientName = "Synthetic^Phantom"
    ds.PatientID = "00000"
    ds.Modality = "CT"

    # --- Geometry ---
    ds.InstanceNumber = index + 1
    ds.ImagePositionPatient = [0.0, 0.0, index * slice_thickness]
    ds.ImageOrientationPatient = [1.0, 0.0, 0.0, 0.0, 1.0, 0.0]
    ds.SliceLocation = index * slice_thickness
    ds.SliceThickness = slice_thickness
    ds.PixelSpacing = [0.5, 0.5]

    # --- Rescale / display ---
    ds.RescaleSlope = 1.0
    ds.RescaleIntercept = -1024.0
    ds.WindowCenter = 40.0
    ds.WindowWidth = 400.0

    # --- Pixel data ---
    ds.Rows = size
    ds.Columns = size
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.PixelRepresentation = 0
    ds.BitsAllocated = 16
    ds.BitsStored = 16
    ds.HighBit = 15
    ds.PixelData = pixels.tobytes()

    ds.save_as(path)


def generate(output_folder: str = OUTPUT_FOLDER, n_slices: int = 8) -> list[str]:
    """Write *n_slices* slices into *output_folder* and return their paths."""
    os.makedirs(output_folder, exist_ok=True)
    series_uid = pydicom.uid.generate_uid()

    paths = []
    for i in range(n_slices):
        path = os.path.join(output_folder, f"slice_{i + 1:03d}.dcm")
        make_slice(path, i, series_uid)
        paths.append(path)

    logger.info("Wrote %d synthetic slices to %s", n_slices, output_folder)
    return paths


if __name__ == "__main__":
    generate(sys.argv[1] if len(sys.argv) > 1 else OUTPUT_FOLDER)
