"""
view_dicom.py - Open the viewer, or export a filtered slice headlessly.

Usage
-----
    python scripts/view_dicom.py                              # empty viewer
    python scripts/view_dicom.py scan.dcm                     # single file
    python scripts/view_dicom.py data/sample_series/*.dcm     # series
    python scripts/view_dicom.py scan.dcm --kernel sharpen
    python scripts/view_dicom.py data/sample_series/*.dcm --slice 3 --snapshot reports/edges.png

Kernel, slice and display defaults come from config.yaml; the options
override them for one run.
"""

import argparse
import logging
import os
import sys

# Ensure repo root is on sys.path regardless of launch directory
_REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _REPO_ROOT)

from edgeview.config import (  # noqa: E402
    CONFIG, decoder_config_from, kernel_from, kernel_name_from, load_config, log_level_from,
    slice_index_from,
)
from edgeview.errors import ViewerError  # noqa: E402
from edgeview.kernels import KERNEL_PRESETS  # noqa: E402

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.split("\n")[1])
    parser.add_argument("paths", nargs="*", help="DICOM file, or several files of one series")
    parser.add_argument("--config", help="alternative config.yaml")
    parser.add_argument("--kernel", choices=sorted(KERNEL_PRESETS), help="kernel preset to apply")
    parser.add_argument("--slice", type=int, dest="slice_index", help="slice to filter and show")
    parser.add_argument("--snapshot", metavar="PNG", help="write a comparison image instead of opening a window")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = load_config(args.config) if args.config else CONFIG

    logging.basicConfig(level=log_level_from(config), format="%(levelname)-8s %(message)s")

    slice_index = args.slice_index if args.slice_index is not None else slice_index_from(config)

    if args.snapshot:
        if not args.paths:
            logger.error("--snapshot needs at least one DICOM file.")
            return 2
        from edgeview.snapshot import save_snapshot

        try:
            save_snapshot(
                args.paths,
                args.snapshot,
                kernel=kernel_from(config, preset=args.kernel),
                kernel_name=kernel_name_from(config, preset=args.kernel),
                slice_index=slice_index,
                config=decoder_config_from(config),
            )
        except ViewerError as exc:
            logger.error("%s", exc)
            return 1
        print(f"Saved: {args.snapshot}")
        return 0

    from edgeview.app import run_viewer

    try:
        run_viewer(
            initial_paths=args.paths or None,
            config=config,
            kernel_preset=args.kernel,
            slice_index=slice_index,
        )
    except ViewerError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
