"""Tests for edgeview/snapshot.py and the command-line entry points."""

import matplotlib.pyplot as plt
import numpy as np
import pytest

from edgeview.acquisition import DecoderConfig
from edgeview.errors import DecodeFailure, OutOfBounds
from edgeview.kernels import resolve_kernel
from edgeview.snapshot import plot_filtered_slice, save_snapshot
from scripts.generate_sample_series import generate
from scripts.view_dicom import main

THREAD = DecoderConfig(executor="thread")


@pytest.fixture
def series(tmp_path):
    return generate(str(tmp_path / "series"), n_slices=3)


class TestPlot:
    def test_returns_two_panel_figure(self):
        original = np.arange(16.0).reshape(4, 4)
        filtered = original - 8.0
        fig = plot_filtered_slice(original, filtered, "edge_detection", window=(8.0, 16.0))
        # two images plus the colour bar
        assert len(fig.axes) == 3
        assert "edge detection" in fig.axes[1].get_title()
        plt.close(fig)


class TestSaveSnapshot:
    def test_writes_png(self, series, tmp_path):
        output = str(tmp_path / "out" / "edges.png")
        written = save_snapshot(series, output, resolve_kernel(), slice_index=1, config=THREAD)
        assert written == output
        with open(output, "rb") as f:
            assert f.read(8) == b"\x89PNG\r\n\x1a\n"

    def test_single_file(self, series, tmp_path):
        output = str(tmp_path / "single.png")
        save_snapshot(series[:1], output, resolve_kernel("sharpen"), config=THREAD)
        assert (tmp_path / "single.png").exists()

    def test_slice_out_of_range_raises(self, series, tmp_path):
        with pytest.raises(OutOfBounds):
            save_snapshot(series, str(tmp_path / "x.png"), resolve_kernel(), slice_index=3, config=THREAD)
        assert not (tmp_path / "x.png").exists()

    def test_decode_failure_raises(self, tmp_path):
        with pytest.raises(DecodeFailure):
            save_snapshot([str(tmp_path / "nope.dcm")], str(tmp_path / "x.png"), resolve_kernel(), config=THREAD)


class TestCommandLine:
    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            f"decoder:\n  data_root: {tmp_path}\n  executor: thread\n"
            "filter:\n  slice_index: 2\n"
            "logging:\n  level: WARNING\n"
        )
        return str(path)

    def test_snapshot_option(self, series, tmp_path, config_file):
        output = str(tmp_path / "cli.png")
        code = main([*series, "--snapshot", output, "--config", config_file, "--kernel", "blur"])
        assert code == 0
        assert (tmp_path / "cli.png").exists()

    def test_relative_paths_use_data_root(self, series, tmp_path, config_file):
        output = str(tmp_path / "relative.png")
        code = main(["series/slice_001.dcm", "--snapshot", output, "--config", config_file, "--slice", "0"])
        assert code == 0

    def test_snapshot_without_files(self, tmp_path, config_file):
        assert main(["--snapshot", str(tmp_path / "cli.png"), "--config", config_file]) == 2

    def test_configured_slice_out_of_range(self, series, tmp_path, config_file):
        code = main([series[0], "--snapshot", str(tmp_path / "cli.png"), "--config", config_file])
        assert code == 1
