"""Tests for edgeview/windowing.py."""

import numpy as np
import pytest

from edgeview.errors import InvalidArgument
from edgeview.volume import VolumetricImage
from edgeview.windowing import (
    WINDOW_PRESETS,
    apply_window,
    display_window,
    robust_window,
    to_hounsfield,
)


class TestHounsfield:
    def test_known_conversion(self):
        pixels = np.array([[0, 100], [200, 1000]], dtype=np.uint16)
        hu = to_hounsfield(pixels, slope=1.0, intercept=-1024.0)
        expected = pixels.astype(np.float64) - 1024.0
        np.testing.assert_array_almost_equal(hu, expected)

    def test_default_slope_intercept(self):
        pixels = np.array([[5, 10]], dtype=np.int16)
        hu = to_hounsfield(pixels)
        np.testing.assert_array_equal(hu, pixels)
        assert hu.dtype == np.float64


class TestWindowing:
    def test_output_in_zero_one_range(self):
        hu = np.linspace(-1000, 2000, 100)
        windowed = apply_window(hu, center=40, width=80)
        assert windowed.min() >= 0.0
        assert windowed.max() <= 1.0

    def test_clip_below_lower_is_zero(self):
        windowed = apply_window(np.array([-2000.0]), center=40, width=80)
        assert windowed[0] == 0.0

    def test_clip_above_upper_is_one(self):
        windowed = apply_window(np.array([5000.0]), center=40, width=80)
        assert windowed[0] == 1.0

    def test_center_maps_to_half(self):
        windowed = apply_window(np.array([40.0]), center=40, width=80)
        assert abs(windowed[0] - 0.5) < 1e-9

    def test_non_positive_width_raises(self):
        with pytest.raises(InvalidArgument, match="Window width"):
            apply_window(np.zeros(3), center=0, width=0)


class TestDisplayWindow:
    def _image(self, **hints) -> VolumetricImage:
        return VolumetricImage.from_array(np.arange(32.0).reshape(2, 4, 4), **hints)

    def test_preset_wins(self):
        image = self._image(window_center=10.0, window_width=20.0)
        assert display_window(image, preset="bone") == WINDOW_PRESETS["bone"]

    def test_unknown_preset_raises(self):
        with pytest.raises(InvalidArgument, match="Unknown preset"):
            display_window(self._image(), preset="invalid_preset")

    def test_header_hints_used(self):
        image = self._image(window_center=10.0, window_width=20.0)
        assert display_window(image) == (10.0, 20.0)

    def test_header_hints_ignored_when_asked(self):
        image = self._image(window_center=10.0, window_width=20.0)
        assert display_window(image, use_header=False) != (10.0, 20.0)

    def test_percentile_window_uses_requested_slice(self):
        image = self._image()
        center, width = display_window(image, slice_index=1)
        expected = robust_window(image.as_array()[1])
        assert (center, width) == pytest.approx(expected)
        assert 16.0 <= center <= 31.0

    def test_flat_slice_gets_minimum_width(self):
        image = VolumetricImage.from_array(np.zeros((1, 3, 3)))
        _, width = display_window(image, slice_index=0)
        assert width == 1.0
