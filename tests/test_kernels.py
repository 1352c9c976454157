"""Tests for edgeview/kernels.py."""

import numpy as np
import pytest

from edgeview.errors import InvalidArgument
from edgeview.kernels import DEFAULT_KERNEL, KERNEL_PRESETS, resolve_kernel, validate_kernel


class TestPresets:
    def test_edge_detection_weights(self):
        np.testing.assert_array_equal(
            resolve_kernel("edge_detection"),
            [[0, 1, 0], [1, -4, 1], [0, 1, 0]],
        )

    def test_blur_sums_to_one(self):
        assert resolve_kernel("blur").sum() == pytest.approx(1.0)

    def test_all_presets_are_3x3(self):
        for name in KERNEL_PRESETS:
            assert resolve_kernel(name).shape == (3, 3)


class TestResolveKernel:
    def test_default_when_nothing_given(self):
        np.testing.assert_array_equal(resolve_kernel(), resolve_kernel(DEFAULT_KERNEL))

    def test_custom_wins_over_preset(self):
        kernel = resolve_kernel("blur", custom=[[2]])
        np.testing.assert_array_equal(kernel, [[2.0]])

    def test_unknown_preset_raises(self):
        with pytest.raises(InvalidArgument, match="Unknown kernel preset"):
            resolve_kernel("invalid_kernel")

    def test_result_is_read_only(self):
        kernel = resolve_kernel("sharpen")
        with pytest.raises(ValueError):
            kernel[0, 0] = 1.0


class TestValidateKernel:
    def test_copies_input(self):
        source = np.ones((3, 3))
        kernel = validate_kernel(source)
        source[0, 0] = 5.0
        assert kernel[0, 0] == 1.0

    def test_ragged_raises(self):
        with pytest.raises(InvalidArgument):
            validate_kernel([[1, 2], [3]])

    def test_non_finite_raises(self):
        with pytest.raises(InvalidArgument, match="finite"):
            validate_kernel([[0, float("nan"), 0]])
