"""Tests for edgeview/slices.py and edgeview/volume.py."""

import numpy as np
import pytest

from edgeview.errors import InvalidArgument, OutOfBounds
from edgeview.slices import (
    check_slice_bounds,
    extract_slice,
    filter_image,
    filter_slice,
    insert_slice,
)
from edgeview.volume import VolumetricImage

EDGE = [[0, 1, 0], [1, -4, 1], [0, 1, 0]]


class TestExtractSlice:
    def test_row_major_fill(self):
        buffer = np.arange(2 * 3 * 2)            # width 3, height 2, depth 2
        grid = extract_slice(buffer, width=3, height=2, slice_index=1)
        np.testing.assert_array_equal(grid, [[6, 7, 8], [9, 10, 11]])

    def test_non_square_slice_shape(self):
        buffer = np.arange(5 * 2)
        assert extract_slice(buffer, width=5, height=2, slice_index=0).shape == (2, 5)

    def test_returns_copy(self):
        buffer = np.zeros(4)
        grid = extract_slice(buffer, 2, 2, 0)
        grid[0, 0] = 9
        assert buffer[0] == 0

    def test_accepts_buffer_longer_than_slices(self):
        buffer = np.arange(10)
        np.testing.assert_array_equal(extract_slice(buffer, 2, 2, 1), [[4, 5], [6, 7]])


class TestBounds:
    def test_slice_past_end_raises(self):
        buffer = np.zeros(2 * 2 * 3)
        with pytest.raises(OutOfBounds):
            extract_slice(buffer, 2, 2, 3)

    def test_partial_slice_raises(self):
        with pytest.raises(OutOfBounds):
            check_slice_bounds(buffer_length=7, width=2, height=2, slice_index=1)

    def test_negative_index_raises(self):
        with pytest.raises(OutOfBounds):
            check_slice_bounds(buffer_length=8, width=2, height=2, slice_index=-1)

    def test_out_of_bounds_is_index_error(self):
        with pytest.raises(IndexError):
            check_slice_bounds(buffer_length=4, width=2, height=2, slice_index=1)

    def test_non_positive_dimensions_raise(self):
        with pytest.raises(InvalidArgument):
            check_slice_bounds(buffer_length=4, width=0, height=2, slice_index=0)

    def test_failed_filter_does_not_mutate(self):
        buffer = np.arange(8.0)
        before = buffer.copy()
        with pytest.raises(OutOfBounds):
            filter_slice(buffer, 2, 2, EDGE, slice_index=2)
        np.testing.assert_array_equal(buffer, before)


class TestInsertSlice:
    def test_writes_only_target_range(self):
        buffer = np.zeros(12)
        insert_slice(buffer, np.ones((2, 2)), width=2, height=2, slice_index=1)
        np.testing.assert_array_equal(buffer, [0, 0, 0, 0, 1, 1, 1, 1, 0, 0, 0, 0])

    def test_shape_mismatch_raises_before_writing(self):
        buffer = np.zeros(8)
        with pytest.raises(InvalidArgument, match="does not match"):
            insert_slice(buffer, np.ones((2, 3)), width=2, height=2, slice_index=0)
        assert not buffer.any()


class TestFilterSlice:
    def test_identity_round_trip_is_byte_identical(self):
        rng = np.random.default_rng(7)
        buffer = rng.integers(0, 4096, size=4 * 3 * 5).astype(np.uint16)
        before = buffer.tobytes()
        filter_slice(buffer, width=4, height=3, kernel=[[1]], slice_index=2)
        assert buffer.tobytes() == before

    def test_sentinels_outside_slice_untouched(self):
        width, height, depth, k = 3, 3, 3, 1
        buffer = np.full(width * height * depth, -999.0)
        start, stop = k * width * height, (k + 1) * width * height
        buffer[start:stop] = 7.0

        filter_slice(buffer, width, height, EDGE, slice_index=k)

        assert np.all(buffer[:start] == -999.0)
        assert np.all(buffer[stop:] == -999.0)
        assert buffer[start + 4] == 0.0          # centre of a flat slice
        assert buffer[start] == -14.0            # corner: 2*7 - 4*7

    def test_negative_result_into_unsigned_buffer_raises(self):
        buffer = np.full(16, 5, dtype=np.uint16)
        with pytest.raises(InvalidArgument, match="exactly"):
            filter_slice(buffer, width=4, height=4, kernel=EDGE)
        assert np.all(buffer == 5)

    def test_fractional_result_into_integer_buffer_raises(self):
        buffer = np.arange(9, dtype=np.int32)
        with pytest.raises(InvalidArgument):
            filter_slice(buffer, width=3, height=3, kernel=[[0.5]])
        np.testing.assert_array_equal(buffer, np.arange(9))

    def test_negative_result_kept_in_signed_buffer(self):
        buffer = np.full(16, 5, dtype=np.int16)
        result = filter_slice(buffer, width=4, height=4, kernel=EDGE)
        assert buffer[0] == -10
        np.testing.assert_array_equal(buffer.reshape(4, 4), result)

    def test_end_to_end_four_by_four(self):
        buffer = np.full(16, 5.0)
        result = filter_slice(buffer, width=4, height=4, kernel=EDGE)
        grid = buffer.reshape(4, 4)
        np.testing.assert_array_equal(grid[1:3, 1:3], np.zeros((2, 2)))
        for i, j in [(0, 0), (0, 3), (3, 0), (3, 3)]:
            assert grid[i, j] == -10.0
        np.testing.assert_array_equal(result, grid)


class TestFilterImage:
    def test_dimensions_unchanged(self):
        image = VolumetricImage.from_array(np.ones((2, 3, 4)))
        filter_image(image, EDGE, slice_index=1)
        assert image.dimensions == (4, 3, 2)
        assert image.scalars.size == 24

    def test_only_requested_slice_changes(self):
        image = VolumetricImage.from_array(np.ones((2, 3, 3)))
        filter_image(image, EDGE, slice_index=0)
        volume = image.as_array()
        assert volume[0, 1, 1] == 0.0
        assert np.all(volume[1] == 1.0)


class TestVolumetricImage:
    def test_from_2d_array_has_depth_one(self):
        image = VolumetricImage.from_array(np.zeros((3, 5)))
        assert image.dimensions == (5, 3, 1)
        assert image.slice_size == 15

    def test_as_array_shares_memory(self):
        image = VolumetricImage.from_array(np.zeros((1, 2, 2)))
        image.as_array()[0, 1, 0] = 3.0
        assert image.scalars[2] == 3.0

    def test_size_mismatch_raises(self):
        with pytest.raises(InvalidArgument, match="expected"):
            VolumetricImage(width=2, height=2, depth=2, scalars=np.zeros(7))

    def test_non_positive_dimension_raises(self):
        with pytest.raises(InvalidArgument):
            VolumetricImage(width=0, height=2, depth=1, scalars=np.zeros(0))
