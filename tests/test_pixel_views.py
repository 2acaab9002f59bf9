"""Tests for native buffers and zero-copy pixel views."""

from __future__ import annotations

import numpy as np
import pytest

from exceptions import ShapeError
from pixels import PixelBuffer, as_array_view, native_to_view, view_to_native


def _pattern_buffer(rows: int, cols: int, channels: int, align: int = 1) -> PixelBuffer:
    buffer = PixelBuffer.allocate(rows, cols, channels, align=align)
    for r in range(rows):
        for c in range(cols):
            buffer.set_at((r, c), [(r * 31 + c * 7 + k) % 256 for k in range(max(channels, 1))])
    return buffer


class TestPixelBuffer:
    """Test buffer geometry and validation."""

    def test_allocate_pads_rows_to_alignment(self):
        buffer = PixelBuffer.allocate(4, 10, 3, align=64)

        assert buffer.step == 64
        assert buffer.row_bytes == 30
        assert buffer.steps == (64, 3)
        buffer.validate()

    def test_from_mat_aliases_memory(self):
        mat = np.zeros((4, 5, 3), dtype=np.uint8)
        buffer = PixelBuffer.from_mat(mat)

        buffer.set_at((2, 3), [1, 2, 3])

        assert tuple(mat[2, 3]) == (1, 2, 3)

    def test_from_mat_grayscale_has_one_channel(self):
        buffer = PixelBuffer.from_mat(np.zeros((4, 5), dtype=np.uint8))

        assert buffer.channels == 1
        assert buffer.mat().shape == (4, 5)

    def test_from_mat_rejects_float(self):
        with pytest.raises(ShapeError, match="uint8"):
            PixelBuffer.from_mat(np.zeros((4, 5, 3), dtype=np.float32))

    def test_zero_dimensions_rejected(self):
        buffer = PixelBuffer(data=np.zeros(4, dtype=np.uint8), sizes=(), steps=(), channels=1)

        with pytest.raises(ShapeError, match="zero dimensions"):
            native_to_view(buffer)

    def test_row_step_smaller_than_row_rejected(self):
        buffer = PixelBuffer(data=np.zeros(100, dtype=np.uint8), sizes=(4, 10), steps=(20, 3), channels=3)

        with pytest.raises(ShapeError, match="Row step"):
            buffer.validate()

    def test_short_storage_rejected(self):
        buffer = PixelBuffer(data=np.zeros(10, dtype=np.uint8), sizes=(4, 4), steps=(12, 3), channels=3)

        with pytest.raises(ShapeError, match="bytes"):
            buffer.validate()

    def test_readonly_alias_rejects_writes(self):
        buffer = PixelBuffer.allocate(2, 2, 3)
        readonly = buffer.readonly()

        with pytest.raises(ValueError):
            readonly.set_at((0, 0), [1, 1, 1])
        assert buffer.writable


class TestNativeToView:
    """Test the native-to-view direction of the conversion engine."""

    @pytest.mark.parametrize("channels", [1, 3, 4])
    def test_shape_has_trailing_channel_axis(self, channels):
        buffer = PixelBuffer.allocate(6, 8, channels)

        assert native_to_view(buffer).shape == (6, 8, channels)

    def test_channel_less_buffer_has_no_channel_axis(self):
        buffer = PixelBuffer.allocate(6, 8, 0)

        assert native_to_view(buffer).shape == (6, 8)

    def test_padded_rows_read_correctly(self):
        buffer = _pattern_buffer(5, 7, 3, align=32)
        view = native_to_view(buffer)

        for r in range(5):
            for c in range(7):
                assert tuple(int(v) for v in view[r, c]) == buffer.at(r, c)

    def test_write_through_view_reaches_native(self):
        buffer = PixelBuffer.allocate(4, 4, 3, align=16)
        view = native_to_view(buffer)

        view[1, 2] = (9, 8, 7)

        assert buffer.at(1, 2) == (9, 8, 7)
        assert tuple(native_to_view(buffer)[1, 2]) == (9, 8, 7)

    def test_no_copy(self):
        buffer = PixelBuffer.allocate(4, 4, 3)
        view = native_to_view(buffer)

        assert np.shares_memory(view, buffer.data)

    def test_read_only_view(self):
        view = native_to_view(PixelBuffer.allocate(2, 2, 3), writable=False)

        with pytest.raises(ValueError):
            view[0, 0] = (1, 2, 3)

    def test_three_dimensional_buffer(self):
        data = np.arange(2 * 3 * 4 * 2, dtype=np.uint8)
        buffer = PixelBuffer(data=data, sizes=(2, 3, 4), steps=(24, 8, 2), channels=2)

        view = native_to_view(buffer)

        assert view.shape == (2, 3, 4, 2)
        assert tuple(view[1, 2, 3]) == (46, 47)


class TestViewToNative:
    """Test the view-to-native direction and round trips."""

    @pytest.mark.parametrize("rows,cols,channels,align", [(4, 5, 3, 1), (6, 7, 3, 64), (3, 9, 1, 16), (5, 5, 0, 8)])
    def test_round_trip_preserves_geometry(self, rows, cols, channels, align):
        buffer = _pattern_buffer(rows, cols, channels, align=align)

        back = view_to_native(native_to_view(buffer), channels)

        assert back.sizes == buffer.sizes
        assert back.steps == buffer.steps
        assert back.channels == buffer.channels
        assert np.shares_memory(back.data, buffer.data)
        for r in range(rows):
            for c in range(cols):
                assert back.at(r, c) == buffer.at(r, c)

    def test_write_through_native_reaches_view(self):
        mat = np.zeros((4, 6, 3), dtype=np.uint8)

        native = view_to_native(mat, 3)
        native.set_at((3, 5), [10, 20, 30])

        assert tuple(mat[3, 5]) == (10, 20, 30)

    def test_sliced_view_keeps_parent_step(self):
        mat = np.zeros((10, 10, 3), dtype=np.uint8)
        window = mat[2:6, 3:8]

        native = view_to_native(window, 3)
        native.set_at((0, 0), [1, 2, 3])

        assert native.sizes == (4, 5)
        assert native.step == 30
        assert tuple(mat[2, 3]) == (1, 2, 3)

    def test_one_dimensional_view_rejected(self):
        with pytest.raises(ShapeError, match="2 dimensions"):
            view_to_native(np.zeros(12, dtype=np.uint8), 0)

    def test_channel_mismatch_rejected(self):
        with pytest.raises(ShapeError, match="does not match"):
            view_to_native(np.zeros((4, 4, 3), dtype=np.uint8), 4)

    def test_missing_channel_axis_rejected(self):
        with pytest.raises(ShapeError, match="no trailing channel"):
            view_to_native(np.zeros((4, 4), dtype=np.uint8), 3)

    def test_unpacked_channels_rejected(self):
        planar = np.zeros((3, 4, 4), dtype=np.uint8).transpose(1, 2, 0)

        with pytest.raises(ShapeError, match="not packed"):
            view_to_native(planar, 3)

    def test_reversed_rows_rejected(self):
        mat = np.zeros((4, 4, 3), dtype=np.uint8)[::-1]

        with pytest.raises(ShapeError, match="not positive"):
            view_to_native(mat, 3)


class TestAsArrayView:
    """Test typed views over solver outputs."""

    def test_reshapes_without_copy(self):
        mat = np.arange(9, dtype=np.float64).reshape(1, 9)

        view = as_array_view(mat, (3, 3))

        assert view.shape == (3, 3)
        assert np.shares_memory(view, mat)

    def test_size_mismatch_rejected(self):
        with pytest.raises(ShapeError):
            as_array_view(np.zeros((1, 4)), (5,))
