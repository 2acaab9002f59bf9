"""Zero-copy conversion between native pixel buffers and array views.

This module is the only place that reinterprets raw memory. Everything else
treats views as ordinary bounds-checked numpy arrays.

Aliasing rules:
    - ``native_to_view`` and ``view_to_native`` never allocate pixel storage.
    - A view keeps its source storage alive (numpy ``base`` chain), so it can
      not dangle; it can still go stale if the owner swaps in a new buffer.
    - Only one writable view per buffer should be live at a time. ImageData
      implementations enforce this by revoking write access on older views.
"""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
from numpy.lib.stride_tricks import as_strided

from exceptions import ShapeError
from pixels.buffer import PixelBuffer


def _span_bytes(sizes: Sequence[int], steps: Sequence[int], elem_size: int) -> int:
    if any(size == 0 for size in sizes):
        return 0
    return sum((size - 1) * step for size, step in zip(sizes, steps)) + elem_size


def flat_span(array: np.ndarray, sizes: Sequence[int], steps: Sequence[int], channels: int) -> np.ndarray:
    """Reinterpret the memory under ``array`` as a flat byte span.

    The span starts at the array's first sample and ends after the last
    element described by ``sizes``/``steps``. The returned array aliases
    ``array`` and keeps it alive.
    """
    span = _span_bytes(sizes, steps, max(channels, 1))
    return as_strided(array, shape=(span,), strides=(1,), writeable=bool(array.flags.writeable))


def native_to_view(buffer: PixelBuffer, writable: bool = True) -> np.ndarray:
    """Build an n-dimensional uint8 view over a native buffer's memory.

    Args:
        buffer: Native buffer handle
        writable: Whether the returned view accepts writes. A view over
            read-only storage is always read-only.

    Returns:
        Array of shape ``sizes + (channels,)`` when ``channels > 0``,
        otherwise ``sizes``; strides follow the buffer's steps.

    Raises:
        ShapeError: If the buffer has zero dimensions or inconsistent metadata
    """
    buffer.validate()

    shape: Tuple[int, ...] = tuple(buffer.sizes)
    strides: Tuple[int, ...] = tuple(buffer.steps)
    if buffer.channels > 0:
        shape += (buffer.channels,)
        strides += (1,)

    return as_strided(buffer.data, shape=shape, strides=strides, writeable=writable)


def view_to_native(view: np.ndarray, channel_count: int) -> PixelBuffer:
    """Describe an array view as a native buffer aliasing the same memory.

    Args:
        view: uint8 array whose innermost dimension holds the channels when
            ``channel_count > 0``
        channel_count: Number of channels; 0 for a channel-less view

    Returns:
        PixelBuffer sharing the view's memory. The caller must keep using it
        only while that memory is valid.

    Raises:
        ShapeError: If the view has fewer than 2 dimensions or its layout can
            not be expressed as packed rows of uint8 samples
    """
    view = np.asarray(view)

    if view.ndim < 2:
        raise ShapeError(f"View needs at least 2 dimensions, got {view.ndim}")
    if view.dtype != np.uint8:
        raise ShapeError(f"View must hold uint8 samples, got {view.dtype}")
    if channel_count < 0:
        raise ShapeError(f"Negative channel count: {channel_count}")

    if channel_count > 0:
        if view.ndim < 3:
            raise ShapeError(f"View of shape {view.shape} has no trailing channel dimension")
        if view.shape[-1] != channel_count:
            raise ShapeError(f"Trailing dimension {view.shape[-1]} does not match {channel_count} channel(s)")
        if channel_count > 1 and view.strides[-1] != 1:
            raise ShapeError(f"Channel samples are not packed (stride {view.strides[-1]})")
        sizes = tuple(view.shape[:-1])
        steps = tuple(view.strides[:-1])
    else:
        sizes = tuple(view.shape)
        steps = tuple(view.strides)

    if any(step <= 0 for step in steps):
        raise ShapeError(f"View strides {view.strides} are not positive")

    buffer = PixelBuffer(
        data=flat_span(view, sizes, steps, channel_count),
        sizes=sizes,
        steps=steps,
        channels=channel_count,
    )
    buffer.validate()
    return buffer


def as_array_view(mat, shape: Sequence[int], dtype=np.float64) -> np.ndarray:
    """Expose a native matrix (e.g. a calibration output) as a typed array of ``shape``.

    No copy is made when ``mat`` already has the requested dtype and a
    contiguous layout.

    Raises:
        ShapeError: If the element count does not match ``shape``
    """
    array = np.asarray(mat, dtype=dtype)
    expected = int(np.prod(shape))
    if array.size != expected:
        raise ShapeError(f"Cannot view {array.shape} matrix as {tuple(shape)}")
    return array.reshape(tuple(shape))
