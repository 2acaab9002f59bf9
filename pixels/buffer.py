"""Native pixel buffer handle.

``PixelBuffer`` mirrors the metadata a native matrix carries: per-dimension
sizes, per-dimension byte steps and a channel count, over a flat span of bytes.
Rows may be padded, so the row step is stored explicitly and never derived
from ``cols * channels``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from exceptions import ShapeError


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """Multi-dimensional uint8 buffer described by sizes, steps and channels.

    Attributes:
        data: Flat uint8 array holding the bytes from the first sample to the
            last one. May own its memory or alias another array.
        sizes: Extent of each dimension, outermost first (rows, cols, ...)
        steps: Byte stride of each dimension
        channels: Samples per element; 0 means a channel-less single sample
    """

    data: np.ndarray
    sizes: Tuple[int, ...]
    steps: Tuple[int, ...]
    channels: int

    @classmethod
    def allocate(
        cls,
        rows: int,
        cols: int,
        channels: int = 3,
        align: int = 1,
        fill: int = 0,
    ) -> "PixelBuffer":
        """Allocate a zero-filled 2-D buffer with rows padded to ``align`` bytes."""
        if rows < 0 or cols < 0 or channels < 0:
            raise ShapeError(f"Negative buffer geometry: {rows}x{cols}x{channels}")
        if align < 1:
            raise ShapeError(f"Row alignment must be positive, got {align}")

        elem_size = max(channels, 1)
        row_bytes = cols * elem_size
        step = -(-row_bytes // align) * align
        data = np.full(rows * step, fill, dtype=np.uint8)
        return cls(data=data, sizes=(rows, cols), steps=(step, elem_size), channels=channels)

    @classmethod
    def from_mat(cls, mat: np.ndarray) -> "PixelBuffer":
        """Wrap an OpenCV matrix without copying.

        Accepts ``(rows, cols)`` single-channel and ``(rows, cols, channels)``
        uint8 matrices whose samples are packed within each row.
        """
        from pixels.convert import flat_span

        mat = np.asarray(mat)
        if mat.dtype != np.uint8:
            raise ShapeError(f"Expected uint8 matrix, got {mat.dtype}")
        if mat.ndim == 2:
            channels = 1
        elif mat.ndim == 3:
            channels = mat.shape[2]
            if mat.strides[2] != 1:
                raise ShapeError(f"Channel samples are not packed (stride {mat.strides[2]})")
        else:
            raise ShapeError(f"Expected a 2-D or 3-D matrix, got {mat.ndim} dimensions")
        if mat.strides[1] != channels:
            raise ShapeError(
                f"Pixels are not packed within rows: column stride {mat.strides[1]} for {channels} channel(s)"
            )

        sizes = (mat.shape[0], mat.shape[1])
        steps = (mat.strides[0], mat.strides[1])
        return cls(data=flat_span(mat, sizes, steps, channels), sizes=sizes, steps=steps, channels=channels)

    @property
    def dims(self) -> int:
        return len(self.sizes)

    @property
    def rows(self) -> int:
        return self.sizes[0]

    @property
    def cols(self) -> int:
        return self.sizes[1] if self.dims > 1 else 1

    @property
    def step(self) -> int:
        """Row stride in bytes."""
        return self.steps[0]

    @property
    def elem_size(self) -> int:
        return max(self.channels, 1)

    @property
    def row_bytes(self) -> int:
        return self.cols * self.elem_size

    @property
    def writable(self) -> bool:
        return bool(self.data.flags.writeable)

    def required_bytes(self) -> int:
        """Bytes spanned from the first sample to the end of the last element."""
        if any(size == 0 for size in self.sizes):
            return 0
        return sum((size - 1) * step for size, step in zip(self.sizes, self.steps)) + self.elem_size

    def validate(self) -> None:
        """Check metadata consistency.

        Raises:
            ShapeError: If the metadata cannot describe ``data``
        """
        if self.dims == 0:
            raise ShapeError("Buffer reports zero dimensions")
        if len(self.steps) != self.dims:
            raise ShapeError(f"Buffer has {self.dims} sizes but {len(self.steps)} steps")
        if self.channels < 0:
            raise ShapeError(f"Negative channel count: {self.channels}")
        if any(size < 0 for size in self.sizes):
            raise ShapeError(f"Negative dimension extent in {self.sizes}")
        if any(step <= 0 for step in self.steps):
            raise ShapeError(f"Non-positive step in {self.steps}")
        if self.steps[-1] < self.elem_size:
            raise ShapeError(
                f"Innermost step {self.steps[-1]} is smaller than {self.elem_size} sample(s) per element"
            )
        if self.dims > 1 and self.step < self.row_bytes:
            raise ShapeError(f"Row step {self.step} is smaller than row bytes {self.row_bytes}")
        if self.data.dtype != np.uint8 or self.data.ndim != 1:
            raise ShapeError(f"Buffer storage must be flat uint8, got {self.data.dtype} with {self.data.ndim} dims")
        if self.data.size < self.required_bytes():
            raise ShapeError(f"Buffer holds {self.data.size} bytes but metadata needs {self.required_bytes()}")

    def offset_of(self, index: Sequence[int]) -> int:
        if len(index) != self.dims:
            raise IndexError(f"Expected {self.dims} indices, got {len(index)}")
        offset = 0
        for i, size, step in zip(index, self.sizes, self.steps):
            if not 0 <= i < size:
                raise IndexError(f"Index {tuple(index)} out of bounds for {self.sizes}")
            offset += i * step
        return offset

    def at(self, *index: int) -> Tuple[int, ...]:
        """Read one element's samples straight from the byte span."""
        offset = self.offset_of(index)
        return tuple(int(v) for v in self.data[offset:offset + self.elem_size])

    def set_at(self, index: Sequence[int], values: Sequence[int]) -> None:
        """Write one element's samples straight into the byte span."""
        if len(values) != self.elem_size:
            raise ShapeError(f"Expected {self.elem_size} sample(s), got {len(values)}")
        offset = self.offset_of(index)
        self.data[offset:offset + self.elem_size] = values

    def readonly(self) -> "PixelBuffer":
        """Return an alias of this buffer whose storage rejects writes."""
        data = self.data.view()
        data.flags.writeable = False
        return PixelBuffer(data=data, sizes=self.sizes, steps=self.steps, channels=self.channels)

    def mat(self, writable: Optional[bool] = None) -> np.ndarray:
        """Expose the buffer as an OpenCV-compatible matrix over the same memory.

        Single-channel buffers come back as ``(rows, cols)``.
        """
        from pixels.convert import native_to_view

        view = native_to_view(self, writable=self.writable if writable is None else writable)
        if self.channels == 1:
            return view[..., 0]
        return view
