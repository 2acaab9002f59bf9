"""Image storage capability and its concrete storage variants."""

from __future__ import annotations

import weakref
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Union

import cv2
import numpy as np

from exceptions import ShapeError
from pixels.buffer import PixelBuffer
from pixels.convert import native_to_view


class ImageData(ABC):
    """Generalized image storage.

    Views returned by ``as_pixels``/``as_pixels_mut`` are non-owning and must
    not be kept past the lifetime of the ImageData that issued them.
    """

    @property
    @abstractmethod
    def channels(self) -> int:
        """Number of channels in the underlying storage."""

    @property
    @abstractmethod
    def shape(self) -> tuple:
        """Shape of the pixel view, without issuing one."""

    @abstractmethod
    def as_pixels(self) -> np.ndarray:
        """Return the image data as a read-only array view of pixels."""

    @abstractmethod
    def as_pixels_mut(self) -> np.ndarray:
        """Return the image data as a writable array view of pixels."""

    @abstractmethod
    def as_mat_mut(self) -> np.ndarray:
        """Return a writable OpenCV matrix over the storage."""

    @abstractmethod
    def as_raw(self) -> PixelBuffer:
        """Return a read-only handle to the underlying storage."""

    @abstractmethod
    def as_raw_mut(self) -> PixelBuffer:
        """Return the mutable underlying storage."""


class _WriterLedger:
    """Tracks writable views so that at most one keeps write access."""

    def __init__(self) -> None:
        self._writers: List[weakref.ref] = []

    def revoke(self) -> None:
        for ref in self._writers:
            view = ref()
            if view is not None:
                view.flags.writeable = False
        self._writers.clear()

    def track(self, view: np.ndarray) -> None:
        self._writers.append(weakref.ref(view))

    def live_writers(self) -> int:
        return sum(1 for ref in self._writers if ref() is not None)


class BufferImageData(ImageData):
    """ImageData over a single owned PixelBuffer.

    Issuing a writable view revokes write access from earlier writable views.
    Any other access (read-only view, raw handle) also revokes outstanding
    writers, so a writer never coexists with another reference.
    """

    def __init__(self, buffer: PixelBuffer) -> None:
        buffer.validate()
        self._buffer = buffer
        self._writers = _WriterLedger()

    @property
    def channels(self) -> int:
        return self._buffer.channels

    @property
    def shape(self) -> tuple:
        return tuple(self._buffer.sizes) + ((self._buffer.channels,) if self._buffer.channels > 0 else ())

    def as_pixels(self) -> np.ndarray:
        self._writers.revoke()
        return native_to_view(self._buffer, writable=False)

    def as_pixels_mut(self) -> np.ndarray:
        self._writers.revoke()
        view = native_to_view(self._buffer, writable=True)
        self._writers.track(view)
        return view

    def as_mat_mut(self) -> np.ndarray:
        self._writers.revoke()
        mat = self._buffer.mat(writable=True)
        self._writers.track(mat)
        return mat

    def as_raw(self) -> PixelBuffer:
        self._writers.revoke()
        return self._buffer.readonly()

    def as_raw_mut(self) -> PixelBuffer:
        self._writers.revoke()
        return self._buffer


class MatImageData(BufferImageData):
    """Storage for frames delivered by an OpenCV capture backend."""

    def __init__(self, mat: Union[np.ndarray, PixelBuffer]) -> None:
        buffer = mat if isinstance(mat, PixelBuffer) else PixelBuffer.from_mat(mat)
        super().__init__(buffer)


class FileImageData(BufferImageData):
    """Storage decoded from an image file on disk."""

    def __init__(self, buffer: PixelBuffer, path: Path) -> None:
        super().__init__(buffer)
        self.path = path

    @classmethod
    def load(cls, path: Union[str, Path], flags: int = cv2.IMREAD_COLOR) -> "FileImageData":
        """Decode ``path`` with OpenCV.

        Raises:
            FileNotFoundError: If the file does not exist
            ShapeError: If OpenCV cannot decode it into a uint8 matrix
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(path)

        mat = cv2.imread(str(path), flags)
        if mat is None:
            raise ShapeError(f"Failed to decode image: {path}")
        return cls(PixelBuffer.from_mat(mat), path)
