"""Pixel buffers, zero-copy views and image storage."""

from .buffer import PixelBuffer
from .convert import as_array_view, native_to_view, view_to_native
from .image_data import BufferImageData, FileImageData, ImageData, MatImageData

__all__ = [
    "BufferImageData",
    "FileImageData",
    "ImageData",
    "MatImageData",
    "PixelBuffer",
    "as_array_view",
    "native_to_view",
    "view_to_native",
]
