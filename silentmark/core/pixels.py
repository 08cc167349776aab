"""
Pixel Buffer
============
The RGBA sample grid every other component reads and writes.

Technical Notes:
- Samples live in a numpy uint8 array of shape (height, width, 4)
- Width and height are fixed at construction; samples are mutable
- to_bytes()/from_bytes() give the raw form used for hidden image payloads
"""

import struct
from typing import Optional, Tuple

import numpy as np

RGBA = Tuple[int, int, int, int]

# Header of the raw serialization: width, height as unsigned 32-bit big endian
_SIZE_HEADER = struct.Struct(">II")


class PixelBuffer:
    """
    A width x height grid of RGBA samples.

    The underlying array is exposed through ``pixels`` so callers can use
    vectorized numpy operations on it directly.
    """

    __slots__ = ("_pixels",)

    def __init__(self, pixels: np.ndarray):
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(
                f"Expected an array of shape (height, width, 4), got {pixels.shape}"
            )
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 samples, got {pixels.dtype}")
        self._pixels = np.ascontiguousarray(pixels)

    @classmethod
    def new(cls, width: int, height: int, fill: RGBA = (0, 0, 0, 0)) -> "PixelBuffer":
        """Create a buffer filled with a single colour."""
        if width < 0 or height < 0:
            raise ValueError(f"Invalid buffer size: {width}x{height}")
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[...] = fill
        return cls(pixels)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "PixelBuffer":
        """
        Build a buffer from a grayscale, RGB or RGBA array.

        Missing channels are filled in (gray is replicated, alpha is opaque).
        The array is copied.
        """
        array = np.asarray(array)
        if array.dtype != np.uint8:
            array = np.clip(array, 0, 255).astype(np.uint8)

        if array.ndim == 2:
            array = np.stack([array, array, array], axis=-1)

        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise ValueError(f"Unsupported array shape: {array.shape}")

        if array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            array = np.concatenate([array, alpha], axis=-1)

        return cls(array.copy())

    @classmethod
    def from_bytes(cls, data: bytes) -> "PixelBuffer":
        """
        Rebuild a buffer from the output of ``to_bytes``.

        Raises:
            ValueError: If the data is truncated or its size header is wrong.
        """
        if len(data) < _SIZE_HEADER.size:
            raise ValueError("Insufficient data: missing size header")

        width, height = _SIZE_HEADER.unpack_from(data)
        expected = _SIZE_HEADER.size + width * height * 4
        if len(data) != expected:
            raise ValueError(
                f"Pixel data length mismatch: expected {expected} bytes, got {len(data)}"
            )

        samples = np.frombuffer(data, dtype=np.uint8, offset=_SIZE_HEADER.size)
        return cls(samples.reshape(height, width, 4).copy())

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height), the same order Pillow uses."""
        return self.width, self.height

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @property
    def alpha(self) -> np.ndarray:
        return self._pixels[..., 3]

    @property
    def area(self) -> int:
        return self.width * self.height

    def is_empty(self) -> bool:
        return self.area == 0

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self._pixels.copy())

    def crop(self, left: int, top: int, right: int, bottom: int) -> "PixelBuffer":
        """Copy out the half-open rectangle [left, right) x [top, bottom)."""
        return PixelBuffer(self._pixels[top:bottom, left:right].copy())

    def content_bbox(self) -> Optional[Tuple[int, int, int, int]]:
        """
        Bounding box (left, top, right, bottom) of all pixels with alpha > 0.

        Returns:
            The box, or None if every pixel is fully transparent.
        """
        rows = np.flatnonzero(self.alpha.any(axis=1))
        if rows.size == 0:
            return None
        cols = np.flatnonzero(self.alpha.any(axis=0))
        return int(cols[0]), int(rows[0]), int(cols[-1]) + 1, int(rows[-1]) + 1

    def to_bytes(self) -> bytes:
        """Serialize as [width][height][raw RGBA samples, row-major]."""
        return _SIZE_HEADER.pack(self.width, self.height) + self._pixels.tobytes()

    def __eq__(self, other) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return np.array_equal(self._pixels, other._pixels)

    __hash__ = None

    def __repr__(self) -> str:
        return f"PixelBuffer({self.width}x{self.height})"
