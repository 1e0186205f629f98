from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np

from .errors import DecodeError


class Color(NamedTuple):
    r: int
    g: int
    b: int

    def to_hex(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}"


@dataclass
class PixelBuffer:
    """
    Decoded RGBA image, row-major, straight alpha.

    `pixels` is a uint8 ndarray of shape (H, W, 4). The matting stages only read it;
    the feathering step writes the alpha channel in place.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        p = self.pixels
        if not isinstance(p, np.ndarray) or p.ndim != 3 or p.shape[2] != 4:
            shape = getattr(p, "shape", None)
            raise DecodeError(f"Expected RGBA array (H,W,4), got {shape}")
        if p.shape[0] <= 0 or p.shape[1] <= 0:
            raise DecodeError(f"Invalid image size: {p.shape[:2]}")
        if p.dtype != np.uint8:
            self.pixels = np.clip(p, 0, 255).astype(np.uint8)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[..., :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[..., 3]

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.pixels.copy())

    def to_bytes(self) -> bytes:
        return np.ascontiguousarray(self.pixels).tobytes()

    @classmethod
    def from_bytes(cls, raw: bytes, width: int, height: int) -> "PixelBuffer":
        """
        Wrap interleaved RGBA bytes (4 per pixel, row-major).
        """
        if width <= 0 or height <= 0:
            raise DecodeError(f"Invalid image size: {(height, width)}")
        expected = width * height * 4
        if raw is None or len(raw) != expected:
            got = 0 if raw is None else len(raw)
            raise DecodeError(f"Expected {expected} RGBA bytes for {width}x{height}, got {got}")
        arr = np.frombuffer(raw, dtype=np.uint8).reshape(height, width, 4).copy()
        return cls(arr)

    @classmethod
    def from_rgb(cls, rgb: np.ndarray, alpha: int = 255) -> "PixelBuffer":
        """Build an opaque buffer from an (H, W, 3) uint8 array."""
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise DecodeError(f"Expected RGB image (H,W,3), got {rgb.shape}")
        a = np.full(rgb.shape[:2] + (1,), alpha, dtype=np.uint8)
        return cls(np.concatenate([rgb.astype(np.uint8, copy=False), a], axis=2))
