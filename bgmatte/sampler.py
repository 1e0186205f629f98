from __future__ import annotations

import numpy as np

from .buffer import Color, PixelBuffer
from .config import BORDER_BAND_DIVISOR, BORDER_BAND_MAX, COLOR_BIN_SIZE, DEFAULT_BACKGROUND


def border_band_width(width: int, height: int) -> int:
    """
    min(30, w/15, h/15), but never below one pixel for a non-empty image.
    """
    if width <= 0 or height <= 0:
        return 0
    band = min(BORDER_BAND_MAX, width // BORDER_BAND_DIVISOR, height // BORDER_BAND_DIVISOR)
    return max(1, band)


def sample_border_colors(buffer: PixelBuffer) -> np.ndarray:
    """
    Collect RGB samples from the top, bottom, left and right bands (corners are
    sampled twice, once per band that covers them).

    Returns an (N, 3) uint8 array.
    """
    rgb = buffer.rgb
    h, w = rgb.shape[:2]
    band = border_band_width(w, h)
    if band == 0:
        return np.zeros((0, 3), dtype=np.uint8)

    parts = [
        rgb[:band, :],
        rgb[h - band :, :],
        rgb[:, :band],
        rgb[:, w - band :],
    ]
    return np.concatenate([p.reshape(-1, 3) for p in parts], axis=0)


def dominant_color(colors: np.ndarray, bin_size: int = COLOR_BIN_SIZE) -> Color:
    """
    Bucket colours into coarse RGB bins and return the centre of the fullest bin.
    Ties go to the bin seen first in `colors`, so sampling order decides.
    """
    if colors.size == 0:
        return Color(*DEFAULT_BACKGROUND)

    bins = colors.astype(np.int64) // int(bin_size)
    n = 256 // int(bin_size) + 1
    keys = (bins[:, 0] * n + bins[:, 1]) * n + bins[:, 2]
    uniq, first, counts = np.unique(keys, return_index=True, return_counts=True)
    tied = counts == counts.max()
    best = int(uniq[tied][np.argmin(first[tied])])

    half = bin_size // 2
    r, rem = divmod(best, n * n)
    g, b = divmod(rem, n)
    return Color(r * bin_size + half, g * bin_size + half, b * bin_size + half)


def estimate_background_color(buffer: PixelBuffer) -> Color:
    return dominant_color(sample_border_colors(buffer))
