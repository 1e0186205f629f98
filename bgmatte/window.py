"""
Neighbourhood helpers shared by the matting stages.

Sums are computed with a summed-area table over a zero-padded copy, so windows
that hang over the image edge only count in-bounds pixels.
"""

from __future__ import annotations

import cv2
import numpy as np


def window_sum(values: np.ndarray, radius: int) -> np.ndarray:
    """
    Sum over the (2r+1) x (2r+1) window centred on each pixel.

    Works on (H, W) or (H, W, C) arrays; returns int64 for integer input and
    float64 otherwise.
    """
    if radius < 0:
        raise ValueError(f"radius must be >= 0, got {radius}")
    dtype = np.int64 if np.issubdtype(values.dtype, np.integer) or values.dtype == bool else np.float64
    v = values.astype(dtype, copy=False)
    h, w = v.shape[:2]
    if h == 0 or w == 0 or radius == 0:
        return v.copy()

    k = 2 * radius + 1
    pad = [(radius + 1, radius), (radius + 1, radius)] + [(0, 0)] * (v.ndim - 2)
    sat = np.pad(v, pad, mode="constant").cumsum(axis=0).cumsum(axis=1)
    return sat[k:, k:] - sat[:-k, k:] - sat[k:, :-k] + sat[:-k, :-k]


def interior(shape, margin: int) -> np.ndarray:
    """
    Boolean mask of pixels at least `margin` away from every image edge.
    """
    h, w = shape[:2]
    out = np.zeros((h, w), dtype=bool)
    if h > 2 * margin and w > 2 * margin:
        out[margin : h - margin, margin : w - margin] = True
    return out


def has_differing_neighbor(labels: np.ndarray, radius: int = 1) -> np.ndarray:
    """
    True where the (2r+1) x (2r+1) window around a pixel holds a label other than its own.

    Only meaningful away from the edges; callers combine it with `interior`.
    """
    k = 2 * radius + 1
    m = labels.astype(np.uint8, copy=False)
    if m.size == 0:
        return np.zeros(m.shape, dtype=bool)
    kernel = np.ones((k, k), np.uint8)
    hi = cv2.dilate(m, kernel, iterations=1, borderType=cv2.BORDER_REPLICATE)
    lo = cv2.erode(m, kernel, iterations=1, borderType=cv2.BORDER_REPLICATE)
    return (hi != m) | (lo != m)
