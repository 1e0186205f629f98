from __future__ import annotations

import math

import numpy as np

from .buffer import PixelBuffer
from .config import DISTANCE_ITERATIONS, FEATHER_FLOOR, FEATHER_RADIUS
from .window import has_differing_neighbor

# 3x3 offsets and their step lengths (centre included, cost 0).
_OFFSETS = [(dy, dx, math.sqrt(dx * dx + dy * dy)) for dy in (-1, 0, 1) for dx in (-1, 0, 1)]


def distance_map(foreground: np.ndarray, iterations: int = DISTANCE_ITERATIONS) -> np.ndarray:
    """
    Approximate distance from each foreground pixel to the nearest background pixel.

    Foreground pixels touching background (8-connected) seed at 0, background is 0,
    and `iterations` Jacobi sweeps propagate `d + sqrt(dx^2 + dy^2)` over 3x3
    neighbourhoods. Pixels the sweeps never reach stay at +inf.
    """
    fg = foreground.astype(bool)
    h, w = fg.shape
    dist = np.full((h, w), np.inf, dtype=np.float32)
    dist[~fg] = 0.0
    if not fg.any() or fg.all():
        return dist

    seeds = fg & has_differing_neighbor(fg, 1)
    dist[seeds] = 0.0
    active = fg & ~seeds

    for _ in range(iterations):
        padded = np.pad(dist, 1, mode="constant", constant_values=np.inf)
        best = dist.copy()
        for dy, dx, step in _OFFSETS:
            shifted = padded[1 + dy : 1 + dy + h, 1 + dx : 1 + dx + w]
            np.minimum(best, shifted + step, out=best)
        dist = np.where(active, best, dist)
    return dist


def feather_multiplier(dist: np.ndarray, radius: float = FEATHER_RADIUS) -> np.ndarray:
    """min(1, d / radius * 0.3 + 0.7): 0.7 at the boundary, 1.0 from `radius` inward."""
    with np.errstate(invalid="ignore"):
        m = np.minimum(1.0, dist / float(radius) * (1.0 - FEATHER_FLOOR) + FEATHER_FLOOR)
    return np.where(np.isfinite(m), m, 1.0)


def apply_feathered_alpha(
    buffer: PixelBuffer,
    refined: np.ndarray,
    radius: float = FEATHER_RADIUS,
) -> np.ndarray:
    """
    Write the refined alpha into `buffer` in place and return the distance map.

      alpha = floor(alpha * refined / 255)
      alpha = floor(alpha * multiplier)   for foreground within `radius` of background
      alpha = 0                            for background
    """
    if refined.shape != buffer.alpha.shape:
        raise ValueError(f"Alpha shape {refined.shape} does not match image {buffer.alpha.shape}")

    fg = refined > 0
    dist = distance_map(fg)

    a = (buffer.alpha.astype(np.int32) * refined.astype(np.int32) // 255).astype(np.float64)
    if radius > 0:
        near = fg & (dist < radius)
        a[near] = np.floor(a[near] * feather_multiplier(dist[near], radius))
    a[~fg] = 0.0

    buffer.pixels[..., 3] = np.clip(a, 0, 255).astype(np.uint8)
    return dist
