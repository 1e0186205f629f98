from __future__ import annotations

import logging
from typing import Iterator, Tuple

import numpy as np

from .buffer import Color, PixelBuffer
from .config import (
    BACKGROUND_MATCH_SCALE,
    BORDER_THRESHOLD_SCALE,
    BORDER_ZONE,
    GROW_THRESHOLD,
    LUMA_WEIGHTS,
    MIN_SEED_NEIGHBORS,
    RELAXED_MATCH_SCALE,
    SEED_MATCH_SCALE,
    SEED_STRIDE_DIVISOR,
    SEED_STRIDE_MIN,
    TIGHT_MATCH_SCALE,
)
from .window import interior

logger = logging.getLogger(__name__)

_WEIGHTS = np.array(LUMA_WEIGHTS, dtype=np.float64)


def weighted_distance(rgb: np.ndarray, color) -> np.ndarray:
    """
    Luma-weighted RGB distance of every pixel in `rgb` (..., 3) to `color`.
    """
    diff = (rgb.astype(np.float64) - np.asarray(color, dtype=np.float64)) * _WEIGHTS
    return np.sqrt((diff * diff).sum(axis=-1))


def border_zone(shape, zone: int = BORDER_ZONE) -> np.ndarray:
    """Pixels within `zone` of an edge, where background matching is widened."""
    h, w = shape[:2]
    ys = np.arange(h)[:, None]
    xs = np.arange(w)[None, :]
    return (xs < zone) | (xs > w - zone) | (ys < zone) | (ys > h - zone)


def seed_points(width: int, height: int) -> Iterator[Tuple[int, int]]:
    """
    Border seeds in a fixed order: top/bottom pairs left to right, then left/right
    pairs top to bottom.
    """
    step = max(SEED_STRIDE_MIN, min(width, height) // SEED_STRIDE_DIVISOR)
    for x in range(0, width, step):
        yield x, 0
        yield x, height - 1
    for y in range(0, height, step):
        yield 0, y
        yield width - 1, y


def flood_fill(visited: bytearray, accept: bytes, start: int, width: int) -> int:
    """
    Mark every pixel reachable from `start` through 4-connected pixels where
    `accept` is set. Both arenas are flat and row-major; `visited` is shared
    across seeds so a region is never walked twice.

    Returns the number of pixels marked.
    """
    n = len(visited)
    stack = [start]
    filled = 0
    while stack:
        idx = stack.pop()
        if visited[idx] or not accept[idx]:
            continue
        visited[idx] = 1
        filled += 1

        x = idx % width
        if x + 1 < width:
            stack.append(idx + 1)
        if x > 0:
            stack.append(idx - 1)
        if idx + width < n:
            stack.append(idx + width)
        if idx >= width:
            stack.append(idx - width)
    return filled


def absorb_undecided(
    background: np.ndarray,
    dist_bg: np.ndarray,
    threshold: float = GROW_THRESHOLD,
) -> np.ndarray:
    """
    Second pass over pixels the threshold and flood fill left as foreground.

    Scans interior pixels in row-major order and writes into the same mask, so a
    pixel absorbed here counts as a background neighbour for the pixels after it.
    A pixel is absorbed when at least 3 of its 4 neighbours are background and its
    distance is below threshold * 1.5, or when its distance is below threshold * 0.8.
    The image rim is never touched.

    Returns a new boolean background mask.
    """
    h, w = background.shape
    bg = background.astype(bool).reshape(-1).copy()
    dist = dist_bg.reshape(-1)
    relaxed_limit = threshold * RELAXED_MATCH_SCALE
    tight_limit = threshold * TIGHT_MATCH_SCALE

    reachable = dist < max(relaxed_limit, tight_limit)
    candidates = np.flatnonzero(~bg & interior((h, w), 1).reshape(-1) & reachable)
    for idx in candidates.tolist():
        d = dist[idx]
        if d < relaxed_limit:
            neighbors = int(bg[idx - w]) + int(bg[idx + w]) + int(bg[idx - 1]) + int(bg[idx + 1])
            if neighbors >= MIN_SEED_NEIGHBORS:
                bg[idx] = True
                continue
        if d < tight_limit:
            bg[idx] = True
    return bg.reshape(h, w)


def grow_background_mask(
    buffer: PixelBuffer,
    bg_color: Color,
    threshold: float = GROW_THRESHOLD,
) -> np.ndarray:
    """
    Initial binary mask (1 = foreground, 0 = background).

      1) threshold the luma-weighted distance to `bg_color`, widened near the border
      2) flood fill from border seeds through pixels close to the seed or to `bg_color`
      3) absorb leftover pixels that are surrounded by background or very close to it
    """
    rgb = buffer.rgb
    h, w = rgb.shape[:2]
    if h == 0 or w == 0:
        return np.zeros((h, w), dtype=np.uint8)

    dist_bg = weighted_distance(rgb, bg_color)
    limit = np.where(border_zone((h, w)), threshold * BORDER_THRESHOLD_SCALE, threshold)
    background = dist_bg < limit

    bg_flat = background.reshape(-1)
    visited = bytearray(h * w)
    flat_rgb = rgb.reshape(-1, 3)
    near_bg = (dist_bg < threshold * BACKGROUND_MATCH_SCALE).reshape(-1)

    seeds = 0
    for x, y in seed_points(w, h):
        idx = y * w + x
        if not bg_flat[idx] or visited[idx]:
            continue
        near_seed = weighted_distance(flat_rgb, flat_rgb[idx]) < threshold * SEED_MATCH_SCALE
        flood_fill(visited, (near_seed | near_bg).tobytes(), idx, w)
        seeds += 1
    background |= np.frombuffer(bytes(visited), dtype=np.uint8).reshape(h, w).astype(bool)

    background = absorb_undecided(background, dist_bg, threshold)

    mask = (~background).astype(np.uint8)
    logger.debug("region grow: %d seeds filled, foreground=%.3f", seeds, float(mask.mean()))
    return mask
