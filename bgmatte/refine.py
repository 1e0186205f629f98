from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .config import MORPH_MIN_NEIGHBORS, TRIMAP_UNKNOWN, VOTE_RADIUS, VOTE_RATIO
from .window import has_differing_neighbor, interior, window_sum


def find_edge_pixels(mask: np.ndarray) -> np.ndarray:
    """
    Pixels whose 3x3 neighbourhood contains a differing label (image rim excluded).
    """
    if mask.ndim != 2:
        raise ValueError(f"Expected 2D mask, got shape={mask.shape}")
    return has_differing_neighbor(mask > 0, 1) & interior(mask.shape, 1)


def vote_edges(
    mask: np.ndarray,
    edges: np.ndarray,
    radius: int = VOTE_RADIUS,
    ratio: float = VOTE_RATIO,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Majority vote in a (2r+1) x (2r+1) window for every edge pixel.

    Returns (voted mask, forced-foreground, forced-background). Edge pixels with no
    clear majority keep their label.
    """
    fg = (mask > 0).astype(np.uint8)
    window = (2 * radius + 1) ** 2
    fg_count = window_sum(fg, radius)
    bg_count = window - fg_count

    eligible = edges & interior(mask.shape, radius)
    force_fg = eligible & (fg_count > bg_count * ratio)
    force_bg = eligible & (bg_count > fg_count * ratio)

    voted = fg.copy()
    voted[force_fg] = 1
    voted[force_bg] = 0
    return voted, force_fg, force_bg


def erode_dilate(mask: np.ndarray, min_neighbors: int = MORPH_MIN_NEIGHBORS) -> np.ndarray:
    """
    One erosion pass then one dilation pass over 3x3 neighbourhoods (centre included).

    Erosion drops boundary foreground pixels with fewer than `min_neighbors`
    foreground cells; dilation then promotes background pixels with at least that
    many. Eroding first keeps thin false positives from being reinforced.
    """
    m = (mask > 0).astype(np.uint8)
    inner = interior(m.shape, 1)

    boundary = has_differing_neighbor(m, 1) & inner
    eroded = m.copy()
    eroded[boundary & (m == 1) & (window_sum(m, 1) < min_neighbors)] = 0

    dilated = eroded.copy()
    dilated[inner & (eroded == 0) & (window_sum(eroded, 1) >= min_neighbors)] = 1
    return dilated


def refine_mask(
    mask: np.ndarray,
    matte: np.ndarray,
    trimap: np.ndarray,
    edges: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Binary mask + alpha matte -> refined alpha (uint8, 0..255).

      - edge pixels with a clear 5x5 majority are forced to that label
      - erosion then dilation removes speckles and fills pinholes
      - background -> 0; foreground -> 255, except undecided pixels in the unknown
        band, which keep the matte's value
    """
    if mask.shape != matte.shape or mask.shape != trimap.shape:
        raise ValueError(f"Shape mismatch: mask {mask.shape}, matte {matte.shape}, trimap {trimap.shape}")
    if edges is None:
        edges = find_edge_pixels(mask)

    voted, force_fg, _force_bg = vote_edges(mask, edges)
    labels = erode_dilate(voted)

    refined = np.where(labels == 1, 255, 0).astype(np.uint8)
    soft = (labels == 1) & (trimap == TRIMAP_UNKNOWN) & ~force_fg
    refined[soft] = matte[soft]
    return refined
