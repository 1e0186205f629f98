from __future__ import annotations

import numpy as np

from .config import TRIMAP_BG, TRIMAP_FG, TRIMAP_RADIUS, TRIMAP_UNKNOWN
from .window import has_differing_neighbor, interior


def build_trimap(mask: np.ndarray, radius: int = TRIMAP_RADIUS) -> np.ndarray:
    """
    Binary mask (0/1, or any nonzero foreground) -> trimap {0, 128, 255}.

    Every pixel whose (2r+1) x (2r+1) neighbourhood contains the other label becomes
    unknown, which gives a band straddling each boundary. Pixels within `radius` of
    the image edge keep their known label.
    """
    if mask.ndim != 2:
        raise ValueError(f"Expected 2D mask, got shape={mask.shape}")

    fg = mask > 0
    trimap = np.where(fg, TRIMAP_FG, TRIMAP_BG).astype(np.uint8)
    if radius <= 0 or trimap.size == 0:
        return trimap

    band = has_differing_neighbor(fg, radius) & interior(fg.shape, radius)
    trimap[band] = TRIMAP_UNKNOWN
    return trimap


def trimap_counts(trimap: np.ndarray) -> dict:
    """Pixel counts per trimap label, for diagnostics and reports."""
    return {
        "background": int(np.count_nonzero(trimap == TRIMAP_BG)),
        "unknown": int(np.count_nonzero(trimap == TRIMAP_UNKNOWN)),
        "foreground": int(np.count_nonzero(trimap == TRIMAP_FG)),
    }
