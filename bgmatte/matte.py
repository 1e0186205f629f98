from __future__ import annotations

from typing import Tuple

import numpy as np

from .buffer import PixelBuffer
from .config import EMPTY_BG_COLOR, EMPTY_FG_COLOR, MATTE_SAMPLE_RADIUS, TRIMAP_BG, TRIMAP_FG, TRIMAP_UNKNOWN
from .window import interior, window_sum


def _local_mean(rgb: np.ndarray, known: np.ndarray, radius: int, empty) -> np.ndarray:
    """
    Floor of the mean colour of `known` pixels in each pixel's window, or `empty`
    where the window has none.
    """
    weights = known.astype(np.int64)
    sums = window_sum(rgb.astype(np.int64) * weights[..., None], radius)
    counts = window_sum(weights, radius)
    mean = np.empty(rgb.shape, dtype=np.float64)
    mean[...] = np.asarray(empty, dtype=np.float64)
    has = counts > 0
    mean[has] = sums[has] // counts[has][:, None]
    return mean


def sample_fg_bg_colors(
    rgb: np.ndarray,
    trimap: np.ndarray,
    radius: int = MATTE_SAMPLE_RADIUS,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Per-pixel mean of known-foreground and known-background colours within `radius`.

    Empty foreground samples fall back to black and empty background samples to
    white, biasing ambiguous pixels toward staying visible.
    """
    fg_mean = _local_mean(rgb, trimap == TRIMAP_FG, radius, EMPTY_FG_COLOR)
    bg_mean = _local_mean(rgb, trimap == TRIMAP_BG, radius, EMPTY_BG_COLOR)
    return fg_mean, bg_mean


def alpha_from_colors(rgb: np.ndarray, fg_mean: np.ndarray, bg_mean: np.ndarray) -> np.ndarray:
    """
    255 * (1 - dFg / (dFg + dBg)) with Euclidean RGB distances; 255 when both
    distances vanish. Returns float64 in [0, 255].
    """
    c = rgb.astype(np.float64)
    d_fg = np.sqrt(((c - fg_mean) ** 2).sum(axis=-1))
    d_bg = np.sqrt(((c - bg_mean) ** 2).sum(axis=-1))
    total = d_fg + d_bg
    with np.errstate(divide="ignore", invalid="ignore"):
        alpha = np.where(total < 1.0, 255.0, 255.0 * (1.0 - d_fg / total))
    return np.clip(alpha, 0.0, 255.0)


def smooth_unknown(alpha: np.ndarray, trimap: np.ndarray) -> np.ndarray:
    """
    3x3 box average applied only to unknown pixels (reads the unsmoothed values).
    """
    out = alpha.copy()
    target = (trimap == TRIMAP_UNKNOWN) & interior(alpha.shape, 1)
    if not target.any():
        return out
    box = window_sum(alpha.astype(np.int64), 1) // 9
    out[target] = box[target].astype(np.uint8)
    return out


def estimate_matte(
    buffer: PixelBuffer,
    trimap: np.ndarray,
    sample_radius: int = MATTE_SAMPLE_RADIUS,
) -> np.ndarray:
    """
    Trimap -> alpha matte (uint8).

    Known pixels copy their label (0 or 255); unknown pixels get a colour-sampling
    estimate, then a 3x3 smoothing pass over the unknown band only.
    """
    rgb = buffer.rgb
    if trimap.shape != rgb.shape[:2]:
        raise ValueError(f"Trimap shape {trimap.shape} does not match image {rgb.shape[:2]}")

    alpha = np.where(trimap == TRIMAP_FG, 255, 0).astype(np.uint8)
    unknown = trimap == TRIMAP_UNKNOWN
    if not unknown.any():
        return alpha

    fg_mean, bg_mean = sample_fg_bg_colors(rgb, trimap, sample_radius)
    est = alpha_from_colors(rgb[unknown], fg_mean[unknown], bg_mean[unknown])
    alpha[unknown] = est.astype(np.uint8)
    return smooth_unknown(alpha, trimap)
