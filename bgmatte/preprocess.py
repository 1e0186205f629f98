from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np
import torch

from .config import IMAGENET_MEAN, IMAGENET_STD, MODEL_INPUT_SIZE, PAD_COLOR


@dataclass(frozen=True)
class PreprocessMeta:
    """Metadata required to map model-space outputs back to original image space."""

    orig_h: int
    orig_w: int
    resized_h: int
    resized_w: int
    scale: float
    x_offset: int
    y_offset: int
    target_size: int = MODEL_INPUT_SIZE


def resize_with_padding(img: np.ndarray, target_size: int = MODEL_INPUT_SIZE) -> Tuple[np.ndarray, PreprocessMeta]:
    """
    Aspect-safe resize to fit within target_size, then pad to (target_size, target_size).

    Returns:
      - padded_rgb: uint8 ndarray (target_size, target_size, 3)
      - meta: PreprocessMeta containing scale and offsets
    """
    if img.ndim != 3 or img.shape[2] != 3:
        raise ValueError(f"Expected RGB image (H,W,3), got shape={img.shape}")

    orig_h, orig_w = img.shape[:2]
    if orig_h <= 0 or orig_w <= 0:
        raise ValueError(f"Invalid image size: {(orig_h, orig_w)}")

    # Small images are upscaled too; segmentation nets expect a fixed-ish input size.
    scale = float(target_size) / float(max(orig_h, orig_w))
    resized_w = max(1, int(round(orig_w * scale)))
    resized_h = max(1, int(round(orig_h * scale)))

    interp = cv2.INTER_AREA if scale < 1 else cv2.INTER_CUBIC
    resized = cv2.resize(np.ascontiguousarray(img), (resized_w, resized_h), interpolation=interp)

    padded = np.full((target_size, target_size, 3), PAD_COLOR, dtype=np.uint8)
    x_offset = (target_size - resized_w) // 2
    y_offset = (target_size - resized_h) // 2
    padded[y_offset : y_offset + resized_h, x_offset : x_offset + resized_w] = resized

    meta = PreprocessMeta(
        orig_h=orig_h,
        orig_w=orig_w,
        resized_h=resized_h,
        resized_w=resized_w,
        scale=scale,
        x_offset=x_offset,
        y_offset=y_offset,
        target_size=target_size,
    )
    return padded, meta


def normalize(img: np.ndarray) -> torch.Tensor:
    """
    Normalize uint8 RGB image to float32 torch tensor: (1,3,S,S).
    """
    if img.ndim != 3 or img.shape[2] != 3 or img.shape[0] != img.shape[1]:
        raise ValueError(f"Expected square RGB image (S,S,3), got {img.shape}")
    x = img.astype(np.float32) / 255.0
    mean = np.array(IMAGENET_MEAN, dtype=np.float32).reshape(1, 1, 3)
    std = np.array(IMAGENET_STD, dtype=np.float32).reshape(1, 1, 3)
    x = (x - mean) / std
    x = np.transpose(x, (2, 0, 1))  # CHW
    t = torch.from_numpy(np.ascontiguousarray(x)).unsqueeze(0).contiguous()  # NCHW
    if t.dtype != torch.float32:
        t = t.float()
    return t


def restore_mask_to_original(mask_sq: np.ndarray, meta: PreprocessMeta) -> np.ndarray:
    """
    Restore a model-space square mask back to original image resolution.

    Steps:
      1) remove padding using x/y offsets + resized sizes
      2) resize back to (orig_w, orig_h)
    """
    if mask_sq.ndim != 2:
        raise ValueError(f"Expected 2D mask, got shape={mask_sq.shape}")
    if mask_sq.dtype != np.float32:
        mask_sq = mask_sq.astype(np.float32, copy=False)

    x0, y0 = meta.x_offset, meta.y_offset
    x1, y1 = x0 + meta.resized_w, y0 + meta.resized_h
    cropped = mask_sq[y0:y1, x0:x1]
    if cropped.size == 0:
        raise ValueError("Mask crop is empty; check preprocessing meta.")

    restored = cv2.resize(np.ascontiguousarray(cropped), (meta.orig_w, meta.orig_h), interpolation=cv2.INTER_LINEAR)
    restored = np.clip(restored, 0.0, 1.0).astype(np.float32, copy=False)
    return restored
