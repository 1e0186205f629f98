from __future__ import annotations

import logging

import numpy as np
import torch

from .buffer import PixelBuffer
from .config import MODEL_INPUT_SIZE, SEGMENTATION_THRESHOLD
from .preprocess import normalize, resize_with_padding, restore_mask_to_original

logger = logging.getLogger(__name__)


def _extract_primary_output(y):
    """
    Segmentation models may return:
      - a single tensor
      - (tensor, ...) tuple/list (final stage is typically last)
      - dict / ModelOutput with tensor fields
    """
    if isinstance(y, torch.Tensor):
        return y
    if isinstance(y, (list, tuple)) and len(y) > 0:
        for item in reversed(y):
            if isinstance(item, torch.Tensor):
                return item
        return y[-1]
    if isinstance(y, dict):
        for k in ("logits", "pred", "alpha", "mask"):
            v = y.get(k, None)
            if isinstance(v, torch.Tensor):
                return v
        for v in y.values():
            if isinstance(v, torch.Tensor):
                return v
        return next(iter(y.values()))
    return y


def predict_probability(
    module: torch.nn.Module,
    x: torch.Tensor,
    device: torch.device,
    size: int = MODEL_INPUT_SIZE,
) -> np.ndarray:
    """
    Forward pass and convert logits -> foreground probability.

    Output: float32 numpy array in [0,1], shape (size, size).
    """
    if x.dtype != torch.float32:
        x = x.float()
    if x.ndim != 4 or x.shape[0] != 1:
        raise ValueError(f"Expected input tensor (1,3,H,W), got {tuple(x.shape)}")

    x = x.to(device)
    with torch.no_grad():
        y = module(x)
    y = _extract_primary_output(y)
    if not isinstance(y, torch.Tensor):
        raise RuntimeError(f"Model output is not a tensor: {type(y)}")

    # (1,C,H,W), (1,H,W) or (H,W)
    if y.ndim == 4:
        y = y[0, 0]
    elif y.ndim == 3:
        y = y[0]
    elif y.ndim != 2:
        raise RuntimeError(f"Unexpected output tensor shape: {tuple(y.shape)}")

    if tuple(y.shape[-2:]) != (size, size):
        y = torch.nn.functional.interpolate(
            y.float().unsqueeze(0).unsqueeze(0),
            size=(size, size),
            mode="bilinear",
            align_corners=False,
        )[0, 0]

    p = torch.sigmoid(y.float())
    if torch.isnan(p).any():
        raise RuntimeError("NaNs detected in predicted mask.")

    prob = p.detach().to("cpu").numpy().astype(np.float32, copy=False)
    return np.clip(prob, 0.0, 1.0)


def predict_mask(
    module: torch.nn.Module,
    buffer: PixelBuffer,
    device: torch.device,
    size: int = MODEL_INPUT_SIZE,
    threshold: float = SEGMENTATION_THRESHOLD,
) -> np.ndarray:
    """
    Full model path for one buffer: letterbox -> normalize -> forward -> un-letterbox
    -> threshold. Returns a uint8 BinaryMask (1 = foreground) at buffer resolution.
    """
    padded, meta = resize_with_padding(np.ascontiguousarray(buffer.rgb), target_size=size)
    logger.debug("letterbox %s", meta)
    prob = predict_probability(module, normalize(padded), device, size=size)
    restored = restore_mask_to_original(prob, meta)
    return (restored > float(threshold)).astype(np.uint8)
