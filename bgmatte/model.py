from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
import torch

from .buffer import PixelBuffer
from .config import DEFAULT_HF_REPO, MODEL_INPUT_SIZE, SEGMENTATION_THRESHOLD
from .errors import SegmentationUnavailable
from .inference import predict_mask

logger = logging.getLogger(__name__)


def get_device(preferred: Optional[str] = None) -> torch.device:
    """
    Explicit device selection. CPU unless the caller asks for something else.
    """
    if not preferred or preferred == "cpu":
        return torch.device("cpu")
    if preferred == "mps" and not torch.backends.mps.is_available():
        raise RuntimeError("torch.backends.mps.is_available() is False.")
    if preferred.startswith("cuda") and not torch.cuda.is_available():
        raise RuntimeError("torch.cuda.is_available() is False.")
    return torch.device(preferred)


@dataclass
class SegmentationModel:
    """
    Loaded segmentation network owned by the caller.

    Read-only after load, so one instance can serve concurrent `segment` calls.
    `release()` drops the module; later calls raise SegmentationUnavailable.
    """

    module: Optional[torch.nn.Module]
    device: torch.device
    source: str = "custom"
    input_size: int = MODEL_INPUT_SIZE
    threshold: float = SEGMENTATION_THRESHOLD

    @property
    def loaded(self) -> bool:
        return self.module is not None

    def segment(self, buffer: PixelBuffer) -> np.ndarray:
        module = self.module
        if module is None:
            raise SegmentationUnavailable(f"Model {self.source} has been released")
        try:
            mask = predict_mask(module, buffer, self.device, size=self.input_size, threshold=self.threshold)
        except Exception as e:  # noqa: BLE001 - any inference failure sends the caller to the fallback
            raise SegmentationUnavailable(f"Inference failed ({self.source}): {e}") from e
        if mask.shape != (buffer.height, buffer.width):
            raise SegmentationUnavailable(f"Mask shape {mask.shape} does not match image {(buffer.height, buffer.width)}")
        return mask

    def release(self) -> None:
        # In-flight `segment` calls keep their own reference and finish normally.
        self.module = None


@dataclass(frozen=True)
class ModelLoadResult:
    model: Optional[SegmentationModel] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.model is not None


def _prepare(module: torch.nn.Module, device: torch.device) -> torch.nn.Module:
    module.eval()
    for p in module.parameters():
        p.requires_grad_(False)
    # Float32 everywhere; some archives carry float64 attributes.
    module = module.to(dtype=torch.float32)
    return module.to(device)


def load_torchscript_model(model_path: str, device: torch.device) -> torch.nn.Module:
    """
    Load a TorchScript segmentation model saved via torch.jit.save (extension can be .pth).

    Pure state_dict checkpoints need the original model code and are not supported.
    """
    if not os.path.exists(model_path):
        raise FileNotFoundError(f"Model not found: {model_path}")

    # Register torchvision custom TorchScript ops (e.g. deform_conv2d) before loading,
    # otherwise torch.jit.load fails with "Unknown builtin op: torchvision::deform_conv2d".
    import torchvision  # noqa: F401

    module = torch.jit.load(model_path, map_location="cpu")
    return _prepare(module, device)


def load_birefnet_hf(hf_repo: str = DEFAULT_HF_REPO, device: Optional[torch.device] = None) -> torch.nn.Module:
    """
    Load BiRefNet via Hugging Face transformers (trust_remote_code).

    Meta-device init is disabled; BiRefNet's constructor calls `.item()` on real tensors.
    """
    from transformers import AutoModelForImageSegmentation

    module = AutoModelForImageSegmentation.from_pretrained(
        hf_repo,
        trust_remote_code=True,
        low_cpu_mem_usage=False,
        device_map=None,
    )
    return _prepare(module, device or get_device())


def load_segmentation_model(
    spec: str,
    device: Union[str, torch.device, None] = None,
    *,
    input_size: int = MODEL_INPUT_SIZE,
    threshold: float = SEGMENTATION_THRESHOLD,
) -> ModelLoadResult:
    """
    Load a model from `spec` and report the outcome instead of raising.

    spec: "hf:<repo>" / "birefnet" for BiRefNet, otherwise a TorchScript file path.
    """
    try:
        dev = device if isinstance(device, torch.device) else get_device(device)
        if spec in ("birefnet", "hf:birefnet"):
            module = load_birefnet_hf(DEFAULT_HF_REPO, device=dev)
        elif spec.startswith("hf:"):
            module = load_birefnet_hf(spec[len("hf:") :], device=dev)
        else:
            module = load_torchscript_model(spec, dev)
    except Exception as e:  # noqa: BLE001 - reported through ModelLoadResult
        logger.warning("Segmentation model %s unavailable: %s: %s", spec, type(e).__name__, e)
        return ModelLoadResult(error=SegmentationUnavailable(f"Failed to load model {spec}: {e}"))

    logger.info("Loaded segmentation model %s on %s", spec, dev)
    return ModelLoadResult(
        model=SegmentationModel(module=module, device=dev, source=spec, input_size=input_size, threshold=threshold)
    )
