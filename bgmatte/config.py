"""
Centralized configuration constants for the local matting pipeline.

Ground rules:
- CPU + numpy arrays, one decoded image per call
- Deterministic: no randomness, fixed seed order
"""

from __future__ import annotations

from dataclasses import dataclass

# Color sampler: border band is min(BORDER_BAND_MAX, w / BORDER_BAND_DIVISOR, h / BORDER_BAND_DIVISOR).
BORDER_BAND_MAX = 30
BORDER_BAND_DIVISOR = 15
COLOR_BIN_SIZE = 20
DEFAULT_BACKGROUND = (255, 255, 255)

# Region grower. Distances use luma weights so they stay well below plain RGB distance.
LUMA_WEIGHTS = (0.30, 0.59, 0.11)
GROW_THRESHOLD = 50.0
BORDER_ZONE = 30
BORDER_THRESHOLD_SCALE = 1.8
SEED_MATCH_SCALE = 1.5
BACKGROUND_MATCH_SCALE = 1.3
RELAXED_MATCH_SCALE = 1.5
TIGHT_MATCH_SCALE = 0.8
MIN_SEED_NEIGHBORS = 3
SEED_STRIDE_MIN = 5
SEED_STRIDE_DIVISOR = 20

# Trimap labels
TRIMAP_BG = 0
TRIMAP_UNKNOWN = 128
TRIMAP_FG = 255
TRIMAP_RADIUS = 3

# Matte estimator. Empty samples default so ambiguous pixels stay visible.
MATTE_SAMPLE_RADIUS = 10
EMPTY_FG_COLOR = (0, 0, 0)
EMPTY_BG_COLOR = (255, 255, 255)

# Mask refiner
VOTE_RADIUS = 2
VOTE_RATIO = 1.5
MORPH_MIN_NEIGHBORS = 5

# Feathering
FEATHER_RADIUS = 2.0
FEATHER_FLOOR = 0.7
DISTANCE_ITERATIONS = 5

# Segmentation model. BiRefNet patches the input, so the square must match its grid.
MODEL_INPUT_SIZE = 1088
PAD_COLOR = 127
SEGMENTATION_THRESHOLD = 0.75
IMAGENET_MEAN = [0.485, 0.456, 0.406]
IMAGENET_STD = [0.229, 0.224, 0.225]
DEFAULT_HF_REPO = "ZhengPeng7/BiRefNet"

# Remote service
REMOTE_SIZE = "auto"
REMOTE_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class MattingParams:
    """User-tunable subset of the constants above."""

    threshold: float = GROW_THRESHOLD
    trimap_radius: int = TRIMAP_RADIUS
    sample_radius: int = MATTE_SAMPLE_RADIUS
    feather_radius: float = FEATHER_RADIUS
