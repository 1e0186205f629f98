from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .buffer import PixelBuffer
from .codec import PixelCodec, decode_image, save_rgba_png
from .composite import ColorSpec, apply_background_color, foreground_fraction, parse_color
from .config import MattingParams
from .contracts import AttemptRecord, RemovalReport
from .errors import BackgroundRemovalFailed, DecodeError
from .feather import apply_feathered_alpha
from .matte import estimate_matte
from .model import SegmentationModel
from .refine import find_edge_pixels, refine_mask
from .region import grow_background_mask
from .remote import RemoteRemover
from .sampler import estimate_background_color
from .trimap import build_trimap, trimap_counts

logger = logging.getLogger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_MODEL = "model"
SOURCE_HEURISTIC = "heuristic"


@dataclass(frozen=True)
class StageTimings:
    decode_s: float
    removal_s: float
    composite_s: float
    total_s: float


@dataclass(frozen=True)
class Attempt:
    source: str
    ok: bool
    error: str = ""
    elapsed_s: float = 0.0


@dataclass
class RemovalResult:
    """
    Outcome of a fallback chain: the buffer and the source that produced it, or
    no buffer and the last error once every source failed.
    """

    buffer: Optional[PixelBuffer] = None
    source: Optional[str] = None
    attempts: List[Attempt] = field(default_factory=list)
    last_error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.buffer is not None

    def unwrap(self) -> PixelBuffer:
        if self.buffer is None:
            tried = ", ".join(a.source for a in self.attempts) or "none"
            raise BackgroundRemovalFailed(
                f"Background removal failed (tried: {tried}): {self.last_error}",
                last_error=self.last_error,
            )
        return self.buffer


@dataclass
class MattingArtifacts:
    """Per-stage arrays of one invocation, kept for inspection and tests."""

    mask: np.ndarray
    trimap: np.ndarray
    matte: np.ndarray
    refined: np.ndarray
    distance: np.ndarray


def heuristic_mask(buffer: PixelBuffer, params: Optional[MattingParams] = None) -> np.ndarray:
    """
    Stages 1-2: border colour estimate, then threshold + region growing.
    """
    params = params or MattingParams()
    bg_color = estimate_background_color(buffer)
    logger.debug("estimated background colour %s", bg_color.to_hex())
    return grow_background_mask(buffer, bg_color, threshold=params.threshold)


def matte_from_mask(
    buffer: PixelBuffer,
    mask: np.ndarray,
    params: Optional[MattingParams] = None,
) -> MattingArtifacts:
    """
    Stages 3-6 for any binary mask (heuristic or model). Writes the alpha channel
    of `buffer` in place; everything before the last step works on side arrays.
    """
    params = params or MattingParams()
    mask = np.asarray(mask)
    if mask.shape != (buffer.height, buffer.width):
        raise ValueError(f"Mask shape {mask.shape} does not match image {(buffer.height, buffer.width)}")
    mask = (mask > 0).astype(np.uint8)

    trimap = build_trimap(mask, radius=params.trimap_radius)
    logger.debug("trimap %s", trimap_counts(trimap))
    matte = estimate_matte(buffer, trimap, sample_radius=params.sample_radius)
    refined = refine_mask(mask, matte, trimap, edges=find_edge_pixels(mask))
    distance = apply_feathered_alpha(buffer, refined, radius=params.feather_radius)
    return MattingArtifacts(mask=mask, trimap=trimap, matte=matte, refined=refined, distance=distance)


def run_fallback_chain(steps: Sequence[Tuple[str, Callable[[], PixelBuffer]]]) -> RemovalResult:
    """
    Try each (source, fn) in order and stop at the first success.

    DecodeError is fatal and propagates; any other failure is logged and the
    next source runs.
    """
    result = RemovalResult()
    for source, fn in steps:
        t0 = time.perf_counter()
        try:
            out = fn()
        except DecodeError:
            raise
        except Exception as e:  # noqa: BLE001 - each source may fail in its own way
            elapsed = time.perf_counter() - t0
            logger.warning("%s failed after %.3fs: %s: %s", source, elapsed, type(e).__name__, e)
            result.attempts.append(Attempt(source, False, f"{type(e).__name__}: {e}", elapsed))
            result.last_error = e
            continue

        elapsed = time.perf_counter() - t0
        logger.info("%s succeeded in %.3fs", source, elapsed)
        result.attempts.append(Attempt(source, True, "", elapsed))
        result.buffer = out
        result.source = source
        return result

    return result


def _mask_step(buffer: PixelBuffer, mask_fn: Callable[[], np.ndarray], params: MattingParams) -> Callable[[], PixelBuffer]:
    def _run() -> PixelBuffer:
        mask = mask_fn()
        matte_from_mask(buffer, mask, params)
        if not buffer.alpha.any():
            logger.info("No foreground detected; returning a fully transparent image")
        return buffer

    return _run


def _local_steps(
    buffer: PixelBuffer,
    model: Optional[SegmentationModel],
    params: MattingParams,
) -> List[Tuple[str, Callable[[], PixelBuffer]]]:
    steps = []
    if model is not None:
        steps.append((SOURCE_MODEL, _mask_step(buffer, lambda: model.segment(buffer), params)))
    steps.append((SOURCE_HEURISTIC, _mask_step(buffer, lambda: heuristic_mask(buffer, params), params)))
    return steps


def remove_background(
    buffer: PixelBuffer,
    *,
    model: Optional[SegmentationModel] = None,
    params: Optional[MattingParams] = None,
) -> RemovalResult:
    """
    Local removal: model mask when a model is given, heuristic mask otherwise or on
    failure. The buffer's alpha channel is updated in place.
    """
    return run_fallback_chain(_local_steps(buffer, model, params or MattingParams()))


def remove_background_bytes(
    data: bytes,
    *,
    model: Optional[SegmentationModel] = None,
    remote: Optional[RemoteRemover] = None,
    codec: Optional[PixelCodec] = None,
    params: Optional[MattingParams] = None,
) -> RemovalResult:
    """
    Full product flow: decode, then remote service -> model -> heuristic.

    Raises DecodeError before anything runs when `data` is not an image.
    """
    buffer = decode_image(data, codec)
    steps: List[Tuple[str, Callable[[], PixelBuffer]]] = []
    if remote is not None:
        steps.append((SOURCE_REMOTE, lambda: remote.remove(data)))
    steps.extend(_local_steps(buffer, model, params or MattingParams()))
    return run_fallback_chain(steps)


def process_image(
    image_path: str,
    out_path: str,
    *,
    model: Optional[SegmentationModel] = None,
    remote: Optional[RemoteRemover] = None,
    background: ColorSpec = "transparent",
    codec: Optional[PixelCodec] = None,
    params: Optional[MattingParams] = None,
) -> Tuple[RemovalResult, StageTimings]:
    """
    Linear pipeline:
      1) Read + decode
      2) Remove background (fallback chain)
      3) Composite onto the chosen background
      4) Save PNG
    """
    # Fail on a bad colour before doing any work.
    parse_color(background)
    t0 = time.perf_counter()

    p = Path(image_path)
    if not p.is_file():
        raise FileNotFoundError(f"Could not read image: {image_path}")
    data = p.read_bytes()
    t_dec1 = time.perf_counter()

    result = remove_background_bytes(data, model=model, remote=remote, codec=codec, params=params)
    matted = result.unwrap()
    t_rem1 = time.perf_counter()

    final = apply_background_color(matted, background)
    save_rgba_png(final, out_path, codec)
    t1 = time.perf_counter()

    return result, StageTimings(
        decode_s=t_dec1 - t0,
        removal_s=t_rem1 - t_dec1,
        composite_s=t1 - t_rem1,
        total_s=t1 - t0,
    )


def build_report(
    image_path: str,
    out_path: str,
    result: RemovalResult,
    timings: Optional[StageTimings] = None,
    background: ColorSpec = "transparent",
) -> RemovalReport:
    color = parse_color(background)
    buf = result.buffer
    return RemovalReport(
        image_path=str(image_path),
        output_path=str(out_path),
        width=buf.width if buf is not None else 0,
        height=buf.height if buf is not None else 0,
        source=result.source,
        attempts=[AttemptRecord(**asdict(a)) for a in result.attempts],
        foreground_fraction=foreground_fraction(buf) if buf is not None else 0.0,
        background=color.to_hex() if color is not None else "transparent",
        timings=asdict(timings) if timings is not None else {},
        status="ok" if result.ok else "failed",
    )
