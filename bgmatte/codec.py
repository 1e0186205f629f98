from __future__ import annotations

import io
from pathlib import Path
from typing import Dict, Optional, Protocol

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from .buffer import PixelBuffer
from .errors import DecodeError


class PixelCodec(Protocol):
    name: str

    def decode(self, data: bytes) -> PixelBuffer: ...

    def encode(self, buffer: PixelBuffer, fmt: str = "PNG") -> bytes: ...


class PillowCodec:
    name = "pillow"

    def decode(self, data: bytes) -> PixelBuffer:
        if not data:
            raise DecodeError("Empty image data")
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise DecodeError(f"Could not decode image: {e}") from e
        return to_buffer(img)

    def encode(self, buffer: PixelBuffer, fmt: str = "PNG") -> bytes:
        img = to_pil(buffer)
        if fmt.upper() in ("JPEG", "JPG"):
            img = img.convert("RGB")
        buf = io.BytesIO()
        img.save(buf, format=fmt.upper().replace("JPG", "JPEG"))
        return buf.getvalue()


class OpenCVCodec:
    name = "opencv"

    def decode(self, data: bytes) -> PixelBuffer:
        if not data:
            raise DecodeError("Empty image data")
        raw = np.frombuffer(data, dtype=np.uint8)
        img = cv2.imdecode(raw, cv2.IMREAD_UNCHANGED)
        if img is None or img.size == 0:
            raise DecodeError("Could not decode image")
        if img.dtype != np.uint8:
            # 16-bit PNG/TIFF
            img = (img / 257).astype(np.uint8)
        if img.ndim == 2:
            rgba = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
        elif img.shape[2] == 3:
            rgba = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
        else:
            rgba = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
        return PixelBuffer(rgba)

    def encode(self, buffer: PixelBuffer, fmt: str = "PNG") -> bytes:
        ext = "." + fmt.lower().replace("jpeg", "jpg")
        if ext == ".jpg":
            arr = cv2.cvtColor(buffer.pixels, cv2.COLOR_RGBA2BGR)
        else:
            arr = cv2.cvtColor(buffer.pixels, cv2.COLOR_RGBA2BGRA)
        ok, out = cv2.imencode(ext, arr)
        if not ok:
            raise RuntimeError(f"OpenCV could not encode {fmt}")
        return out.tobytes()


_CODECS: Dict[str, PixelCodec] = {
    PillowCodec.name: PillowCodec(),
    OpenCVCodec.name: OpenCVCodec(),
}


def get_codec(name: Optional[str] = None) -> PixelCodec:
    key = (name or PillowCodec.name).lower()
    if key not in _CODECS:
        raise ValueError(f"Unknown codec: {name}. Choose from: {', '.join(sorted(_CODECS))}")
    return _CODECS[key]


def to_buffer(img: Image.Image) -> PixelBuffer:
    """
    Convert any PIL image to an RGBA PixelBuffer (palette transparency kept).
    """
    if img.size[0] <= 0 or img.size[1] <= 0:
        raise DecodeError(f"Invalid image size: {img.size}")
    arr = np.array(img.convert("RGBA"), dtype=np.uint8)
    return PixelBuffer(arr)


def to_pil(buffer: PixelBuffer) -> Image.Image:
    return Image.fromarray(np.ascontiguousarray(buffer.pixels))


def decode_image(data: bytes, codec: Optional[PixelCodec] = None) -> PixelBuffer:
    return (codec or get_codec()).decode(data)


def encode_png(buffer: PixelBuffer, codec: Optional[PixelCodec] = None) -> bytes:
    return (codec or get_codec()).encode(buffer, "PNG")


def load_image(path: str, codec: Optional[PixelCodec] = None) -> PixelBuffer:
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Could not read image: {path}")
    return decode_image(p.read_bytes(), codec)


def save_rgba_png(buffer: PixelBuffer, out_path: str, codec: Optional[PixelCodec] = None) -> None:
    """
    Save as lossless RGBA PNG.
    """
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(encode_png(buffer, codec))
