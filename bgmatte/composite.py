from __future__ import annotations

import re
from typing import Optional, Sequence, Union

import numpy as np

from .buffer import Color, PixelBuffer
from .errors import InvalidColorSpec

ColorSpec = Union[str, Sequence[int], Color, None]

TRANSPARENT = "transparent"
_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def parse_color(spec: ColorSpec) -> Optional[Color]:
    """
    Parse a background colour.

    Accepts "transparent" (or None) -> None, "#RRGGBB", "RRGGBB", "#RGB", or an
    (r, g, b) triple of ints in [0, 255].
    """
    if spec is None:
        return None
    if isinstance(spec, str):
        s = spec.strip()
        if s.lower() == TRANSPARENT:
            return None
        m = _HEX_RE.match(s)
        if not m:
            raise InvalidColorSpec(f"Invalid colour: {spec!r}")
        hexstr = m.group(1)
        if len(hexstr) == 3:
            hexstr = "".join(ch * 2 for ch in hexstr)
        return Color(int(hexstr[0:2], 16), int(hexstr[2:4], 16), int(hexstr[4:6], 16))

    try:
        values = list(spec)
    except TypeError as e:
        raise InvalidColorSpec(f"Invalid colour: {spec!r}") from e
    if len(values) != 3:
        raise InvalidColorSpec(f"Expected (r, g, b), got {spec!r}")
    out = []
    for v in values:
        if isinstance(v, bool) or not isinstance(v, (int, np.integer)) or not 0 <= int(v) <= 255:
            raise InvalidColorSpec(f"Channel values must be ints in [0, 255], got {spec!r}")
        out.append(int(v))
    return Color(*out)


def apply_background_color(buffer: PixelBuffer, spec: ColorSpec) -> PixelBuffer:
    """
    Fill a canvas with the chosen colour and draw the matted buffer over it.

    Straight alpha: rgb = fg * a + bg * (1 - a), alpha = 255. "transparent" returns
    an unchanged copy. The colour is validated before anything is allocated.
    """
    color = parse_color(spec)
    if color is None:
        return buffer.copy()

    a = buffer.alpha.astype(np.float32)[..., None] / 255.0
    fg = buffer.rgb.astype(np.float32)
    bg = np.array(color, dtype=np.float32).reshape(1, 1, 3)
    rgb = np.rint(fg * a + bg * (1.0 - a))
    rgb = np.clip(rgb, 0, 255).astype(np.uint8)
    return PixelBuffer.from_rgb(rgb)


def foreground_fraction(buffer: PixelBuffer) -> float:
    """Share of pixels with any opacity left."""
    return float(np.count_nonzero(buffer.alpha)) / float(buffer.alpha.size)
