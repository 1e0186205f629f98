from __future__ import annotations

import numpy as np
import pytest

from bgmatte.buffer import Color, PixelBuffer
from bgmatte.composite import apply_background_color, foreground_fraction, parse_color
from bgmatte.errors import InvalidColorSpec


@pytest.mark.parametrize(
    "spec, expected",
    [
        ("transparent", None),
        ("TRANSPARENT", None),
        (None, None),
        ("#FFFFFF", Color(255, 255, 255)),
        ("00ff80", Color(0, 255, 128)),
        ("#abc", Color(0xAA, 0xBB, 0xCC)),
        ((1, 2, 3), Color(1, 2, 3)),
        ([0, 0, 255], Color(0, 0, 255)),
    ],
)
def test_parse_color(spec, expected):
    assert parse_color(spec) == expected


@pytest.mark.parametrize("spec", ["#GGGGGG", "#12345", "red", "", (1, 2), (0, 0, 256), (1.5, 2, 3), (True, 0, 0), 42])
def test_parse_color_rejects(spec):
    with pytest.raises(InvalidColorSpec):
        parse_color(spec)


def _half_transparent() -> PixelBuffer:
    px = np.zeros((2, 2, 4), dtype=np.uint8)
    px[..., 0] = 200
    px[0, 0, 3] = 255
    px[0, 1, 3] = 0
    px[1, :, 3] = 128
    return PixelBuffer(px)


def test_solid_background_blend():
    out = apply_background_color(_half_transparent(), "#0000FF")
    assert (out.alpha == 255).all()
    assert tuple(out.rgb[0, 0]) == (200, 0, 0)
    assert tuple(out.rgb[0, 1]) == (0, 0, 255)
    r, g, b = out.rgb[1, 0]
    assert r == round(200 * 128 / 255)
    assert g == 0
    assert b == round(255 * (1 - 128 / 255))


def test_transparent_returns_copy():
    buf = _half_transparent()
    out = apply_background_color(buf, "transparent")
    np.testing.assert_array_equal(out.pixels, buf.pixels)
    out.pixels[0, 0, 0] = 1
    assert buf.pixels[0, 0, 0] == 200


def test_invalid_color_leaves_buffer_untouched():
    buf = _half_transparent()
    before = buf.pixels.copy()
    with pytest.raises(InvalidColorSpec):
        apply_background_color(buf, "not-a-colour")
    np.testing.assert_array_equal(buf.pixels, before)


def test_foreground_fraction():
    assert foreground_fraction(_half_transparent()) == 0.75
