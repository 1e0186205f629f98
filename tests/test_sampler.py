from __future__ import annotations

import numpy as np

from bgmatte.buffer import Color, PixelBuffer
from bgmatte.config import DEFAULT_BACKGROUND
from bgmatte.sampler import border_band_width, dominant_color, estimate_background_color, sample_border_colors


def _solid(h: int, w: int, rgb) -> PixelBuffer:
    img = np.zeros((h, w, 3), dtype=np.uint8)
    img[...] = rgb
    return PixelBuffer.from_rgb(img)


def test_band_width_follows_image_size():
    assert border_band_width(1000, 1000) == 30
    assert border_band_width(100, 100) == 6
    assert border_band_width(300, 45) == 3
    # tiny images still get a one-pixel ring
    assert border_band_width(4, 4) == 1
    assert border_band_width(0, 0) == 0


def test_sample_count_covers_four_bands():
    buf = _solid(100, 100, (1, 2, 3))
    colors = sample_border_colors(buf)
    assert colors.shape == (4 * 6 * 100, 3)
    assert (colors == np.array([1, 2, 3], dtype=np.uint8)).all()


def test_dominant_color_is_bin_center():
    buf = _solid(100, 100, (0, 0, 255))
    buf.pixels[40:60, 40:60, :3] = (255, 0, 0)
    assert estimate_background_color(buf) == Color(10, 10, 250)


def test_dominant_color_prefers_majority_bin():
    colors = np.array([[200, 200, 200]] * 5 + [[0, 0, 0]] * 3, dtype=np.uint8)
    assert dominant_color(colors) == Color(210, 210, 210)


def test_dominant_color_tie_goes_to_first_seen_bin():
    colors = np.array([[250, 250, 250], [5, 5, 5]], dtype=np.uint8)
    assert dominant_color(colors) == Color(250, 250, 250)
    assert dominant_color(colors[::-1]) == Color(10, 10, 10)


def test_border_tie_follows_sampling_order():
    # 30x30 -> 2px band; top half red, bottom half green gives equal counts,
    # and the top band is sampled first.
    img = np.zeros((30, 30, 3), dtype=np.uint8)
    img[:15] = (200, 0, 0)
    img[15:] = (0, 200, 0)
    assert estimate_background_color(PixelBuffer.from_rgb(img)) == Color(210, 10, 10)


def test_empty_samples_return_default():
    assert dominant_color(np.zeros((0, 3), dtype=np.uint8)) == Color(*DEFAULT_BACKGROUND)
