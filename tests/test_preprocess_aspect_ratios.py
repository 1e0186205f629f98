import unittest

import numpy as np
import torch

from bgmatte.config import MODEL_INPUT_SIZE
from bgmatte.inference import predict_probability
from bgmatte.preprocess import normalize, resize_with_padding, restore_mask_to_original


class TestPreprocessAspectRatios(unittest.TestCase):
    def _make_rgb(self, h: int, w: int) -> np.ndarray:
        # deterministic synthetic RGB
        img = np.zeros((h, w, 3), dtype=np.uint8)
        img[..., 0] = 10
        img[..., 1] = 20
        img[..., 2] = 30
        return img

    def _make_square_mask_with_center_box(self, size: int = MODEL_INPUT_SIZE) -> np.ndarray:
        m = np.zeros((size, size), dtype=np.float32)
        m[size // 4 : 3 * size // 4, size // 4 : 3 * size // 4] = 1.0
        return m

    def test_resize_with_padding_wide(self):
        img = self._make_rgb(256, 1024)
        padded, meta = resize_with_padding(img)
        self.assertEqual(padded.shape, (MODEL_INPUT_SIZE, MODEL_INPUT_SIZE, 3))
        self.assertEqual(meta.orig_h, 256)
        self.assertEqual(meta.orig_w, 1024)
        self.assertEqual(meta.x_offset, 0)
        self.assertGreater(meta.y_offset, 0)
        self.assertLessEqual(meta.resized_h, MODEL_INPUT_SIZE)
        self.assertEqual(meta.resized_w, MODEL_INPUT_SIZE)

        restored = restore_mask_to_original(self._make_square_mask_with_center_box(), meta)
        self.assertEqual(restored.shape, (256, 1024))
        self.assertTrue(np.isfinite(restored).all())

    def test_resize_with_padding_tall(self):
        img = self._make_rgb(1024, 256)
        padded, meta = resize_with_padding(img)
        self.assertEqual(padded.shape, (MODEL_INPUT_SIZE, MODEL_INPUT_SIZE, 3))
        self.assertEqual(meta.orig_h, 1024)
        self.assertEqual(meta.orig_w, 256)
        self.assertGreater(meta.x_offset, 0)
        self.assertEqual(meta.y_offset, 0)

        restored = restore_mask_to_original(self._make_square_mask_with_center_box(), meta)
        self.assertEqual(restored.shape, (1024, 256))
        self.assertTrue(np.isfinite(restored).all())

    def test_small_image_is_upscaled(self):
        img = self._make_rgb(30, 20)
        padded, meta = resize_with_padding(img, target_size=64)
        self.assertEqual(padded.shape, (64, 64, 3))
        self.assertEqual(meta.resized_h, 64)
        self.assertGreater(meta.scale, 1.0)

        restored = restore_mask_to_original(self._make_square_mask_with_center_box(64), meta)
        self.assertEqual(restored.shape, (30, 20))
        self.assertTrue(((restored >= 0.0) & (restored <= 1.0)).all())

    def test_normalize_shape_and_dtype(self):
        padded, _ = resize_with_padding(self._make_rgb(40, 40), target_size=32)
        t = normalize(padded)
        self.assertEqual(tuple(t.shape), (1, 3, 32, 32))
        self.assertEqual(t.dtype, torch.float32)
        with self.assertRaises(ValueError):
            normalize(self._make_rgb(10, 12))

    def test_predict_probability_resizes_low_res_output(self):
        class LowRes(torch.nn.Module):
            def forward(self, x):
                return (torch.zeros((1, 1, 8, 8)),)

        x = torch.zeros((1, 3, 32, 32))
        prob = predict_probability(LowRes(), x, torch.device("cpu"), size=32)
        self.assertEqual(prob.shape, (32, 32))
        self.assertEqual(prob.dtype, np.float32)
        np.testing.assert_allclose(prob, 0.5)


if __name__ == "__main__":
    unittest.main()
