#!/usr/bin/env python3
"""
Tests for image decoding and OCR preprocessing.

Usage:
    python test_preprocessor.py
"""

import logging
import os
import sys
import unittest
from unittest.mock import patch

import cv2
import numpy as np

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ticket_ocr.image_loader import ImageDecodeError, ImageLoader
from ticket_ocr.models import PreprocessOptions, RawImage
from ticket_ocr.preprocessor import PROFILES, ImagePreprocessor

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
)
logger = logging.getLogger(__name__)


def png_image(image: np.ndarray) -> RawImage:
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return RawImage(data=buffer.tobytes(), media_type="image/png")


class TestImageLoader(unittest.TestCase):
    """Decoding of caller-supplied bytes"""

    def test_decodes_png_to_bgr(self):
        image = np.zeros((20, 30, 3), dtype=np.uint8)
        image[:, :, 2] = 255  # red in BGR
        decoded = ImageLoader.load(png_image(image))

        self.assertEqual(decoded.shape, (20, 30, 3))
        self.assertTrue(np.array_equal(decoded, image))

    def test_corrupt_bytes(self):
        with self.assertRaises(ImageDecodeError):
            ImageLoader.load(RawImage(data=b"definitely not an image", media_type="image/jpeg"))

    def test_empty_bytes(self):
        with self.assertRaises(ImageDecodeError):
            ImageLoader.load(RawImage(data=b"", media_type="image/png"))

    def test_corrupt_pdf(self):
        with self.assertRaises(ImageDecodeError):
            ImageLoader.load(RawImage(data=b"%PDF-1.4 truncated", media_type="application/pdf"))

    def test_encode_png_round_trip(self):
        image = np.full((10, 12), 128, dtype=np.uint8)
        decoded = cv2.imdecode(np.frombuffer(ImageLoader.encode_png(image), np.uint8), cv2.IMREAD_GRAYSCALE)
        self.assertTrue(np.array_equal(decoded, image))


class TestImagePreprocessor(unittest.TestCase):
    """Scaling, padding, photometric adjustment and binarization"""

    @classmethod
    def setUpClass(cls):
        cls.preprocessor = ImagePreprocessor()
        rng = np.random.RandomState(0)
        cls.noise = rng.randint(0, 256, size=(50, 100, 3)).astype(np.uint8)

    def test_scale_and_padding(self):
        options = PreprocessOptions(dpi=300, padding=0.1)
        variant = self.preprocessor.preprocess(self.noise, options, "test")

        # 2x scale, 20px padding on each side
        self.assertEqual(variant.image.shape, (140, 240))
        self.assertEqual(variant.label, "test")
        self.assertEqual(variant.dpi, 300)

    def test_low_dpi_never_downscales(self):
        variant = self.preprocessor.preprocess(self.noise, PreprocessOptions(dpi=72))
        self.assertEqual(variant.image.shape, (50, 100))

    def test_dimension_limit(self):
        with patch("ticket_ocr.config.MAX_VARIANT_DIMENSION", 300):
            variant = self.preprocessor.preprocess(self.noise, PreprocessOptions(dpi=600))
        self.assertEqual(variant.image.shape, (150, 300))

    def test_output_is_grayscale(self):
        variant = self.preprocessor.preprocess(self.noise, PreprocessOptions())
        self.assertEqual(variant.image.ndim, 2)
        self.assertEqual(variant.image.dtype, np.uint8)

    def test_accepts_raw_image(self):
        variant = self.preprocessor.preprocess(png_image(self.noise), PreprocessOptions(dpi=150))
        self.assertEqual(variant.image.shape, (50, 100))

    def test_corrupt_raw_image_raises(self):
        with self.assertRaises(ImageDecodeError):
            self.preprocessor.preprocess(RawImage(data=b"junk"), PreprocessOptions())

    def test_fixed_threshold_is_binary(self):
        variant = self.preprocessor.preprocess(self.noise, PreprocessOptions(binarize=True, threshold=128))
        self.assertTrue(set(np.unique(variant.image)) <= {0, 255})

    def test_adaptive_threshold_is_binary(self):
        variant = self.preprocessor.preprocess(self.noise, PreprocessOptions(binarize=True, threshold=0))
        self.assertTrue(set(np.unique(variant.image)) <= {0, 255})

    def test_contrast_pivots_on_mid_gray(self):
        mid = np.full((10, 10), 128, dtype=np.uint8)
        dark = np.full((10, 10), 100, dtype=np.uint8)
        options = PreprocessOptions(dpi=150, contrast=2.0)

        self.assertTrue(np.all(self.preprocessor.preprocess(mid, options).image == 128))
        self.assertTrue(np.all(self.preprocessor.preprocess(dark, options).image == 72))

    def test_brightness_is_multiplicative(self):
        gray = np.full((10, 10), 100, dtype=np.uint8)
        variant = self.preprocessor.preprocess(gray, PreprocessOptions(dpi=150, brightness=1.5))
        self.assertTrue(np.all(variant.image == 150))

    def test_padding_is_white(self):
        dark = np.zeros((40, 40, 3), dtype=np.uint8)
        variant = self.preprocessor.preprocess(dark, PROFILES["gentle"], "gentle")
        self.assertEqual(variant.image[0, 0], 255)
        self.assertEqual(variant.image[-1, -1], 255)

    def test_denoise_keeps_edges(self):
        edge = np.zeros((20, 20), dtype=np.uint8)
        edge[:, 10:] = 255
        variant = self.preprocessor.preprocess(edge, PreprocessOptions(dpi=150, denoise=True))
        self.assertTrue(np.array_equal(variant.image, edge))

    def test_denoise_smooths_flat_regions(self):
        flat = np.full((9, 9), 200, dtype=np.uint8)
        flat[4, 4] = 220
        variant = self.preprocessor.preprocess(flat, PreprocessOptions(dpi=150, denoise=True))
        self.assertEqual(variant.image[4, 4], 202)

    def test_denoise_leaves_border_pixels(self):
        flat = np.full((9, 9), 200, dtype=np.uint8)
        flat[0, 4] = 220
        variant = self.preprocessor.preprocess(flat, PreprocessOptions(dpi=150, denoise=True))
        self.assertEqual(variant.image[0, 4], 220)
        self.assertEqual(variant.image[1, 4], 202)

    def test_profiles(self):
        self.assertEqual(list(PROFILES), ["high-contrast", "gentle", "high-res"])
        for label, options in PROFILES.items():
            variant = self.preprocessor.preprocess(self.noise, options, label)
            self.assertEqual(variant.label, label)
            self.assertGreater(variant.width, self.noise.shape[1])


if __name__ == "__main__":
    unittest.main()
