"""
Image preprocessing utilities that prepare ticket photos for OCR.
"""

import logging
from typing import Dict, Union

import numpy as np

try:
    import cv2
except ImportError as e:
    raise ImportError(f"Missing required dependency: {e}. Install with: pip install opencv-python")

from . import config
from .image_loader import ImageLoader
from .models import PreprocessedVariant, PreprocessOptions, RawImage

logger = logging.getLogger(__name__)

# Tuning profiles used by the advanced OCR pass, tried in this order
PROFILES: Dict[str, PreprocessOptions] = {
    "high-contrast": PreprocessOptions(dpi=300, contrast=2.0, brightness=1.2, padding=0.2,
                                       binarize=True, threshold=128, denoise=True),
    "gentle": PreprocessOptions(dpi=400, contrast=1.3, brightness=1.0, padding=0.15),
    "high-res": PreprocessOptions(dpi=600, contrast=1.5, brightness=1.1, padding=0.25,
                                  binarize=True, threshold=0, sharpen=True),
}

ADAPTIVE_WINDOW = 31
ADAPTIVE_BIAS = 10
DENOISE_TOLERANCE = 50
DENOISE_MIN_SIMILAR = 6
SHARPEN_KERNEL = np.array([[0, -1, 0], [-1, 5, -1], [0, -1, 0]], dtype=np.float32)


class ImagePreprocessor:
    """Scales, pads, enhances and binarizes ticket images"""

    def preprocess(self, image: Union[RawImage, np.ndarray], options: PreprocessOptions,
                   label: str = "custom") -> PreprocessedVariant:
        """Produce one OCR-ready variant. Raises on undecodable input."""
        pixels = image if isinstance(image, np.ndarray) else ImageLoader.load(image)
        if pixels is None or pixels.size == 0:
            raise ValueError("Cannot preprocess an empty image")

        canvas = self._scale_and_pad(pixels, options)
        gray = self._to_grayscale(canvas)
        gray = self._adjust(gray, options.brightness, options.contrast)

        if options.denoise:
            gray = self._denoise(gray)
        if options.sharpen:
            gray = cv2.filter2D(gray, -1, SHARPEN_KERNEL)
        if options.binarize:
            gray = self._binarize(gray, options.threshold)

        logger.debug(f"Variant '{label}': {pixels.shape[1]}x{pixels.shape[0]} -> {gray.shape[1]}x{gray.shape[0]}")
        return PreprocessedVariant(image=gray, label=label, dpi=options.dpi)

    @staticmethod
    def _scale_and_pad(pixels: np.ndarray, options: PreprocessOptions) -> np.ndarray:
        """Upscale for the target DPI and center on a white canvas"""
        height, width = pixels.shape[:2]
        longest = max(height, width)
        padding = max(0.0, options.padding)

        scale = max(1.0, options.dpi / config.BASE_DPI)
        # Never grow the padded canvas past the configured limit, never shrink below 1x
        max_scale = config.MAX_VARIANT_DIMENSION / (longest * (1 + 2 * padding))
        scale = min(scale, max(1.0, max_scale))

        if scale != 1.0:
            new_size = (int(round(width * scale)), int(round(height * scale)))
            pixels = cv2.resize(pixels, new_size, interpolation=cv2.INTER_CUBIC)

        pad = int(round(longest * padding * scale))
        if pad <= 0:
            return pixels

        fill = 255 if pixels.ndim == 2 else (255,) * pixels.shape[2]
        return cv2.copyMakeBorder(pixels, pad, pad, pad, pad, cv2.BORDER_CONSTANT, value=fill)

    @staticmethod
    def _to_grayscale(pixels: np.ndarray) -> np.ndarray:
        """ITU-R 601 luma (0.299 R + 0.587 G + 0.114 B)"""
        if pixels.ndim == 2:
            return pixels
        if pixels.shape[2] == 4:
            return cv2.cvtColor(pixels, cv2.COLOR_BGRA2GRAY)
        return cv2.cvtColor(pixels, cv2.COLOR_BGR2GRAY)

    @staticmethod
    def _adjust(gray: np.ndarray, brightness: float, contrast: float) -> np.ndarray:
        """Multiplicative brightness, then contrast pivoted on mid-gray"""
        enhanced = (gray.astype(np.float32) * brightness - 128.0) * contrast + 128.0
        return np.clip(enhanced, 0, 255).astype(np.uint8)

    @staticmethod
    def _binarize(gray: np.ndarray, threshold: int) -> np.ndarray:
        if threshold > 0:
            return cv2.threshold(gray, threshold, 255, cv2.THRESH_BINARY)[1]
        return cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_MEAN_C, cv2.THRESH_BINARY,
                                     ADAPTIVE_WINDOW, ADAPTIVE_BIAS)

    @staticmethod
    def _denoise(gray: np.ndarray) -> np.ndarray:
        """Replace pixels with their 3x3 mean where most neighbours agree, leaving edges alone"""
        height, width = gray.shape
        padded = np.pad(gray.astype(np.int32), 1, mode="edge")
        center = padded[1:-1, 1:-1]

        similar = np.zeros((height, width), dtype=np.int32)
        total = np.zeros((height, width), dtype=np.int32)
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                neighbour = padded[1 + dy:1 + dy + height, 1 + dx:1 + dx + width]
                total += neighbour
                if dy or dx:
                    similar += np.abs(neighbour - center) < DENOISE_TOLERANCE

        # Border pixels have no full neighbourhood and are never smoothed
        smooth = similar >= DENOISE_MIN_SIMILAR
        smooth[0, :] = smooth[-1, :] = False
        smooth[:, 0] = smooth[:, -1] = False

        mean = np.rint(total / 9.0).astype(np.uint8)
        return np.where(smooth, mean, gray).astype(np.uint8)
