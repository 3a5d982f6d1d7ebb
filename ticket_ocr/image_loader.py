"""
Image decoding utilities for raster images and PDF tickets.
"""

import io
import logging
from typing import List

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

try:
    import cv2
    import fitz  # PyMuPDF
except ImportError as e:
    raise ImportError(f"Missing required dependency: {e}. Install with: pip install opencv-python pymupdf")

from . import config
from .models import RawImage

logger = logging.getLogger(__name__)


class ImageDecodeError(ValueError):
    """Raised when image bytes cannot be turned into a pixel grid"""


class ImageLoader:
    """Turns RawImage bytes into OpenCV BGR arrays"""

    @staticmethod
    def load(raw: RawImage) -> np.ndarray:
        """Decode a raster image or the first page of a PDF"""
        if not raw.data:
            raise ImageDecodeError("Image data is empty")

        if raw.is_pdf:
            pages = ImageLoader.render_pdf_pages(raw.data, dpi=config.PDF_RENDER_DPI, max_pages=1)
            if not pages:
                raise ImageDecodeError("PDF contains no renderable pages")
            return pages[0]

        try:
            with Image.open(io.BytesIO(raw.data)) as pil_image:
                # Phone photos carry their rotation in EXIF
                pil_image = ImageOps.exif_transpose(pil_image)
                rgb = np.array(pil_image.convert("RGB"))
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageDecodeError(f"Could not decode {raw.media_type} image ({raw.size} bytes): {e}") from e

        logger.debug(f"Decoded {raw.media_type} image to {rgb.shape[1]}x{rgb.shape[0]}")
        return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)

    @staticmethod
    def render_pdf_pages(pdf_bytes: bytes, dpi: int = 300, max_pages: int = 1) -> List[np.ndarray]:
        """Render PDF pages to images at specified DPI"""
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            raise ImageDecodeError(f"Could not open PDF: {e}") from e

        images = []
        try:
            scale_factor = dpi / 72.0
            matrix = fitz.Matrix(scale_factor, scale_factor)
            for page_num in range(min(len(doc), max_pages)):
                pix = doc[page_num].get_pixmap(matrix=matrix)
                img = cv2.imdecode(np.frombuffer(pix.tobytes("png"), np.uint8), cv2.IMREAD_COLOR)
                if img is not None:
                    images.append(img)
        finally:
            doc.close()

        logger.info(f"Rendered {len(images)} PDF page(s) at {dpi} DPI")
        return images

    @staticmethod
    def encode_png(image: np.ndarray) -> bytes:
        """Encode a pixel grid back into PNG bytes"""
        ok, buffer = cv2.imencode(".png", image)
        if not ok:
            raise ValueError("PNG encoding failed")
        return buffer.tobytes()
