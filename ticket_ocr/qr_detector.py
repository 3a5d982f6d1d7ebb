"""
QR code detection and decoding utilities.
"""

import json
import logging
import re
from typing import Dict, List, Optional

import numpy as np

try:
    import cv2
except ImportError as e:
    raise ImportError(f"Missing required dependency: {e}. Install with: pip install opencv-python")

from .models import QRPayload

logger = logging.getLogger(__name__)

# Structured payload keys recognised for each ticket field
JSON_KEY_MAP = {
    "event_name": ("event", "eventName", "title"),
    "event_date": ("date", "eventDate"),
    "venue": ("venue", "location"),
    "ticket_type": ("type", "ticketType"),
    "order_reference": ("ref", "orderRef", "reference"),
}

EVENT_KEYWORDS = ("event", "party", "concert")


class QRDetector:
    """QR code detection with multiple preprocessing methods"""

    def __init__(self):
        self.qr_detector = cv2.QRCodeDetector()

    def decode(self, image: np.ndarray) -> Optional[QRPayload]:
        """Find a QR code anywhere in the image and interpret its payload"""
        raw = self.decode_text(image)
        if raw is None:
            return None
        payload = self.parse_payload(raw)
        logger.info(f"QR payload decoded with {payload.populated_count} ticket field(s)")
        return payload

    def decode_text(self, image: np.ndarray) -> Optional[str]:
        """Return the first decoded QR string, or None when no code is found"""
        gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        preprocessed_images = self._get_preprocessed_images(gray)

        for j, processed_img in enumerate(preprocessed_images):
            try:
                retval, decoded_info, _, _ = self.qr_detector.detectAndDecodeMulti(processed_img)
                if retval and decoded_info:
                    for decoded in decoded_info:
                        if decoded and decoded.strip():
                            logger.debug(f"Found QR (multi-method {j+1}): {decoded[:50]}...")
                            return decoded.strip()

                decoded_single, _, _ = self.qr_detector.detectAndDecode(processed_img)
                if decoded_single and decoded_single.strip():
                    logger.debug(f"Found QR (single-method {j+1}): {decoded_single[:50]}...")
                    return decoded_single.strip()
            except cv2.error as method_e:
                logger.debug(f"QR detection method {j+1} failed: {method_e}")

        decoded = self._decode_with_zbar(gray)
        if decoded:
            return decoded

        logger.debug(f"No QR code found after {len(preprocessed_images)} methods")
        return None

    @staticmethod
    def _decode_with_zbar(gray: np.ndarray) -> Optional[str]:
        """Second opinion from zbar when pyzbar and its shared library are installed"""
        try:
            from pyzbar.pyzbar import decode
        except ImportError:
            return None

        for result in decode(gray):
            message = result.data.decode("utf-8", errors="ignore").strip()
            if message:
                logger.debug(f"Found {result.type} via zbar: {message[:50]}...")
                return message
        return None

    @staticmethod
    def _get_preprocessed_images(gray: np.ndarray) -> List[np.ndarray]:
        """Generate multiple preprocessed versions of the image for better QR detection"""
        preprocessed_images = [
            gray,
            cv2.GaussianBlur(gray, (5, 5), 0),
            cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)[1],
            cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, 11, 2),
            cv2.equalizeHist(gray),
        ]

        # Small codes in large photos decode better once enlarged
        height, width = gray.shape
        if max(height, width) < 2000:
            preprocessed_images.append(cv2.resize(gray, (width * 2, height * 2), interpolation=cv2.INTER_CUBIC))

        return preprocessed_images

    @staticmethod
    def parse_payload(raw: str) -> QRPayload:
        """Interpret a payload as JSON first, then as delimited free text"""
        fields: Dict[str, str] = {}

        try:
            data = json.loads(raw)
        except (ValueError, TypeError):
            data = None

        if isinstance(data, dict):
            for field_name, keys in JSON_KEY_MAP.items():
                for key in keys:
                    value = data.get(key)
                    if isinstance(value, (str, int, float)) and str(value).strip():
                        fields[field_name] = str(value).strip()
                        break
            return QRPayload(raw=raw, fields=fields)

        for part in re.split(r'[\n,;|]', raw):
            part = part.strip()
            if not part:
                continue
            lowered = part.lower()
            if "event_name" not in fields and any(keyword in lowered for keyword in EVENT_KEYWORDS):
                fields["event_name"] = part
            elif "event_date" not in fields and re.search(r'\b\d{4}\b', part):
                fields["event_date"] = part

        return QRPayload(raw=raw, fields=fields)
