"""
Runtime configuration read from environment variables.
"""

import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


TESSERACT_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789.,:-/@()&£$€+"

# Image handling
BASE_DPI = 150

# Strategy thresholds
QR_MIN_FIELDS = 3
QR_CONFIDENCE = 95.0
TEMPLATE_CONFIDENCE_BOOST = 10.0
TEMPLATE_CONFIDENCE_CAP = 90.0

# Result sentinels
NO_RESULT_TEXT = "All OCR methods failed"
ERROR_RESULT_TEXT = "OCR processing error"


def load_settings() -> None:
    """(Re)read the environment-backed settings into this module"""
    global TESSERACT_CMD, TESSERACT_LANG, ENABLE_NATIVE_DETECTOR, NATIVE_DETECTOR_LANG
    global PDF_RENDER_DPI, MAX_VARIANT_DIMENSION
    global NATIVE_ACCEPT_CONFIDENCE, FAST_ACCEPT_CONFIDENCE, ADVANCED_ACCEPT_CONFIDENCE

    # Tesseract
    TESSERACT_CMD = os.getenv("TESSERACT_CMD")
    TESSERACT_LANG = os.getenv("TICKET_OCR_LANG", "eng")

    # Optional native text detector (EasyOCR)
    ENABLE_NATIVE_DETECTOR = _env_bool("TICKET_OCR_ENABLE_NATIVE", True)
    NATIVE_DETECTOR_LANG = os.getenv("TICKET_OCR_NATIVE_LANG", "en")

    # Image handling
    PDF_RENDER_DPI = int(os.getenv("TICKET_OCR_PDF_DPI", "300"))
    MAX_VARIANT_DIMENSION = int(os.getenv("TICKET_OCR_MAX_DIMENSION", "4096"))

    # Stage acceptance levels
    NATIVE_ACCEPT_CONFIDENCE = float(os.getenv("TICKET_OCR_NATIVE_ACCEPT", "70"))
    FAST_ACCEPT_CONFIDENCE = float(os.getenv("TICKET_OCR_FAST_ACCEPT", "80"))
    ADVANCED_ACCEPT_CONFIDENCE = float(os.getenv("TICKET_OCR_ADVANCED_ACCEPT", "60"))


load_settings()
