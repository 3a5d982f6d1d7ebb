"""
Ticket OCR Extraction Package

Turns a photo or screenshot of an event ticket into structured fields
(event, date, time, venue, ticket type, holder, order reference) with a
confidence score and a personal-information flag, using QR decoding,
multi-pass OCR and layout-aware text parsing.
"""

__version__ = "1.0.0"
__author__ = "Ticket OCR Extractor"

from .models import ExtractedTicketInfo, OCRAttempt, PreprocessedVariant, PreprocessOptions, QRPayload, RawImage
from .image_loader import ImageDecodeError, ImageLoader
from .preprocessor import ImagePreprocessor
from .qr_detector import QRDetector
from .ocr_engines import EngineUnavailableError, NativeTextDetector, TesseractAdapter
from .field_parser import FieldParser
from .confidence import ConfidenceScorer
from .processor import TicketExtractionProcessor, extract_ticket_info

__all__ = [
    "ExtractedTicketInfo",
    "OCRAttempt",
    "PreprocessedVariant",
    "PreprocessOptions",
    "QRPayload",
    "RawImage",
    "ImageDecodeError",
    "ImageLoader",
    "ImagePreprocessor",
    "QRDetector",
    "EngineUnavailableError",
    "NativeTextDetector",
    "TesseractAdapter",
    "FieldParser",
    "ConfidenceScorer",
    "TicketExtractionProcessor",
    "extract_ticket_info",
]
