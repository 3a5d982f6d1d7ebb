"""
Main extraction pipeline that orchestrates QR decoding, OCR passes and field extraction.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import numpy as np

from . import config
from .confidence import ConfidenceScorer
from .field_parser import FieldParser
from .image_loader import ImageDecodeError, ImageLoader
from .models import ExtractedTicketInfo, OCRAttempt, PreprocessedVariant, QRPayload, RawImage
from .ocr_engines import ADVANCED_CONFIG, QUICK_CONFIG, TEMPLATE_CONFIG, NativeTextDetector, TesseractAdapter
from .preprocessor import PROFILES, ImagePreprocessor
from .qr_detector import QRDetector

logger = logging.getLogger(__name__)


class TicketExtractionProcessor:
    """Runs the QR-first, fast, advanced, template and best-effort passes in order.

    The processor keeps no per-call state, so one instance can serve
    concurrent ``extract`` calls. Blocking work (decoding, preprocessing,
    OCR) runs in worker threads; a caller that stops awaiting leaves the
    in-flight recognition to finish on its own.
    """

    def __init__(self, ocr_engine=None, native_detector=None, qr_detector=None, preprocessor=None):
        self.ocr_engine = ocr_engine or TesseractAdapter()
        self.native_detector = native_detector if native_detector is not None else NativeTextDetector()
        self.qr_detector = qr_detector or QRDetector()
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.field_parser = FieldParser()
        self.scorer = ConfidenceScorer()

    def extract_sync(self, image: RawImage) -> ExtractedTicketInfo:
        """Blocking wrapper for scripts and the CLI"""
        return asyncio.run(self.extract(image))

    async def extract(self, image: RawImage) -> ExtractedTicketInfo:
        """Extract ticket details. Never raises; failures produce a zero-confidence result."""
        try:
            return await self._extract(image)
        except Exception as e:
            logger.error(f"❌ Ticket extraction failed: {e}", exc_info=logger.isEnabledFor(logging.DEBUG))
            return ExtractedTicketInfo.empty(config.ERROR_RESULT_TEXT, "error")

    async def _extract(self, image: RawImage) -> ExtractedTicketInfo:
        logger.info(f"Processing ticket image ({image.media_type}, {image.size} bytes)")

        try:
            original = await asyncio.to_thread(ImageLoader.load, image)
        except ImageDecodeError as e:
            logger.warning(f"Image could not be decoded: {e}")
            return ExtractedTicketInfo.empty(config.NO_RESULT_TEXT, "none")

        # QR-first
        qr_payload = await self._decode_qr(original)
        if qr_payload is not None and qr_payload.populated_count >= config.QR_MIN_FIELDS:
            logger.info("✅ QR payload carries enough ticket fields, skipping OCR")
            return self._qr_result(qr_payload)

        attempts: List[OCRAttempt] = []
        original_variant = PreprocessedVariant(image=original, label="original")

        # Fast pass
        if self.native_detector is not None and self.native_detector.is_available():
            attempt = await self._recognize(self.native_detector.recognize, original_variant)
            if attempt is not None:
                attempts.append(attempt)
                if attempt.confidence > config.NATIVE_ACCEPT_CONFIDENCE:
                    return self._build(attempt, qr_payload)

        attempt = await self._recognize(self.ocr_engine.recognize, original_variant, QUICK_CONFIG, "tesseract-quick")
        if attempt is not None:
            attempts.append(attempt)
            if attempt.confidence > config.FAST_ACCEPT_CONFIDENCE:
                return self._build(attempt, qr_payload)

        # Advanced pass
        best = await self._advanced_pass(original, attempts)
        if best is not None and best.confidence > config.ADVANCED_ACCEPT_CONFIDENCE:
            return self._build(best, qr_payload)

        # Template pass
        attempt = await self._recognize(self.ocr_engine.recognize, original_variant, TEMPLATE_CONFIG, "template-matching")
        if attempt is not None:
            attempts.append(attempt)
            template_fields = self.field_parser.extract_mobile_template(attempt.text)
            if template_fields.get("event_name") or template_fields.get("event_date"):
                fields = self.field_parser.extract_mobile_template(attempt.text, qr_payload)
                confidence = min(attempt.confidence + config.TEMPLATE_CONFIDENCE_BOOST, config.TEMPLATE_CONFIDENCE_CAP)
                return self._finalize(fields, confidence, attempt.text, attempt.method, qr_payload)

        # Best-effort fallback
        if not attempts:
            logger.warning("❌ No OCR attempt succeeded")
            return ExtractedTicketInfo.empty(config.NO_RESULT_TEXT, "none")

        best = max(attempts, key=lambda a: a.confidence)
        logger.info(f"Falling back to best attempt '{best.method}' ({best.confidence:.1f})")
        return self._build(best, qr_payload, method=f"best-effort-{best.method}")

    async def _advanced_pass(self, original: np.ndarray, attempts: List[OCRAttempt]) -> Optional[OCRAttempt]:
        """OCR each tuning profile in turn and keep the most confident attempt"""
        best = None
        original_used = False

        for label, options in PROFILES.items():
            try:
                variant = await asyncio.to_thread(self.preprocessor.preprocess, original, options, label)
            except Exception as e:
                logger.warning(f"Preprocessing '{label}' failed: {e}")
                if original_used:
                    continue
                original_used = True
                variant = PreprocessedVariant(image=original, label="original")

            attempt = await self._recognize(self.ocr_engine.recognize, variant, ADVANCED_CONFIG,
                                            f"tesseract-advanced-{variant.label}")
            if attempt is None:
                continue
            attempts.append(attempt)
            if best is None or attempt.confidence > best.confidence:
                best = attempt

        return best

    async def _decode_qr(self, original: np.ndarray) -> Optional[QRPayload]:
        try:
            return await asyncio.to_thread(self.qr_detector.decode, original)
        except Exception as e:
            logger.warning(f"QR decoding failed: {e}")
            return None

    @staticmethod
    async def _recognize(recognize, *args) -> Optional[OCRAttempt]:
        """Run one adapter call off the event loop; failures are logged and dropped"""
        try:
            return await asyncio.to_thread(recognize, *args)
        except Exception as e:
            logger.warning(f"OCR attempt failed: {e}")
            return None

    def _qr_result(self, qr_payload: QRPayload) -> ExtractedTicketInfo:
        fields = self.field_parser.postprocess(dict(qr_payload.fields))
        return self._finalize(fields, config.QR_CONFIDENCE, qr_payload.raw, "qr-code", qr_payload)

    def _build(self, attempt: OCRAttempt, qr_payload: Optional[QRPayload],
               method: Optional[str] = None) -> ExtractedTicketInfo:
        """Extract fields from an attempt and score them"""
        fields = self.field_parser.extract(attempt.text, qr_payload)
        confidence = self.scorer.score(attempt.confidence, fields, qr_present=qr_payload is not None)
        return self._finalize(fields, confidence, attempt.text, method or attempt.method, qr_payload)

    def _finalize(self, fields: Dict[str, str], confidence: float, raw_text: str, method: str,
                  qr_payload: Optional[QRPayload]) -> ExtractedTicketInfo:
        result = ExtractedTicketInfo.build(
            fields,
            confidence=confidence,
            raw_text=raw_text,
            extraction_method=method,
            has_personal_info=self.scorer.detect_personal_info(fields),
            qr_data=qr_payload.raw if qr_payload is not None else None,
        )
        logger.info(f"🎉 Extracted {len(result.fields())} field(s) via {method} with confidence {result.confidence}")
        return result


def extract_ticket_info(image: RawImage) -> ExtractedTicketInfo:
    """Convenience wrapper using the default engines"""
    return TicketExtractionProcessor().extract_sync(image)
