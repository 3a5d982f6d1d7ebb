"""
Utility functions for file operations and self-testing.
"""

import json
import logging
import os
from typing import Iterable, List

from .image_loader import ImageLoader
from .models import ExtractedTicketInfo, PreprocessedVariant, RawImage

logger = logging.getLogger(__name__)


class FileUtils:
    """File operation utilities"""

    @staticmethod
    def save_result(result: ExtractedTicketInfo, output_dir: str, stem: str) -> str:
        """Save an extraction result as JSON"""
        os.makedirs(output_dir, exist_ok=True)
        filepath = os.path.join(output_dir, f"{stem}_ticket.json")

        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)

        logger.info(f"Saved result to: {filepath}")
        return filepath

    @staticmethod
    def save_variants(variants: Iterable[PreprocessedVariant], output_dir: str, stem: str) -> List[str]:
        """Save preprocessed variants as PNG files for visual inspection"""
        os.makedirs(output_dir, exist_ok=True)
        paths = []

        for variant in variants:
            filepath = os.path.join(output_dir, f"{stem}_{variant.label}.png")
            with open(filepath, 'wb') as f:
                f.write(ImageLoader.encode_png(variant.image))
            paths.append(filepath)
            logger.debug(f"Saved variant '{variant.label}' ({variant.width}x{variant.height}) to {filepath}")

        logger.info(f"Saved {len(paths)} variant(s) to: {output_dir}")
        return paths


class TestRunner:
    """Self-test functionality"""

    __test__ = False

    @staticmethod
    def run_self_tests() -> bool:
        """Run basic self-tests without any OCR engine"""
        logger.info("Running self-tests...")

        from .confidence import ConfidenceScorer
        from .field_parser import FieldParser
        from .ocr_engines import NativeTextDetector
        from .processor import TicketExtractionProcessor
        from .text_normalizer import normalize_text

        # Mobile ticket layout
        mobile_text = "Halloween Bash\nName\nOrder reference\n9d280cdd\nTicket name\nAdvance Entry"
        fields = FieldParser.extract(mobile_text)
        assert fields.get("event_name") == "Halloween Bash", f"Unexpected event name: {fields.get('event_name')}"
        assert fields.get("order_reference") == "9d280cdd", "Should find order reference"
        assert fields.get("ticket_type") == "Advance Entry", "Should find ticket type"

        # Date normalization
        assert FieldParser.normalize_date("Saturday, 28 Oct 2023") == "2023-10-28"
        assert FieldParser.normalize_date("next Tuesday maybe") == "next Tuesday maybe"

        # Normalization is idempotent
        noisy = "C0NCERT  T|CKET\r\n28|10|2023  23|00"
        once = normalize_text(noisy)
        assert normalize_text(once) == once, "Normalization should be idempotent"

        # Confidence bounds
        full = {name: "x" for name in ("event_name", "event_date", "venue", "event_time", "ticket_type", "order_reference")}
        assert ConfidenceScorer.score(100, full, qr_present=True) == 100.0
        assert ConfidenceScorer.score(-20, {}) == 0.0

        # Undecodable input yields the zero-confidence sentinel
        processor = TicketExtractionProcessor(native_detector=NativeTextDetector(enabled=False))
        result = processor.extract_sync(RawImage(data=b"not an image", media_type="image/png"))
        assert result.confidence == 0 and not result.fields(), "Corrupt image should give empty result"

        logger.info("Self-tests passed!")
        return True
