#!/usr/bin/env python3
"""
Ticket OCR Extractor

Reads a ticket photo, screenshot or PDF and prints the extracted ticket
details as JSON.

Usage:
    ticket-ocr ticket.jpg
    ticket-ocr ticket.png --outdir out --save-variants
    ticket-ocr ticket.pdf --no-native --debug

Requirements:
    pip install opencv-python pillow pytesseract pymupdf python-dateutil jsonschema python-dotenv numpy
    The tesseract binary must be on PATH or set through TESSERACT_CMD.
    Optional: pip install easyocr (native text detector), pyzbar (extra QR decoder)
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from . import config
from .image_loader import ImageDecodeError, ImageLoader
from .models import RawImage, validate_ticket_info
from .ocr_engines import NativeTextDetector
from .preprocessor import PROFILES, ImagePreprocessor
from .processor import TicketExtractionProcessor
from .utils import FileUtils, TestRunner

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Extract structured ticket details from an image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument("image_path", nargs='?', help="Path to ticket image or PDF")
    parser.add_argument("--media-type", help="Media type of the input (guessed from the file name if omitted)")
    parser.add_argument("--outdir", help="Directory for the JSON result and debug images")
    parser.add_argument("--save-variants", action="store_true",
                        help="Also save the preprocessed OCR variants as PNG (requires --outdir)")
    parser.add_argument("--no-native", action="store_true", help="Skip the optional native text detector")

    # Utility options
    parser.add_argument("--self-test", action="store_true", help="Run self-tests and exit")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    # Load environment variables from .env file
    load_dotenv()
    config.load_settings()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    if args.self_test:
        try:
            TestRunner.run_self_tests()
            print("All self-tests passed!")
            return 0
        except Exception as e:
            print(f"Self-test failed: {e}")
            return 1

    if not args.image_path:
        logger.error("Image path is required")
        return 1

    if not os.path.exists(args.image_path):
        logger.error(f"Image file not found: {args.image_path}")
        return 1

    if args.save_variants and not args.outdir:
        logger.error("--save-variants requires --outdir")
        return 1

    raw = RawImage.from_path(args.image_path, media_type=args.media_type)
    native_detector = NativeTextDetector(enabled=False) if args.no_native else None
    processor = TicketExtractionProcessor(native_detector=native_detector)

    result = processor.extract_sync(raw)
    data = result.to_dict()
    validate_ticket_info(data)

    print(json.dumps(data, indent=2, ensure_ascii=False))

    stem = Path(args.image_path).stem
    if args.outdir:
        FileUtils.save_result(result, args.outdir, stem)

    if args.save_variants:
        try:
            original = ImageLoader.load(raw)
        except ImageDecodeError as e:
            logger.warning(f"Cannot save variants: {e}")
        else:
            preprocessor = ImagePreprocessor()
            variants = [preprocessor.preprocess(original, options, label) for label, options in PROFILES.items()]
            FileUtils.save_variants(variants, args.outdir, stem)

    if result.confidence == 0:
        logger.error(f"No ticket details extracted from {args.image_path}")
        return 1

    logger.info(f"Successfully processed {args.image_path} (confidence {result.confidence})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
