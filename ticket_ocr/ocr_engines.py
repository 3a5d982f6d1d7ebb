"""
OCR engine adapters wrapping Tesseract and an optional native text detector.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any, Dict, Iterator, List, Optional, Tuple

try:
    import pytesseract
except ImportError as e:
    raise ImportError(f"Missing required dependency: {e}. Install with: pip install pytesseract")

try:
    import easyocr
    HAS_EASYOCR = True
except ImportError:
    easyocr = None
    HAS_EASYOCR = False

from . import config
from .models import OCRAttempt, PreprocessedVariant

logger = logging.getLogger(__name__)

class EngineUnavailableError(RuntimeError):
    """Raised when an OCR engine cannot be started"""


class PageSegMode(IntEnum):
    AUTO = 3
    SINGLE_BLOCK = 6
    RAW_LINE = 13


class EngineMode(IntEnum):
    LSTM_ONLY = 1


@dataclass(frozen=True)
class OCRConfig:
    """Per-call Tesseract settings"""

    page_seg_mode: PageSegMode = PageSegMode.AUTO
    engine_mode: EngineMode = EngineMode.LSTM_ONLY
    whitelist: Optional[str] = None
    preserve_interword_spaces: bool = False
    dpi: Optional[int] = None
    language: Optional[str] = None

    def to_tesseract_args(self) -> str:
        """Command-line style config string understood by pytesseract"""
        args = [f"--psm {int(self.page_seg_mode)}", f"--oem {int(self.engine_mode)}"]
        if self.dpi:
            args.append(f"--dpi {self.dpi}")
        if self.whitelist:
            args.append(f"-c tessedit_char_whitelist={self.whitelist}")
        if self.preserve_interword_spaces:
            args.append("-c preserve_interword_spaces=1")
        return " ".join(args)


QUICK_CONFIG = OCRConfig(page_seg_mode=PageSegMode.AUTO, preserve_interword_spaces=True)
ADVANCED_CONFIG = OCRConfig(page_seg_mode=PageSegMode.SINGLE_BLOCK, whitelist=config.TESSERACT_WHITELIST,
                            preserve_interword_spaces=True, dpi=300)
TEMPLATE_CONFIG = OCRConfig(page_seg_mode=PageSegMode.RAW_LINE, preserve_interword_spaces=True)


class TesseractSession:
    """A single-use Tesseract handle bound to one configuration"""

    def __init__(self, ocr_config: OCRConfig):
        self.config = ocr_config
        self.args = ocr_config.to_tesseract_args()
        self.closed = False

    def recognize(self, variant: PreprocessedVariant) -> Tuple[str, float]:
        if self.closed:
            raise EngineUnavailableError("Tesseract session already terminated")
        language = self.config.language or config.TESSERACT_LANG
        data = pytesseract.image_to_data(variant.image, lang=language, config=self.args,
                                         output_type=pytesseract.Output.DICT)
        return TesseractAdapter.parse_data(data)

    def terminate(self) -> None:
        self.closed = True


class TesseractAdapter:
    """Local neural OCR through the tesseract binary"""

    name = "tesseract"

    @contextmanager
    def session(self, ocr_config: OCRConfig) -> Iterator[TesseractSession]:
        """Acquire a fresh engine for exactly one recognition, released on every path"""
        if config.TESSERACT_CMD:
            pytesseract.pytesseract.tesseract_cmd = config.TESSERACT_CMD
        engine = TesseractSession(ocr_config)
        logger.debug(f"Tesseract session started ({engine.args})")
        try:
            yield engine
        finally:
            engine.terminate()
            logger.debug("Tesseract session terminated")

    def recognize(self, variant: PreprocessedVariant, ocr_config: OCRConfig = QUICK_CONFIG,
                  method: Optional[str] = None) -> OCRAttempt:
        """Run OCR on one variant. Raises on engine failure."""
        if variant.dpi and ocr_config.dpi:
            ocr_config = replace(ocr_config, dpi=variant.dpi)

        with self.session(ocr_config) as engine:
            text, confidence = engine.recognize(variant)

        label = method or f"tesseract-{variant.label}"
        logger.info(f"{label}: confidence {confidence:.1f}, {len(text)} chars")
        return OCRAttempt(text=text, confidence=confidence, method=label)

    @staticmethod
    def parse_data(data: Dict[str, List[Any]]) -> Tuple[str, float]:
        """Rebuild line-structured text and mean word confidence from image_to_data output"""
        lines: Dict[Tuple[int, int, int], List[str]] = {}
        confidences = []

        for i, word in enumerate(data.get("text", [])):
            word = (word or "").strip()
            try:
                conf = float(data["conf"][i])
            except (KeyError, IndexError, TypeError, ValueError):
                conf = -1.0
            if not word or conf < 0:
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word)
            confidences.append(conf)

        text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return text, confidence


class NativeTextDetector:
    """Optional best-effort detector backed by EasyOCR when it is installed"""

    name = "native-text-detector"

    def __init__(self, enabled: Optional[bool] = None, language: Optional[str] = None):
        self.enabled = config.ENABLE_NATIVE_DETECTOR if enabled is None else enabled
        self.language = language or config.NATIVE_DETECTOR_LANG

    def is_available(self) -> bool:
        return self.enabled and HAS_EASYOCR

    @contextmanager
    def session(self) -> Iterator[Any]:
        if not self.is_available():
            raise EngineUnavailableError("Native text detector is not available")
        reader = easyocr.Reader([self.language], gpu=False, verbose=False)
        try:
            yield reader
        finally:
            del reader

    def recognize(self, variant: PreprocessedVariant) -> OCRAttempt:
        """Join detected fragments in reading order, one per line"""
        with self.session() as reader:
            results = reader.readtext(variant.image, detail=1, paragraph=False)

        fragments = []
        for bbox, text, conf in results:
            text = (text or "").strip()
            if text:
                top = min(point[1] for point in bbox)
                left = min(point[0] for point in bbox)
                fragments.append((top, left, text, float(conf)))
        fragments.sort(key=lambda fragment: (fragment[0], fragment[1]))

        text = "\n".join(fragment[2] for fragment in fragments)
        confidence = sum(f[3] for f in fragments) / len(fragments) * 100 if fragments else 0.0
        logger.info(f"{self.name}: confidence {confidence:.1f}, {len(fragments)} fragments")
        return OCRAttempt(text=text, confidence=confidence, method=self.name)
