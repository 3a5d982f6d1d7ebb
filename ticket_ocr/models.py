"""
Data models and schemas for ticket OCR extraction.
"""

import mimetypes
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
from jsonschema import validate

# Extractable ticket fields, in scoring priority order
TICKET_FIELDS = (
    "event_name",
    "event_date",
    "event_time",
    "venue",
    "ticket_type",
    "order_reference",
    "holder_name",
    "last_entry",
)

_CAMEL_CASE_KEYS = {
    "event_name": "eventName",
    "event_date": "eventDate",
    "event_time": "eventTime",
    "venue": "venue",
    "ticket_type": "ticketType",
    "order_reference": "orderReference",
    "holder_name": "holderName",
    "last_entry": "lastEntry",
}

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')


def clean_field_value(value: Optional[str]) -> Optional[str]:
    """Trim a field value, drop control characters and collapse whitespace. Empty becomes None."""
    if value is None:
        return None
    cleaned = _CONTROL_CHARS.sub(' ', str(value))
    cleaned = re.sub(r'\s+', ' ', cleaned).strip()
    return cleaned or None


@dataclass(frozen=True)
class RawImage:
    """Binary image data as supplied by the caller"""

    data: bytes
    media_type: str = "image/png"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_pdf(self) -> bool:
        return self.media_type == "application/pdf" or self.data[:5] == b"%PDF-"

    @classmethod
    def from_path(cls, path: str, media_type: Optional[str] = None) -> "RawImage":
        """Read an image file, guessing the media type from its name when not given"""
        file_path = Path(path)
        if media_type is None:
            media_type, _ = mimetypes.guess_type(file_path.name)
        return cls(data=file_path.read_bytes(), media_type=media_type or "application/octet-stream")


@dataclass(frozen=True)
class PreprocessOptions:
    """Tuning knobs for a single preprocessing run"""

    dpi: int = 300
    contrast: float = 1.0
    brightness: float = 1.0
    padding: float = 0.0
    binarize: bool = False
    threshold: int = 128  # 0 selects adaptive thresholding
    denoise: bool = False
    sharpen: bool = False


@dataclass
class PreprocessedVariant:
    """A transformed bitmap ready for OCR"""

    image: np.ndarray
    label: str
    dpi: Optional[int] = None

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


@dataclass(frozen=True)
class OCRAttempt:
    """Raw text and engine confidence from one recognition run"""

    text: str
    confidence: float
    method: str


@dataclass(frozen=True)
class QRPayload:
    """Decoded QR content plus any ticket fields recognised in it"""

    raw: str
    fields: Dict[str, str] = field(default_factory=dict)

    @property
    def populated_count(self) -> int:
        return sum(1 for value in self.fields.values() if value and str(value).strip())


@dataclass(frozen=True)
class ExtractedTicketInfo:
    """Final structured result of one extraction"""

    event_name: Optional[str] = None
    event_date: Optional[str] = None
    event_time: Optional[str] = None
    venue: Optional[str] = None
    ticket_type: Optional[str] = None
    order_reference: Optional[str] = None
    holder_name: Optional[str] = None
    last_entry: Optional[str] = None
    confidence: float = 0.0
    has_personal_info: bool = False
    raw_text: str = ""
    extraction_method: str = "none"
    qr_data: Optional[str] = None

    def __post_init__(self):
        # Confidence is always kept inside [0, 100]
        clamped = round(max(0.0, min(100.0, float(self.confidence))), 1)
        object.__setattr__(self, "confidence", clamped)
        for name in TICKET_FIELDS:
            object.__setattr__(self, name, clean_field_value(getattr(self, name)))

    @classmethod
    def build(cls, fields: Dict[str, Optional[str]], confidence: float, raw_text: str,
              extraction_method: str, has_personal_info: bool = False,
              qr_data: Optional[str] = None) -> "ExtractedTicketInfo":
        """Create a result from a loose field dictionary, ignoring unknown keys"""
        known = {name: fields.get(name) for name in TICKET_FIELDS}
        return cls(
            confidence=confidence,
            has_personal_info=has_personal_info,
            raw_text=raw_text or "",
            extraction_method=extraction_method,
            qr_data=qr_data,
            **known,
        )

    @classmethod
    def empty(cls, raw_text: str, extraction_method: str) -> "ExtractedTicketInfo":
        """Zero-confidence result with no populated fields"""
        return cls(confidence=0.0, raw_text=raw_text, extraction_method=extraction_method)

    def fields(self) -> Dict[str, str]:
        """Populated ticket fields only"""
        return {name: getattr(self, name) for name in TICKET_FIELDS if getattr(self, name)}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used by the listing form"""
        data: Dict[str, Any] = {_CAMEL_CASE_KEYS[name]: getattr(self, name) for name in TICKET_FIELDS}
        data.update({
            "confidence": self.confidence,
            "hasPersonalInfo": self.has_personal_info,
            "rawText": self.raw_text,
            "extractionMethod": self.extraction_method,
            "qrData": self.qr_data,
        })
        return data


# JSON Schema for serialized extraction results
TICKET_INFO_SCHEMA = {
    "type": "object",
    "required": ["confidence", "hasPersonalInfo", "rawText", "extractionMethod"],
    "properties": {
        "eventName": {"type": ["string", "null"], "minLength": 1},
        "eventDate": {"type": ["string", "null"], "minLength": 1},
        "eventTime": {"type": ["string", "null"], "minLength": 1},
        "venue": {"type": ["string", "null"], "minLength": 1},
        "ticketType": {"type": ["string", "null"], "minLength": 1},
        "orderReference": {"type": ["string", "null"], "minLength": 1},
        "holderName": {"type": ["string", "null"], "minLength": 1},
        "lastEntry": {"type": ["string", "null"], "minLength": 1},
        "confidence": {"type": "number", "minimum": 0, "maximum": 100},
        "hasPersonalInfo": {"type": "boolean"},
        "rawText": {"type": "string"},
        "extractionMethod": {"type": "string", "minLength": 1},
        "qrData": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}


def validate_ticket_info(data: Dict[str, Any]) -> None:
    """Raise jsonschema.ValidationError if a serialized result is malformed"""
    validate(instance=data, schema=TICKET_INFO_SCHEMA)
