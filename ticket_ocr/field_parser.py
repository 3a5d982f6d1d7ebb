"""
Field parsing and extraction utilities for ticket text.
"""

import logging
import re
from datetime import date, datetime
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from dateutil import parser as date_parser

from .models import QRPayload, TICKET_FIELDS
from .text_normalizer import normalize_text

logger = logging.getLogger(__name__)

Fields = Dict[str, str]

WEEKDAY = r'\b(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)[a-z]*'
MONTH = r'\b(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*'
TIME = r'\d{1,2}:\d{2}(?:\s*[AaPp][Mm])?(?:\s*GMT\s*[+\-]\s*\d{1,2})?'

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

# Tried in order against an "opening time" value: (date, optional time)
OPENING_TIME_PATTERNS = [
    re.compile(rf'({WEEKDAY},?\s*\d{{1,2}}\s+{MONTH}\s+\d{{4}})(?:,?\s*({TIME}))?', re.IGNORECASE),
    re.compile(rf'(\d{{1,2}}\s+{MONTH}\s+\d{{4}})(?:,?\s*({TIME}))?', re.IGNORECASE),
    re.compile(rf'(\d{{1,2}}(?:st|nd|rd|th)?\s+{MONTH},?\s+\d{{4}}|{MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?,?\s+\d{{4}})',
               re.IGNORECASE),
]

GENERIC_DATE_PATTERNS = [
    re.compile(r'\b\d{1,2}[/.\-]\d{1,2}[/.\-]\d{4}\b'),
    re.compile(r'\b\d{4}[/.\-]\d{1,2}[/.\-]\d{1,2}\b'),
]

TIME_PATTERN = re.compile(rf'\b({TIME})')

# Mobile ticket captions and the field their value belongs to
LABELS = {
    "name": "holder_name",
    "order reference": "order_reference",
    "order ref": "order_reference",
    "booking reference": "order_reference",
    "ticket name": "ticket_type",
    "ticket type": "ticket_type",
    "venue": "venue",
    "location": "venue",
    "last entry": "last_entry",
    "opening time": "opening_time",
    "doors open": "opening_time",
    "event date": "opening_time",
}

# Printed tickets put the value on the same line as its label
PRINTED_LABEL_PATTERN = re.compile(
    r'^(event name|event|venue|location|date|ticket type|order ref(?:erence)?|booking ref(?:erence)?|'
    r'holder|name)\s*:\s*(.+)$',
    re.IGNORECASE,
)
PRINTED_LABEL_FIELDS = {
    "event name": "event_name",
    "event": "event_name",
    "venue": "venue",
    "location": "venue",
    "date": "opening_time",
    "ticket type": "ticket_type",
    "holder": "holder_name",
    "name": "holder_name",
}

TICKET_TYPES = [
    "General Admission", "Advance Entry", "Early Entry", "Early Bird", "Student Entry",
    "Standard Entry", "VIP", "Standing", "Seated",
]
TICKET_TYPE_PATTERN = re.compile(r'\b(' + '|'.join(re.escape(t) for t in TICKET_TYPES) + r')\b', re.IGNORECASE)
TICKET_TYPE_WORDS = re.compile(r'\b(advance|admission|vip|student|standing|early bird|entry)\b', re.IGNORECASE)

EVENT_NOUNS = r'(?:Party|Event|Concert|Festival|Ball|Show|Gala|Tour|Gig|Rave|Night)'
EVENT_NAME_PATTERN = re.compile(rf"((?:[A-Z0-9][\w'&.\-]*\s+){{0,5}}{EVENT_NOUNS})\b")
EVENT_NOUN_WORD = re.compile(rf'\b{EVENT_NOUNS}\b', re.IGNORECASE)
NON_EVENT_WORDS = re.compile(r'\b(ticket|order|transfer|entry|reference|details)\b', re.IGNORECASE)

HIGH_SIGNAL_KEYWORDS = {
    "halloween", "christmas", "nye", "party", "festival", "concert", "gig", "gala", "tour", "rave",
}
PROXIMITY_BEFORE = 3
PROXIMITY_AFTER = 4


class ExtractionStrategy(NamedTuple):
    name: str
    apply: Callable[[List[str], Fields, Optional[QRPayload]], bool]


class FieldParser:
    """Deterministic field extraction from OCR text using layout rules and regex patterns"""

    @staticmethod
    def extract(text: str, qr_payload: Optional[QRPayload] = None) -> Fields:
        """Run every strategy in order over normalized text"""
        return FieldParser._run(text, STRATEGIES, qr_payload)

    @staticmethod
    def extract_mobile_template(text: str, qr_payload: Optional[QRPayload] = None) -> Fields:
        """Label/value pairing only, tuned for phone-screenshot ticket layouts"""
        return FieldParser._run(text, TEMPLATE_STRATEGIES, qr_payload)

    @staticmethod
    def _run(text: str, strategies: List[ExtractionStrategy], qr_payload: Optional[QRPayload]) -> Fields:
        lines = normalize_text(text).split("\n") if text else []
        lines = [line for line in lines if line]
        fields: Fields = {}

        for strategy in strategies:
            contributed = strategy.apply(lines, fields, qr_payload)
            if contributed:
                logger.debug(f"Strategy '{strategy.name}' contributed: {sorted(fields)}")

        return FieldParser.postprocess(fields)

    # Strategies

    @staticmethod
    def structural(lines: List[str], fields: Fields, qr_payload: Optional[QRPayload] = None,
                   loose: bool = False) -> bool:
        """Pair caption lines with the value line that follows them"""
        contributed = False

        for i, line in enumerate(lines):
            next_line = lines[i + 1] if i + 1 < len(lines) else None
            label, inline_value = FieldParser.match_label(line, loose)

            if label is None:
                # The event title sits directly above its "Name" caption
                previous_is_label = i > 0 and FieldParser.match_label(lines[i - 1], loose)[0] is not None
                if (next_line is not None and FieldParser.match_label(next_line)[0] == "name" and not previous_is_label
                        and not fields.get("event_name") and not NON_EVENT_WORDS.search(line)
                        and re.search(r'[A-Za-z]{2}', line)):
                    fields["event_name"] = line
                    contributed = True
                continue

            value = inline_value
            if not value and next_line is not None and FieldParser.match_label(next_line, loose)[0] is None:
                value = next_line
            if not value:
                continue

            target = LABELS[label]
            if target == "opening_time":
                contributed |= FieldParser.apply_opening_time(value, fields)
            elif not fields.get(target):
                fields[target] = value
                contributed = True

        return contributed

    @staticmethod
    def patterns(lines: List[str], fields: Fields, qr_payload: Optional[QRPayload] = None) -> bool:
        """Labelled printed lines, then date, time and ticket-type patterns anywhere"""
        contributed = False
        text = "\n".join(lines)

        for line in lines:
            match = PRINTED_LABEL_PATTERN.match(line)
            if not match:
                continue
            label = match.group(1).lower()
            value = match.group(2).strip()
            target = "order_reference" if label.startswith(("order", "booking")) else PRINTED_LABEL_FIELDS[label]
            if target == "opening_time":
                contributed |= FieldParser.apply_opening_time(value, fields)
            elif not fields.get(target):
                fields[target] = value
                contributed = True

        if not fields.get("event_date"):
            found = FieldParser.find_date(text)
            if found:
                fields["event_date"] = found
                contributed = True

        if not fields.get("event_time"):
            for line in lines:
                if line.lower().startswith("last entry") or line == fields.get("last_entry"):
                    continue
                match = TIME_PATTERN.search(line)
                if match:
                    fields["event_time"] = match.group(1)
                    contributed = True
                    break

        if not fields.get("ticket_type"):
            match = TICKET_TYPE_PATTERN.search(text)
            if match:
                fields["ticket_type"] = match.group(1)
                contributed = True

        return contributed

    @staticmethod
    def semantic(lines: List[str], fields: Fields, qr_payload: Optional[QRPayload] = None) -> bool:
        """Guess event name and ticket type from the shape of whole lines"""
        contributed = False

        for line in lines:
            if FieldParser.match_label(line)[0] is not None:
                continue
            if (not fields.get("event_name") and 4 <= len(line) <= 60 and EVENT_NOUN_WORD.search(line)
                    and not NON_EVENT_WORDS.search(line) and line[:1].isupper()):
                fields["event_name"] = line
                contributed = True
            elif (not fields.get("ticket_type") and len(line) <= 40 and TICKET_TYPE_WORDS.search(line)
                  and not line.lower().startswith("last entry") and not re.search(r'\d{1,2}:\d{2}', line)):
                fields["ticket_type"] = line
                contributed = True

        return contributed

    @staticmethod
    def keyword_proximity(lines: List[str], fields: Fields, qr_payload: Optional[QRPayload] = None) -> bool:
        """Last resort for the event name: look around high-signal keywords"""
        if fields.get("event_name"):
            return False

        tokens = " ".join(lines).split()
        for i, token in enumerate(tokens):
            if token.strip(".,:;!?'").lower() not in HIGH_SIGNAL_KEYWORDS:
                continue
            window = " ".join(tokens[max(0, i - PROXIMITY_BEFORE):i + PROXIMITY_AFTER + 1])
            match = EVENT_NAME_PATTERN.search(window)
            if match:
                fields["event_name"] = match.group(1).strip()
                logger.debug(f"Event name from keyword '{token}': {fields['event_name']}")
                return True

        return False

    @staticmethod
    def qr_fusion(lines: List[str], fields: Fields, qr_payload: Optional[QRPayload] = None) -> bool:
        """Fill still-empty fields from the decoded QR payload"""
        if qr_payload is None:
            return False

        contributed = False
        for name, value in qr_payload.fields.items():
            if name in TICKET_FIELDS and value and not fields.get(name):
                fields[name] = value
                contributed = True
        return contributed

    # Helpers

    @staticmethod
    def match_label(line: str, loose: bool = False) -> Tuple[Optional[str], Optional[str]]:
        """Return (label, inline value) when the line is a known caption"""
        lowered = line.strip().lower()
        bare = lowered.rstrip(":").strip()
        if bare in LABELS:
            return bare, None

        if loose:
            for label in sorted(LABELS, key=len, reverse=True):
                if lowered.startswith(label):
                    rest = line.strip()[len(label):]
                    if rest and rest[0].isalnum():
                        continue
                    remainder = rest.lstrip(" :").strip()
                    return label, remainder or None

        return None, None

    @staticmethod
    def apply_opening_time(value: str, fields: Fields) -> bool:
        """Fill event date and time from an opening-time value"""
        event_date, event_time = FieldParser.parse_opening_time(value)
        contributed = False
        if event_date and not fields.get("event_date"):
            fields["event_date"] = event_date
            contributed = True
        if event_time and not fields.get("event_time"):
            fields["event_time"] = event_time
            contributed = True
        return contributed

    @staticmethod
    def parse_opening_time(value: str) -> Tuple[Optional[str], Optional[str]]:
        for pattern in OPENING_TIME_PATTERNS:
            match = pattern.search(value)
            if match:
                event_time = match.group(2) if match.re.groups > 1 else None
                if not event_time:
                    time_match = TIME_PATTERN.search(value[match.end():])
                    event_time = time_match.group(1) if time_match else None
                return match.group(1).strip(), event_time

        event_date = FieldParser.find_date(value)
        time_match = TIME_PATTERN.search(value)
        return event_date, time_match.group(1) if time_match else None

    @staticmethod
    def find_date(text: str) -> Optional[str]:
        for pattern in OPENING_TIME_PATTERNS + GENERIC_DATE_PATTERNS:
            match = pattern.search(text)
            if match:
                return match.group(1) if match.re.groups else match.group(0)
        return None

    # Post-processing

    @staticmethod
    def postprocess(fields: Fields) -> Fields:
        """Strip noise from names, normalize the date and drop empty values"""
        cleaned: Fields = {}
        for name, value in fields.items():
            if name not in TICKET_FIELDS or not value:
                continue
            if name in ("event_name", "venue"):
                value = re.sub(r"[^\w\s&'.\-]|_", "", value)
            value = re.sub(r'\s+', ' ', value).strip()
            if name == "event_date":
                value = FieldParser.normalize_date(value)
            if value:
                cleaned[name] = value
        return cleaned

    @staticmethod
    def normalize_date(value: str) -> str:
        """Convert a date string to YYYY-MM-DD, or return it unchanged"""
        value = value.strip()

        if re.fullmatch(r'\d{4}-\d{2}-\d{2}', value):
            try:
                return date.fromisoformat(value).isoformat()
            except ValueError:
                pass

        month_name_patterns = [
            (re.compile(rf'(\d{{1,2}})(?:st|nd|rd|th)?\s+({MONTH}),?\s+(\d{{4}})', re.IGNORECASE), (1, 2, 3)),
            (re.compile(rf'({MONTH})\s+(\d{{1,2}})(?:st|nd|rd|th)?,?\s+(\d{{4}})', re.IGNORECASE), (2, 1, 3)),
        ]
        for pattern, (day_group, month_group, year_group) in month_name_patterns:
            match = pattern.search(value)
            if match:
                month = MONTHS.get(match.group(month_group)[:3].lower())
                try:
                    return date(int(match.group(year_group)), month, int(match.group(day_group))).isoformat()
                except (TypeError, ValueError):
                    logger.debug(f"Invalid calendar date in '{value}'")

        match = re.search(r'\b(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})\b', value)
        if match:
            try:
                return date(int(match.group(1)), int(match.group(2)), int(match.group(3))).isoformat()
            except ValueError:
                return value

        if re.search(r'\b\d{4}\b', value):
            # Day and month must come from the value, not from the parser defaults
            try:
                first = date_parser.parse(value, dayfirst=True, default=datetime(2000, 1, 1)).date()
                second = date_parser.parse(value, dayfirst=True, default=datetime(2004, 2, 2)).date()
            except (ValueError, OverflowError):
                pass
            else:
                if first == second:
                    return first.isoformat()

        match = re.search(r'(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})', value)
        if match:
            try:
                return date(int(match.group(3)), int(match.group(2)), int(match.group(1))).isoformat()
            except ValueError:
                pass

        return value


STRATEGIES = [
    ExtractionStrategy("structural", FieldParser.structural),
    ExtractionStrategy("patterns", FieldParser.patterns),
    ExtractionStrategy("semantic", FieldParser.semantic),
    ExtractionStrategy("keyword_proximity", FieldParser.keyword_proximity),
    ExtractionStrategy("qr_fusion", FieldParser.qr_fusion),
]

TEMPLATE_STRATEGIES = [
    ExtractionStrategy("mobile_template", lambda lines, fields, qr: FieldParser.structural(lines, fields, qr, loose=True)),
    ExtractionStrategy("qr_fusion", FieldParser.qr_fusion),
]
