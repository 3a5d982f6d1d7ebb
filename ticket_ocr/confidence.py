"""
Confidence scoring and personal-information detection for extracted tickets.
"""

import logging
import re
from typing import Dict, Optional

from .models import TICKET_FIELDS

logger = logging.getLogger(__name__)

ENGINE_WEIGHT = 0.7

# Bonus per populated field, most valuable first
FIELD_BONUSES = {
    "event_name": 25,
    "event_date": 20,
    "venue": 10,
    "event_time": 10,
    "ticket_type": 8,
    "order_reference": 6,
}
QR_PRESENT_BONUS = 5
MULTI_FIELD_BONUS = 10
MULTI_FIELD_MINIMUM = 3

PERSONAL_INFO_PATTERNS = [
    re.compile(r'\b[A-Z][a-z]+\s+[A-Z][a-z]+\b'),  # first and last name
    re.compile(r'order\s*ref', re.IGNORECASE),
    re.compile(r'\b[A-Z0-9]{6,}\b'),  # booking reference
]


class ConfidenceScorer:
    """Combines engine confidence with field coverage into a 0-100 score"""

    @staticmethod
    def score(engine_confidence: float, fields: Dict[str, Optional[str]], qr_present: bool = False) -> float:
        populated = [name for name in TICKET_FIELDS if fields.get(name)]

        score = max(0.0, float(engine_confidence)) * ENGINE_WEIGHT
        score += sum(FIELD_BONUSES.get(name, 0) for name in populated)
        if qr_present:
            score += QR_PRESENT_BONUS
        if len(populated) >= MULTI_FIELD_MINIMUM:
            score += MULTI_FIELD_BONUS

        final = max(0.0, min(100.0, score))
        logger.debug(f"Confidence {final:.1f} from engine {engine_confidence:.1f} and {len(populated)} field(s)")
        return final

    @staticmethod
    def detect_personal_info(fields: Dict[str, Optional[str]]) -> bool:
        """Flag results that may identify the ticket holder.

        Deliberately over-inclusive: any name-shaped pair of words, an order
        reference caption or a booking-code-like token sets the flag, as does
        a populated holder name or order reference.
        """
        if fields.get("holder_name") or fields.get("order_reference"):
            return True

        combined = " ".join(str(fields[name]) for name in TICKET_FIELDS if fields.get(name))
        return any(pattern.search(combined) for pattern in PERSONAL_INFO_PATTERNS)
