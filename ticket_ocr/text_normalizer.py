"""
Text normalization for raw OCR output.
"""

import logging
import re

logger = logging.getLogger(__name__)

_LETTER_LOOKALIKES = {"0": "O", "5": "S", "1": "I"}
_LOWER_LETTER_LOOKALIKES = {"0": "o", "5": "s", "1": "l"}
_DIGIT_LOOKALIKES = {"O": "0", "o": "0", "S": "5", "I": "1", "l": "1"}
_ORDINAL_SUFFIX = re.compile(r'^\d+(?:st|nd|rd|th)$', re.IGNORECASE)
_CLOCK_SUFFIX = re.compile(r'^\d{1,2}(?:am|pm)$', re.IGNORECASE)

_PIPE_BETWEEN_LETTERS = re.compile(r'(?<=[A-Za-z])\|(?=[A-Za-z])')
_PIPE_DATE = re.compile(r'\b(\d{1,4})[|\\/](\d{1,2})[|\\/](\d{1,4})\b')
_PIPE_TIME = re.compile(r'\b([01]?\d|2[0-3])\|([0-5]\d)\b')
_DIGIT_SEPARATOR = re.compile(r'(?<=\d)[|\\](?=\d)')
_ALNUM_RUN = re.compile(r'[A-Za-z0-9]+')
_DISALLOWED = re.compile(r"[^\w\s.,:;\-/()&@'£$€+#%!?]")


def _fix_lookalikes(run: str) -> str:
    """Resolve 0/O, 5/S, 1/I confusions inside one alphanumeric run"""
    letters = [c for c in run if c.isalpha()]
    digits = [c for c in run if c.isdigit()]
    if not letters or not digits or _ORDINAL_SUFFIX.match(run) or _CLOCK_SUFFIX.match(run):
        return run

    # Mostly letters with only look-alike digits: a misread word
    if all(d in _LETTER_LOOKALIKES for d in digits) and len(letters) >= 2 * len(digits):
        lowercase = sum(c.islower() for c in letters) > len(letters) / 2
        lookalikes = _LOWER_LETTER_LOOKALIKES if lowercase else _LETTER_LOOKALIKES
        return "".join(lookalikes.get(c, c) for c in run)

    # Mostly digits with only look-alike letters: a misread number
    if all(c in _DIGIT_LOOKALIKES for c in letters) and len(digits) > len(letters):
        return "".join(_DIGIT_LOOKALIKES.get(c, c) for c in run)

    return run


def normalize_line(line: str) -> str:
    line = _PIPE_BETWEEN_LETTERS.sub("I", line)
    line = _ALNUM_RUN.sub(lambda m: _fix_lookalikes(m.group(0)), line)
    line = _PIPE_DATE.sub(r'\1/\2/\3', line)
    line = _PIPE_TIME.sub(r'\1:\2', line)
    line = _DIGIT_SEPARATOR.sub("/", line)
    line = _DISALLOWED.sub(" ", line)
    return re.sub(r'[^\S\n]+', " ", line).strip()


def normalize_text(text: str) -> str:
    """Clean OCR text while keeping one logical line per text line.

    Applying this twice gives the same result as applying it once.
    """
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = (normalize_line(line) for line in text.split("\n"))
    normalized = "\n".join(line for line in lines if line)
    logger.debug(f"Normalized {len(text)} chars to {len(normalized)} chars")
    return normalized
