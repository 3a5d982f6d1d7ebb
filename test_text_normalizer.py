#!/usr/bin/env python3
"""
Tests for OCR text normalization.

Usage:
    python test_text_normalizer.py
"""

import logging
import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ticket_ocr.text_normalizer import normalize_text

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
)
logger = logging.getLogger(__name__)


class TestNormalizeText(unittest.TestCase):
    """Cleanup of common OCR misreads"""

    SAMPLES = [
        "C0NCERT T|CKET\r\n28|10|2023  23|00",
        "Halloween Bash\nName\nOrder reference\n9d280cdd",
        "Opening time\nSaturday, 28 Oct 2023, 23:00 GMT+1",
        "  weird ~ chars * here  \n\n\n| | |",
        "Ha11oween 2O23 at The O2 on the 1st",
        "28\\10\\2023 and 12|3O",
        "",
    ]

    def test_idempotent(self):
        for sample in self.SAMPLES:
            once = normalize_text(sample)
            self.assertEqual(normalize_text(once), once, f"Not idempotent for {sample!r}")

    def test_preserves_line_structure(self):
        self.assertEqual(normalize_text("Name\r\n\r\nJohn Smith\rOrder reference"),
                         "Name\nJohn Smith\nOrder reference")

    def test_collapses_whitespace(self):
        self.assertEqual(normalize_text("  Hall    A \t Brixton  "), "Hall A Brixton")

    def test_pipe_between_letters_becomes_i(self):
        self.assertEqual(normalize_text("T|CKET"), "TICKET")

    def test_date_separators(self):
        self.assertEqual(normalize_text("28|10|2023"), "28/10/2023")
        self.assertEqual(normalize_text("28\\10\\2023"), "28/10/2023")

    def test_time_pipe_becomes_colon(self):
        self.assertEqual(normalize_text("Doors 23|00"), "Doors 23:00")

    def test_lookalike_letters_in_words(self):
        self.assertEqual(normalize_text("C0NCERT"), "CONCERT")
        self.assertEqual(normalize_text("Ha11oween"), "Halloween")

    def test_lookalike_digits_in_numbers(self):
        self.assertEqual(normalize_text("2O23"), "2023")

    def test_mixed_codes_left_alone(self):
        self.assertEqual(normalize_text("9d280cdd"), "9d280cdd")
        self.assertEqual(normalize_text("The O2"), "The O2")
        self.assertEqual(normalize_text("1st"), "1st")
        self.assertEqual(normalize_text("GMT+1"), "GMT+1")
        self.assertEqual(normalize_text("Doors 5pm, last entry 1am"), "Doors 5pm, last entry 1am")
        self.assertEqual(normalize_text("10PM"), "10PM")

    def test_strips_disallowed_characters(self):
        self.assertEqual(normalize_text("Event* ~ Name"), "Event Name")
        self.assertEqual(normalize_text("£25.00 & €10"), "£25.00 & €10")

    def test_empty(self):
        self.assertEqual(normalize_text(""), "")
        self.assertEqual(normalize_text("\n\n  \n"), "")


if __name__ == "__main__":
    unittest.main()
