#!/usr/bin/env python3
"""
Tests for structured field extraction from ticket text.

Usage:
    python test_field_parser.py
"""

import logging
import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ticket_ocr.field_parser import STRATEGIES, FieldParser
from ticket_ocr.models import QRPayload

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
)
logger = logging.getLogger(__name__)


class TestMobileLayout(unittest.TestCase):
    """Label/value pairing on phone screenshot layouts"""

    def test_label_value_pairing(self):
        text = "Halloween Bash\nName\nOrder reference\n9d280cdd\nTicket name\nAdvance Entry"
        fields = FieldParser.extract(text)

        self.assertEqual(fields["event_name"], "Halloween Bash")
        self.assertEqual(fields["order_reference"], "9d280cdd")
        self.assertEqual(fields["ticket_type"], "Advance Entry")
        # "Name" is followed by another caption, so there is no holder
        self.assertNotIn("holder_name", fields)

    def test_holder_name_after_name_caption(self):
        fields = FieldParser.extract("Halloween Bash\nName\nJohn Smith\nOrder reference\nAB12CD34")
        self.assertEqual(fields["event_name"], "Halloween Bash")
        self.assertEqual(fields["holder_name"], "John Smith")
        self.assertEqual(fields["order_reference"], "AB12CD34")

    def test_opening_time_and_last_entry(self):
        text = "Opening time\nSaturday, 28 Oct 2023, 23:00 GMT+1\nLast entry\n01:30"
        fields = FieldParser.extract(text)

        self.assertEqual(fields["event_date"], "2023-10-28")
        self.assertEqual(fields["event_time"], "23:00 GMT+1")
        self.assertEqual(fields["last_entry"], "01:30")

    def test_opening_time_without_weekday(self):
        fields = FieldParser.extract("Opening time\n3 Nov 2023 21:30")
        self.assertEqual(fields["event_date"], "2023-11-03")
        self.assertEqual(fields["event_time"], "21:30")

    def test_opening_time_numeric_fallback(self):
        fields = FieldParser.extract("Opening time\ndoors 14/02/2024 from 19:00")
        self.assertEqual(fields["event_date"], "2024-02-14")
        self.assertEqual(fields["event_time"], "19:00")

    def test_event_name_not_taken_from_value_line(self):
        fields = FieldParser.extract("Order reference\n9d280cdd\nName\nJane Doe")
        self.assertNotEqual(fields.get("event_name"), "9d280cdd")
        self.assertEqual(fields["holder_name"], "Jane Doe")


class TestPrintedLayout(unittest.TestCase):
    """Same-line labels and free-text patterns"""

    def test_printed_labels(self):
        text = ("Event: Summer Festival\nVenue: Brixton Academy\nDate: 12/08/2024\n"
                "Doors 19:30\nGeneral Admission")
        fields = FieldParser.extract(text)

        self.assertEqual(fields["event_name"], "Summer Festival")
        self.assertEqual(fields["venue"], "Brixton Academy")
        self.assertEqual(fields["event_date"], "2024-08-12")
        self.assertEqual(fields["event_time"], "19:30")
        self.assertEqual(fields["ticket_type"], "General Admission")

    def test_date_anywhere(self):
        fields = FieldParser.extract("Something happening on Friday 5 Jan 2024 somewhere")
        self.assertEqual(fields["event_date"], "2024-01-05")

    def test_time_ignores_last_entry_line(self):
        fields = FieldParser.extract("Last entry 01:30\nShow starts 20:00")
        self.assertEqual(fields["event_time"], "20:00")

    def test_ticket_type_vocabulary(self):
        fields = FieldParser.extract("Your booking\n1x VIP upgrade included")
        self.assertEqual(fields["ticket_type"], "VIP")

    def test_keyword_proximity_event_name(self):
        text = "Tickets for The Smack Halloween Party tonight transfer disabled"
        fields = FieldParser.extract(text)
        self.assertEqual(fields["event_name"], "The Smack Halloween Party")

    def test_semantic_event_line(self):
        fields = FieldParser.extract("Welcome\nNeon Rave Night\nBring ID")
        self.assertEqual(fields["event_name"], "Neon Rave Night")

    def test_noise_stripped_from_event_name(self):
        fields = FieldParser.extract("Event: Halloween Bash!!\nVenue: Hall #5")
        self.assertEqual(fields["event_name"], "Halloween Bash")
        self.assertEqual(fields["venue"], "Hall 5")

    def test_empty_text(self):
        self.assertEqual(FieldParser.extract(""), {})


class TestQRFusion(unittest.TestCase):
    """QR payload fields only fill gaps"""

    def test_fills_empty_fields(self):
        payload = QRPayload(raw="x", fields={"event_name": "Test Gig", "venue": "Hall A"})
        fields = FieldParser.extract("Venue\nHall B", qr_payload=payload)

        self.assertEqual(fields["event_name"], "Test Gig")
        self.assertEqual(fields["venue"], "Hall B")

    def test_strategy_order(self):
        names = [strategy.name for strategy in STRATEGIES]
        self.assertEqual(names, ["structural", "patterns", "semantic", "keyword_proximity", "qr_fusion"])


class TestMobileTemplate(unittest.TestCase):
    """Template pass tolerates captions and values on one line"""

    def test_inline_captions(self):
        text = "Opening time Saturday, 28 Oct 2023\nTicket name Early Bird\nLast entry 01:30"
        fields = FieldParser.extract_mobile_template(text)

        self.assertEqual(fields["event_date"], "2023-10-28")
        self.assertEqual(fields["ticket_type"], "Early Bird")
        self.assertEqual(fields["last_entry"], "01:30")

    def test_words_starting_with_caption_are_not_captions(self):
        fields = FieldParser.extract_mobile_template("Named Event Live\nVenues list")
        self.assertEqual(fields, {})


class TestNormalizeDate(unittest.TestCase):
    """Date normalization falls through its parsers in order"""

    def test_iso_passthrough(self):
        self.assertEqual(FieldParser.normalize_date("2023-10-28"), "2023-10-28")

    def test_weekday_and_month_name(self):
        self.assertEqual(FieldParser.normalize_date("Saturday, 28 Oct 2023"), "2023-10-28")
        self.assertEqual(FieldParser.normalize_date("Sat 4th November 2023"), "2023-11-04")

    def test_month_first(self):
        self.assertEqual(FieldParser.normalize_date("October 28, 2023"), "2023-10-28")

    def test_day_first_numeric(self):
        self.assertEqual(FieldParser.normalize_date("28/10/2023"), "2023-10-28")
        self.assertEqual(FieldParser.normalize_date("03/04/2024"), "2024-04-03")

    def test_unparseable_returned_unchanged(self):
        self.assertEqual(FieldParser.normalize_date("next Tuesday maybe"), "next Tuesday maybe")
        self.assertEqual(FieldParser.normalize_date("31/02/2023"), "31/02/2023")

    def test_year_first_numeric(self):
        self.assertEqual(FieldParser.normalize_date("2024/08/12"), "2024-08-12")
        self.assertEqual(FieldParser.normalize_date("2024-8-12"), "2024-08-12")
        self.assertEqual(FieldParser.normalize_date("2024.12.05"), "2024-12-05")
        self.assertEqual(FieldParser.normalize_date("2024/13/05"), "2024/13/05")

    def test_year_first_in_ticket_text(self):
        fields = FieldParser.extract("Doors open 2024/08/12 19:00")
        self.assertEqual(fields["event_date"], "2024-08-12")
        self.assertEqual(fields["event_time"], "19:00")

    def test_partial_dates_returned_unchanged(self):
        self.assertEqual(FieldParser.normalize_date("Dec 2025"), "Dec 2025")
        self.assertEqual(FieldParser.normalize_date("2025"), "2025")


if __name__ == "__main__":
    unittest.main()
