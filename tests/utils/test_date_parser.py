"""Unit tests for the date parser utility."""

import datetime
import time
import unittest
from datetime import timezone

from feed_translator.utils.date_parser import parse_date, to_iso


class TestParseDate(unittest.TestCase):
    """Test the parse_date function."""

    def setUp(self):
        """Set up the test environment."""
        self.utc = timezone.utc

    def test_standard_rfc822(self):
        """Test standard RFC 822 format."""
        date_str = "Fri, 21 Nov 1997 09:55:06 -0600"
        expected = datetime.datetime(1997, 11, 21, 15, 55, 6, tzinfo=self.utc)
        self.assertEqual(parse_date(date_str), expected)

    def test_standard_iso8601(self):
        """Test standard ISO 8601 format with Z timezone."""
        date_str = "2023-12-01T12:00:00Z"
        expected = datetime.datetime(2023, 12, 1, 12, 0, 0, tzinfo=self.utc)
        self.assertEqual(parse_date(date_str), expected)

    def test_iso8601_with_offset(self):
        """Test ISO 8601 format with explicit offset."""
        date_str = "2023-12-01T10:00:00+02:00"
        expected = datetime.datetime(2023, 12, 1, 8, 0, 0, tzinfo=self.utc)
        self.assertEqual(parse_date(date_str), expected)

    def test_naive_datetime(self):
        """Test a naive datetime string (should assume UTC)."""
        date_str = "2023-12-01 14:30:00"
        expected = datetime.datetime(2023, 12, 1, 14, 30, 0, tzinfo=self.utc)
        self.assertEqual(parse_date(date_str), expected)

    def test_common_web_format(self):
        """Test a common web format like 'Day, DD Mon YYYY HH:MM:SS GMT'."""
        date_str = "Tue, 15 Nov 1994 08:12:31 GMT"
        expected = datetime.datetime(1994, 11, 15, 8, 12, 31, tzinfo=self.utc)
        self.assertEqual(parse_date(date_str), expected)

    def test_timezone_abbreviation_pdt(self):
        """Test parsing with PDT timezone abbreviation."""
        date_str = "Mon, 10 Apr 2023 17:00:00 PDT"
        expected = datetime.datetime(2023, 4, 11, 0, 0, 0, tzinfo=self.utc)
        self.assertEqual(parse_date(date_str), expected)

    def test_timezone_abbreviation_cest(self):
        """Test parsing with CEST timezone abbreviation."""
        date_str = "Mon, 10 Apr 2023 17:00:00 CEST"
        expected = datetime.datetime(2023, 4, 10, 15, 0, 0, tzinfo=self.utc)
        self.assertEqual(parse_date(date_str), expected)

    def test_fuzzy_parsing_fallback(self):
        """Test fuzzy parsing fallback for dates embedded in strings."""
        date_str = "Published on: 2024-03-15 09:00:00 UTC by Author"
        expected = datetime.datetime(2024, 3, 15, 9, 0, 0, tzinfo=self.utc)
        self.assertEqual(parse_date(date_str), expected)

    def test_struct_time(self):
        """Test the parsed struct produced by feedparser."""
        value = time.struct_time((2024, 1, 2, 3, 4, 5, 1, 2, 0))
        expected = datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=self.utc)
        self.assertEqual(parse_date(value), expected)

    def test_aware_datetime_is_converted(self):
        """Test that aware datetimes are converted to UTC."""
        value = datetime.datetime(2024, 1, 1, 9, 0, tzinfo=datetime.timezone(datetime.timedelta(hours=9)))
        self.assertEqual(parse_date(value), datetime.datetime(2024, 1, 1, 0, 0, tzinfo=self.utc))

    def test_invalid_date_string(self):
        """Test an completely unparseable date string."""
        self.assertIsNone(parse_date("not a date at all"))

    def test_empty_values(self):
        """Test parsing empty input."""
        self.assertIsNone(parse_date(""))
        self.assertIsNone(parse_date(None))

    def test_to_iso(self):
        """Test ISO formatting of a parsed date."""
        self.assertEqual(to_iso("Tue, 15 Nov 1994 08:12:31 GMT"), "1994-11-15T08:12:31+00:00")
        self.assertIsNone(to_iso("not a date at all"))


if __name__ == "__main__":
    unittest.main()
