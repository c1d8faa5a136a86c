"""
Tests for date/time extraction.

Covers the accepted date shapes, year inference and the time helpers.
"""

import unittest
from datetime import date

from schoolcal.dates import (
    academic_year_for_month,
    extract_date,
    extract_date_range,
    extract_time_range,
    is_iso_date,
    month_from_name,
    normalize_time,
    time_to_minutes,
    today_iso,
)


class TestExtractDateRange(unittest.TestCase):
    def test_day_range_with_default_year(self) -> None:
        hits = extract_date_range("3-5/3", 2025)
        self.assertEqual([h.date for h in hits], ["2025-03-03", "2025-03-04", "2025-03-05"])
        self.assertFalse(any(h.uncertain for h in hits))

    def test_bare_date_without_year_is_uncertain(self) -> None:
        hits = extract_date_range("14/3", None, today=date(2025, 1, 1))
        self.assertEqual(len(hits), 1)
        self.assertEqual(hits[0].date, "2025-03-14")
        self.assertTrue(hits[0].uncertain)

    def test_cross_month_range_rolls_into_next_year(self) -> None:
        hits = extract_date_range("24/12-3/1", 2025)
        self.assertEqual(hits[0].date, "2025-12-24")
        self.assertEqual(hits[-1].date, "2026-01-03")
        self.assertEqual(len(hits), 11)

    def test_explicit_formats(self) -> None:
        self.assertEqual([h.date for h in extract_date_range("2025-03-14")], ["2025-03-14"])
        self.assertEqual([h.date for h in extract_date_range("14/3/2025")], ["2025-03-14"])
        self.assertEqual([h.date for h in extract_date_range("14.3.2025")], ["2025-03-14"])

    def test_impossible_or_foreign_cells(self) -> None:
        self.assertEqual(extract_date_range("31/2", 2025), [])
        self.assertEqual(extract_date_range("next week", 2025), [])
        self.assertEqual(extract_date_range("", 2025), [])


class TestExtractDate(unittest.TestCase):
    def test_finds_date_inside_text(self) -> None:
        hit = extract_date("ישיבה 14/3/2025 בערב")
        self.assertEqual(hit.date, "2025-03-14")
        self.assertFalse(hit.uncertain)

    def test_no_date(self) -> None:
        hit = extract_date("no date here")
        self.assertEqual(hit.date, "")

    def test_default_year_is_not_uncertain(self) -> None:
        hit = extract_date("יום ג' 4/11 מסיבה", default_year=2025)
        self.assertEqual(hit.date, "2025-11-04")
        self.assertFalse(hit.uncertain)


class TestTimes(unittest.TestCase):
    def test_normalize_time(self) -> None:
        self.assertEqual(normalize_time("8.30"), "08:30")
        self.assertEqual(normalize_time("24:00"), "")
        self.assertEqual(normalize_time("noon"), "")

    def test_range_with_en_dash(self) -> None:
        tr = extract_time_range("8:00 – 9:30")
        self.assertEqual((tr.start_time, tr.end_time), ("08:00", "09:30"))

    def test_reversed_range_keeps_start_only(self) -> None:
        tr = extract_time_range("ישיבה 10:00-09:00")
        self.assertEqual((tr.start_time, tr.end_time), ("10:00", ""))

    def test_single_time(self) -> None:
        tr = extract_time_range("בשעה 8:15")
        self.assertEqual((tr.start_time, tr.end_time), ("08:15", ""))

    def test_time_to_minutes_rejects_garbage(self) -> None:
        self.assertEqual(time_to_minutes("01:30"), 90)
        with self.assertRaises(ValueError):
            time_to_minutes("1:3x")


class TestCalendarHelpers(unittest.TestCase):
    def test_today_iso(self) -> None:
        self.assertEqual(today_iso(date(2025, 3, 10)), "2025-03-10")

    def test_is_iso_date(self) -> None:
        self.assertTrue(is_iso_date("2024-02-29"))
        self.assertFalse(is_iso_date("2025-02-29"))
        self.assertFalse(is_iso_date("2025-3-1"))

    def test_month_names(self) -> None:
        self.assertEqual(month_from_name("ספטמבר"), 9)
        self.assertEqual(month_from_name("October 2025"), 10)
        self.assertIsNone(month_from_name("Sheet1"))

    def test_academic_year(self) -> None:
        autumn = date(2025, 10, 1)
        self.assertEqual(academic_year_for_month(9, autumn), 2025)
        self.assertEqual(academic_year_for_month(3, autumn), 2026)
        spring = date(2026, 3, 1)
        self.assertEqual(academic_year_for_month(11, spring), 2025)
        self.assertEqual(academic_year_for_month(1, spring, start_year=2030), 2031)


if __name__ == "__main__":
    unittest.main()
