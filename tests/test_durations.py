import unittest
from datetime import date, datetime, timedelta, timezone

from services.durations import (
    calendar_days_after,
    days_from_range_label,
    duration_info,
    format_date_id,
    parse_local_date,
)


class TestParseLocalDate(unittest.TestCase):
    def test_iso_date(self):
        self.assertEqual(parse_local_date("2025-01-10"), date(2025, 1, 10))

    def test_utc_instant_is_shifted_to_local_day(self):
        # 20:00 UTC is already the next morning at UTC+7
        self.assertEqual(parse_local_date("2025-01-09T20:00:00Z"), date(2025, 1, 10))
        self.assertEqual(parse_local_date(datetime(2025, 1, 9, 20, tzinfo=timezone.utc)), date(2025, 1, 10))

    def test_day_first_formats(self):
        self.assertEqual(parse_local_date("31/01/2025"), date(2025, 1, 31))
        self.assertEqual(parse_local_date("05-02-25"), date(2025, 2, 5))

    def test_invalid_values(self):
        for value in (None, "", "not a date", "32/13/2025", 12345):
            self.assertIsNone(parse_local_date(value), value)

    def test_instants_outside_the_calendar_give_none(self):
        with self.assertLogs("services.durations", level="WARNING"):
            self.assertIsNone(parse_local_date(datetime(9999, 12, 31, 23, tzinfo=timezone.utc)))
        self.assertIsNone(parse_local_date(datetime(1, 1, 1, tzinfo=timezone(timedelta(hours=8)))))
        self.assertIsNone(parse_local_date("9999-12-31T23:00:00Z"))


class TestDurationInfo(unittest.TestCase):
    def test_inclusive_count_and_labels(self):
        info = duration_info("2025-01-01", "2025-01-10")
        self.assertEqual(info.days, 10)
        self.assertEqual(info.label, "10 hari")
        self.assertEqual(info.range_label, "1 Januari 2025 — 10 Januari 2025")

    def test_same_day_counts_as_one(self):
        self.assertEqual(duration_info("2025-03-05", "2025-03-05").days, 1)

    def test_order_insensitive(self):
        self.assertEqual(duration_info("2025-01-10", "2025-01-01").days, 10)

    def test_range_label_round_trip(self):
        info = duration_info("2024-12-28", "2025-02-03")
        self.assertEqual(days_from_range_label(info.range_label), info.days)

    def test_invalid_input_gives_none(self):
        with self.assertLogs("services.durations", level="WARNING"):
            self.assertIsNone(duration_info("2025-01-01", "garbage"))
        self.assertIsNone(duration_info(None, "2025-01-01"))
        self.assertIsNone(days_from_range_label("1 Januari 2025"))
        self.assertIsNone(days_from_range_label("1 Foo 2025 — 2 Januari 2025"))

    def test_out_of_range_instant_gives_none(self):
        self.assertIsNone(duration_info("2025-01-10", "9999-12-31T23:00:00Z"))
        self.assertIsNone(duration_info(datetime(9999, 12, 31, 23, tzinfo=timezone.utc), "2025-01-10"))

    def test_format_date_id(self):
        self.assertEqual(format_date_id(date(2025, 8, 17)), "17 Agustus 2025")


class TestCalendarDaysAfter(unittest.TestCase):
    def test_never_negative(self):
        self.assertEqual(calendar_days_after(date(2025, 1, 10), date(2025, 1, 5)), 0)
        self.assertEqual(calendar_days_after(date(2025, 1, 10), date(2025, 1, 10)), 0)
        self.assertEqual(calendar_days_after(date(2025, 1, 10), date(2025, 1, 11)), 1)


if __name__ == "__main__":
    unittest.main()
