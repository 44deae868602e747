from __future__ import annotations

from datetime import date, time
from decimal import Decimal

from django.test import SimpleTestCase

from ..utils import calculate_leave_days, calculate_overtime_hours


class LeaveDayCountTests(SimpleTestCase):
    def test_full_week_counts_weekdays_only(self):
        self.assertEqual(calculate_leave_days(date(2030, 3, 4), date(2030, 3, 10)), Decimal(5))

    def test_weekend_only_range_counts_zero(self):
        self.assertEqual(calculate_leave_days(date(2030, 3, 9), date(2030, 3, 10)), Decimal(0))

    def test_half_day_on_single_weekday(self):
        self.assertEqual(calculate_leave_days(date(2030, 3, 4), date(2030, 3, 4), half_day=True), Decimal("0.5"))

    def test_half_day_ignored_for_longer_ranges(self):
        self.assertEqual(calculate_leave_days(date(2030, 3, 4), date(2030, 3, 5), half_day=True), Decimal(2))


class OvertimeHoursTests(SimpleTestCase):
    def test_same_day_span(self):
        start_at, end_at, hours = calculate_overtime_hours(date(2030, 3, 4), time(18, 0), time(20, 30))
        self.assertEqual(hours, Decimal("2.50"))
        self.assertEqual(start_at.date(), end_at.date())

    def test_overnight_span_rolls_to_next_day(self):
        start_at, end_at, hours = calculate_overtime_hours(date(2030, 3, 4), time(22, 0), time(2, 0))
        self.assertEqual(hours, Decimal("4.00"))
        self.assertEqual(end_at.date(), date(2030, 3, 5))
