"""Duration helpers shared by the request forms and the workflow."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Tuple

from django.conf import settings
from django.utils import timezone

HALF_DAY = Decimal("0.5")


def calculate_leave_days(start: date, end: date, half_day: bool = False) -> Decimal:
    """Count the weekdays in ``[start, end]``.

    A half-day request that covers exactly one weekday counts as 0.5.
    Weekends never count.
    """
    if end < start:
        return Decimal(0)
    days = 0
    day = start
    while day <= end:
        if day.weekday() < 5:
            days += 1
        day += timedelta(days=1)
    if half_day and days == 1:
        return HALF_DAY
    return Decimal(days)


def calculate_overtime_hours(work_date: date, start: time, end: time) -> Tuple[datetime, datetime, Decimal]:
    """Return the start/end datetimes and the hours worked.

    An end time earlier than the start time is taken to fall on the next day.
    """
    start_at = datetime.combine(work_date, start)
    end_at = datetime.combine(work_date, end)
    if end_at < start_at:
        end_at += timedelta(days=1)
    hours = Decimal((end_at - start_at).total_seconds()) / Decimal(3600)
    if settings.USE_TZ:
        start_at = timezone.make_aware(start_at)
        end_at = timezone.make_aware(end_at)
    return start_at, end_at, hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
