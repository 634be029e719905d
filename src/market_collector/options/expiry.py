from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

THURSDAY = 3


def last_thursday(year: int, month: int) -> date:
    """Last Thursday of the given month (monthly F&O expiry)."""
    day = date(year, month, calendar.monthrange(year, month)[1])
    while day.weekday() != THURSDAY:
        day -= timedelta(days=1)
    return day


def next_expiry(reference_date: date | datetime) -> date:
    """
    Next monthly expiry on or after ``reference_date``.

    This month's last Thursday, or next month's when it has already passed.
    Expiry day itself counts as not passed.
    """
    if isinstance(reference_date, datetime):
        reference_date = reference_date.date()

    candidate = last_thursday(reference_date.year, reference_date.month)
    if candidate < reference_date:
        year, month = reference_date.year, reference_date.month + 1
        if month > 12:
            year, month = year + 1, 1
        return last_thursday(year, month)
    return candidate
