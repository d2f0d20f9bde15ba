"""
Month helpers.

Months are identified by their first day (a ``date``) in the database and by a
"YYYY-MM" key at the API boundary.
"""
import calendar
from datetime import date, datetime
from typing import List

from ledger.errors import ValidationError


MONTH_FORMAT = "%Y-%m"


def month_start(value: date) -> date:
    return value.replace(day=1)


def month_key(value: date) -> str:
    return value.strftime(MONTH_FORMAT)


def parse_month_key(key: str) -> date:
    """Parse a "YYYY-MM" key into the first day of that month."""
    try:
        return datetime.strptime(key, MONTH_FORMAT).date()
    except (TypeError, ValueError):
        raise ValidationError.field("month", f"Invalid month '{key}', expected YYYY-MM")


def days_in_month(value: date) -> int:
    return calendar.monthrange(value.year, value.month)[1]


def add_months(value: date, months: int) -> date:
    """Shift a month start by a (possibly negative) number of months."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def clamp_day(month: date, day_of_month: int) -> date:
    # Day 31 in a 30-day month lands on the 30th, Feb lands on 28/29
    return month.replace(day=min(day_of_month, days_in_month(month)))


def previous_months(value: date, count: int) -> List[date]:
    """The month of ``value`` and the ``count - 1`` months before it, oldest first."""
    start = month_start(value)
    return [add_months(start, -offset) for offset in range(count - 1, -1, -1)]
