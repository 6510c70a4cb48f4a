"""
Business-day and quarter arithmetic.

Pure functions with no I/O. Business days are Monday through Friday; there
is no holiday calendar. Any function taking a "day" accepts either a date or
a datetime; datetimes are truncated to their calendar day.

Quarters use fixed three-month boundaries (Q1 = Jan-Mar, Q2 = Apr-Jun,
Q3 = Jul-Sep, Q4 = Oct-Dec). Both bounds are inclusive days.

Usage:
    from revops_triage.services.business_calendar import business_days_between

    business_days_between(date(2026, 1, 9), date(2026, 1, 12))  # Fri -> Mon == 1
"""

import calendar
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple, Union

from revops_triage.core.errors import TriageValidationError


DayLike = Union[date, datetime]

# date.weekday(): Monday == 0 ... Sunday == 6
_FIRST_WEEKEND_DAY = 5

_QUARTER_LABEL = re.compile(r"^Q([1-4])\s+(\d{4})$")


@dataclass(frozen=True)
class QuarterBounds:
    year: int
    quarter: int
    start: date
    end: date

    @property
    def label(self) -> str:
        return f"Q{self.quarter} {self.year}"


def to_day(value: DayLike) -> date:
    """Truncate a datetime to its calendar day; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def is_business_day(value: DayLike) -> bool:
    return to_day(value).weekday() < _FIRST_WEEKEND_DAY


def business_days_between(start: DayLike, end: DayLike) -> int:
    """
    Count business days from start (inclusive) to end (exclusive).

    Returns 0 when end is on or before start, so the result is never
    negative. Saturday to the following Monday is 0; Friday to Monday is 1.
    """
    start_day = to_day(start)
    end_day = to_day(end)
    if end_day <= start_day:
        return 0

    total_days = (end_day - start_day).days
    full_weeks, remainder = divmod(total_days, 7)
    count = full_weeks * 5

    weekday = start_day.weekday()
    for offset in range(remainder):
        if (weekday + offset) % 7 < _FIRST_WEEKEND_DAY:
            count += 1
    return count


def add_business_days(start: DayLike, days: int) -> date:
    """Move forward `days` business days from start, skipping weekends."""
    current = to_day(start)
    remaining = days
    while remaining > 0:
        current += timedelta(days=1)
        if current.weekday() < _FIRST_WEEKEND_DAY:
            remaining -= 1
    return current


def start_of_day(value: DayLike) -> datetime:
    """Midnight at the start of value's day, keeping any tzinfo."""
    if isinstance(value, datetime):
        return datetime.combine(value.date(), time.min, tzinfo=value.tzinfo)
    return datetime.combine(value, time.min)


def end_of_day(value: DayLike) -> datetime:
    """Last representable instant of value's day, keeping any tzinfo."""
    if isinstance(value, datetime):
        return datetime.combine(value.date(), time.max, tzinfo=value.tzinfo)
    return datetime.combine(value, time.max)


def days_until(target: DayLike, today: DayLike) -> int:
    """Signed calendar days from today to target; negative once target has passed."""
    return (to_day(target) - to_day(today)).days


def is_date_in_past(value: DayLike, today: DayLike) -> bool:
    """True when value's day is strictly before today's day."""
    return to_day(value) < to_day(today)


# =============================================================================
# Quarters
# =============================================================================

def quarter_bounds(year: int, quarter: int) -> QuarterBounds:
    """
    First and last day of a calendar quarter.

    Raises:
        TriageValidationError: If quarter is not 1-4.
    """
    if quarter not in (1, 2, 3, 4):
        raise TriageValidationError("quarter", f"must be 1-4, got {quarter}")

    first_month = (quarter - 1) * 3 + 1
    last_month = first_month + 2
    last_day = calendar.monthrange(year, last_month)[1]
    return QuarterBounds(
        year=year,
        quarter=quarter,
        start=date(year, first_month, 1),
        end=date(year, last_month, last_day),
    )


def quarter_for(value: DayLike) -> QuarterBounds:
    day = to_day(value)
    return quarter_bounds(day.year, (day.month - 1) // 3 + 1)


def quarter_progress(value: DayLike) -> int:
    """Percent of value's quarter elapsed, counting value's own day, 0-100."""
    day = to_day(value)
    bounds = quarter_for(day)
    total = (bounds.end - bounds.start).days + 1
    elapsed = (day - bounds.start).days + 1
    return min(100, max(0, math.floor(elapsed / total * 100)))


def parse_quarter_label(label: str) -> Optional[Tuple[int, int]]:
    """Parse "Q3 2025" into (2025, 3); None when the label is malformed."""
    match = _QUARTER_LABEL.match(label.strip())
    if not match:
        return None
    return int(match.group(2)), int(match.group(1))


def is_date_in_quarter(value: DayLike, year: int, quarter: int) -> bool:
    bounds = quarter_bounds(year, quarter)
    return bounds.start <= to_day(value) <= bounds.end


__all__ = [
    "DayLike",
    "QuarterBounds",
    "to_day",
    "is_business_day",
    "business_days_between",
    "add_business_days",
    "start_of_day",
    "end_of_day",
    "days_until",
    "is_date_in_past",
    "quarter_bounds",
    "quarter_for",
    "quarter_progress",
    "parse_quarter_label",
    "is_date_in_quarter",
]
