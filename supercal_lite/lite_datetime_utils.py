"""Date utilities for recurrence expansion and ICS values - SuperCal Lite.

Weekdays are indexed 0=Sunday..6=Saturday everywhere in this package. Date
construction rolls overflowing months and days forward (month 13 is January of
the next year, April 31 is May 1) instead of clamping.
"""

import logging
from datetime import UTC, date, datetime, time, timedelta

from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta
from icalendar import vDate, vDatetime

logger = logging.getLogger(__name__)

# Sunday-first, indexed by weekday_index()
_RELATIVE_WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)

ICS_DAY_CODES = ("SU", "MO", "TU", "WE", "TH", "FR", "SA")
ICS_DAY_INDEX = {code: index for index, code in enumerate(ICS_DAY_CODES)}

END_OF_DAY = time(23, 59, 59)


def now_utc() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def weekday_index(day: date) -> int:
    """Return the weekday of ``day`` as 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def normalized_date(year: int, month: int, day: int) -> date:
    """Build a date from possibly out-of-range month and day numbers.

    Args:
        year: Calendar year
        month: 1-based month, may exceed 12 (or drop below 1)
        day: 1-based day of month, may exceed the month's length

    Returns:
        The date reached by carrying the overflow forward

    Examples:
        >>> normalized_date(2024, 14, 1)
        datetime.date(2025, 2, 1)
        >>> normalized_date(2025, 4, 31)
        datetime.date(2025, 5, 1)
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return date(year, month, 1) + timedelta(days=day - 1)


def add_months(day: date, months: int) -> date:
    """Advance ``day`` by whole months, rolling a missing day into the next month."""
    return normalized_date(day.year, day.month + months, day.day)


def add_years(day: date, years: int) -> date:
    """Advance ``day`` by whole years; February 29 rolls to March 1."""
    return normalized_date(day.year + years, day.month, day.day)


def nth_weekday_of_month(year: int, month: int, day_of_week: int, week_number: int) -> date:
    """Resolve "the Nth <weekday> of a month".

    Positive ``week_number`` counts from the first of the month, negative from
    its last day (-1 is the last occurrence). Nothing is clamped: asking for a
    fifth weekday that the month does not have returns a date in the following
    month, so callers must only request occurrences that exist.

    Args:
        year: Calendar year
        month: 1-based month; overflow is carried into the year
        day_of_week: 0=Sunday .. 6=Saturday
        week_number: 1..4 or a negative ordinal counted from month end

    Returns:
        The resolved date
    """
    first = normalized_date(year, month, 1)
    weekday = _RELATIVE_WEEKDAYS[day_of_week]
    if week_number > 0:
        return first + relativedelta(weekday=weekday(week_number))
    return first + relativedelta(day=31, weekday=weekday(week_number))


def format_ics_date(day: date) -> str:
    """Format a DATE value (YYYYMMDD)."""
    return day.strftime("%Y%m%d")


def format_ics_datetime(moment: datetime) -> str:
    """Format a UTC DATE-TIME value (YYYYMMDDTHHMMSSZ).

    Naive datetimes are taken to already be UTC; aware ones are converted.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone(UTC)
    return moment.strftime("%Y%m%dT%H%M%SZ")


def parse_ics_date(value: str) -> date:
    """Parse a DATE value (YYYYMMDD).

    Raises:
        ValueError: If the value is not a date
    """
    return vDate.from_ical(value.strip())


def parse_ics_datetime(value: str) -> datetime:
    """Parse a DATE-TIME value, ignoring any trailing UTC marker.

    A bare date is accepted and read as midnight.

    Returns:
        Naive datetime

    Raises:
        ValueError: If the value is not a date-time
    """
    cleaned = value.strip().rstrip("Z")
    if "T" not in cleaned:
        return datetime.combine(vDate.from_ical(cleaned), time.min)
    return vDatetime.from_ical(cleaned)
