"""Date parsing and day-bound utilities."""

from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

DateLike = Union[date, datetime]

END_OF_DAY = time(23, 59, 59, 999000)

PERIODS = ("this-month", "this-year", "this-week", "last-month", "last-year", "last-week")


def parse_date(date_str: str, today: Optional[date] = None) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2024-01-15", "January 15, 2024") and the
    relative forms "today", "yesterday", "tomorrow", and "this/last/next"
    followed by "week", "month" or "year" (the first day of that period).

    Args:
        date_str: Date string in various formats
        today: Reference date for relative forms (defaults to today)

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = today or date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    for prefix, offset in (("last ", -1), ("this ", 0), ("next ", 1)):
        if date_str.startswith(prefix):
            period = date_str[len(prefix):]
            if period == "week":
                monday = today - timedelta(days=today.weekday())
                return monday + timedelta(weeks=offset)
            if period == "month":
                return (today + relativedelta(months=offset)).replace(day=1)
            if period == "year":
                return today.replace(month=1, day=1) + relativedelta(years=offset)

    try:
        return date_parser.parse(date_str).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def parse_timestamp(value: str) -> DateLike:
    """Parse a stored date, keeping the time of day only when one is present.

    The host application stores most dates as "YYYY-MM-DD" and some as full
    ISO timestamps. Time-zone information is dropped; reports work in local
    calendar days.

    Raises:
        ValueError: If the value cannot be parsed
    """
    value = value.strip()
    try:
        parsed = date_parser.isoparse(value)
    except ValueError:
        try:
            parsed = date_parser.parse(value)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Could not parse date '{value}': {e}")

    if len(value) <= 10:
        return parsed.date()
    return parsed.replace(tzinfo=None)


def as_date(value: DateLike) -> date:
    """Return the calendar day of a date or datetime."""
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_day(value: DateLike) -> datetime:
    """Return midnight at the start of the given day."""
    return datetime.combine(as_date(value), time.min)


def end_of_day(value: DateLike) -> datetime:
    """Return 23:59:59.999 on the given day."""
    return datetime.combine(as_date(value), END_OF_DAY)


def as_moment(value: DateLike) -> datetime:
    """Return a comparable datetime; plain dates become start of day."""
    if isinstance(value, datetime):
        return value
    return start_of_day(value)


def in_range(value: DateLike, start: Optional[DateLike], end: Optional[DateLike]) -> bool:
    """Check a date against an inclusive day range.

    The start bound is the start of its day and the end bound the end of its
    day, so anything dated on the end day is inside the range whatever its
    time of day.
    """
    moment = as_moment(value)
    if start is not None and moment < start_of_day(start):
        return False
    if end is not None and moment > end_of_day(end):
        return False
    return True


def get_date_range(period: str, today: Optional[date] = None) -> tuple[date, date]:
    """Get start and end dates for a specified period.

    Args:
        period: One of this-month, this-year, this-week, last-month,
            last-year, last-week
        today: Reference date (defaults to today)

    Returns:
        Tuple of (start_date, end_date) for the specified period

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = today or date.today()

    if period == "this-month":
        return today.replace(day=1), today

    if period == "this-year":
        return today.replace(month=1, day=1), today

    if period == "this-week":
        return today - timedelta(days=today.weekday()), today

    if period == "last-month":
        start = (today - relativedelta(months=1)).replace(day=1)
        return start, today.replace(day=1) - timedelta(days=1)

    if period == "last-year":
        start = today.replace(month=1, day=1) - relativedelta(years=1)
        return start, today.replace(month=1, day=1) - timedelta(days=1)

    if period == "last-week":
        start = today - timedelta(days=today.weekday() + 7)
        return start, start + timedelta(days=6)

    raise ValueError(f"Unknown period: '{period}'. Supported periods: {', '.join(PERIODS)}")
