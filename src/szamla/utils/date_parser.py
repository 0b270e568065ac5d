"""Date parsing utilities."""

import re
from datetime import date, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

# "+8", "+8d", "in 8 days", "+2w", "+1m": offsets from today
_OFFSET_PATTERN = re.compile(r"^(?:\+|in\s+)(\d+)\s*(d|day|days|w|week|weeks|m|month|months)?$")


def parse_date(date_str: str, today: date | None = None) -> date:
    """Parse a date string into a date object.

    Supports:
    - ISO dates: "2024-01-15"
    - Hungarian dates: "2024.01.15." (trailing dot optional)
    - Other absolute dates dateutil understands: "January 15, 2024"
    - Relative dates: "today", "yesterday", "tomorrow", "end of month"
    - Offsets from today: "+8", "in 8 days", "+2w", "+1m"

    Args:
        date_str: Date string in various formats
        today: Reference date for relative dates (defaults to today)

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    text = date_str.strip().lower()
    today = today or date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
        "end of month": today + relativedelta(day=31),
    }
    if text in relative_dates:
        return relative_dates[text]

    match = _OFFSET_PATTERN.match(text)
    if match:
        count = int(match.group(1))
        unit = (match.group(2) or "d")[0]
        if unit == "w":
            return today + timedelta(weeks=count)
        if unit == "m":
            return today + relativedelta(months=count)
        return today + timedelta(days=count)

    # Hungarian notation: 2024.01.15.
    text = text.rstrip(".")
    try:
        return date_parser.parse(text, yearfirst=True).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}") from e


def get_date_range(period: str, today: date | None = None) -> tuple[date, date]:
    """Get start and end dates for a named period.

    Args:
        period: this-month, last-month, this-quarter, this-year or last-year

    Returns:
        Tuple of (start_date, end_date), both inclusive

    Raises:
        ValueError: If period string is not recognized
    """
    period = period.strip().lower()
    today = today or date.today()

    if period == "this-month":
        return today.replace(day=1), today + relativedelta(day=31)
    if period == "last-month":
        start = (today - relativedelta(months=1)).replace(day=1)
        return start, start + relativedelta(day=31)
    if period == "this-quarter":
        start = today.replace(month=3 * ((today.month - 1) // 3) + 1, day=1)
        return start, start + relativedelta(months=3, days=-1)
    if period == "this-year":
        return today.replace(month=1, day=1), today.replace(month=12, day=31)
    if period == "last-year":
        return date(today.year - 1, 1, 1), date(today.year - 1, 12, 31)

    raise ValueError(
        f"Unknown period: '{period}'. Supported periods: this-month, last-month, this-quarter, this-year, last-year"
    )
