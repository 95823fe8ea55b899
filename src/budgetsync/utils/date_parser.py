"""Date parsing utilities."""

from datetime import date, timedelta

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_date(date_str: str, dayfirst: bool = False) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2024-01-15", "15.01.2024" with ``dayfirst``)
    and a few relative forms: "today", "yesterday", "N days ago",
    "this month", "last month", "this year".

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "this month": today.replace(day=1),
        "last month": (today - relativedelta(months=1)).replace(day=1),
        "this year": today.replace(month=1, day=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    parts = date_str.split()
    if len(parts) == 3 and parts[1] in ("day", "days") and parts[2] == "ago" and parts[0].isdigit():
        return today - timedelta(days=int(parts[0]))

    try:
        return date_parser.parse(date_str, dayfirst=dayfirst).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")
