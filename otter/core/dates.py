"""
Date helpers for MM-DD-YY sheet dates.

Sheet cells carry dates as ``MM-DD-YY`` strings. Parsing is strict: any cell
that is not a real calendar date in that format is treated as "no date".
"""

import re
from datetime import date, datetime
from zoneinfo import ZoneInfo

from ..utils.exceptions import ValidationError

DATE_FORMAT = "%m-%d-%y"
DATE_PATTERN = re.compile(r"^\d{2}-\d{2}-\d{2}$")
DEFAULT_TIMEZONE = "America/Los_Angeles"


def parse_mmddyy(value: object) -> date | None:
    """Parse an ``MM-DD-YY`` string, returning ``None`` when it is not one."""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        return None


def in_range(value: object, start: object, end: object) -> bool:
    """True iff ``start <= value <= end``; false if any date does not parse."""
    d = parse_mmddyy(value)
    s = parse_mmddyy(start)
    e = parse_mmddyy(end)

    if d is None or s is None or e is None:
        return False

    return s <= d <= e


def is_valid_mmddyy(value: object) -> bool:
    return parse_mmddyy(value) is not None


def validate_date_range(start: str, end: str) -> tuple[str, str]:
    """Check a user-supplied range and return it unchanged."""
    for field_name, value in (("start_date", start), ("end_date", end)):
        if not is_valid_mmddyy(value):
            raise ValidationError(
                f"Invalid {field_name.replace('_', ' ')}. Use MM-DD-YY.",
                field_name=field_name,
                field_value=value,
                validation_rule="MM-DD-YY",
            )

    if parse_mmddyy(start) > parse_mmddyy(end):
        raise ValidationError(
            "Start date must not be after end date",
            field_name="start_date",
            field_value=start,
            validation_rule="start_date <= end_date",
        )

    return start, end


def is_cohort_year_in_range(cohort: object, year: object, start: str, end: str) -> bool:
    """
    Check whether a cohort month/year falls inside a date range.

    ``cohort`` is a two-digit month and ``year`` a two-digit year. Only the
    month and year of the range bounds matter, so a cohort of the same month
    as ``start`` is included even if ``start`` is late in that month.
    """
    s = parse_mmddyy(start)
    e = parse_mmddyy(end)
    if s is None or e is None:
        return False

    try:
        month = int(str(cohort).strip())
        yy = int(str(year).strip())
    except ValueError:
        return False

    if not 1 <= month <= 12 or not 0 <= yy <= 99:
        return False

    key = (yy, month)
    return (s.year % 100, s.month) <= key <= (e.year % 100, e.month)


def today_mmddyy(tz: str = DEFAULT_TIMEZONE) -> str:
    return datetime.now(ZoneInfo(tz)).strftime(DATE_FORMAT)


def format_cache_timestamp(dt: datetime) -> str:
    """Render ``dt`` as ``MM-DD-YY at H:MM AM``."""
    hour = dt.hour % 12 or 12
    return f"{dt.strftime(DATE_FORMAT)} at {hour}:{dt.minute:02d} {'AM' if dt.hour < 12 else 'PM'}"


def parse_cache_timestamp(text: object, tz: str = DEFAULT_TIMEZONE) -> datetime | None:
    """Parse a cache stamp back into an aware datetime in ``tz``."""
    if not isinstance(text, str):
        return None
    try:
        naive = datetime.strptime(text, f"{DATE_FORMAT} at %I:%M %p")
    except ValueError:
        return None
    return naive.replace(tzinfo=ZoneInfo(tz))


def now_in(tz: str = DEFAULT_TIMEZONE) -> datetime:
    return datetime.now(ZoneInfo(tz))
