"""
Pure helpers for wall-clock arithmetic.

Times of day are handled as minutes since local midnight. Day of week
follows the business-hours convention used by the directory:
0 = Sunday, 1 = Monday ... 6 = Saturday.
"""

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from app.core.exceptions import FormatError

_TIME_OF_DAY = re.compile(r"^(\d{1,2}):(\d{2})$")

MINUTES_PER_DAY = 24 * 60


def time_string_to_minutes(value: str) -> int:
    """Parse "HH:MM" into minutes after midnight. "24:00" means end of day."""
    match = _TIME_OF_DAY.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise FormatError(f"Invalid time of day: {value!r}", details={"value": value})

    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59 or hours > 24 or (hours == 24 and minutes != 0):
        raise FormatError(f"Invalid time of day: {value!r}", details={"value": value})
    return hours * 60 + minutes


def minutes_to_datetime(day: date, minutes: int, tz: tzinfo = timezone.utc) -> datetime:
    """Local wall-clock time `minutes` after midnight of `day` in `tz`."""
    return datetime.combine(day, time.min, tzinfo=tz) + timedelta(minutes=minutes)


def day_of_week(day: date) -> int:
    return day.isoweekday() % 7


def local_date(moment: datetime, tz: tzinfo) -> date:
    return moment.astimezone(tz).date()


def hours_between(start: datetime, end: datetime) -> float:
    """Signed hours from `start` to `end`; negative when `end` is earlier."""
    return (end - start).total_seconds() / 3600


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """[start, end) of the local calendar day, as UTC instants."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
