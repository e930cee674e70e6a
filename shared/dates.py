"""
Best-effort date handling shared by the normalizer, detector and assembler.

All parsed values are naive UTC datetimes so they compare safely regardless
of the source's timezone notation.
"""

import calendar
from datetime import datetime, timezone
from typing import Any, Optional

# Tried in order after datetime.fromisoformat
DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
    "%d-%b-%Y %H:%M:%S",
    "%d-%b-%Y",
    "%b %d, %Y",
    "%d %b %Y",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_date(value: Any) -> Optional[datetime]:
    """Parse a date from the formats ticketing exports commonly use.

    Returns None for empty or unparseable values; never raises.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return _to_naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return _to_naive_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue
    return None


def subtract_months(moment: datetime, months: int) -> datetime:
    """Step back whole calendar months, clamping the day to the target month"""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def date_sort_key(value: Any) -> datetime:
    """Sort key where unparseable dates come first"""
    return parse_date(value) or datetime.min


def format_day(value: Any) -> str:
    """YYYY-MM-DD when parseable, otherwise the raw value unchanged"""
    parsed = parse_date(value)
    if parsed is None:
        return "" if value is None else str(value)
    return parsed.strftime("%Y-%m-%d")
