"""
Temporal utilities

Timestamp parsing, relative-expression resolution and range checks for the
symbolic layer. Naive datetimes are treated as UTC; weeks start on Monday.
"""

import calendar
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

logger = logging.getLogger("mnemo.common.temporal")

TimeLike = Union[str, datetime, None]

_IN_RE = re.compile(r"^in\s+(\d+)\s+(hour|day|week|month|year)s?$")
_AGO_RE = re.compile(r"^(\d+)\s+(hour|day|week|month|year)s?\s+ago$")
_LAST_NEXT_RE = re.compile(r"^(last|next)\s+(week|month|year)$")
_MONTH_YEAR_RE = re.compile(
    r"^(" + "|".join(m.lower() for m in calendar.month_name[1:]) + r")\s+(\d{4})$"
)


def to_datetime(value: TimeLike) -> Optional[datetime]:
    """Parse an ISO-8601 (or free-form) timestamp; None if unparseable"""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            dt = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                dt = date_parser.parse(text)
            except (ValueError, OverflowError):
                return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _shift(dt: datetime, unit: str, amount: int) -> datetime:
    return dt + relativedelta(**{f"{unit}s": amount})


def start_of(dt: datetime, unit: str) -> datetime:
    """Truncate to the start of the enclosing day, week, month or year"""
    day_start = dt.replace(hour=0, minute=0, second=0, microsecond=0)
    if unit == "day":
        return day_start
    if unit == "week":
        return day_start - timedelta(days=day_start.weekday())
    if unit == "month":
        return day_start.replace(day=1)
    if unit == "year":
        return day_start.replace(month=1, day=1)
    raise ValueError(f"Unsupported unit: {unit}")


def end_of(dt: datetime, unit: str) -> datetime:
    """Last microsecond of the enclosing day, week, month or year"""
    return _shift(start_of(dt, unit), unit, 1) - timedelta(microseconds=1)


def now() -> str:
    """Current instant in ISO-8601"""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(text: str, reference: TimeLike = None) -> str:
    """
    Normalize a timestamp expression to ISO-8601.

    Understands ISO strings, "now", "today", "tomorrow", "yesterday",
    "in N <unit>s", "N <unit>s ago", "last/next week|month|year" and
    free-form dates. Returns the input unchanged when nothing matches.

    Args:
        text: Timestamp expression
        reference: Anchor for relative expressions (default: now)
    """
    ref = to_datetime(reference) or datetime.now(timezone.utc)
    lower = text.lower().strip()

    try:
        return to_datetime(date_parser.isoparse(text.strip())).isoformat()
    except (ValueError, OverflowError):
        pass

    if lower == "now":
        return ref.isoformat()
    if lower == "today":
        return start_of(ref, "day").isoformat()
    if lower == "tomorrow":
        return start_of(ref + timedelta(days=1), "day").isoformat()
    if lower == "yesterday":
        return start_of(ref - timedelta(days=1), "day").isoformat()

    match = _IN_RE.match(lower)
    if match:
        return _shift(ref, match.group(2), int(match.group(1))).isoformat()

    match = _AGO_RE.match(lower)
    if match:
        return _shift(ref, match.group(2), -int(match.group(1))).isoformat()

    match = _LAST_NEXT_RE.match(lower)
    if match:
        direction = -1 if match.group(1) == "last" else 1
        unit = match.group(2)
        return start_of(_shift(ref, unit, direction), unit).isoformat()

    parsed = to_datetime(text)
    if parsed is not None:
        return parsed.isoformat()

    logger.debug("Unparseable timestamp expression: %r", text)
    return text


def parse_time_range(expression: str, reference: TimeLike = None) -> Tuple[str, str]:
    """
    Resolve a time range expression to inclusive ISO-8601 bounds.

    Understands "last/this week|month", "<Month> <YYYY>" and single dates
    (expanded to the whole day). Anything else spans epoch to +100 years.

    Returns:
        (start, end) tuple
    """
    ref = to_datetime(reference) or datetime.now(timezone.utc)
    lower = expression.lower().strip()

    if lower in ("last week", "last month"):
        unit = lower.split()[1]
        prev = _shift(ref, unit, -1)
        return start_of(prev, unit).isoformat(), end_of(prev, unit).isoformat()

    if lower in ("this week", "this month"):
        unit = lower.split()[1]
        return start_of(ref, unit).isoformat(), end_of(ref, unit).isoformat()

    match = _MONTH_YEAR_RE.match(lower)
    if match:
        month = [m.lower() for m in calendar.month_name].index(match.group(1))
        first = datetime(int(match.group(2)), month, 1, tzinfo=timezone.utc)
        return first.isoformat(), end_of(first, "month").isoformat()

    single = to_datetime(expression)
    if single is not None:
        return start_of(single, "day").isoformat(), end_of(single, "day").isoformat()

    epoch = datetime.fromtimestamp(0, tz=timezone.utc)
    return epoch.isoformat(), _shift(datetime.now(timezone.utc), "year", 100).isoformat()


def get_time_diff_seconds(a: TimeLike, b: TimeLike) -> float:
    """Absolute difference in seconds; infinity when either side is unknown"""
    time_a = to_datetime(a)
    time_b = to_datetime(b)
    if time_a is None or time_b is None:
        return float("inf")
    return abs((time_a - time_b).total_seconds())


def is_within_range(timestamp: TimeLike, start: TimeLike = None, end: TimeLike = None) -> bool:
    """
    Check if a timestamp falls within [start, end].

    A missing or unparseable bound is treated as open. A missing or
    unparseable timestamp is never in range.
    """
    time = to_datetime(timestamp)
    if time is None:
        return False

    start_time = to_datetime(start)
    if start_time is not None and time < start_time:
        return False

    end_time = to_datetime(end)
    if end_time is not None and time > end_time:
        return False

    return True


def format_timestamp(timestamp: TimeLike) -> str:
    """Format for display as 'D Month YYYY at h:mm AM'"""
    time = to_datetime(timestamp)
    if time is None:
        return "" if timestamp is None else str(timestamp)

    hour = time.hour % 12 or 12
    meridiem = "AM" if time.hour < 12 else "PM"
    return f"{time.day} {calendar.month_name[time.month]} {time.year} at {hour}:{time.minute:02d} {meridiem}"
